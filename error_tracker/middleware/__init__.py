"""Request middleware."""

from error_tracker.middleware.capture import (
    CaptureErrorsMiddleware,
    register_error_handlers,
    user_error_handler,
)

__all__ = [
    "CaptureErrorsMiddleware",
    "register_error_handlers",
    "user_error_handler",
]
