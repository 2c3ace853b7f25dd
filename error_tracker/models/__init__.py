"""Data models for the error tracker."""

from .api_response import PruneResult, StageResult, StatusResponse
from .error import ErrorDetail, ErrorMeta, ErrorRecord, ErrorReport, Severity
from .failure import (
    ExpectedFailure,
    Failure,
    Fault,
    Opaque,
    classify_failure,
)
from .notification import ErrorNotification

__all__ = [
    # Error models
    "Severity",
    "ErrorMeta",
    "ErrorRecord",
    "ErrorReport",
    "ErrorDetail",
    # Failure variants
    "Failure",
    "Fault",
    "ExpectedFailure",
    "Opaque",
    "classify_failure",
    # Notification models
    "ErrorNotification",
    # API response models
    "StageResult",
    "PruneResult",
    "StatusResponse",
]
