"""Error capture, storage and notification services."""

from error_tracker.services.fingerprint import (
    clean_stack_trace,
    generate_error_id,
)
from error_tracker.services.error_store import (
    ErrorStore,
    InMemoryErrorStore,
    create_error_store,
)
from error_tracker.services.throttle import (
    NotificationThrottle,
    ThrottleEntry,
)
from error_tracker.services.notifier import (
    ErrorNotifier,
    WebhookNotifier,
    create_notifier,
)
from error_tracker.services.error_reporter import (
    ErrorReporter,
    USER_MESSAGE_TEMPLATE,
    get_error_reporter,
)
from error_tracker.services.error_detail import (
    render_error_detail,
    truncate,
)

__all__ = [
    'clean_stack_trace',
    'generate_error_id',
    'ErrorStore',
    'InMemoryErrorStore',
    'create_error_store',
    'NotificationThrottle',
    'ThrottleEntry',
    'ErrorNotifier',
    'WebhookNotifier',
    'create_notifier',
    'ErrorReporter',
    'USER_MESSAGE_TEMPLATE',
    'get_error_reporter',
    'render_error_detail',
    'truncate',
]
