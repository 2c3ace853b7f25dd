"""
Utility modules for the error tracker.
"""

from error_tracker.utils.logging import (
    get_logger,
    setup_logging,
    log_error_captured,
    log_notification_throttled,
    log_stage_failure,
)
from error_tracker.utils.metrics import (
    PipelineMetrics,
    track_stage,
    emit_metric,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_error_captured",
    "log_notification_throttled",
    "log_stage_failure",
    "PipelineMetrics",
    "track_stage",
    "emit_metric",
]
