"""
Capture pipeline for unexpected failures.

``ErrorReporter.capture`` is the single entry point handlers call with
whatever they caught. It fingerprints the failure, logs it, records it in
the configured store and, when the throttle admits it, notifies the
operator channel. Every bookkeeping stage is best effort: a failing store
or channel is logged and never replaces the id handed back to the caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel

from error_tracker.models.api_response import StageResult
from error_tracker.models.error import ErrorRecord, ErrorReport
from error_tracker.models.failure import ExpectedFailure, Fault, classify_failure
from error_tracker.models.notification import ErrorNotification
from error_tracker.services.error_store import ErrorStore
from error_tracker.services.fingerprint import clean_stack_trace, generate_error_id
from error_tracker.services.notifier import ErrorNotifier
from error_tracker.services.throttle import NotificationThrottle
from error_tracker.utils.logging import (
    get_logger,
    log_error_captured,
    log_notification_throttled,
    log_stage_failure,
)
from error_tracker.utils.metrics import PipelineMetrics, track_stage

logger = get_logger(__name__)

USER_MESSAGE_TEMPLATE = (
    "An unexpected error occurred. Please report this ID to the support team: **{error_id}**"
)


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class ErrorReporter:
    """Fingerprints, stores and forwards captured failures."""

    def __init__(
        self,
        store: Optional[ErrorStore] = None,
        notifier: Optional[ErrorNotifier] = None,
        throttle: Optional[NotificationThrottle] = None,
        metrics: Optional[PipelineMetrics] = None,
        support_url: Optional[str] = None,
    ):
        """
        Initialize the reporter.

        Args:
            store: Error store; when None captures are only logged
            notifier: Operator channel; when None no notifications are sent
            throttle: Notification throttle shared by all captures
            metrics: Pipeline counters
            support_url: Link offered to users alongside the error id
        """
        self.store = store
        self.notifier = notifier
        self.throttle = throttle or NotificationThrottle()
        self.metrics = metrics or PipelineMetrics()
        self.support_url = support_url

    async def capture(
        self,
        error: Any,
        context_label: str,
        meta: Any = None,
        notify: bool = True,
        severity: Optional[str] = None,
    ) -> ErrorReport:
        """
        Capture a failure raised while handling ``context_label``.

        Expected failures (``UserError``) are returned untouched with their
        own message. Anything else gets an id, a log entry, a store record
        when a store is configured, and a throttled operator notification.

        Args:
            error: Whatever was raised
            context_label: Short label of the failing operation, e.g. ``command:pay``
            meta: Caller context (``ErrorMeta``, dict or None)
            notify: Attempt an operator notification
            severity: Severity stored on first occurrence (default ``error``)

        Returns:
            ErrorReport with the public id and the message to show the user
        """
        failure = classify_failure(error)

        if isinstance(failure, ExpectedFailure):
            self.metrics.increment("expected")
            logger.debug(f"Expected failure in {context_label}: {failure.message}")
            return ErrorReport(user_message=failure.message, expected=True)

        error_id = generate_error_id(failure, context_label)
        meta_fields = self._meta_dict(meta)

        if isinstance(failure, Fault):
            name: Optional[str] = failure.name
            message = failure.message
            stack = clean_stack_trace(failure.stack) if failure.stack else None
        else:
            name, message, stack = None, failure.text, None

        self.metrics.increment("captured")
        log_error_captured(
            logger,
            error_id=error_id,
            context_label=context_label,
            message=message,
            name=name,
            stack=stack,
            meta=meta_fields,
        )

        persisted = await self._persist(
            error_id=error_id,
            context_label=context_label,
            message=message,
            name=name,
            stack=stack,
            meta_fields=meta_fields,
            severity=severity,
        )

        notified = StageResult(success=False, error="Notification not requested")
        throttled = False
        if notify:
            notified, throttled = await self._notify(error_id, context_label, meta_fields)

        return ErrorReport(
            id=error_id,
            user_message=USER_MESSAGE_TEMPLATE.format(error_id=error_id),
            support_url=self.support_url,
            persisted=persisted.success,
            notified=notified.success,
            throttled=throttled,
        )

    async def get_by_id(self, error_id: str) -> Optional[ErrorRecord]:
        """Look up a stored error; None when absent or when no store is configured."""
        if self.store is None:
            return None
        return await self.store.get_by_id(error_id)

    async def _persist(
        self,
        error_id: str,
        context_label: str,
        message: str,
        name: Optional[str],
        stack: Optional[str],
        meta_fields: Optional[Dict[str, Any]],
        severity: Optional[str],
    ) -> StageResult:
        if self.store is None:
            return StageResult(success=False, error="No error store configured")

        fields = meta_fields or {}
        try:
            async with track_stage(self.metrics, "persist"):
                await self.store.record_error(
                    error_id=error_id,
                    context=context_label,
                    message=message,
                    name=name,
                    stack=stack,
                    meta=meta_fields,
                    guild_id=_optional_str(fields.get("guild_id")),
                    user_id=_optional_str(fields.get("user_id")),
                    command=_optional_str(fields.get("command")),
                    severity=severity,
                )
        except Exception as e:
            self.metrics.increment("store_failures")
            log_stage_failure(logger, "persist", error_id, e)
            return StageResult(success=False, error=str(e))

        self.metrics.increment("persisted")
        return StageResult(success=True)

    async def _notify(
        self,
        error_id: str,
        context_label: str,
        meta_fields: Optional[Dict[str, Any]],
    ) -> tuple[StageResult, bool]:
        if self.notifier is None:
            return StageResult(success=False, error="No notifier configured"), False

        if not self.throttle.admit(error_id):
            self.metrics.increment("throttled")
            log_notification_throttled(
                logger, error_id, self.throttle.count(error_id), self.throttle.window_seconds
            )
            return StageResult(success=False, error="Throttled"), True

        fields = meta_fields or {}
        notification = ErrorNotification(
            id=error_id,
            context_label=context_label,
            user_id=_optional_str(fields.get("user_id")),
            command=_optional_str(fields.get("command")),
            guild_id=_optional_str(fields.get("guild_id")),
            channel_id=_optional_str(fields.get("channel_id")),
            timestamp=datetime.now(timezone.utc),
        )

        try:
            async with track_stage(self.metrics, "notify"):
                await self.notifier.notify(notification)
        except Exception as e:
            self.metrics.increment("notification_failures")
            log_stage_failure(logger, "notify", error_id, e)
            return StageResult(success=False, error=str(e)), False

        self.metrics.increment("notified")
        return StageResult(success=True), False

    @staticmethod
    def _meta_dict(meta: Any) -> Optional[Dict[str, Any]]:
        if meta is None:
            return None
        if isinstance(meta, BaseModel):
            return meta.model_dump(exclude_none=True)
        if isinstance(meta, dict):
            return {key: value for key, value in meta.items() if value is not None}
        return {"value": meta}


_reporter: Optional[ErrorReporter] = None


def build_error_reporter(config: Any = None) -> ErrorReporter:
    """
    Build a reporter wired from settings.

    Args:
        config: Settings object. If None, the global settings are used.
    """
    if config is None:
        from error_tracker.config import settings as config

    from error_tracker.services.error_store import create_error_store
    from error_tracker.services.notifier import create_notifier

    return ErrorReporter(
        store=create_error_store(config),
        notifier=create_notifier(config),
        throttle=NotificationThrottle(
            limit=config.throttle_limit,
            window_seconds=config.throttle_window_seconds
        ),
        support_url=config.support_url,
    )


def get_error_reporter() -> ErrorReporter:
    """
    Get or create the global error reporter instance.

    Returns:
        ErrorReporter instance
    """
    global _reporter
    if _reporter is None:
        _reporter = build_error_reporter()
    return _reporter


def set_error_reporter(reporter: Optional[ErrorReporter]) -> None:
    """Replace the global reporter (used by tests and custom wiring)."""
    global _reporter
    _reporter = reporter
