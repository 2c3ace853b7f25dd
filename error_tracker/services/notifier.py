"""
Operator channel notifiers.

Posts a short summary of each admitted error to a chat webhook so the
operators see new failures as they happen. Delivery is best effort: it is
never retried, and callers log failures instead of propagating them.
"""

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from error_tracker.exceptions import NotificationError
from error_tracker.models.notification import ErrorNotification


logger = logging.getLogger(__name__)

EMBED_COLOR = 0xF04747


class ErrorNotifier(Protocol):
    """Protocol for sending captured errors to the operator channel."""

    async def notify(self, notification: ErrorNotification) -> None:
        ...


class WebhookNotifier:
    """Sends error summaries to a chat webhook over HTTP."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        details_base_url: Optional[str] = None
    ):
        """
        Initialize the webhook notifier.

        Args:
            webhook_url: Incoming webhook URL of the operator channel
            timeout: Request timeout in seconds
            client: Shared HTTP client; one is created per call when omitted
            details_base_url: Public base URL of this API; when set, notifications
                link to the detail view at ``{base}/api/errors/{id}``
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client = client
        self.details_base_url = details_base_url.rstrip("/") if details_base_url else None

    async def notify(self, notification: ErrorNotification) -> None:
        """
        Post a notification to the operator channel.

        Raises:
            NotificationError: If the request fails or is rejected
        """
        payload = self.build_payload(notification)

        try:
            if self._client is not None:
                response = await self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to reach operator channel: {e}") from e

        if response.status_code >= 300:
            raise NotificationError(
                f"Operator channel rejected notification for {notification.id}: "
                f"HTTP {response.status_code}"
            )

        logger.debug(f"Sent notification for error {notification.id}")

    def details_url(self, error_id: str) -> Optional[str]:
        """Link to the stored record, or None when no public base URL is set."""
        if not self.details_base_url:
            return None
        return f"{self.details_base_url}/api/errors/{error_id}"

    def build_payload(self, notification: ErrorNotification) -> Dict[str, Any]:
        """Build the chat webhook body for a notification."""
        fields = [
            {"name": "Error ID", "value": notification.id, "inline": True},
            {"name": "Context", "value": notification.context_label, "inline": True},
            {
                "name": "User",
                "value": f"<@{notification.user_id}>" if notification.user_id else "Unknown",
                "inline": True,
            },
            {"name": "Command", "value": notification.command or "Unknown", "inline": True},
            {"name": "Guild", "value": notification.guild_id or "DM/Unknown", "inline": True},
            {
                "name": "Channel",
                "value": f"<#{notification.channel_id}>" if notification.channel_id else "Unknown",
                "inline": True,
            },
        ]
        embed: Dict[str, Any] = {
            "title": "Error Captured",
            "color": EMBED_COLOR,
            "fields": fields,
            "timestamp": notification.timestamp.isoformat(),
        }

        details_url = self.details_url(notification.id)
        if details_url:
            embed["url"] = details_url
            fields.append({"name": "Details", "value": f"[View error]({details_url})", "inline": False})

        return {"embeds": [embed]}


def create_notifier(config: Any = None) -> Optional[ErrorNotifier]:
    """
    Build the configured notifier, or None when no channel is set.

    Args:
        config: Settings object. If None, the global settings are used.
    """
    if config is None:
        from error_tracker.config import settings as config

    if not config.error_log_webhook_url:
        return None
    return WebhookNotifier(
        webhook_url=config.error_log_webhook_url,
        timeout=config.notification_timeout_seconds,
        details_base_url=config.public_base_url
    )
