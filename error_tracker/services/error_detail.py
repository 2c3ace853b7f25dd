"""Operator-facing rendering of stored error records."""

from typing import Any, Dict

from error_tracker.models.error import ErrorDetail, ErrorRecord

DEFAULT_STACK_LIMIT = 1500
DEFAULT_MESSAGE_LIMIT = 400


def truncate(value: str, max_len: int = 200) -> str:
    """Shorten ``value`` to ``max_len`` characters, ending with an ellipsis."""
    if len(value) <= max_len:
        return value
    return f"{value[:max_len - 3]}..."


def render_error_detail(
    record: ErrorRecord,
    stack_limit: int = DEFAULT_STACK_LIMIT,
    message_limit: int = DEFAULT_MESSAGE_LIMIT,
) -> ErrorDetail:
    """
    Build the detail view of a stored error.

    User, guild and channel come from the record's columns first and fall
    back to its metadata; metadata that is not a mapping is ignored.
    """
    meta: Dict[str, Any] = record.meta if isinstance(record.meta, dict) else {}

    user_id = record.user_id or meta.get("user_id")
    guild_id = record.guild_id or meta.get("guild_id")
    channel_id = meta.get("channel_id")
    command = record.command or meta.get("command")

    return ErrorDetail(
        id=record.id,
        context=record.context,
        severity=record.severity,
        timestamp=record.timestamp.strftime("%a, %d %b %Y %H:%M:%S UTC"),
        name=record.name or "Unknown",
        message=truncate(record.message, message_limit) or "None",
        occurrences=record.occurrences,
        user=f"<@{user_id}>" if user_id else "Unknown",
        guild=str(guild_id) if guild_id else "DM/Unknown",
        channel=f"<#{channel_id}>" if channel_id else "Unknown",
        command=str(command) if command else "Unknown",
        stack=truncate(record.stack, stack_limit) if record.stack else None,
    )
