"""Error tracking data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict


class Severity(str, Enum):
    """Severity recorded with an error."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorMeta(BaseModel):
    """Context captured alongside a failure; arbitrary extra keys are kept."""

    model_config = ConfigDict(extra="allow")

    user_id: Optional[str] = None
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    command: Optional[str] = None
    options: Optional[Dict[str, Union[str, int, float, bool]]] = None


class ErrorRecord(BaseModel):
    """One persisted record per error id."""

    id: str
    timestamp: datetime
    severity: str = Severity.ERROR.value
    context: str
    name: Optional[str] = None
    message: str
    stack: Optional[str] = None
    guild_id: Optional[str] = None
    user_id: Optional[str] = None
    command: Optional[str] = None
    meta: Optional[Any] = None
    occurrences: int = 1


class ErrorReport(BaseModel):
    """Outcome of capturing a failure, returned to the caller."""

    id: Optional[str] = None
    user_message: str
    support_url: Optional[str] = None
    expected: bool = False
    persisted: bool = False
    notified: bool = False
    throttled: bool = False


class ErrorDetail(BaseModel):
    """Operator-facing rendering of a stored error."""

    id: str
    context: str
    severity: str
    timestamp: str
    name: str
    message: str
    occurrences: int
    user: str
    guild: str
    channel: str
    command: str
    stack: Optional[str] = None

    def to_text(self) -> str:
        """Render the detail as a plain-text block."""
        lines = [
            f"Error {self.id} ({self.severity}, seen {self.occurrences}x)",
            f"Context: {self.context}",
            f"Timestamp: {self.timestamp}",
            f"User: {self.user}",
            f"Guild: {self.guild}",
            f"Channel: {self.channel}",
            f"Command: {self.command}",
            f"Name: {self.name}",
            f"Message: {self.message}",
        ]
        if self.stack:
            lines.append("Stack:")
            lines.append(self.stack)
        return "\n".join(lines)
