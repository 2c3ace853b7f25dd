"""Operator channel notification payload."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ErrorNotification(BaseModel):
    """Payload sent to the operator channel for a captured error."""

    id: str
    context_label: str
    user_id: Optional[str] = None
    command: Optional[str] = None
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    timestamp: datetime
