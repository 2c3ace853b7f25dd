"""API response data models."""

from typing import Dict, Optional

from pydantic import BaseModel


class StageResult(BaseModel):
    """Result of a best-effort pipeline stage (persist, notify)."""

    success: bool
    error: Optional[str] = None


class PruneResult(BaseModel):
    """Result of pruning old error records."""

    removed: int
    older_than_days: int


class StatusResponse(BaseModel):
    """Diagnostics for the error pipeline."""

    store: str
    notifier: str
    throttle_entries: int
    counters: Dict[str, int]
    latencies: Dict[str, Dict[str, float]] = {}
