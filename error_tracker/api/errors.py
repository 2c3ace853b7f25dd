"""
Operator REST API for captured errors.
"""

import hmac
import logging
from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from error_tracker.config import settings
from error_tracker.models.api_response import PruneResult, StatusResponse
from error_tracker.models.error import ErrorDetail, ErrorMeta, ErrorRecord, ErrorReport
from error_tracker.services.error_detail import render_error_detail
from error_tracker.services.error_reporter import ErrorReporter, get_error_reporter
from error_tracker.services.error_store import ErrorStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/errors", tags=["errors"])

SYNTHETIC_CONTEXT = "manual-test"


async def verify_api_key(x_api_key: str = Header(None)) -> None:
    """
    Verify API key for operator endpoints.

    Args:
        x_api_key: API key from request header

    Raises:
        HTTPException: If API key is invalid, missing or not configured
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    if not settings.admin_api_key or not hmac.compare_digest(x_api_key.encode(), settings.admin_api_key.encode()):
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_reporter() -> ErrorReporter:
    """Dependency returning the process-wide reporter."""
    return get_error_reporter()


def require_store(reporter: ErrorReporter = Depends(get_reporter)) -> ErrorStore:
    """
    Dependency returning the configured store.

    Raises:
        HTTPException: If persistence is disabled
    """
    if reporter.store is None:
        raise HTTPException(
            status_code=503,
            detail="Database is disabled; error tooling unavailable."
        )
    return reporter.store


@router.get("", response_model=List[ErrorRecord], dependencies=[Depends(verify_api_key)])
async def list_errors(
    limit: int = Query(10, ge=1, le=100),
    store: ErrorStore = Depends(require_store)
) -> List[ErrorRecord]:
    """
    List the most recently seen errors.

    Args:
        limit: Maximum number of records to return
    """
    try:
        return await store.list_latest(limit)
    except Exception as e:
        logger.error(f"Error listing errors: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/status", response_model=StatusResponse, dependencies=[Depends(verify_api_key)])
async def get_status(reporter: ErrorReporter = Depends(get_reporter)) -> StatusResponse:
    """Show store, notifier and throttle diagnostics."""
    return StatusResponse(
        store=reporter.store.describe() if reporter.store else "Disabled",
        notifier=type(reporter.notifier).__name__ if reporter.notifier else "Disabled",
        throttle_entries=len(reporter.throttle),
        counters=reporter.metrics.snapshot(),
        latencies=reporter.metrics.latency_summary(),
    )


@router.post("/test", response_model=ErrorReport, dependencies=[Depends(verify_api_key)])
async def create_test_error(
    reporter: ErrorReporter = Depends(get_reporter),
    x_user_id: str = Header(None)
) -> ErrorReport:
    """
    Capture a synthetic error through the full pipeline.

    Useful to check that storage and the operator channel are wired up.
    """
    try:
        raise RuntimeError("Synthetic error from /api/errors/test")
    except RuntimeError as synthetic:
        meta = ErrorMeta(user_id=x_user_id, command="errors test")
        return await reporter.capture(synthetic, SYNTHETIC_CONTEXT, meta)


@router.get("/{error_id}", response_model=ErrorDetail, dependencies=[Depends(verify_api_key)])
async def get_error(
    error_id: str,
    store: ErrorStore = Depends(require_store)
) -> ErrorDetail:
    """
    Look up an error by id.

    Args:
        error_id: Error id shown to the user

    Raises:
        HTTPException: If no error has that id
    """
    try:
        record = await store.get_by_id(error_id)
    except Exception as e:
        logger.error(f"Error looking up error {error_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if not record:
        logger.warning(f"Error not found: {error_id}")
        raise HTTPException(status_code=404, detail="No error found with that ID.")

    return render_error_detail(record)


@router.delete("", response_model=PruneResult, dependencies=[Depends(verify_api_key)])
async def prune_errors(
    older_than_days: int = Query(..., ge=1),
    store: ErrorStore = Depends(require_store)
) -> PruneResult:
    """
    Delete errors last seen more than ``older_than_days`` ago.

    Irreversible.
    """
    try:
        removed = await store.prune(older_than_days)
    except Exception as e:
        logger.error(f"Error pruning errors: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info(f"Pruned {removed} errors older than {older_than_days} days")
    return PruneResult(removed=removed, older_than_days=older_than_days)
