"""
Maintenance worker process.

Periodically prunes error records that have not been seen for
``PRUNE_AFTER_DAYS`` days. Runs alongside the API as a separate process
and shuts down gracefully on SIGTERM/SIGINT.
"""

import asyncio
import signal
import sys
from typing import Optional

from error_tracker.config import settings
from error_tracker.services.error_store import ErrorStore, create_error_store
from error_tracker.utils.logging import setup_logging, get_logger
from error_tracker.utils.metrics import emit_metric

logger = get_logger(__name__)


class MaintenanceWorker:
    """Worker process that prunes old error records on a schedule."""

    def __init__(
        self,
        store: Optional[ErrorStore] = None,
        prune_after_days: Optional[int] = None,
        interval_seconds: Optional[float] = None
    ):
        """
        Initialize the worker.

        Args:
            store: Error store to prune. If None, built from settings.
            prune_after_days: Retention in days. If None, taken from settings.
            interval_seconds: Delay between prune runs. If None, taken from settings.
        """
        self.store = store
        self.prune_after_days = prune_after_days if prune_after_days is not None else settings.prune_after_days
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.prune_interval_seconds
        self.running = False
        self._store_open = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """
        Start the worker process.

        Initializes the store and runs the prune loop until stopped.
        """
        logger.info("Starting maintenance worker...")

        if not self.prune_after_days:
            logger.warning("PRUNE_AFTER_DAYS not set; nothing to do")
            return

        if self.store is None:
            self.store = create_error_store(settings)
        if self.store is None:
            logger.warning("No error store configured; nothing to prune")
            return

        await self.store.initialize()
        self._store_open = True
        logger.info(f"Error store initialized: {self.store.describe()}")

        self.running = True
        self._register_signal_handlers()

        logger.info("Maintenance worker started successfully")
        await self._run_loop()

    async def stop(self) -> None:
        """Stop the worker process and close the store."""
        self.running = False
        self._shutdown_event.set()

        if not self._store_open:
            return

        logger.info("Stopping maintenance worker...")
        await self.store.close()
        self._store_open = False

        logger.info("Maintenance worker stopped")

    async def run_once(self) -> int:
        """
        Prune once.

        Returns:
            Number of records removed
        """
        removed = await self.store.prune(self.prune_after_days)
        logger.info(f"Pruned {removed} errors older than {self.prune_after_days} days")
        emit_metric("errors_pruned", removed, older_than_days=self.prune_after_days)
        return removed

    async def _run_loop(self) -> None:
        """Prune, then wait for the interval or shutdown."""
        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Prune loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error pruning errors: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

        logger.info("Prune loop stopped")

    def _register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            """Handle shutdown signals."""
            signal_name = signal.Signals(signum).name
            logger.info(f"Received signal {signal_name}, initiating graceful shutdown...")
            self.running = False
            self._shutdown_event.set()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        logger.info("Signal handlers registered (SIGTERM, SIGINT)")


async def main():
    """Main entry point for worker process."""
    setup_logging(settings.log_level.upper())
    logger.info("Maintenance worker starting...")

    worker = MaintenanceWorker()

    try:
        await worker.start()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Maintenance worker failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await worker.stop()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
