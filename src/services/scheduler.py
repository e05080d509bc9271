"""
Usage Scheduler

Background tasks that periodically:
1. Refresh the usage snapshot (every CACHE_REFRESH minutes)
2. Send threshold notifications (every NOTIFIER_INTERVAL minutes, when enabled)

The notifier runs once as soon as the scheduler starts. The refresh loop
waits a full interval first, since startup has already refreshed once.

Each loop runs one cycle at a time and waits a full interval after each run,
so a slow cycle delays the next tick instead of overlapping it. A failed cycle
is logged and the loop continues.
"""

import asyncio
import contextlib
import logging
import time

from src.services import prometheus_metrics
from src.services.notifier import Notifier
from src.services.threshold_engine import ThresholdEngine
from src.utils.exceptions import NotificationError, RefreshError

logger = logging.getLogger(__name__)


class UsageScheduler:
    def __init__(
        self,
        engine: ThresholdEngine,
        notifier: Notifier | None = None,
        refresh_interval_seconds: float = 600,
        notifier_interval_seconds: float = 3600,
    ):
        self.engine = engine
        self.notifier = notifier
        self.refresh_interval_seconds = refresh_interval_seconds
        self.notifier_interval_seconds = notifier_interval_seconds
        self._tasks: list[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            logger.warning("Usage scheduler already running")
            return

        self._shutdown_event.clear()
        self._tasks.append(
            asyncio.create_task(
                self._loop("cache-refresh", self.refresh_interval_seconds, self.run_refresh),
                name="usage_refresh_loop",
            )
        )
        if self.notifier is not None:
            self._tasks.append(
                asyncio.create_task(
                    self._loop(
                        "notifier",
                        self.notifier_interval_seconds,
                        self.run_notifier,
                        run_immediately=True,
                    ),
                    name="usage_notifier_loop",
                )
            )

        logger.info(f"Usage scheduler started with {len(self._tasks)} tasks")

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop the loops, waiting up to ``timeout`` seconds for in-flight cycles."""
        if not self._tasks:
            return

        logger.info("Stopping usage scheduler...")
        self._shutdown_event.set()

        done, pending = await asyncio.wait(self._tasks, timeout=timeout)
        for task in pending:
            logger.warning(f"{task.get_name()} did not stop gracefully, cancelling...")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._tasks = []
        logger.info("Usage scheduler stopped")

    async def _loop(
        self, tag: str, interval_seconds: float, run, run_immediately: bool = False
    ) -> None:
        logger.info(f"{tag} loop started (interval: {interval_seconds}s)")

        if run_immediately:
            await self._run_guarded(tag, run)

        while not self._shutdown_event.is_set():
            # Wait for next interval or shutdown
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            await self._run_guarded(tag, run)

        logger.info(f"{tag} loop stopped")

    async def _run_guarded(self, tag: str, run) -> None:
        try:
            await run()
        except Exception as e:
            logger.error(f"Unexpected error in {tag} loop: {e}", exc_info=True)

    async def run_refresh(self) -> bool:
        """One refresh cycle; failures are logged, never raised."""
        start_time = time.monotonic()
        try:
            snapshot = await self.engine.refresh()
        except RefreshError as e:
            prometheus_metrics.usage_refresh_runs.labels(status="failed").inc()
            prometheus_metrics.usage_refresh_failures.labels(stage=e.stage).inc()
            logger.error(f"Cache refresh failed with error: {e}", extra={"stage": e.stage})
            return False
        finally:
            prometheus_metrics.usage_refresh_duration.observe(time.monotonic() - start_time)

        prometheus_metrics.usage_refresh_runs.labels(status="success").inc()
        prometheus_metrics.apps_passed_limit.set(len(snapshot.app_ids_passed_limit))
        return True

    async def run_notifier(self) -> bool:
        """One notification cycle; failures are logged, never raised."""
        try:
            await self.notifier.handle_notifications()
        except NotificationError as e:
            prometheus_metrics.notifier_runs.labels(status="failed").inc()
            logger.error(f"Notifier failed with error: {e}", extra={"stage": e.stage})
            return False

        prometheus_metrics.notifier_runs.labels(status="success").inc()
        return True
