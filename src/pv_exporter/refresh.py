"""
RefreshLoop - timer-driven metrics refresh.

This module implements the background task that:
- Resolves PersistentVolume identities from the Kubernetes API
- Runs the query catalog through the MetricsAggregator
- Publishes the joined result to the SnapshotStore
- Logs one heartbeat line per cycle

Each cycle moves Idle -> Fetching -> Merging -> Publishing -> Idle. A cycle
that fails before Publishing leaves the previous snapshot in place. Cycles
never overlap: the next one starts only after the interval has elapsed
following the previous one.

Uses asyncio.Event for shutdown coordination and wait_for with timeout for
interruptible sleep.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum

from pv_exporter.aggregator import MetricsAggregator
from pv_exporter.errors import ExporterError
from pv_exporter.identity import IdentityResolver
from pv_exporter.snapshot import SnapshotStore
from pv_exporter.types import Snapshot

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    """Phases of one refresh cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    PUBLISHING = "publishing"


class RefreshLoop:
    """
    Periodic producer for the SnapshotStore.

    Example:
        loop = RefreshLoop(
            aggregator=MetricsAggregator(prom),
            resolver=IdentityResolver(k8s),
            store=store,
            interval_seconds=2.0,
        )
        task = asyncio.create_task(loop.run())
        ...
        loop.stop()
        await task
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        resolver: IdentityResolver,
        store: SnapshotStore,
        interval_seconds: float = 2.0,
    ) -> None:
        """
        Initialize refresh loop.

        Args:
            aggregator: Runs and merges the query catalog
            resolver: Supplies the volume name -> UID mapping
            store: Where snapshots are published
            interval_seconds: Seconds between cycles (default 2)
        """
        self.aggregator = aggregator
        self.resolver = resolver
        self.store = store
        self.interval = interval_seconds
        self.state = RefreshState.IDLE
        self._shutdown = asyncio.Event()

        # Stats for heartbeat
        self._cycle_count = 0
        self._failed_cycles = 0
        self._last_cycle: datetime | None = None

    async def run(self) -> None:
        """Run refresh cycles until stop() is called."""
        logger.info(f"Refresh loop starting (interval: {self.interval}s)")

        while not self._shutdown.is_set():
            await self.run_cycle()

            # Wait for interval or shutdown signal
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass  # Normal timeout, continue loop

        logger.info("Refresh loop stopped")

    def stop(self) -> None:
        """Request the loop to exit after the current cycle."""
        self._shutdown.set()

    async def run_cycle(self) -> Snapshot | None:
        """
        Run one refresh cycle.

        Returns:
            The published snapshot, or None if the cycle failed and the
            previous snapshot was kept.
        """
        self._last_cycle = datetime.now()
        self._cycle_count += 1

        try:
            self.state = RefreshState.FETCHING
            identity, outcomes = await asyncio.gather(
                self.resolver.resolve(), self.aggregator.collect()
            )

            self.state = RefreshState.MERGING
            failed = [o.query.name for o in outcomes if not o.ok]
            metrics_by_name = self.aggregator.combine(outcomes)

            self.state = RefreshState.PUBLISHING
            snapshot = self.store.replace(metrics_by_name, identity=identity)
        except ExporterError as e:
            self._failed_cycles += 1
            logger.warning(f"Refresh cycle failed ({e.kind}), keeping previous snapshot: {e}")
            return None
        except Exception:
            # Log but don't crash the loop on unexpected failures
            self._failed_cycles += 1
            logger.exception("Refresh cycle failed unexpectedly, keeping previous snapshot")
            return None
        finally:
            self.state = RefreshState.IDLE

        self._log_heartbeat(snapshot, len(metrics_by_name), failed)
        return snapshot

    def stats(self) -> dict[str, object]:
        """Cycle counters for the health endpoint."""
        return {
            "state": self.state.value,
            "cycles": self._cycle_count,
            "failed_cycles": self._failed_cycles,
            "last_cycle": self._last_cycle.isoformat() if self._last_cycle else None,
        }

    def _log_heartbeat(self, snapshot: Snapshot, collected: int, failed: list[str]) -> None:
        status = "all queries ok" if not failed else f"failed: {', '.join(failed)}"
        logger.info(
            f"Refresh complete: {len(snapshot)} volumes published "
            f"({collected} collected), {status}"
        )

