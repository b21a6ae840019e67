"""Retention sweep: drops date buckets older than the retention horizon."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from .config_store import Clock, ConfigStore, utc_now
from .scheduling import Ticker
from .store import BucketStore

logger = logging.getLogger(__name__)

RETENTION_DAYS = 35
SWEEP_INTERVAL_SECONDS = 24 * 60 * 60


class SweepState(enum.Enum):
    IDLE = "idle"
    SWEEPING = "sweeping"


@dataclass(frozen=True)
class SweepReport:
    swept_at: datetime
    cutoff: date
    deleted_bucket_count: int
    deleted_transaction_count: int

    @property
    def changed(self) -> bool:
        return self.deleted_bucket_count > 0

    def message(self) -> str:
        return (
            f"Auto-cleanup: Removed {self.deleted_transaction_count} old transactions "
            f"from {self.deleted_bucket_count} days"
        )


def cutoff_for(today: date, retention_days: int = RETENTION_DAYS) -> date:
    """Buckets dated strictly before the returned date are stale."""
    return today - timedelta(days=retention_days)


class RetentionSweeper:
    """Deletes stale buckets at startup and on every tick of an injected ticker.

    Sweeps never overlap. A request that arrives while a sweep is running is
    remembered and served by a single follow-up sweep once the current one
    finishes.
    """

    def __init__(
        self,
        buckets: BucketStore,
        config_store: ConfigStore,
        *,
        clock: Optional[Clock] = None,
        on_cleanup: Optional[Callable[[SweepReport], None]] = None,
        retention_days: int = RETENTION_DAYS,
        interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._buckets = buckets
        self._config_store = config_store
        self._clock = clock or utc_now
        self._on_cleanup = on_cleanup
        self._retention_days = retention_days
        self._interval = interval
        self._guard = threading.Lock()
        self._state = SweepState.IDLE
        self._pending = False
        self._ticker: Optional[Ticker] = None

    @property
    def state(self) -> SweepState:
        return self._state

    def start(self, ticker: Optional[Ticker] = None) -> Optional[SweepReport]:
        """Run the startup sweep, then hand the sweep to ``ticker`` if given."""
        report = self.sweep()
        if ticker is not None:
            self._ticker = ticker
            ticker.schedule(self._interval, self.sweep)
        return report

    def stop(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def sweep(self) -> Optional[SweepReport]:
        """Run one sweep; returns None when the request was coalesced."""
        with self._guard:
            if self._state is SweepState.SWEEPING:
                self._pending = True
                logger.debug("Sweep already running; queued a follow-up")
                return None
            self._state = SweepState.SWEEPING

        first: Optional[SweepReport] = None
        try:
            while True:
                report = self._sweep_once()
                if first is None:
                    first = report
                with self._guard:
                    if not self._pending:
                        self._state = SweepState.IDLE
                        break
                    self._pending = False
        except BaseException:
            with self._guard:
                self._state = SweepState.IDLE
                self._pending = False
            raise
        return first

    def _sweep_once(self) -> SweepReport:
        now = self._clock()
        cutoff = cutoff_for(now.date(), self._retention_days)
        cutoff_str = cutoff.isoformat()

        deleted_buckets = 0
        deleted_transactions = 0
        for bucket_date in self._buckets.all_dates():
            # ISO dates order lexicographically.
            if bucket_date.isoformat() >= cutoff_str:
                continue
            deleted_transactions += self._buckets.delete_bucket(bucket_date)
            deleted_buckets += 1
            logger.info("Deleted stale bucket for %s", bucket_date.isoformat())

        report = SweepReport(
            swept_at=now,
            cutoff=cutoff,
            deleted_bucket_count=deleted_buckets,
            deleted_transaction_count=deleted_transactions,
        )
        if report.changed:
            self._config_store.mark_cleanup(now)
            logger.info(
                "Cleanup complete: deleted %d bucket(s) containing %d transaction(s) older than %d days",
                deleted_buckets,
                deleted_transactions,
                self._retention_days,
            )
            if self._on_cleanup is not None:
                self._on_cleanup(report)
        return report
