"""Tickers that drive periodic jobs such as the retention sweep."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], object]


class Ticker(ABC):
    """Calls a job repeatedly at a fixed interval until cancelled."""

    @abstractmethod
    def schedule(self, interval: float, job: Job) -> None:
        """Start calling ``job`` every ``interval`` seconds."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop calling the scheduled job."""


class ThreadingTicker(Ticker):
    """Runs the job on a daemon thread, sleeping on an Event between calls."""

    def __init__(self, name: str = "ticker") -> None:
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def schedule(self, interval: float, job: Job) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self._name} is already scheduled")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, args=(interval, job), name=self._name, daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None

    def _run(self, interval: float, job: Job) -> None:
        while not self._stop.wait(interval):
            try:
                job()
            except Exception:
                # The next tick is the retry.
                logger.exception("Scheduled job on %s failed", self._name)


class ManualTicker(Ticker):
    """Ticker advanced explicitly by calling ``fire``."""

    def __init__(self) -> None:
        self.interval: Optional[float] = None
        self._job: Optional[Job] = None

    @property
    def scheduled(self) -> bool:
        return self._job is not None

    def schedule(self, interval: float, job: Job) -> None:
        self.interval = interval
        self._job = job

    def cancel(self) -> None:
        self._job = None

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            if self._job is None:
                return
            self._job()
