"""Best-effort replication of local store mutations to the mirror endpoint."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests

from .events import TRANSACTION_ADDED, TRANSACTION_REMOVED, StoreEvent
from .exceptions import MirrorError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class MirrorClient:
    """Thin HTTP client for ``/api/transactions`` on the mirror endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return self._url

    def post_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", json=payload)

    def delete_transaction(self, date: str, transaction_id: str) -> Dict[str, Any]:
        return self._request("DELETE", json={"date": date, "transactionId": transaction_id})

    def fetch_all(self) -> Dict[str, Any]:
        return self._request("GET")

    def _request(self, method: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._session.request(method, self._url, json=json, timeout=self._timeout)
        except requests.RequestException as exc:
            raise MirrorError(f"{method} {self._url} failed: {exc}") from exc
        if not response.ok:
            raise MirrorError(
                f"{method} {self._url} returned {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            return {}


class MirrorWorker:
    """Consumes store events and replays them against the mirror.

    The worker is subscribed to the store's event bus; subscribing only puts
    events on a queue, so local operations never wait on the network. Events
    are delivered either by the background thread started with ``start`` or
    synchronously by ``run_pending``. Failed deliveries are retried with a
    linear backoff and then dropped with a warning.
    """

    def __init__(
        self,
        client: MirrorClient,
        *,
        max_attempts: int = 3,
        backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff
        self._sleep = sleep
        self._queue: "queue.Queue[Optional[StoreEvent]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self.delivered = 0
        self.dropped = 0

    def __call__(self, event: StoreEvent) -> None:
        if event.name in (TRANSACTION_ADDED, TRANSACTION_REMOVED):
            self._queue.put(event)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def run_pending(self) -> int:
        """Deliver every queued event on the calling thread; returns the count handled."""
        handled = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return handled
            if event is not None:
                self._deliver(event)
                handled += 1

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="mirror-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._queue.put(None)
        self._thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if event is None:
                return
            self._deliver(event)

    def _deliver(self, event: StoreEvent) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._send(event)
            except MirrorError as exc:
                if not exc.retryable or attempt == self._max_attempts:
                    logger.warning("Mirror dropped %s after %d attempt(s): %s", event.name, attempt, exc)
                    self.dropped += 1
                    return False
                logger.info("Mirror attempt %d for %s failed: %s", attempt, event.name, exc)
                self._sleep(self._backoff * attempt)
            else:
                logger.debug("Mirrored %s", event.name)
                self.delivered += 1
                return True
        return False

    def _send(self, event: StoreEvent) -> None:
        if event.name == TRANSACTION_ADDED:
            self._client.post_transaction(event.payload)
        elif event.name == TRANSACTION_REMOVED:
            self._client.delete_transaction(event.payload["date"], event.payload["transactionId"])
