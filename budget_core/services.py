"""Framework-agnostic business services for the household budget tracker."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import aggregation
from .config_store import Clock, ConfigStore, utc_now
from .events import EventBus
from .exceptions import RecordNotFoundError, ValidationError
from .mirror import DEFAULT_TIMEOUT, MirrorClient, MirrorWorker
from .models import Configuration, DateBucket, Transaction
from .scheduling import Ticker
from .storage import JSONDirectoryBackend, KeyValueBackend
from .store import BucketStore
from .sweeper import RetentionSweeper, SweepReport
from .validators import (
    new_record_id,
    parse_amount,
    validate_date,
    validate_required_str,
)


class TransactionService:
    """Validates user input and records transactions in the bucket store."""

    def __init__(self, buckets: BucketStore, config_store: ConfigStore, clock: Optional[Clock] = None) -> None:
        self._buckets = buckets
        self._config_store = config_store
        self._clock = clock or utc_now

    def add(self, payload: Dict[str, object]) -> Transaction:
        transaction = Transaction(**self._validate_payload(payload))
        self._buckets.append(transaction)
        return transaction

    def delete(self, transaction_id: str) -> Transaction:
        """Delete a transaction by id, locating its bucket by scanning."""
        transaction = self.get(transaction_id)
        self._buckets.remove_by_id(transaction.date, transaction.id)
        return transaction

    def get(self, transaction_id: str) -> Transaction:
        transaction = self._buckets.find(transaction_id)
        if transaction is None:
            raise RecordNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def list(self) -> List[Transaction]:
        """Every transaction, most recently created first."""
        return aggregation.sorted_transactions(self._buckets.scan_all())

    def _validate_payload(self, payload: Dict[str, object]) -> Dict[str, object]:
        now = self._clock()
        member_id = validate_required_str(payload.get("member_id"), "member_id", 100)
        if self._config_store.load().find_member(member_id) is None:
            raise ValidationError(f"Unknown member {member_id}")
        raw_date = payload.get("date")
        return {
            "id": new_record_id(now),
            "member_id": member_id,
            "amount": parse_amount(payload.get("amount"), "amount"),
            "category": validate_required_str(payload.get("category"), "category", 50),
            "description": validate_required_str(payload.get("description"), "description", 200),
            "date": validate_date(raw_date, "date") if raw_date not in (None, "") else now.date(),
            "created_at": now,
        }


@dataclass(frozen=True)
class Summary:
    totals: aggregation.Totals
    status: str
    members: List[aggregation.MemberSpend]


class LedgerService:
    """Aggregates configuration and transactions into read models."""

    def __init__(self, buckets: BucketStore, config_store: ConfigStore) -> None:
        self._buckets = buckets
        self._config_store = config_store

    def totals(self) -> aggregation.Totals:
        return aggregation.totals(self._config_store.load(), self._buckets.scan_all())

    def spend_by_member(self) -> List[aggregation.MemberSpend]:
        return aggregation.spend_by_member(self._config_store.load(), self._buckets.scan_all())

    def summary(self) -> Summary:
        config = self._config_store.load()
        transactions = self._buckets.scan_all()
        totals = aggregation.totals(config, transactions)
        return Summary(
            totals=totals,
            status=aggregation.budget_status(totals.percentage),
            members=aggregation.spend_by_member(config, transactions),
        )

    def storage_stats(self) -> aggregation.StorageStats:
        """Counts every stored date, readable or not; unreadable buckets add no transactions."""
        return aggregation.storage_stats(self._buckets.all_dates(), self._buckets.scan_all())

    def snapshot(self) -> Dict[str, Any]:
        """Return the export document for the current store."""
        return export_data(self._config_store, self._buckets)


def export_data(config_store: ConfigStore, buckets: BucketStore) -> Dict[str, Any]:
    """Build ``{config, transactionsByDate}``; corrupt buckets are left out."""
    by_date: Dict[str, Any] = {}
    for transaction in buckets.scan_all():
        key = transaction.date.isoformat()
        bucket = by_date.setdefault(key, {"date": key, "transactions": []})
        bucket["transactions"].append(transaction.to_dict())
    return {
        "config": config_store.load().to_dict(),
        "transactionsByDate": by_date,
    }


def dump_export(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_filename(today: date) -> str:
    return f"household-budget-backup-{today.isoformat()}.json"


def import_data(document: Dict[str, Any], config_store: ConfigStore, buckets: BucketStore) -> int:
    """Replace the store contents with an export document.

    The whole document is validated before anything is written. Returns the
    number of transactions imported.
    """
    if not isinstance(document, dict):
        raise ValidationError("Import document must be a JSON object")
    try:
        config = Configuration.from_dict(document["config"])
        raw_buckets = document.get("transactionsByDate", {})
        if not isinstance(raw_buckets, dict):
            raise ValueError("transactionsByDate must be an object")
        parsed: List[DateBucket] = []
        for key, raw_bucket in raw_buckets.items():
            bucket = DateBucket.from_dict(raw_bucket)
            if bucket.date.isoformat() != key:
                raise ValueError(f"Bucket {key} holds transactions for {bucket.date}")
            parsed.append(bucket)
    except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as exc:
        raise ValidationError(f"Invalid import document: {exc}") from exc

    buckets.clear()
    config_store.save(config)
    count = 0
    for bucket in sorted(parsed, key=lambda b: b.date):
        for transaction in bucket.transactions:
            buckets.append(transaction)
            count += 1
    return count


def clear_all(config_store: ConfigStore, buckets: BucketStore) -> Configuration:
    """Delete every bucket and reset the configuration to defaults."""
    buckets.clear()
    return config_store.reset()


@dataclass
class BudgetApp:
    """The wired object graph the console interface works against."""

    backend: KeyValueBackend
    buckets: BucketStore
    config_store: ConfigStore
    transactions: TransactionService
    ledger: LedgerService
    sweeper: RetentionSweeper
    mirror: Optional[MirrorWorker] = None
    startup_report: Optional[SweepReport] = None

    def close(self) -> None:
        self.sweeper.stop()
        if self.mirror is not None:
            self.mirror.run_pending()
            self.mirror.stop()


def open_budget(
    data_dir: Optional[Path] = None,
    *,
    backend: Optional[KeyValueBackend] = None,
    mirror_url: Optional[str] = None,
    mirror_timeout: float = DEFAULT_TIMEOUT,
    mirror_client: Optional[MirrorClient] = None,
    clock: Optional[Clock] = None,
    ticker: Optional[Ticker] = None,
    on_cleanup: Optional[Callable[[SweepReport], None]] = None,
) -> BudgetApp:
    """Wire the stores, run the startup sweep and attach the optional mirror."""
    storage = backend if backend is not None else JSONDirectoryBackend(Path(data_dir or "data"))
    buckets = BucketStore(storage, events=EventBus(clock=clock))

    worker: Optional[MirrorWorker] = None
    if mirror_client is None and mirror_url:
        mirror_client = MirrorClient(mirror_url, timeout=mirror_timeout)
    if mirror_client is not None:
        worker = MirrorWorker(mirror_client)
        buckets.events.subscribe(worker)

    config_store = ConfigStore(storage, buckets, clock=clock)
    sweeper = RetentionSweeper(buckets, config_store, clock=clock, on_cleanup=on_cleanup)
    app = BudgetApp(
        backend=storage,
        buckets=buckets,
        config_store=config_store,
        transactions=TransactionService(buckets, config_store, clock=clock),
        ledger=LedgerService(buckets, config_store),
        sweeper=sweeper,
        mirror=worker,
    )
    app.startup_report = sweeper.start(ticker)
    return app
