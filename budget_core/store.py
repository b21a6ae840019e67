"""Date-bucketed transaction store."""

from __future__ import annotations

import json
import logging
from datetime import date
from decimal import InvalidOperation
from typing import List, Optional

from .events import TRANSACTION_ADDED, TRANSACTION_REMOVED, EventBus
from .exceptions import CorruptRecordError, RecordNotFoundError
from .models import DateBucket, Transaction, parse_date
from .storage import KeyValueBackend

logger = logging.getLogger(__name__)

BUCKET_KEY_PREFIX = "transactions_"


def bucket_key(bucket_date: date) -> str:
    """Return the persisted key for a date, e.g. ``transactions_2026-02-07``."""
    return f"{BUCKET_KEY_PREFIX}{bucket_date.isoformat()}"


class BucketStore:
    """Maps calendar dates to the ordered transactions recorded on them.

    Every mutation is written through to the backend immediately and then
    published on ``events`` so that listeners (the mirror worker) can follow
    along without the store waiting on them.
    """

    def __init__(self, backend: KeyValueBackend, events: Optional[EventBus] = None) -> None:
        self._backend = backend
        self.events = events or EventBus()

    # Public API -----------------------------------------------------------
    def append(self, transaction: Transaction) -> DateBucket:
        bucket = self._load_bucket(transaction.date)
        transactions = list(bucket.transactions) if bucket else []
        transactions.append(transaction)
        updated = DateBucket(date=transaction.date, transactions=transactions)
        self._write_bucket(updated)
        self.events.publish(TRANSACTION_ADDED, transaction.to_dict())
        return updated

    def remove_by_id(self, bucket_date: date, transaction_id: str) -> Optional[Transaction]:
        """Drop a transaction from its bucket.

        Raises RecordNotFoundError when no bucket exists for ``bucket_date``.
        An id that is not in an existing bucket is a silent no-op and returns
        None.
        """
        bucket = self._load_bucket(bucket_date)
        if bucket is None:
            raise RecordNotFoundError(f"No transactions recorded on {bucket_date.isoformat()}")

        removed: Optional[Transaction] = None
        remaining: List[Transaction] = []
        for transaction in bucket.transactions:
            if transaction.id == transaction_id:
                removed = transaction
            else:
                remaining.append(transaction)

        if removed is None:
            return None
        self._replace_bucket(bucket_date, remaining)
        self._publish_removed(removed)
        return removed

    def remove_by_member(self, member_id: str) -> int:
        """Remove every transaction of ``member_id``; returns how many were dropped."""
        removed_count = 0
        for bucket_date in self.all_dates():
            try:
                bucket = self._load_bucket(bucket_date)
            except CorruptRecordError as exc:
                logger.warning("Skipping corrupt bucket during member cascade: %s", exc)
                continue
            if bucket is None:
                continue
            kept = [t for t in bucket.transactions if t.member_id != member_id]
            dropped = [t for t in bucket.transactions if t.member_id == member_id]
            if not dropped:
                continue
            self._replace_bucket(bucket_date, kept)
            for transaction in dropped:
                self._publish_removed(transaction)
            removed_count += len(dropped)
        return removed_count

    def all_dates(self) -> List[date]:
        dates = []
        for key in self._backend.keys():
            if not key.startswith(BUCKET_KEY_PREFIX):
                continue
            raw_date = key[len(BUCKET_KEY_PREFIX):]
            try:
                dates.append(parse_date(raw_date))
            except ValueError:
                logger.warning("Ignoring bucket key with malformed date: %s", key)
        return sorted(dates)

    def scan_all(self) -> List[Transaction]:
        """Return every transaction, bucket by bucket in ascending date order.

        Corrupt buckets are logged and skipped so one bad record never hides
        the rest of the data.
        """
        transactions: List[Transaction] = []
        for bucket_date in self.all_dates():
            try:
                bucket = self._load_bucket(bucket_date)
            except CorruptRecordError as exc:
                logger.warning("Skipping corrupt bucket: %s", exc)
                continue
            if bucket is not None:
                transactions.extend(bucket.transactions)
        return transactions

    def get_bucket(self, bucket_date: date) -> Optional[DateBucket]:
        return self._load_bucket(bucket_date)

    def delete_bucket(self, bucket_date: date) -> int:
        """Delete a whole bucket and return how many transactions it held.

        A corrupt bucket is still deleted and counts as empty.
        """
        try:
            bucket = self._load_bucket(bucket_date)
        except CorruptRecordError as exc:
            logger.warning("Deleting corrupt bucket: %s", exc)
            bucket = None
        self._backend.delete(bucket_key(bucket_date))
        if bucket is None:
            return 0
        for transaction in bucket.transactions:
            self._publish_removed(transaction)
        return len(bucket.transactions)

    def find(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.scan_all():
            if transaction.id == transaction_id:
                return transaction
        return None

    def clear(self) -> int:
        """Delete every bucket, publishing a removal for each transaction.

        Returns the number of buckets removed.
        """
        dates = self.all_dates()
        for bucket_date in dates:
            self.delete_bucket(bucket_date)
        return len(dates)

    # Internal helpers -----------------------------------------------------
    def _load_bucket(self, bucket_date: date) -> Optional[DateBucket]:
        key = bucket_key(bucket_date)
        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("Expected an object payload")
            return DateBucket.from_dict(payload, expected_date=bucket_date)
        except (ValueError, KeyError, TypeError, AttributeError, InvalidOperation) as exc:
            raise CorruptRecordError(f"Corrupted bucket data in {key}: {exc}") from exc

    def _write_bucket(self, bucket: DateBucket) -> None:
        self._backend.set(bucket_key(bucket.date), json.dumps(bucket.to_dict(), indent=2))

    def _replace_bucket(self, bucket_date: date, transactions: List[Transaction]) -> None:
        # Empty buckets are never persisted.
        if transactions:
            self._write_bucket(DateBucket(date=bucket_date, transactions=transactions))
        else:
            self._backend.delete(bucket_key(bucket_date))
            logger.info("Deleted empty bucket %s", bucket_key(bucket_date))

    def _publish_removed(self, transaction: Transaction) -> None:
        self.events.publish(
            TRANSACTION_REMOVED,
            {"date": transaction.date.isoformat(), "transactionId": transaction.id},
        )
