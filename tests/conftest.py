from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from budget_core.config_store import ConfigStore
from budget_core.models import Transaction
from budget_core.storage import MemoryBackend
from budget_core.store import BucketStore

FIXED_NOW = datetime(2026, 3, 15, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def buckets(backend):
    return BucketStore(backend)


@pytest.fixture
def config_store(backend, buckets, clock):
    return ConfigStore(backend, buckets, clock=clock)


@pytest.fixture
def make_transaction():
    counter = itertools.count(1)

    def factory(
        bucket_date="2026-03-10",
        member_id="m1",
        amount="10.00",
        created_at=None,
        **overrides,
    ) -> Transaction:
        n = next(counter)
        if isinstance(bucket_date, str):
            bucket_date = date.fromisoformat(bucket_date)
        fields = {
            "id": f"t{n}",
            "member_id": member_id,
            "amount": Decimal(amount),
            "category": "Groceries",
            "description": f"purchase {n}",
            "date": bucket_date,
            "created_at": created_at or FIXED_NOW + timedelta(seconds=n),
        }
        fields.update(overrides)
        return Transaction(**fields)

    return factory
