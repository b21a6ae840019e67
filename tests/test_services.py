import json
from collections import Counter
from datetime import date
from decimal import Decimal

import pytest

from budget_core.exceptions import RecordNotFoundError, ValidationError
from budget_core.scheduling import ManualTicker
from budget_core.services import (
    LedgerService,
    TransactionService,
    clear_all,
    dump_export,
    export_data,
    export_filename,
    import_data,
    open_budget,
)
from budget_core.storage import MemoryBackend
from budget_core.store import BucketStore
from budget_core.config_store import ConfigStore

from conftest import FIXED_NOW


@pytest.fixture
def transactions(buckets, config_store, clock):
    return TransactionService(buckets, config_store, clock=clock)


@pytest.fixture
def ledger(buckets, config_store):
    return LedgerService(buckets, config_store)


def _payload(member_id, **overrides):
    payload = {
        "member_id": member_id,
        "amount": "45.50",
        "category": "Groceries",
        "description": "Weekly shop",
        "date": "2026-03-14",
    }
    payload.update(overrides)
    return payload


def test_add_transaction_validates_and_stores(transactions, config_store, buckets):
    member = config_store.add_member("Asha")

    transaction = transactions.add(_payload(member.id))

    assert transaction.amount == Decimal("45.50")
    assert transaction.date == date(2026, 3, 14)
    assert transaction.created_at == FIXED_NOW
    assert buckets.get_bucket(date(2026, 3, 14)).transactions == [transaction]


def test_add_transaction_defaults_to_today(transactions, config_store):
    member = config_store.add_member("Asha")

    transaction = transactions.add(_payload(member.id, date=None))

    assert transaction.date == FIXED_NOW.date()


@pytest.mark.parametrize(
    "field,value",
    [("amount", "0"), ("amount", ""), ("category", " "), ("description", ""), ("date", "14/03/2026")],
)
def test_add_transaction_rejects_missing_fields(transactions, config_store, field, value):
    member = config_store.add_member("Asha")

    with pytest.raises(ValidationError):
        transactions.add(_payload(member.id, **{field: value}))


def test_add_transaction_rejects_unknown_member(transactions):
    with pytest.raises(ValidationError):
        transactions.add(_payload("nobody"))


def test_delete_transaction_locates_bucket(transactions, config_store, buckets):
    member = config_store.add_member("Asha")
    first = transactions.add(_payload(member.id, date="2026-03-01"))
    second = transactions.add(_payload(member.id, date="2026-03-02"))

    transactions.delete(first.id)

    assert buckets.scan_all() == [second]
    assert buckets.all_dates() == [date(2026, 3, 2)]
    with pytest.raises(RecordNotFoundError):
        transactions.delete(first.id)


def test_list_returns_newest_first(transactions, config_store, clock):
    member = config_store.add_member("Asha")
    older = transactions.add(_payload(member.id, date="2026-03-14"))
    clock.advance(minutes=1)
    newer = transactions.add(_payload(member.id, date="2026-03-01"))

    assert transactions.list() == [newer, older]


def test_summary_and_member_cascade(ledger, config_store, buckets, make_transaction):
    config_store.set_budget("100")
    a = config_store.add_member("A")
    b = config_store.add_member("B")
    buckets.append(make_transaction(member_id=a.id, amount="10"))
    kept = make_transaction(member_id=b.id, amount="5")
    buckets.append(kept)

    summary = ledger.summary()
    assert summary.totals.total_spent == Decimal("15.00")
    assert summary.status == "on_track"

    config_store.remove_member(a.id)

    assert buckets.scan_all() == [kept]
    assert [entry.name for entry in ledger.spend_by_member()] == ["B"]
    assert ledger.totals().total_spent == Decimal("5.00")


def test_storage_stats_via_ledger(ledger, buckets, make_transaction):
    buckets.append(make_transaction(bucket_date="2026-03-01"))
    buckets.append(make_transaction(bucket_date="2026-03-09"))
    buckets.append(make_transaction(bucket_date="2026-03-09"))

    stats = ledger.storage_stats()

    assert (stats.date_count, stats.transaction_count) == (2, 3)
    assert (stats.oldest_date, stats.newest_date) == (date(2026, 3, 1), date(2026, 3, 9))


def test_export_document_shape(config_store, buckets, make_transaction):
    config_store.set_budget("2500")
    transaction = make_transaction(bucket_date="2026-03-09")
    buckets.append(transaction)

    document = export_data(config_store, buckets)

    assert set(document) == {"config", "transactionsByDate"}
    assert document["config"]["budget"] == "2500.00"
    assert document["transactionsByDate"] == {
        "2026-03-09": {"date": "2026-03-09", "transactions": [transaction.to_dict()]}
    }
    text = dump_export(document)
    assert text.startswith("{\n  ")
    assert json.loads(text) == document


def test_export_then_import_reproduces_store(config_store, buckets, make_transaction, clock):
    config_store.set_budget("800")
    member = config_store.add_member("Zoë")
    originals = [
        make_transaction(bucket_date="2026-03-01", member_id=member.id),
        make_transaction(bucket_date="2026-03-01", member_id=member.id),
        make_transaction(bucket_date="2026-03-04", member_id=member.id),
    ]
    for transaction in originals:
        buckets.append(transaction)
    document = json.loads(dump_export(export_data(config_store, buckets)))

    target_backend = MemoryBackend()
    target_buckets = BucketStore(target_backend)
    target_config = ConfigStore(target_backend, target_buckets, clock=clock)
    imported = import_data(document, target_config, target_buckets)

    assert imported == 3
    assert Counter(target_buckets.scan_all()) == Counter(originals)
    assert target_buckets.all_dates() == buckets.all_dates()
    assert target_config.load() == config_store.load()


def test_import_rejects_invalid_document_without_writing(config_store, buckets, make_transaction):
    existing = make_transaction()
    buckets.append(existing)
    document = {
        "config": {"budget": "10", "members": [], "lastCleanup": "2026-03-01T00:00:00.000Z"},
        "transactionsByDate": {"2026-03-02": {"date": "2026-03-02", "transactions": [{"id": "x"}]}},
    }

    with pytest.raises(ValidationError):
        import_data(document, config_store, buckets)
    assert buckets.scan_all() == [existing]


def test_clear_all_removes_everything(config_store, buckets, make_transaction):
    config_store.set_budget("100")
    config_store.add_member("Asha")
    buckets.append(make_transaction())

    clear_all(config_store, buckets)

    assert buckets.all_dates() == []
    config = config_store.load()
    assert config.budget == Decimal("0")
    assert config.members == []


def test_export_filename():
    assert export_filename(date(2026, 3, 15)) == "household-budget-backup-2026-03-15.json"


def test_open_budget_runs_startup_sweep(clock, make_transaction):
    backend = MemoryBackend()
    BucketStore(backend).append(make_transaction(bucket_date="2026-01-01"))
    ticker = ManualTicker()

    app = open_budget(backend=backend, clock=clock, ticker=ticker)

    assert app.startup_report.deleted_transaction_count == 1
    assert app.buckets.all_dates() == []
    assert ticker.scheduled
    app.close()
    assert not ticker.scheduled


def test_open_budget_with_directory(tmp_path, clock):
    app = open_budget(tmp_path / "data", clock=clock)
    member = app.config_store.add_member("Asha")
    app.transactions.add(_payload(member.id))
    app.close()

    reopened = open_budget(tmp_path / "data", clock=clock)
    assert len(reopened.transactions.list()) == 1
    assert (tmp_path / "data" / "transactions_2026-03-14.json").exists()
    assert (tmp_path / "data" / "budgetConfig.json").exists()


def test_import_rejects_duplicate_members_without_writing(config_store, buckets):
    original = config_store.add_member("Asha")
    document = {
        "config": {
            "budget": "10.00",
            "members": [{"id": "a", "name": "Ann"}, {"id": "b", "name": "ANN"}],
            "lastCleanup": "2026-03-01T00:00:00.000Z",
        },
        "transactionsByDate": {},
    }

    with pytest.raises(ValidationError):
        import_data(document, config_store, buckets)
    assert config_store.load().members == [original]


def test_reimport_removes_before_adding(config_store, buckets, make_transaction):
    transaction = make_transaction()
    buckets.append(transaction)
    document = json.loads(dump_export(export_data(config_store, buckets)))
    received = []
    buckets.events.subscribe(received.append)

    import_data(document, config_store, buckets)

    assert [event.name for event in received] == ["transaction_removed", "transaction_added"]
    assert buckets.scan_all() == [transaction]


def test_summary_skips_bucket_with_nan_amount(ledger, config_store, backend, buckets, make_transaction):
    config_store.set_budget("100")
    kept = make_transaction(bucket_date="2026-03-11", amount="40")
    buckets.append(kept)
    bad = make_transaction(bucket_date="2026-03-10").to_dict()
    bad["amount"] = "NaN"
    backend.set("transactions_2026-03-10", json.dumps({"date": "2026-03-10", "transactions": [bad]}))

    summary = ledger.summary()

    assert summary.totals.total_spent == Decimal("40.00")
    assert summary.status == "on_track"


def test_storage_stats_counts_unreadable_dates_without_transactions(ledger, backend, buckets, make_transaction):
    buckets.append(make_transaction(bucket_date="2026-03-09"))
    backend.set("transactions_2026-03-01", "{broken")

    stats = ledger.storage_stats()

    assert (stats.date_count, stats.transaction_count) == (2, 1)
    assert stats.oldest_date == date(2026, 3, 1)
