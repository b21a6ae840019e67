import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from budget_core.config_store import CONFIG_KEY
from budget_core.exceptions import ConflictError, ValidationError

from conftest import FIXED_NOW


def test_load_creates_and_persists_defaults(config_store, backend):
    config = config_store.load()

    assert config.budget == Decimal("0")
    assert config.members == []
    assert config.last_cleanup == FIXED_NOW
    assert json.loads(backend.get(CONFIG_KEY)) == {
        "budget": "0.00",
        "members": [],
        "lastCleanup": "2026-03-15T09:30:00.000Z",
    }


def test_save_writes_all_fields_together(config_store, backend):
    config_store.set_budget("1200")
    config_store.add_member("Asha")

    stored = json.loads(backend.get(CONFIG_KEY))
    assert set(stored) == {"budget", "members", "lastCleanup"}
    assert stored["budget"] == "1200.00"
    assert [m["name"] for m in stored["members"]] == ["Asha"]


def test_add_member_rejects_case_insensitive_duplicates(config_store):
    config_store.add_member("Asha")

    with pytest.raises(ConflictError):
        config_store.add_member("  asha ")


def test_add_member_requires_a_name(config_store):
    with pytest.raises(ValidationError):
        config_store.add_member("   ")


def test_add_member_assigns_unique_ids(config_store):
    first = config_store.add_member("Asha")
    second = config_store.add_member("Ben")

    assert first.id != second.id
    assert [m.name for m in config_store.load().members] == ["Asha", "Ben"]


def test_remove_member_cascades_to_transactions(config_store, buckets, make_transaction):
    asha = config_store.add_member("Asha")
    ben = config_store.add_member("Ben")
    buckets.append(make_transaction(member_id=asha.id, amount="10"))
    kept = make_transaction(member_id=ben.id, amount="5")
    buckets.append(kept)

    removed = config_store.remove_member(asha.id)

    assert removed == asha
    assert [m.id for m in config_store.load().members] == [ben.id]
    assert buckets.scan_all() == [kept]


def test_remove_unknown_member_is_noop(config_store, buckets, make_transaction):
    config_store.add_member("Asha")
    buckets.append(make_transaction(member_id="ghost"))

    assert config_store.remove_member("ghost") is None
    assert len(buckets.scan_all()) == 1


@pytest.mark.parametrize("amount", ["-5", "NaN", "Infinity", "lots"])
def test_set_budget_rejects_invalid_amounts(config_store, amount):
    with pytest.raises(ValidationError):
        config_store.set_budget(amount)


def test_corrupt_config_falls_back_to_defaults(config_store, backend, caplog):
    backend.set(CONFIG_KEY, "{broken")

    config = config_store.load()

    assert config.members == []
    assert backend.get(CONFIG_KEY) == "{broken"
    assert "default configuration" in caplog.text


def test_mark_cleanup_and_reset(config_store):
    config_store.set_budget("300")
    stamp = datetime(2026, 3, 16, 0, 0, tzinfo=timezone.utc)

    assert config_store.mark_cleanup(stamp).last_cleanup == stamp
    assert config_store.load().budget == Decimal("300")

    reset = config_store.reset()
    assert reset.budget == Decimal("0")
    assert config_store.load().members == []


def test_config_with_duplicate_member_names_is_treated_as_corrupt(config_store, backend, caplog):
    backend.set(
        CONFIG_KEY,
        json.dumps(
            {
                "budget": "50.00",
                "members": [{"id": "a", "name": "Ann"}, {"id": "b", "name": "ann"}],
                "lastCleanup": "2026-03-01T00:00:00.000Z",
            }
        ),
    )

    config = config_store.load()

    assert config.members == []
    assert "default configuration" in caplog.text
