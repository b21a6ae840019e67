import pytest

from budget_core.exceptions import PersistenceError
from budget_core.storage import JSONDirectoryBackend, MemoryBackend


@pytest.fixture(params=["memory", "directory"])
def any_backend(request, tmp_path):
    if request.param == "memory":
        return MemoryBackend()
    return JSONDirectoryBackend(tmp_path / "store")


def test_set_get_delete_keys(any_backend):
    any_backend.set("budgetConfig", '{"budget": "0.00"}')
    any_backend.set("transactions_2026-02-07", "{}")

    assert any_backend.get("budgetConfig") == '{"budget": "0.00"}'
    assert sorted(any_backend.keys()) == ["budgetConfig", "transactions_2026-02-07"]

    any_backend.delete("budgetConfig")
    any_backend.delete("budgetConfig")

    assert any_backend.get("budgetConfig") is None
    assert any_backend.keys() == ["transactions_2026-02-07"]


def test_directory_backend_leaves_no_temp_files(tmp_path):
    backend = JSONDirectoryBackend(tmp_path)
    backend.set("budgetConfig", "{}")
    backend.set("budgetConfig", '{"budget": "10.00"}')

    assert sorted(p.name for p in tmp_path.iterdir()) == ["budgetConfig.json"]


@pytest.mark.parametrize("key", ["../escape", "a/b", "", "with space"])
def test_directory_backend_rejects_unsafe_keys(tmp_path, key):
    backend = JSONDirectoryBackend(tmp_path)

    with pytest.raises(PersistenceError):
        backend.set(key, "{}")
