"""Tests for the module registry."""

import pytest

from pkm_data import registry
from pkm_data.backends import FirestoreDataModule, LocalDataModule, LocalStore
from pkm_data.registry import (
    create_firestore_data_modules,
    create_local_data_modules,
    get_data_modules,
    reset_to_local_data_modules,
    set_data_modules,
)
from tests.backends.fakes import FakeFirestore


@pytest.fixture(autouse=True)
def clear_active_modules(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(registry, "_active_data_modules", None)


def test_local_modules_share_store_and_siblings() -> None:
    """Test local module wiring."""
    store = LocalStore()
    modules = create_local_data_modules(store)

    assert [module.collection for module in modules] == [
        "projects",
        "notes",
        "tasks",
        "meetings",
        "companies",
        "people",
    ]
    for module in modules:
        assert isinstance(module, LocalDataModule)
        assert module._data_modules is modules
        assert module.store is store


def test_getitem_and_module_for_field() -> None:
    """Test looking modules up by collection and relation field."""
    modules = create_local_data_modules()

    assert modules["people"] is modules.people
    assert modules.module_for_field("notes", "relatedNoteIds") is modules.notes
    assert modules.module_for_field("tasks", "meetingIds") is modules.meetings
    with pytest.raises(ValueError, match="Unknown collection"):
        modules["widgets"]


def test_firestore_modules() -> None:
    """Test Firestore module wiring."""
    client = FakeFirestore()
    modules = create_firestore_data_modules(client, "uid-1")

    for module in modules:
        assert isinstance(module, FirestoreDataModule)
        assert module._data_modules is modules


def test_active_modules_default_to_local() -> None:
    """Test the lazily created default."""
    modules = get_data_modules()

    assert isinstance(modules.projects, LocalDataModule)
    assert get_data_modules() is modules


def test_set_and_reset_active_modules(tmp_path) -> None:
    """Test swapping the active modules."""
    custom = create_local_data_modules()
    set_data_modules(custom)
    assert get_data_modules() is custom

    reset = reset_to_local_data_modules(tmp_path / "store.json")

    assert get_data_modules() is reset
    assert reset is not custom
    assert reset.projects.store.path == tmp_path / "store.json"


@pytest.mark.asyncio
async def test_snapshot() -> None:
    """Test snapshot covers every collection."""
    modules = create_local_data_modules()
    created = await modules.companies.create({"name": "Acme", "tags": []})

    snapshot = await modules.snapshot()

    assert snapshot["companies"] == [created]
    assert snapshot["notes"] == []
    assert set(snapshot) == {"projects", "notes", "tasks", "meetings", "companies", "people"}
