import json

import pytest
from csv_explorer.models import (
    Aggregation,
    CategoryMode,
    Dataset,
    DateRange,
    FilterState,
    GroupingConfig,
    ViewConfig,
)
from csv_explorer.storage import (
    DatasetRepository,
    FileStore,
    MemoryStore,
    ViewRepository,
    export_views_json,
    import_views_json,
    migrate_views,
)
from csv_explorer.storage.repository import DATASET_KEY, VIEWS_KEY


class BrokenStore:
    """A store whose every operation fails like a full or read-only disk."""

    def get_item(self, key):
        raise OSError("disk unavailable")

    def set_item(self, key, value):
        raise OSError("disk full")

    def remove_item(self, key):
        raise OSError("read-only")


@pytest.fixture
def view():
    return ViewConfig(
        id="v1",
        name="January",
        filters=FilterState(
            search="north",
            date_column="order_date",
            date_range=DateRange(from_="2025-01-01", to="2025-01-31"),
            category_column="category",
            category_mode=CategoryMode.CUSTOM,
            category_values=["Books"],
        ),
        grouping=GroupingConfig(group_by="region", metric="amount", aggregation=Aggregation.AVG),
        chart_order=["bar-category-amount"],
    )

# --- Tests for Key-Value Stores ---

def test_memory_store():
    store = MemoryStore()
    assert store.get_item("k") is None
    store.set_item("k", "v")
    assert store.get_item("k") == "v"
    store.remove_item("k")
    store.remove_item("k")
    assert store.get_item("k") is None

def test_file_store_round_trip(tmp_path):
    store = FileStore(str(tmp_path / "state"))
    store.set_item(VIEWS_KEY, '{"version": 1}')

    assert (tmp_path / "state" / "csv-explorer_views.json").exists()
    assert store.get_item(VIEWS_KEY) == '{"version": 1}'
    assert FileStore(str(tmp_path / "state")).get_item(VIEWS_KEY) == '{"version": 1}'

    store.remove_item(VIEWS_KEY)
    assert store.get_item(VIEWS_KEY) is None

# --- Tests for the Dataset Repository ---

def test_dataset_persistence_caps_rows():
    repo = DatasetRepository(MemoryStore(), row_limit=2)
    rows = [{"a": str(i)} for i in range(3)]
    repo.save(Dataset(name="data.csv", headers=["a"], rows=rows))

    stored = repo.load()
    assert stored.name == "data.csv"
    assert stored.headers == ["a"]
    assert stored.rows == rows[:2]

def test_dataset_clear():
    repo = DatasetRepository(MemoryStore())
    repo.save(Dataset(name="data.csv", headers=["a"], rows=[{"a": "1"}]))
    repo.clear()
    assert repo.load() is None

def test_corrupt_dataset_loads_as_nothing():
    store = MemoryStore()
    store.set_item(DATASET_KEY, "{not json")
    assert DatasetRepository(store).load() is None

def test_storage_failures_are_not_raised():
    repo = DatasetRepository(BrokenStore())
    repo.save(Dataset(name="data.csv", headers=["a"], rows=[]))
    repo.clear()
    assert repo.load() is None

    views = ViewRepository(BrokenStore())
    views.save([])
    assert views.load() == []

# --- Tests for Views ---

def test_view_repository_round_trip(view):
    repo = ViewRepository(MemoryStore())
    repo.save([view])
    assert repo.load() == [view]

def test_export_uses_camel_case_document(view):
    document = json.loads(export_views_json([view]))
    assert document["version"] == 1
    exported = document["views"][0]
    assert exported["chartOrder"] == ["bar-category-amount"]
    assert exported["filters"]["dateRange"] == {"from": "2025-01-01", "to": "2025-01-31"}
    assert exported["filters"]["categoryMode"] == "custom"
    assert exported["grouping"]["aggregation"] == "avg"

def test_export_then_import_is_lossless(view):
    assert import_views_json(export_views_json([view])) == [view]

def test_import_rejects_malformed_documents():
    assert import_views_json("not json") == []
    assert import_views_json('{"views": "nope"}') == []
    assert import_views_json("[1, 2]") == []

def test_import_drops_malformed_views(view):
    document = {"version": 1, "views": [{"name": "no id"}, view.model_dump(mode="json", by_alias=True)]}
    assert import_views_json(json.dumps(document)) == [view]

def test_migrate_legacy_view_without_category_mode():
    """Older views carried only the value list; they read back as custom."""
    payload = {"views": [{"id": "old", "name": "Legacy", "filters": {"categoryValues": ["A"]}}]}
    migrated = migrate_views(payload)
    assert migrated.version == 1
    assert migrated.views[0].filters.normalized().category_mode is CategoryMode.CUSTOM
