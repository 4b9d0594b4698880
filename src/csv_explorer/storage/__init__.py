"""
Persistence module.
Exports the key-value stores and the dataset/view repositories.
"""
from .kv import FileStore, KeyValueStore, MemoryStore
from .migrations import CURRENT_VIEW_SCHEMA, migrate_views
from .repository import DatasetRepository, ViewRepository, export_views_json, import_views_json

__all__ = [
    "CURRENT_VIEW_SCHEMA",
    "DatasetRepository",
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "ViewRepository",
    "export_views_json",
    "import_views_json",
    "migrate_views",
]
