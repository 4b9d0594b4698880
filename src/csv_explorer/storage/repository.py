"""
Dataset and view persistence on top of a key-value store.

Storage is optional: every read failure degrades to "nothing stored" and
every write failure is logged, so the explorer keeps working in memory.
"""

import json
from typing import List, Optional, Sequence

from pydantic import ValidationError

from csv_explorer.config import settings
from csv_explorer.models import Dataset, StoredDataset, StoredViews, ViewConfig
from csv_explorer.storage.kv import KeyValueStore
from csv_explorer.storage.migrations import CURRENT_VIEW_SCHEMA, migrate_views
from csv_explorer.utils.logger import get_logger

logger = get_logger(__name__)

DATASET_KEY = "csv-explorer:last-dataset"
VIEWS_KEY = "csv-explorer:views"


class DatasetRepository:
    def __init__(self, store: KeyValueStore, row_limit: Optional[int] = None):
        self.store = store
        self.row_limit = row_limit if row_limit is not None else settings.PERSISTED_ROW_LIMIT

    def save(self, dataset: Dataset) -> None:
        """Persists at most row_limit rows; the in-memory dataset is untouched."""
        payload = StoredDataset(
            name=dataset.name,
            headers=dataset.headers,
            rows=dataset.rows[:self.row_limit],
            sample=dataset.sample,
        )
        try:
            self.store.set_item(DATASET_KEY, payload.model_dump_json(by_alias=True))
        except OSError as e:
            logger.warning(f"Could not persist dataset '{dataset.name}': {str(e)}")

    def load(self) -> Optional[StoredDataset]:
        try:
            raw = self.store.get_item(DATASET_KEY)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read persisted dataset: {str(e)}")
            return None
        if not raw:
            return None

        try:
            return StoredDataset.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed persisted dataset: {e.error_count()} error(s)")
            return None

    def clear(self) -> None:
        try:
            self.store.remove_item(DATASET_KEY)
        except OSError as e:
            logger.warning(f"Could not clear persisted dataset: {str(e)}")


def _document(views: Sequence[ViewConfig]) -> dict:
    return StoredViews(version=CURRENT_VIEW_SCHEMA, views=list(views)).model_dump(mode="json", by_alias=True)


def export_views_json(views: Sequence[ViewConfig]) -> str:
    return json.dumps(_document(views), indent=2, ensure_ascii=False)


def import_views_json(raw: str) -> List[ViewConfig]:
    """Same migration path as stored views; malformed JSON yields no views."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed views JSON: {str(e)}")
        return []
    return migrate_views(parsed).views


class ViewRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def save(self, views: Sequence[ViewConfig]) -> None:
        try:
            self.store.set_item(VIEWS_KEY, json.dumps(_document(views)))
        except OSError as e:
            logger.warning(f"Could not persist views: {str(e)}")

    def load(self) -> List[ViewConfig]:
        try:
            raw = self.store.get_item(VIEWS_KEY)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read persisted views: {str(e)}")
            return []
        if not raw:
            return []
        return import_views_json(raw)
