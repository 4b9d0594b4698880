from typing import Any, List

from pydantic import ValidationError

from csv_explorer.models import StoredViews, ViewConfig
from csv_explorer.utils.logger import get_logger

logger = get_logger(__name__)

CURRENT_VIEW_SCHEMA = 1


def migrate_views(payload: Any) -> StoredViews:
    """
    Brings any parsed view document up to the current schema.

    Never raises: anything that is not an object with a "views" list becomes
    an empty document, and individual views that fail validation are dropped.
    """
    if not isinstance(payload, dict):
        return StoredViews(version=CURRENT_VIEW_SCHEMA, views=[])

    raw_views = payload.get("views")
    if not isinstance(raw_views, list):
        return StoredViews(version=CURRENT_VIEW_SCHEMA, views=[])

    views: List[ViewConfig] = []
    for index, raw in enumerate(raw_views):
        try:
            view = ViewConfig.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Dropping malformed view at index {index}: {e.error_count()} error(s)")
            continue
        views.append(view)

    return StoredViews(version=CURRENT_VIEW_SCHEMA, views=views)
