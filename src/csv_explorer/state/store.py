"""
store.py
─────────────────────────────────────────────────────────────────────────────
The single owner of dataset, filter, grouping and view state.

Every transition builds the complete DerivedState (filtered rows, summary
cards, insight charts, grouping chart) first and only then publishes it, so
readers never see filters that disagree with the charts. Nothing is diffed:
each mutation recomputes from the full row set.
─────────────────────────────────────────────────────────────────────────────
"""

import os
import uuid
from typing import Any, List, Optional, Sequence

from csv_explorer.core import ingestion
from csv_explorer.core.filters import apply_filters
from csv_explorer.core.grouping import group_rows
from csv_explorer.core.insights import generate_insights
from csv_explorer.core.profiler import profile_dataset
from csv_explorer.config import settings
from csv_explorer.models import (
    CategoryMode,
    ChartSelection,
    ChartSpec,
    ChartType,
    ColumnMeta,
    ColumnType,
    Dataset,
    DerivedState,
    FilterOptions,
    FilterState,
    GroupingConfig,
    NumberStats,
    NumericRange,
    ParsedCsv,
    Row,
    SummarySpec,
    ViewConfig,
)
from csv_explorer.storage import (
    DatasetRepository,
    FileStore,
    KeyValueStore,
    ViewRepository,
    export_views_json,
    import_views_json,
)
from csv_explorer.utils.exceptions import FileProcessingError, ParseError, ReadError
from csv_explorer.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VIEW_ID = "default"
MAIN_CHART_ID = "group-main"
CATEGORY_SEED_UNIQUENESS = 0.5
FILTER_OPTION_VALUE_LIMIT = 200


def default_filters() -> FilterState:
    return FilterState(search="", category_mode=CategoryMode.ALL, category_values=[])


def default_grouping() -> GroupingConfig:
    return GroupingConfig()


def _first_key(metas: Sequence[ColumnMeta], column_type: ColumnType) -> Optional[str]:
    return next((meta.key for meta in metas if meta.type is column_type), None)


def seed_filters(metas: Sequence[ColumnMeta], with_numeric_range: bool = True) -> FilterState:
    """
    Default filters for a freshly loaded dataset: first date column, first
    low-cardinality string column as category (else the first string column),
    first numeric column bounded by its observed min/max.
    """
    category = next(
        (meta.key for meta in metas
         if meta.type is ColumnType.STRING and meta.uniqueness_ratio < CATEGORY_SEED_UNIQUENESS),
        _first_key(metas, ColumnType.STRING),
    )
    numeric = next((meta for meta in metas if meta.type is ColumnType.NUMBER), None)

    numeric_range = None
    if with_numeric_range and numeric and isinstance(numeric.stats, NumberStats):
        numeric_range = NumericRange(min=numeric.stats.min, max=numeric.stats.max)

    return default_filters().model_copy(update={
        "date_column": _first_key(metas, ColumnType.DATE),
        "category_column": category,
        "numeric_column": numeric.key if numeric else None,
        "numeric_range": numeric_range,
    })


def build_main_chart(rows: Sequence[Row], grouping: GroupingConfig) -> Optional[ChartSpec]:
    if not grouping.group_by:
        return None

    data = [
        {"group": bucket.label, "value": bucket.value}
        for bucket in group_rows(rows, grouping.group_by, grouping.metric, grouping.aggregation)
    ]
    if not data:
        return None

    return ChartSpec(
        id=MAIN_CHART_ID,
        title=f"Grouped by {grouping.group_by} ({grouping.aggregation.value})",
        type=ChartType.BAR,
        x_key="group",
        y_key="value",
        data=data,
    )


def recompute(
    rows: Sequence[Row],
    metas: Sequence[ColumnMeta],
    filters: FilterState,
    grouping: GroupingConfig,
) -> DerivedState:
    filtered_rows = apply_filters(rows, filters)
    insights = generate_insights(filtered_rows, metas)
    return DerivedState(
        filtered_rows=filtered_rows,
        summaries=insights.summaries,
        charts=insights.charts,
        main_chart=build_main_chart(filtered_rows, grouping),
    )


class DashboardStore:
    """
    Holds the active dataset plus its filters, grouping and saved views.
    Pass one instance to whatever drives the UI; mutate only through the
    transition methods below.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        kv = store if store is not None else FileStore()
        self.dataset_repo = DatasetRepository(kv)
        self.view_repo = ViewRepository(kv)

        self.dataset: Optional[Dataset] = None
        self.filters: FilterState = default_filters()
        self.grouping: GroupingConfig = default_grouping()
        self.views: List[ViewConfig] = []
        self.active_view_id: str = DEFAULT_VIEW_ID
        self.loading_progress: int = 0
        self.error: Optional[str] = None
        self.derived: DerivedState = DerivedState()

    # ── read-only accessors ───────────────────────────────────────────────
    @property
    def dataset_name(self) -> str:
        return self.dataset.name if self.dataset else ""

    @property
    def headers(self) -> List[str]:
        return self.dataset.headers if self.dataset else []

    @property
    def rows(self) -> List[Row]:
        return self.dataset.rows if self.dataset else []

    @property
    def metas(self) -> List[ColumnMeta]:
        return self.dataset.metas if self.dataset else []

    @property
    def filtered_rows(self) -> List[Row]:
        return self.derived.filtered_rows

    @property
    def summaries(self) -> List[SummarySpec]:
        return self.derived.summaries

    @property
    def charts(self) -> List[ChartSpec]:
        return self.derived.charts

    @property
    def main_chart(self) -> Optional[ChartSpec]:
        return self.derived.main_chart

    @property
    def displayed_charts(self) -> List[ChartSpec]:
        """The grouping chart, when there is one, ahead of the insight charts."""
        if self.main_chart:
            return [self.main_chart, *self.charts]
        return list(self.charts)

    def filter_options(self) -> FilterOptions:
        category_values: List[str] = []
        column = self.filters.category_column
        if column:
            seen = dict.fromkeys(row.get(column, "") for row in self.rows)
            category_values = [value for value in seen if value][:FILTER_OPTION_VALUE_LIMIT]

        metas = self.metas
        return FilterOptions(
            date_columns=[m.key for m in metas if m.type is ColumnType.DATE],
            string_columns=[m.key for m in metas if m.type is ColumnType.STRING],
            numeric_columns=[m.key for m in metas if m.type is ColumnType.NUMBER],
            category_values=category_values,
        )

    # ── internal ──────────────────────────────────────────────────────────
    def _publish(self, filters: FilterState, grouping: GroupingConfig) -> None:
        derived = recompute(self.rows, self.metas, filters, grouping)
        self.filters, self.grouping, self.derived = filters, grouping, derived

    def _install(self, name: str, headers: List[str], rows: List[Row], with_numeric_range: bool = True) -> Dataset:
        metas = profile_dataset(rows, headers)
        dataset = Dataset(
            name=name,
            headers=headers,
            rows=rows,
            sample=rows[:settings.SAMPLE_ROW_LIMIT],
            metas=metas,
        )
        filters = seed_filters(metas, with_numeric_range)
        grouping = default_grouping()
        derived = recompute(rows, metas, filters, grouping)

        self.dataset = dataset
        self.filters, self.grouping, self.derived = filters, grouping, derived
        return dataset

    # ── dataset transitions ───────────────────────────────────────────────
    def initialize(self) -> None:
        """
        Restores the persisted dataset (re-profiled) and saved views.
        Restored filters carry no numeric range.
        """
        self.views = self.view_repo.load()
        stored = self.dataset_repo.load()
        if stored and stored.rows:
            self._install(stored.name, stored.headers, stored.rows, with_numeric_range=False)
            logger.info(f"Restored dataset '{stored.name}' with {len(stored.rows)} rows")
        logger.info(f"Loaded {len(self.views)} saved views")

    def set_dataset(self, name: str, headers: List[str], rows: List[Row]) -> None:
        dataset = self._install(name, headers, rows)
        self.error = None
        self.loading_progress = 100
        self.dataset_repo.save(dataset)
        logger.info(f"Dataset '{name}' loaded: {len(rows)} rows, {len(headers)} columns")

    def _load_parsed(self, name: str, parse) -> ParsedCsv:
        try:
            parsed = parse()
        except (ParseError, ReadError, FileProcessingError) as e:
            self.error = e.message
            logger.error(f"Failed to load '{name}': {e.message}")
            raise
        self.set_dataset(name, parsed.headers, parsed.rows)
        return parsed

    def load_csv_text(self, name: str, text: str) -> None:
        self._load_parsed(name, lambda: ingestion.parse_csv_text(text))

    def load_csv_bytes(self, name: str, content: bytes) -> None:
        self._load_parsed(name, lambda: ingestion.parse_csv_bytes(content, name))

    async def load_csv_file(self, path: str) -> None:
        name = os.path.basename(path)
        self.loading_progress = 0
        try:
            parsed = await ingestion.read_csv_file(path, on_progress=self.set_loading_progress)
        except (ParseError, ReadError, FileProcessingError) as e:
            self.error = e.message
            logger.error(f"Failed to load '{name}': {e.message}")
            raise
        self.set_dataset(name, parsed.headers, parsed.rows)

    def load_sample(self) -> None:
        self._load_parsed(ingestion.SAMPLE_NAME, ingestion.load_sample)

    def set_loading_progress(self, progress: int) -> None:
        self.loading_progress = progress

    def set_error(self, error: Optional[str] = None) -> None:
        self.error = error

    def clear_dataset(self) -> None:
        """Forgets the dataset. Saved views are kept."""
        self.dataset_repo.clear()
        self.dataset = None
        self.loading_progress = 0
        self.error = None
        self.active_view_id = DEFAULT_VIEW_ID
        self.filters, self.grouping, self.derived = default_filters(), default_grouping(), DerivedState()
        logger.info("Dataset cleared")

    # ── filter & grouping transitions ─────────────────────────────────────
    def patch_filters(self, **patch: Any) -> None:
        merged = {**self.filters.model_dump(), **patch}
        self._publish(FilterState.model_validate(merged).normalized(), self.grouping)

    def select_chart_value(self, column: str, value: str) -> None:
        """A click on an interactive chart narrows rows to that one value."""
        self.patch_filters(chart_selection=ChartSelection(column=column, values=[value]))

    def clear_chart_selection(self) -> None:
        self.patch_filters(chart_selection=None)

    def reset_filters(self) -> None:
        self._publish(seed_filters(self.metas, with_numeric_range=False), self.grouping)

    def set_grouping(self, **patch: Any) -> None:
        merged = {**self.grouping.model_dump(), **patch}
        self._publish(self.filters, GroupingConfig.model_validate(merged))

    # ── view transitions ──────────────────────────────────────────────────
    def save_current_view(self, name: str) -> ViewConfig:
        view = ViewConfig(
            id=uuid.uuid4().hex,
            name=name,
            filters=self.filters,
            grouping=self.grouping,
            chart_order=[chart.id for chart in self.charts],
        )
        self.views = [*self.views, view]
        self.view_repo.save(self.views)
        self.active_view_id = view.id
        logger.info(f"Saved view '{name}' ({view.id})")
        return view

    def apply_view(self, view_id: str) -> None:
        """The reserved "default" id resets filters and grouping. Unknown ids are ignored."""
        if view_id == DEFAULT_VIEW_ID:
            self._publish(seed_filters(self.metas, with_numeric_range=False), default_grouping())
            self.active_view_id = DEFAULT_VIEW_ID
            return

        view = next((item for item in self.views if item.id == view_id), None)
        if view is None:
            logger.warning(f"Ignoring unknown view id: {view_id}")
            return
        self._publish(view.filters.normalized(), view.grouping)
        self.active_view_id = view_id

    def delete_view(self, view_id: str) -> None:
        self.views = [view for view in self.views if view.id != view_id]
        self.view_repo.save(self.views)
        self.active_view_id = DEFAULT_VIEW_ID

    def import_views(self, views: Sequence[ViewConfig]) -> None:
        self.views = list(views)
        self.view_repo.save(self.views)
        logger.info(f"Imported {len(self.views)} views")

    def import_views_json(self, raw: str) -> List[ViewConfig]:
        views = import_views_json(raw)
        self.import_views(views)
        return views

    def export_views(self) -> str:
        return export_views_json(self.views)
