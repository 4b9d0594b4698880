from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# A row maps column key -> raw cell text. Cells are never typed.
Row = Dict[str, str]


class CamelModel(BaseModel):
    """Base for models that are persisted or sent to the presentation layer in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ColumnType(str, Enum):
    NUMBER = "number"
    DATE = "date"
    STRING = "string"
    BOOLEAN = "boolean"
    ID_LIKE = "id-like"


class Aggregation(str, Enum):
    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    MIN = "min"
    MAX = "max"


class CategoryMode(str, Enum):
    ALL = "all"
    CUSTOM = "custom"
    NONE = "none"


class ChartType(str, Enum):
    TIMESERIES = "timeseries"
    BAR = "bar"
    HISTOGRAM = "histogram"
    PIE = "pie"
    SCATTER = "scatter"


# --- Column statistics ---

class NumberStats(CamelModel):
    min: float
    max: float
    mean: float
    median: float
    p95: float
    variance: float
    missing_count: int


class DateStats(CamelModel):
    min_date: str
    max_date: str
    missing_count: int
    parse_success_rate: float


class BooleanStats(CamelModel):
    true_count: int
    false_count: int
    missing_count: int


class TopValue(CamelModel):
    value: str
    count: int


class StringStats(CamelModel):
    unique_count: int
    top_values: List[TopValue]
    missing_count: int


ColumnStats = Union[NumberStats, DateStats, BooleanStats, StringStats]


class ColumnMeta(CamelModel):
    """Inferred type and statistics for one column, computed once per dataset."""
    key: str
    original_name: str
    type: ColumnType
    missing_count: int
    uniqueness_ratio: float = Field(ge=0, le=1)
    stats: Optional[ColumnStats] = None


# --- Filtering & grouping ---

class DateRange(CamelModel):
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None


class NumericRange(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None


class ChartSelection(CamelModel):
    column: str
    values: List[str] = Field(default_factory=list)


class FilterState(CamelModel):
    search: str = ""
    date_column: Optional[str] = None
    date_range: Optional[DateRange] = None
    category_column: Optional[str] = None
    category_mode: Optional[CategoryMode] = None
    category_values: List[str] = Field(default_factory=list)
    numeric_column: Optional[str] = None
    numeric_range: Optional[NumericRange] = None
    chart_selection: Optional[ChartSelection] = None

    def normalized(self) -> "FilterState":
        """
        Fills in a missing category mode. Older persisted state carried only
        the value list, so a non-empty list means "custom".
        """
        if self.category_mode is not None:
            return self
        mode = CategoryMode.CUSTOM if self.category_values else CategoryMode.ALL
        return self.model_copy(update={"category_mode": mode})


class GroupingConfig(CamelModel):
    group_by: Optional[str] = None
    metric: Optional[str] = None
    aggregation: Aggregation = Aggregation.SUM


class GroupBucket(BaseModel):
    label: str
    value: float


class HistogramBin(BaseModel):
    bin_start: float
    bin_end: float
    count: int


# --- Derived output ---

class ChartSpec(CamelModel):
    id: str
    title: str
    type: ChartType
    x_key: str
    y_key: str
    data: List[Dict[str, Any]]
    interactive_filter_key: Optional[str] = None


class SummarySpec(CamelModel):
    id: str
    label: str
    value: str
    hint: Optional[str] = None


class InsightResult(BaseModel):
    summaries: List[SummarySpec] = Field(default_factory=list)
    charts: List[ChartSpec] = Field(default_factory=list)


# --- Datasets & views ---

class ParsedCsv(BaseModel):
    headers: List[str]
    rows: List[Row]


class Dataset(CamelModel):
    """
    Represents the active dataset in memory.
    Contains the rows, their normalized headers and the derived column metadata.
    """
    name: str
    headers: List[str]
    rows: List[Row]
    sample: List[Row] = Field(default_factory=list)
    metas: List[ColumnMeta] = Field(default_factory=list)


class StoredDataset(CamelModel):
    """Shape of a dataset in the key-value store. Metadata is re-profiled on load."""
    name: str
    headers: List[str]
    rows: List[Row]
    sample: List[Row] = Field(default_factory=list)


class ViewConfig(CamelModel):
    """A named snapshot of filter and grouping configuration."""
    id: str
    name: str
    filters: FilterState = Field(default_factory=FilterState)
    grouping: GroupingConfig = Field(default_factory=GroupingConfig)
    chart_order: List[str] = Field(default_factory=list)


class StoredViews(CamelModel):
    version: int
    views: List[ViewConfig] = Field(default_factory=list)


class FilterOptions(CamelModel):
    """Choices a filter panel can offer for the current dataset."""
    date_columns: List[str] = Field(default_factory=list)
    string_columns: List[str] = Field(default_factory=list)
    numeric_columns: List[str] = Field(default_factory=list)
    category_values: List[str] = Field(default_factory=list)


class DerivedState(CamelModel):
    """Everything recomputed from rows, metas, filters and grouping. Never patched in place."""
    model_config = ConfigDict(frozen=True)

    filtered_rows: List[Row] = Field(default_factory=list)
    summaries: List[SummarySpec] = Field(default_factory=list)
    charts: List[ChartSpec] = Field(default_factory=list)
    main_chart: Optional[ChartSpec] = None
