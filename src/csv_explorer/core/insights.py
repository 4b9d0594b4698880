"""
insights.py
─────────────────────────────────────────────────────────────────────────────
Picks the summary cards and charts worth showing for a (possibly filtered)
set of rows, using the column metadata computed at load time.

Chart priority (each only when it has data, at most MAX_CHARTS kept)
  1. timeseries   first date column × first numeric column
  2. bar          top categories of a low-cardinality string column
  3. histogram    the numeric column with the largest variance
  4. pie          first boolean column
  5. scatter      first two numeric columns
─────────────────────────────────────────────────────────────────────────────
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from csv_explorer.core.parsers import boolean_label, parse_date, parse_number
from csv_explorer.core.profiler import histogram_for_column
from csv_explorer.models import (
    ChartSpec,
    ChartType,
    ColumnMeta,
    ColumnType,
    DateStats,
    InsightResult,
    NumberStats,
    Row,
    SummarySpec,
)

MAX_CHARTS = 6
TOP_CATEGORY_LIMIT = 10
SCATTER_POINT_LIMIT = 2000
CATEGORY_UNIQUENESS_LIMIT = 0.6
DAY_SPAN_LIMIT = 90
WEEK_SPAN_LIMIT = 365

Record = Dict[str, object]


# ── column selection ──────────────────────────────────────────────────────────
def _columns_of(metas: Sequence[ColumnMeta], column_type: ColumnType) -> List[ColumnMeta]:
    return [meta for meta in metas if meta.type is column_type]


def _variance(meta: ColumnMeta) -> float:
    return meta.stats.variance if isinstance(meta.stats, NumberStats) else 0.0


def pick_interesting_numeric(metas: Sequence[ColumnMeta]) -> Optional[ColumnMeta]:
    """The numeric column with the largest variance; the first one wins ties."""
    numeric = _columns_of(metas, ColumnType.NUMBER)
    if not numeric:
        return None
    return max(numeric, key=_variance)


# ── chart data builders ───────────────────────────────────────────────────────
def _week_start(date: datetime) -> datetime:
    # weeks start on Sunday
    return date - timedelta(days=(date.weekday() + 1) % 7)


def build_time_series(rows: Sequence[Row], date_col: str, numeric_col: str) -> List[Record]:
    timestamps = [d for d in (parse_date(row.get(date_col, "")) for row in rows) if d is not None]
    if not timestamps:
        return []

    span_days = (max(timestamps) - min(timestamps)).days
    if span_days > WEEK_SPAN_LIMIT:
        granularity = "month"
    elif span_days > DAY_SPAN_LIMIT:
        granularity = "week"
    else:
        granularity = "day"

    buckets: Dict[str, float] = {}
    for row in rows:
        date = parse_date(row.get(date_col, ""))
        value = parse_number(row.get(numeric_col, ""))
        if date is None or value is None:
            continue

        if granularity == "day":
            key = date.strftime("%Y-%m-%d")
        elif granularity == "week":
            key = _week_start(date).strftime("%Y-%m-%d")
        else:
            key = date.strftime("%Y-%m")
        buckets[key] = buckets.get(key, 0.0) + value

    # zero-padded ISO keys sort chronologically
    return [{"period": period, "value": round(total, 2)} for period, total in sorted(buckets.items())]


def build_top_categories(rows: Sequence[Row], category_col: str, numeric_col: str) -> List[Record]:
    totals: Dict[str, float] = {}
    for row in rows:
        category = (row.get(category_col) or "").strip() or "Unknown"
        value = parse_number(row.get(numeric_col, ""))
        if value is None:
            continue
        totals[category] = totals.get(category, 0.0) + value

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:TOP_CATEGORY_LIMIT]
    return [{"category": category, "value": round(total, 2)} for category, total in ranked]


def build_boolean_distribution(rows: Sequence[Row], bool_col: str) -> List[Record]:
    counts: Dict[str, int] = {}
    for row in rows:
        label = boolean_label(row.get(bool_col, ""))
        counts[label] = counts.get(label, 0) + 1
    return [{"label": label, "value": count} for label, count in counts.items()]


def build_scatter(rows: Sequence[Row], x_col: str, y_col: str) -> List[Record]:
    points: List[Record] = []
    for row in rows:
        x = parse_number(row.get(x_col, ""))
        y = parse_number(row.get(y_col, ""))
        if x is None or y is None:
            continue
        points.append({"x": x, "y": y})
        if len(points) >= SCATTER_POINT_LIMIT:
            break
    return points


# ── summaries ─────────────────────────────────────────────────────────────────
def _format_day(iso: str) -> str:
    return datetime.fromisoformat(iso).strftime("%Y-%m-%d")


def build_summaries(rows: Sequence[Row], metas: Sequence[ColumnMeta]) -> List[SummarySpec]:
    missing = sum(meta.missing_count for meta in metas)
    summaries = [
        SummarySpec(id="rows", label="Rows", value=f"{len(rows):,}"),
        SummarySpec(id="cols", label="Columns", value=f"{len(metas):,}"),
        SummarySpec(id="missing", label="Missing Values", value=f"{missing:,}"),
    ]

    top_numeric = pick_interesting_numeric(metas)
    if top_numeric and isinstance(top_numeric.stats, NumberStats):
        stats = top_numeric.stats
        summaries.append(SummarySpec(
            id="variance",
            label="Most Variable Numeric",
            value=top_numeric.key,
            hint=f"{stats.min:.2f} / {stats.mean:.2f} / {stats.max:.2f}",
        ))

    date_cols = _columns_of(metas, ColumnType.DATE)
    if date_cols and isinstance(date_cols[0].stats, DateStats) and date_cols[0].stats.min_date:
        stats = date_cols[0].stats
        summaries.append(SummarySpec(
            id="date-range",
            label="Date Range",
            value=f"{_format_day(stats.min_date)} → {_format_day(stats.max_date)}",
        ))

    return summaries


# ── charts ────────────────────────────────────────────────────────────────────
def build_charts(rows: Sequence[Row], metas: Sequence[ColumnMeta]) -> List[ChartSpec]:
    charts: List[ChartSpec] = []

    numeric_cols = _columns_of(metas, ColumnType.NUMBER)
    date_cols = _columns_of(metas, ColumnType.DATE)
    string_cols = _columns_of(metas, ColumnType.STRING)
    boolean_cols = _columns_of(metas, ColumnType.BOOLEAN)

    if date_cols and numeric_cols:
        date_col, num_col = date_cols[0].key, numeric_cols[0].key
        data = build_time_series(rows, date_col, num_col)
        if data:
            charts.append(ChartSpec(
                id=f"timeseries-{date_col}-{num_col}",
                title=f"{num_col} over time",
                type=ChartType.TIMESERIES,
                x_key="period",
                y_key="value",
                data=data,
            ))

    if string_cols and numeric_cols:
        category_col = next(
            (meta.key for meta in string_cols if meta.uniqueness_ratio < CATEGORY_UNIQUENESS_LIMIT),
            string_cols[0].key,
        )
        num_col = numeric_cols[0].key
        data = build_top_categories(rows, category_col, num_col)
        if data:
            charts.append(ChartSpec(
                id=f"bar-{category_col}-{num_col}",
                title=f"Top {category_col} by total {num_col}",
                type=ChartType.BAR,
                x_key="category",
                y_key="value",
                data=data,
                interactive_filter_key=category_col,
            ))

    top_numeric = pick_interesting_numeric(metas)
    if top_numeric:
        data = histogram_for_column(rows, top_numeric.key)
        if data:
            charts.append(ChartSpec(
                id=f"hist-{top_numeric.key}",
                title=f"{top_numeric.key} distribution",
                type=ChartType.HISTOGRAM,
                x_key="label",
                y_key="count",
                data=data,
            ))

    if boolean_cols:
        bool_col = boolean_cols[0].key
        data = build_boolean_distribution(rows, bool_col)
        if data:
            charts.append(ChartSpec(
                id=f"pie-{bool_col}",
                title=f"{bool_col} distribution",
                type=ChartType.PIE,
                x_key="label",
                y_key="value",
                data=data,
                interactive_filter_key=bool_col,
            ))

    if len(numeric_cols) >= 2:
        x_col, y_col = numeric_cols[0].key, numeric_cols[1].key
        data = build_scatter(rows, x_col, y_col)
        if data:
            charts.append(ChartSpec(
                id=f"scatter-{x_col}-{y_col}",
                title=f"{x_col} vs {y_col}",
                type=ChartType.SCATTER,
                x_key="x",
                y_key="y",
                data=data,
            ))

    return charts[:MAX_CHARTS]


def generate_insights(rows: Sequence[Row], metas: Sequence[ColumnMeta]) -> InsightResult:
    """Deterministic for identical rows and metas."""
    return InsightResult(summaries=build_summaries(rows, metas), charts=build_charts(rows, metas))
