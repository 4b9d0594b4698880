"""
profiler.py
─────────────────────────────────────────────────────────────────────────────
Classifies every column into a semantic type and computes the statistics
for that type. Cells stay strings; the type is only ever inferred.

Type decision (on non-missing values, first match wins)
  boolean   > 95% of values are true/yes/1 or false/no/0
  number    > 85% parse as numbers, unless the column looks like an identifier
  date      > 75% parse as dates
  id-like   nearly every value distinct across more than 20 values
  string    everything else, including all-missing columns
─────────────────────────────────────────────────────────────────────────────
"""

import re
from collections import Counter
from typing import Dict, List, Sequence

from csv_explorer.core.aggregations import histogram, mean, median, quantile, variance
from csv_explorer.core.parsers import boolean_token, is_missing, parse_date, parse_number
from csv_explorer.models import (
    BooleanStats,
    ColumnMeta,
    ColumnStats,
    ColumnType,
    DateStats,
    NumberStats,
    Row,
    StringStats,
    TopValue,
)
from csv_explorer.utils.logger import get_logger

logger = get_logger(__name__)

BOOLEAN_THRESHOLD = 0.95
NUMBER_THRESHOLD = 0.85
DATE_THRESHOLD = 0.75
ID_UNIQUENESS_THRESHOLD = 0.98
ID_MIN_VALUES = 20
TOP_VALUES_LIMIT = 10
HISTOGRAM_BINS = 12

# Only the first non-missing value is checked against this.
_ID_HINT = re.compile(r"id|uuid|code|key", re.IGNORECASE)


def _looks_like_identifier(non_missing: Sequence[str], uniqueness_ratio: float) -> bool:
    return uniqueness_ratio > ID_UNIQUENESS_THRESHOLD and len(non_missing) > ID_MIN_VALUES


def detect_type(non_missing: Sequence[str], uniqueness_ratio: float) -> ColumnType:
    if not non_missing:
        return ColumnType.STRING

    total = len(non_missing)
    bool_hits = sum(1 for value in non_missing if boolean_token(value) is not None)
    if bool_hits / total > BOOLEAN_THRESHOLD:
        return ColumnType.BOOLEAN

    number_hits = sum(1 for value in non_missing if parse_number(value) is not None)
    if number_hits / total > NUMBER_THRESHOLD:
        if _looks_like_identifier(non_missing, uniqueness_ratio) and not _ID_HINT.search(non_missing[0]):
            return ColumnType.ID_LIKE
        return ColumnType.NUMBER

    date_hits = sum(1 for value in non_missing if parse_date(value) is not None)
    if date_hits / total > DATE_THRESHOLD:
        return ColumnType.DATE

    if _looks_like_identifier(non_missing, uniqueness_ratio):
        return ColumnType.ID_LIKE
    return ColumnType.STRING


def _number_stats(non_missing: Sequence[str], missing_count: int) -> NumberStats:
    numbers = [n for n in (parse_number(value) for value in non_missing) if n is not None]
    ordered = sorted(numbers)
    return NumberStats(
        min=ordered[0] if ordered else 0.0,
        max=ordered[-1] if ordered else 0.0,
        mean=mean(numbers),
        median=median(numbers),
        p95=quantile(ordered, 0.95),
        variance=variance(numbers),
        missing_count=missing_count,
    )


def _date_stats(non_missing: Sequence[str], missing_count: int) -> DateStats:
    parsed = sorted(d for d in (parse_date(value) for value in non_missing) if d is not None)
    return DateStats(
        min_date=parsed[0].isoformat() if parsed else "",
        max_date=parsed[-1].isoformat() if parsed else "",
        missing_count=missing_count,
        parse_success_rate=len(parsed) / max(1, len(non_missing)),
    )


def _boolean_stats(non_missing: Sequence[str], missing_count: int) -> BooleanStats:
    flags = [boolean_token(value) for value in non_missing]
    return BooleanStats(
        true_count=sum(1 for flag in flags if flag is True),
        false_count=sum(1 for flag in flags if flag is False),
        missing_count=missing_count,
    )


def _string_stats(non_missing: Sequence[str], missing_count: int) -> StringStats:
    counts = Counter(non_missing)
    # most_common keeps first-seen order for equal counts
    top = [TopValue(value=value, count=count) for value, count in counts.most_common(TOP_VALUES_LIMIT)]
    return StringStats(unique_count=len(counts), top_values=top, missing_count=missing_count)


def _stats_for(column_type: ColumnType, non_missing: Sequence[str], missing_count: int) -> ColumnStats:
    if column_type is ColumnType.NUMBER:
        return _number_stats(non_missing, missing_count)
    if column_type is ColumnType.DATE:
        return _date_stats(non_missing, missing_count)
    if column_type is ColumnType.BOOLEAN:
        return _boolean_stats(non_missing, missing_count)
    if column_type in (ColumnType.STRING, ColumnType.ID_LIKE):
        return _string_stats(non_missing, missing_count)
    raise ValueError(f"Unhandled column type: {column_type}")


def profile_column(key: str, values: Sequence[str]) -> ColumnMeta:
    non_missing = [value for value in values if not is_missing(value)]
    missing_count = len(values) - len(non_missing)
    uniqueness_ratio = len(set(non_missing)) / max(1, len(non_missing))
    column_type = detect_type(non_missing, uniqueness_ratio)

    return ColumnMeta(
        key=key,
        original_name=key,
        type=column_type,
        missing_count=missing_count,
        uniqueness_ratio=round(uniqueness_ratio, 2),
        stats=_stats_for(column_type, non_missing, missing_count),
    )


def profile_dataset(rows: Sequence[Row], headers: Sequence[str]) -> List[ColumnMeta]:
    """
    Profiles every column independently. Always recomputes from scratch.
    """
    metas = [profile_column(key, [row.get(key, "") for row in rows]) for key in headers]
    types = ", ".join(f"{meta.key}={meta.type.value}" for meta in metas)
    logger.info(f"Profiled {len(metas)} columns over {len(rows)} rows: {types}")
    return metas


def histogram_for_column(rows: Sequence[Row], key: str, bins: int = HISTOGRAM_BINS) -> List[Dict[str, object]]:
    values = [n for n in (parse_number(row.get(key, "")) for row in rows) if n is not None]
    return [
        {
            "label": f"{item.bin_start:.1f} - {item.bin_end:.1f}",
            "count": item.count,
            "min": item.bin_start,
            "max": item.bin_end,
        }
        for item in histogram(values, bins)
    ]
