from typing import Dict, List, Optional, Sequence

from csv_explorer.core.aggregations import aggregate
from csv_explorer.core.parsers import parse_date, parse_number
from csv_explorer.models import Aggregation, GroupBucket, Row

UNKNOWN_LABEL = "Unknown"


def group_rows(
    rows: Sequence[Row],
    group_by: Optional[str],
    metric: Optional[str],
    aggregation: Aggregation,
) -> List[GroupBucket]:
    """
    Buckets rows by the group_by cell and reduces the metric per bucket.

    count tallies rows regardless of the metric; the other aggregations only
    see metric cells that parse as numbers. Buckets come back in date order
    when every label is a date, otherwise by value, largest first.
    """
    if not group_by:
        return []
    aggregation = Aggregation(aggregation)

    buckets: Dict[str, List[float]] = {}
    for row in rows:
        label = row.get(group_by) or ""
        bucket = buckets.setdefault(label if label.strip() else UNKNOWN_LABEL, [])

        if aggregation is Aggregation.COUNT:
            bucket.append(1)
            continue

        if not metric:
            continue
        parsed = parse_number(row.get(metric, ""))
        if parsed is not None:
            bucket.append(parsed)

    series = [GroupBucket(label=label, value=aggregate(values, aggregation)) for label, values in buckets.items()]

    dates = [parse_date(item.label) for item in series]
    if all(date is not None for date in dates):
        order = sorted(range(len(series)), key=lambda index: dates[index])
        return [series[index] for index in order]

    # sorted() is stable, so equal values keep first-seen order
    return sorted(series, key=lambda item: item.value, reverse=True)
