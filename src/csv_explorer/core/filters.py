from typing import List, Sequence

from csv_explorer.core.parsers import parse_date, parse_number
from csv_explorer.models import CategoryMode, FilterState, Row


def _contains_search(row: Row, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    return any(needle in str(value).lower() for value in row.values())


def _matches(row: Row, filters: FilterState, search: str) -> bool:
    if not _contains_search(row, search):
        return False

    selection = filters.chart_selection
    if selection and selection.values:
        if row.get(selection.column, "") not in selection.values:
            return False

    if filters.category_column:
        if filters.category_mode is CategoryMode.NONE:
            return False
        if filters.category_mode is CategoryMode.CUSTOM and filters.category_values:
            if row.get(filters.category_column, "") not in filters.category_values:
                return False

    if filters.numeric_column and filters.numeric_range:
        parsed = parse_number(row.get(filters.numeric_column, ""))
        if parsed is None:
            return False
        bounds = filters.numeric_range
        if bounds.min is not None and parsed < bounds.min:
            return False
        if bounds.max is not None and parsed > bounds.max:
            return False

    if filters.date_column and filters.date_range:
        parsed = parse_date(row.get(filters.date_column, ""))
        if parsed is None:
            return False
        day = parsed.date()
        # An unparseable bound is ignored rather than rejecting every row.
        if filters.date_range.from_:
            start = parse_date(filters.date_range.from_)
            if start and day < start.date():
                return False
        if filters.date_range.to:
            end = parse_date(filters.date_range.to)
            if end and day > end.date():
                return False

    return True


def apply_filters(rows: Sequence[Row], filters: FilterState) -> List[Row]:
    """
    Returns the rows that pass every clause of the filter state.
    Clauses are AND-ed, so the result is never larger than the input.
    """
    filters = filters.normalized()
    search = filters.search.strip()
    return [row for row in rows if _matches(row, filters, search)]
