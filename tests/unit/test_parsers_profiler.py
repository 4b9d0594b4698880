from datetime import datetime

from csv_explorer.core.parsers import boolean_label, is_missing, parse_date, parse_number
from csv_explorer.core.profiler import histogram_for_column, profile_column, profile_dataset
from csv_explorer.models import ColumnType

# --- Tests for Number Parsing ---

def test_parse_number_locales():
    """Both decimal styles and thousands separators are understood."""
    assert parse_number("1,234.56") == 1234.56
    assert parse_number("1.234,56") == 1234.56
    assert parse_number("1234,56") == 1234.56
    assert parse_number(" -3.5 ") == -3.5

def test_parse_number_rejects_garbage():
    for raw in ("", "abc", "1e5", "inf", "1,234,567", "12abc"):
        assert parse_number(raw) is None

def test_parse_number_needs_ascii_digits():
    assert parse_number("\u0661\u0662") is None
    assert parse_number("\uff11\uff12.5") is None

# --- Tests for Date Parsing ---

def test_parse_date_formats():
    assert parse_date("2025-01-03") == datetime(2025, 1, 3)
    assert parse_date("03.01.2025") == datetime(2025, 1, 3)
    assert parse_date("01/15/2025") == datetime(2025, 1, 15)
    assert parse_date("15/01/2025") == datetime(2025, 1, 15)

def test_parse_date_converts_offsets_to_naive_utc():
    assert parse_date("2025-01-03T10:00:00Z") == datetime(2025, 1, 3, 10, 0)

def test_parse_date_rejects_text():
    assert parse_date("hello") is None
    assert parse_date("") is None
    assert parse_date("2025-13-45") is None

# --- Tests for Missing & Boolean Tokens ---

def test_missing_tokens():
    for raw in (None, "", "  ", "null", "NULL", " N/A ", "na", "-"):
        assert is_missing(raw)
    assert not is_missing("0")
    assert not is_missing("none")

def test_boolean_labels():
    assert boolean_label("Yes") == "True"
    assert boolean_label("0") == "False"
    assert boolean_label("maybe") == "Unknown"

# --- Tests for the Profiler ---

def test_profile_dataset_mixed_columns():
    """A numeric column with a gap, a date column and a text column."""
    rows = [
        {"amount": "10", "created_at": "2025-01-01", "name": "a"},
        {"amount": "", "created_at": "2025-01-02", "name": "b"},
        {"amount": "30", "created_at": "2025-01-03", "name": "c"},
    ]
    metas = {meta.key: meta for meta in profile_dataset(rows, ["amount", "created_at", "name"])}

    assert metas["amount"].type is ColumnType.NUMBER
    assert metas["amount"].missing_count == 1
    assert metas["amount"].stats.mean == 20
    assert metas["created_at"].type is ColumnType.DATE
    assert metas["created_at"].stats.min_date == "2025-01-01T00:00:00"
    assert metas["created_at"].stats.parse_success_rate == 1
    assert metas["name"].type is ColumnType.STRING

def test_profile_boolean_column():
    meta = profile_column("flag", ["true", "yes", "1", "no", "false"])
    assert meta.type is ColumnType.BOOLEAN
    assert meta.stats.true_count == 3
    assert meta.stats.false_count == 2

def test_unique_numbers_without_hint_are_id_like():
    meta = profile_column("ref", [str(1000 + i) for i in range(1, 26)])
    assert meta.type is ColumnType.ID_LIKE

def test_identifier_hint_in_first_value_keeps_number():
    """Only the first non-missing value is checked for the id/key/code hint."""
    meta = profile_column("ref", ["key"] + [str(1000 + i) for i in range(1, 26)])
    assert meta.type is ColumnType.NUMBER

def test_unique_text_is_id_like():
    meta = profile_column("customer", [f"customer {i}" for i in range(25)])
    assert meta.type is ColumnType.ID_LIKE

def test_all_missing_column_is_string():
    meta = profile_column("empty", ["", "n/a", "-"])
    assert meta.type is ColumnType.STRING
    assert meta.missing_count == 3
    assert meta.uniqueness_ratio == 0

def test_uniqueness_ratio_is_rounded():
    meta = profile_column("letter", ["a", "a", "b"])
    assert meta.uniqueness_ratio == 0.67
    assert 0 <= meta.uniqueness_ratio <= 1

def test_mostly_numeric_column_ignores_stray_text():
    meta = profile_column("score", ["1", "2", "3", "4", "5", "6", "7", "x"])
    assert meta.type is ColumnType.NUMBER
    assert meta.stats.mean == 4
    assert meta.stats.min == 1
    assert meta.stats.max == 7

def test_string_top_values_keep_first_seen_order_on_ties():
    meta = profile_column("tag", ["b", "a", "b", "c"])
    top = [(item.value, item.count) for item in meta.stats.top_values]
    assert top == [("b", 2), ("a", 1), ("c", 1)]

def test_histogram_for_column_labels():
    rows = [{"v": str(i)} for i in range(1, 6)]
    data = histogram_for_column(rows, "v", bins=2)
    assert [item["label"] for item in data] == ["1.0 - 3.0", "3.0 - 5.0"]
    assert [item["count"] for item in data] == [2, 3]
