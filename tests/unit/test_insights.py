import pytest
from csv_explorer.core.insights import (
    SCATTER_POINT_LIMIT,
    build_scatter,
    build_time_series,
    generate_insights,
    pick_interesting_numeric,
)
from csv_explorer.core.profiler import profile_dataset
from csv_explorer.models import ChartType, ColumnType


@pytest.fixture
def rows():
    return [
        {"date": "2025-01-01", "category": "North", "amount": "10", "flag": "true"},
        {"date": "2025-01-02", "category": "South", "amount": "20", "flag": "false"},
        {"date": "2025-01-03", "category": "North", "amount": "30", "flag": "true"},
    ]


@pytest.fixture
def metas(rows):
    return profile_dataset(rows, ["date", "category", "amount", "flag"])

# --- Tests for Chart Selection ---

def test_chart_types_in_priority_order(rows, metas):
    result = generate_insights(rows, metas)
    assert [chart.type for chart in result.charts] == [
        ChartType.TIMESERIES,
        ChartType.BAR,
        ChartType.HISTOGRAM,
        ChartType.PIE,
    ]
    assert len(result.charts) <= 6

def test_chart_ids_and_data(rows, metas):
    charts = {chart.type: chart for chart in generate_insights(rows, metas).charts}

    assert charts[ChartType.TIMESERIES].id == "timeseries-date-amount"
    assert charts[ChartType.TIMESERIES].data == [
        {"period": "2025-01-01", "value": 10},
        {"period": "2025-01-02", "value": 20},
        {"period": "2025-01-03", "value": 30},
    ]
    assert charts[ChartType.BAR].data == [
        {"category": "North", "value": 40},
        {"category": "South", "value": 20},
    ]
    assert charts[ChartType.BAR].interactive_filter_key == "category"
    assert charts[ChartType.HISTOGRAM].id == "hist-amount"
    assert charts[ChartType.PIE].data == [{"label": "True", "value": 2}, {"label": "False", "value": 1}]

def test_insights_are_deterministic(rows, metas):
    assert generate_insights(rows, metas) == generate_insights(rows, metas)

def test_no_rows_no_charts(metas):
    result = generate_insights([], metas)
    assert result.charts == []
    assert result.summaries[0].value == "0"

def test_scatter_needs_two_numeric_columns():
    rows = [{"x": str(i % 50), "y": str(i % 7)} for i in range(2500)]
    metas = profile_dataset(rows, ["x", "y"])
    charts = generate_insights(rows, metas).charts
    scatter = [chart for chart in charts if chart.type is ChartType.SCATTER]
    assert len(scatter) == 1
    assert scatter[0].id == "scatter-x-y"
    assert len(scatter[0].data) == SCATTER_POINT_LIMIT

def test_scatter_skips_incomplete_points():
    rows = [{"x": "1", "y": "2"}, {"x": "", "y": "3"}, {"x": "4", "y": "oops"}]
    assert build_scatter(rows, "x", "y") == [{"x": 1, "y": 2}]

# --- Tests for Summaries ---

def test_summary_cards(rows, metas):
    summaries = {item.id: item for item in generate_insights(rows, metas).summaries}
    assert summaries["rows"].value == "3"
    assert summaries["cols"].value == "4"
    assert summaries["missing"].value == "0"
    assert summaries["variance"].value == "amount"
    assert summaries["variance"].hint == "10.00 / 20.00 / 30.00"
    assert summaries["date-range"].value == "2025-01-01 → 2025-01-03"

def test_pick_interesting_numeric_first_wins_ties():
    rows = [{"a": "1", "b": "11"}, {"a": "2", "b": "12"}, {"a": "3", "b": "13"}]
    metas = profile_dataset(rows, ["a", "b"])
    assert all(meta.type is ColumnType.NUMBER for meta in metas)
    assert pick_interesting_numeric(metas).key == "a"

# --- Tests for Time Buckets ---

def test_week_buckets_start_on_sunday():
    rows = [{"d": "2025-01-01", "v": "1"}, {"d": "2025-05-01", "v": "2"}]
    assert [item["period"] for item in build_time_series(rows, "d", "v")] == ["2024-12-29", "2025-04-27"]

def test_month_buckets_for_long_spans():
    rows = [{"d": "2024-01-15", "v": "1"}, {"d": "2024-01-20", "v": "1"}, {"d": "2025-06-01", "v": "2"}]
    assert build_time_series(rows, "d", "v") == [
        {"period": "2024-01", "value": 2},
        {"period": "2025-06", "value": 2},
    ]
