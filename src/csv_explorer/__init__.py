"""CSV Explorer: profiling, filtering, grouping and chart selection for CSV files."""

__version__ = "1.0.0"
