"""
parsers.py
─────────────────────────────────────────────────────────────────────────────
Locale-tolerant scalar parsing shared by the profiler, the filter engine,
grouping and the insight engine.

  parse_number  "1,234.56" / "1.234,56" / "1234,56" → 1234.56
  parse_date    ISO 8601 first, then a short list of strict day-first and
                month-first formats
  is_missing    "", "null", "n/a", "na", "-" (trimmed, case-insensitive)
─────────────────────────────────────────────────────────────────────────────
"""

import math
import re
from datetime import datetime
from typing import Optional

import pandas as pd

MISSING_TOKENS = frozenset({"", "null", "n/a", "na", "-"})
TRUE_TOKENS = frozenset({"true", "yes", "1"})
FALSE_TOKENS = frozenset({"false", "no", "0"})

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",
)

_NUMERIC_SHAPE = re.compile(r"^-?\d+(\.\d+)?$", re.ASCII)
_HAS_DIGIT = re.compile(r"\d")


def is_missing(value: Optional[str]) -> bool:
    if value is None:
        return True
    return str(value).strip().lower() in MISSING_TOKENS


def boolean_token(value: str) -> Optional[bool]:
    """Maps a cell onto True/False using the boolean token sets, else None."""
    normalized = value.strip().lower()
    if normalized in TRUE_TOKENS:
        return True
    if normalized in FALSE_TOKENS:
        return False
    return None


def boolean_label(value: str) -> str:
    flag = boolean_token(value)
    if flag is None:
        return "Unknown"
    return "True" if flag else "False"


def _to_finite(normalized: str) -> Optional[float]:
    if not _NUMERIC_SHAPE.match(normalized):
        return None
    parsed = float(normalized)
    return parsed if math.isfinite(parsed) else None


def parse_number(value: str) -> Optional[float]:
    """
    Parses a number written with either a decimal comma or a decimal dot.

    When both separators appear, the rightmost one is the decimal separator
    and the other is a thousands separator. Commas without a dot are always
    decimal commas, so "1,234" is 1.234 and "1,234,567" is not a number.
    """
    raw = value.strip()
    if not raw:
        return None

    has_comma = "," in raw
    has_dot = "." in raw

    if has_comma and has_dot:
        if raw.rfind(".") > raw.rfind(","):
            normalized = raw.replace(",", "")
        else:
            normalized = raw.replace(".", "").replace(",", ".")
        return _to_finite(normalized)

    if has_comma:
        return _to_finite(raw.replace(",", "."))

    return _to_finite(raw)


def _naive(timestamp: pd.Timestamp) -> datetime:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert("UTC").tz_localize(None)
    return timestamp.to_pydatetime()


def parse_date(value: str) -> Optional[datetime]:
    """
    Parses a date cell. Returns a timezone-naive datetime or None.
    """
    raw = value.strip()
    if not raw or not _HAS_DIGIT.search(raw):
        return None

    try:
        parsed = pd.to_datetime(raw, format="ISO8601")
        if not pd.isna(parsed):
            return _naive(parsed)
    except (ValueError, TypeError, OverflowError):
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue

    return None
