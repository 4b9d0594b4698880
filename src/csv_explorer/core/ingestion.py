"""
ingestion.py
─────────────────────────────────────────────────────────────────────────────
Turns raw CSV text into normalized headers + string rows.

  1. strip BOM and an Excel "sep=X" directive line
  2. sniff the delimiter (falls back to comma when undetectable)
  3. read every cell as a string with pandas
  4. recover "collapsed" files where the delimiter was missed and every row
     came back as a single cell
  5. normalize headers and drop blank rows
─────────────────────────────────────────────────────────────────────────────
"""

import asyncio
import csv
import io
import os
import re
import warnings
from importlib import resources
from itertools import islice
from typing import Callable, List, Optional, Sequence

import pandas as pd

from csv_explorer.config import settings
from csv_explorer.models import ParsedCsv, Row
from csv_explorer.utils.exceptions import FileProcessingError, ParseError, ReadError
from csv_explorer.utils.logger import get_logger

logger = get_logger(__name__)

Grid = List[List[str]]
ProgressCallback = Callable[[int], None]

MISSING_HEADER_PREFIX = "column"
SNIFF_DELIMITERS = ",;\t|"
RECOVERY_DELIMITERS = (",", ";", "\t")
SNIFF_SAMPLE_LINES = 20
DEFAULT_DELIMITER = ","

SAMPLE_NAME = "sample-ecommerce.csv"

_SEP_DIRECTIVE = re.compile(r"^sep=.*\n")


# ── header normalization ──────────────────────────────────────────────────────
def _sanitize_header(value: str, index: int) -> str:
    trimmed = (value or "").strip()
    return trimmed if trimmed else f"{MISSING_HEADER_PREFIX}_{index + 1}"


def normalize_headers(headers: Sequence[str]) -> List[str]:
    """
    Trims, snake-cases and deduplicates header names.
    Duplicates get _2, _3, ... in first-seen order.
    """
    seen = {}
    used = set()
    normalized = []
    for index, raw in enumerate(headers):
        base = re.sub(r"\s+", "_", _sanitize_header(raw, index))
        base = re.sub(r"[^a-zA-Z0-9_]", "", base).lower() or f"{MISSING_HEADER_PREFIX}_{index + 1}"
        count = seen.get(base, 0)
        name = base if count == 0 else f"{base}_{count + 1}"
        # a suffixed name can collide with a later literal header ("a", "a", "a_2")
        while name in used:
            count += 1
            name = f"{base}_{count + 1}"
        seen[base] = count + 1
        used.add(name)
        normalized.append(name)
    return normalized


# ── low-level parsing ─────────────────────────────────────────────────────────
def _strip_preamble(text: str) -> str:
    """Removes a byte-order mark and a leading sep= line."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return _SEP_DIRECTIVE.sub("", text, count=1)


def detect_delimiter(text: str) -> Optional[str]:
    sample = "".join(islice(io.StringIO(text), SNIFF_SAMPLE_LINES))
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return None


def _check_quoting(text: str, delimiter: str) -> None:
    """
    Raises csv.Error for an unterminated or misplaced quote.

    pandas skips rows it cannot tokenize when on_bad_lines is a callable,
    so the text is first walked with the strict reader pandas wraps.
    """
    for _ in csv.reader(io.StringIO(text), delimiter=delimiter, strict=True):
        pass


def _read_grid(text: str, delimiter: str) -> Grid:
    """
    Reads the text into a list of string rows. Raises pandas/csv errors as-is.
    Rows wider than the first row are cut to its width; short rows are padded
    with empty strings.
    """
    _check_quoting(text, delimiter)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", pd.errors.ParserWarning)
        frame = pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            header=None,
            dtype=object,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=True,
            index_col=False,
            engine="python",
            on_bad_lines=lambda fields: fields,
        )
    return [
        ["" if pd.isna(value) else str(value) for value in row]
        for row in frame.itertuples(index=False, name=None)
    ]


def _reparse(text: str, delimiter: str) -> Grid:
    try:
        return _read_grid(text, delimiter)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error):
        return []


def _width(grid: Grid) -> int:
    return len(grid[0]) if grid else 0


def _looks_collapsed(grid: Grid) -> bool:
    if not grid or len(grid[0]) != 1:
        return False
    first_cell = str(grid[0][0])
    return any(separator in first_cell for separator in (",", ";", "\t"))


def _widest(candidates: Sequence[Grid], current: Grid) -> Grid:
    best = current
    for grid in candidates:
        if _width(grid) > _width(best):
            best = grid
    return best


def recover_collapsed(text: str, grid: Grid) -> Grid:
    """
    Re-parses a single-column grid whose cells still contain separators.

    First forces each recovery delimiter over the original text. If that
    still yields one column, the table was probably quote-wrapped row by row
    (an Excel one-column re-save), so the unquoted cell values are joined back
    into text and the delimiters are tried again. The widest header row wins,
    earlier candidates win ties.
    """
    if not _looks_collapsed(grid):
        return grid

    best = _widest([_reparse(text, delimiter) for delimiter in RECOVERY_DELIMITERS], grid)

    if _width(best) <= 1:
        flattened = "\n".join(str(row[0]) if row else "" for row in grid)
        best = _widest([_reparse(flattened, delimiter) for delimiter in RECOVERY_DELIMITERS], best)

    return best


def _map_rows(grid: Grid) -> ParsedCsv:
    if not grid:
        return ParsedCsv(headers=[], rows=[])
    raw_headers, body = grid[0], grid[1:]
    headers = normalize_headers(raw_headers)

    rows: List[Row] = []
    for cells in body:
        if not any(cell.strip() for cell in cells):
            continue
        rows.append({
            header: cells[index] if index < len(cells) else ""
            for index, header in enumerate(headers)
        })
    return ParsedCsv(headers=headers, rows=rows)


# ── public API ────────────────────────────────────────────────────────────────
def parse_csv_text(text: str) -> ParsedCsv:
    """
    Parses CSV text into normalized headers and string rows.
    Raises ParseError when no header row can be detected or a quote is left open.
    """
    clean_text = _strip_preamble(text)

    delimiter = detect_delimiter(clean_text)
    if delimiter is None:
        logger.info(f"Delimiter undetectable, falling back to '{DEFAULT_DELIMITER}'")
        delimiter = DEFAULT_DELIMITER
    else:
        logger.info(f"Detected delimiter: {delimiter!r}")

    try:
        grid = _read_grid(clean_text, delimiter)
    except pd.errors.EmptyDataError:
        grid = []
    except (pd.errors.ParserError, csv.Error) as e:
        logger.error(f"Fatal CSV parse error: {str(e)}")
        raise ParseError(f"Failed to parse CSV: {str(e)}")

    recovered = recover_collapsed(clean_text, grid)
    if recovered is not grid:
        logger.info(f"Recovered collapsed CSV: 1 -> {_width(recovered)} columns")

    parsed = _map_rows(recovered)
    if not parsed.headers:
        raise ParseError("CSV headers could not be detected.")

    logger.info(f"Parsed CSV. Shape: ({len(parsed.rows)}, {len(parsed.headers)})")
    return parsed


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def parse_csv_bytes(content: bytes, filename: str) -> ParsedCsv:
    logger.info(f"Starting ingestion for file: {filename}")

    size_mb = len(content) / (1024 * 1024)
    if size_mb > settings.MAX_UPLOAD_SIZE_MB:
        raise FileProcessingError(f"File exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit.")

    return parse_csv_text(_decode(content))


async def read_csv_file(
    path: str,
    on_progress: Optional[ProgressCallback] = None,
    chunk_size: Optional[int] = None,
) -> ParsedCsv:
    """
    Reads a CSV file in chunks, reporting integer percent progress, then parses it.

    Reads run in a worker thread so the event loop stays responsive. A final
    on_progress(100) is only sent once parsing has succeeded.
    """
    chunk_size = chunk_size or settings.READ_CHUNK_SIZE
    logger.info(f"Reading file: {path}")

    chunks = []
    try:
        total = os.path.getsize(path)
        loaded = 0
        with open(path, "rb") as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
                loaded += len(chunk)
                if on_progress and total:
                    on_progress(min(100, loaded * 100 // total))
    except OSError as e:
        logger.error(f"Failed to read {path}: {str(e)}")
        raise ReadError(f"Failed to read file: {str(e)}")

    parsed = parse_csv_text(_decode(b"".join(chunks)))
    if on_progress:
        on_progress(100)
    return parsed


# ── bundled sample ────────────────────────────────────────────────────────────
def sample_csv_text() -> str:
    return resources.files("csv_explorer.data").joinpath("sample.csv").read_text(encoding="utf-8")


def sample_download_text() -> str:
    """The sample with a BOM and sep= directive so spreadsheet tools pick the comma."""
    return "\ufeffsep=,\n" + sample_csv_text()


def load_sample() -> ParsedCsv:
    return parse_csv_text(sample_csv_text())
