import pytest
from csv_explorer.config import settings
from csv_explorer.core.ingestion import (
    load_sample,
    normalize_headers,
    parse_csv_bytes,
    parse_csv_text,
    read_csv_file,
    recover_collapsed,
    sample_download_text,
)
from csv_explorer.utils.exceptions import FileProcessingError, ParseError, ReadError

# --- Tests for Header Normalization ---

def test_normalize_headers_rules():
    """Headers are trimmed, snake-cased, stripped and deduplicated in order."""
    result = normalize_headers([" Order ID ", "", "Order-ID", "order id"])
    assert result == ["order_id", "column_2", "orderid", "order_id_2"]

def test_normalize_headers_is_idempotent():
    """Normalizing an already-normalized header list changes nothing."""
    for headers in (["Name", "name", "NAME"], ["a", "a", "a_2"], ["  ", "Total $", "total"]):
        once = normalize_headers(headers)
        assert normalize_headers(once) == once
        assert len(set(once)) == len(once)

def test_normalize_headers_is_pure():
    headers = ["A", "a", "B b"]
    assert normalize_headers(headers) == normalize_headers(headers)

# --- Tests for Parsing ---

def test_parse_semicolon_csv():
    """A semicolon-separated table comes back with the right shape."""
    result = parse_csv_text("a;b\n1;2")
    assert result.headers == ["a", "b"]
    assert result.rows == [{"a": "1", "b": "2"}]

def test_parse_quote_wrapped_csv():
    """A table where every row is one quoted field recovers like the plain case."""
    result = parse_csv_text('"a,b"\n"1,2"')
    assert result.headers == ["a", "b"]
    assert result.rows == [{"a": "1", "b": "2"}]

def test_recovers_collapsed_semicolon_rows():
    text = "\n".join([
        "order_id;order_date;category;amount",
        "1001;2025-01-03;Electronics;249.99",
        "1002;2025-01-04;Home;89.50",
    ])
    result = parse_csv_text(text)
    assert result.headers == ["order_id", "order_date", "category", "amount"]
    assert len(result.rows) == 2
    assert result.rows[0]["category"] == "Electronics"

def test_recovers_excel_one_column_quoted_rows():
    text = "\n".join([
        '"order_id,order_date,category,amount"',
        '"1001,2025-01-03,Electronics,249.99"',
        '"1002,2025-01-04,Home,89.50"',
    ])
    result = parse_csv_text(text)
    assert result.headers == ["order_id", "order_date", "category", "amount"]
    assert len(result.rows) == 2
    assert result.rows[1]["category"] == "Home"

def test_recover_collapsed_forces_delimiters():
    """A single-column grid whose cells hold separators is re-parsed."""
    grid = [["a;b"], ["1;2"]]
    assert recover_collapsed("a;b\n1;2", grid) == [["a", "b"], ["1", "2"]]

def test_recover_collapsed_leaves_wide_grids_alone():
    grid = [["a", "b"], ["1", "2"]]
    assert recover_collapsed("a,b\n1,2", grid) is grid

def test_recover_collapsed_leaves_plain_single_column_alone():
    grid = [["name"], ["alice"]]
    assert recover_collapsed("name\nalice", grid) is grid

def test_strips_bom_and_sep_directive():
    result = parse_csv_text("\ufeffsep=,\nName,Score\nAl,1\n")
    assert result.headers == ["name", "score"]
    assert result.rows == [{"name": "Al", "score": "1"}]

def test_blank_rows_dropped_and_short_rows_padded():
    result = parse_csv_text("a,b,c\n1,2,3\n,,\n4\n")
    assert result.rows == [
        {"a": "1", "b": "2", "c": "3"},
        {"a": "4", "b": "", "c": ""},
    ]

def test_cells_stay_strings():
    result = parse_csv_text("id,amount,flag\n001,1.50,true\n")
    assert result.rows == [{"id": "001", "amount": "1.50", "flag": "true"}]

def test_empty_text_raises_parse_error():
    with pytest.raises(ParseError):
        parse_csv_text("")

def test_unterminated_quote_raises_parse_error():
    """A quote left open until the end of the file is a fatal parse error."""
    with pytest.raises(ParseError):
        parse_csv_text('a,b\n1,2\n"3,4\n5,6\n7,8\n')

def test_parse_bytes_rejects_oversized_upload(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)
    with pytest.raises(FileProcessingError):
        parse_csv_bytes(b"a,b\n1,2", "big.csv")

def test_parse_bytes_decodes_utf8():
    result = parse_csv_bytes("city,temp\nZürich,3\n".encode("utf-8"), "weather.csv")
    assert result.rows[0]["city"] == "Zürich"

# --- Tests for File Reading ---

@pytest.mark.asyncio
async def test_read_csv_file_reports_progress(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("a,b\n1,2\n3,4\n5,6\n", encoding="utf-8")
    progress = []

    result = await read_csv_file(str(path), on_progress=progress.append, chunk_size=4)

    assert result.headers == ["a", "b"]
    assert len(result.rows) == 3
    assert len(progress) > 2
    assert all(0 <= value <= 100 for value in progress)
    assert progress == sorted(progress)
    assert progress[-1] == 100

@pytest.mark.asyncio
async def test_read_missing_file_raises_read_error(tmp_path):
    with pytest.raises(ReadError):
        await read_csv_file(str(tmp_path / "missing.csv"))

@pytest.mark.asyncio
async def test_read_unparseable_file_skips_final_progress(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    progress = []
    with pytest.raises(ParseError):
        await read_csv_file(str(path), on_progress=progress.append)
    assert 100 not in progress

# --- Tests for the Bundled Sample ---

def test_sample_loads_through_ingestion():
    result = load_sample()
    assert result.headers[:3] == ["order_id", "order_date", "customer"]
    assert len(result.rows) == 30

def test_sample_download_text_round_trips():
    """The BOM + sep= variant parses to the same table."""
    assert parse_csv_text(sample_download_text()) == load_sample()
