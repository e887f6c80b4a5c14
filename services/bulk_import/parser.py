"""
Tabular parser for uploaded donor, pledge and yahrzeit spreadsheets.

Turns raw CSV or XLSX bytes into a header row plus ordered data rows of
string cells:
- The first non-empty row is the header row
- Header names are trimmed and made unique ("Phone", "Phone_2", ...)
- Short rows are padded with "", long rows are truncated with a warning
- Blank rows are skipped with a warning

Problems with individual rows are reported as warnings; only a file that
cannot be read at all raises ParseError.
"""

import csv
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from services.core.log_config import get_logger

from .settings import get_settings

logger = get_logger(__name__)

SUPPORTED_FORMATS = ("csv", "xlsx")

_CSV_DELIMITERS = ",;\t|"
_ZIP_MAGIC = b"PK\x03\x04"


class ParseError(Exception):
    """The uploaded file cannot be read as a spreadsheet."""
    pass


class UnsupportedFormatError(ParseError):
    """File format not supported."""
    pass


@dataclass(frozen=True)
class ParseResult:
    """
    Parsed spreadsheet.

    ``rows`` map each (unique) header to its cell value. ``line_numbers``
    holds the 1-based sheet line each row came from, parallel to ``rows``.
    """
    headers: Tuple[str, ...]
    rows: Tuple[Dict[str, str], ...]
    warnings: Tuple[str, ...] = ()
    line_numbers: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headers": list(self.headers),
            "row_count": len(self.rows),
            "warnings": list(self.warnings),
        }


def detect_format(filename: str) -> str:
    """
    Detect file format from a file name or URL path.

    Returns: "csv" or "xlsx"
    Raises: UnsupportedFormatError if format cannot be determined
    """
    suffix = Path(str(filename or "")).suffix.lower()

    if suffix in (".csv", ".txt"):
        return "csv"
    if suffix == ".xlsx":
        return "xlsx"

    raise UnsupportedFormatError(
        f"Unsupported file format: {Path(str(filename)).name or filename!r}. Expected .csv or .xlsx"
    )


def _cell_to_str(value: Any) -> str:
    """Normalize one raw cell to a trimmed string ("" for empty/NaN)."""
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


def _sniff_delimiter(sample: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters=_CSV_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _read_csv_frame(content: bytes, encoding: str) -> pd.DataFrame:
    """
    Read CSV bytes with pandas, keeping ragged rows whole.

    A first pass only measures the widest row (lines longer than one field
    are reported to ``on_bad_lines``); the second pass names that many
    columns so no cell is dropped.
    """
    delimiter = _sniff_delimiter(content[:4096].decode(encoding, errors="ignore"))
    options = dict(
        header=None,
        index_col=False,
        dtype=str,
        sep=delimiter,
        engine="python",
        encoding=encoding,
        keep_default_na=False,
        skip_blank_lines=False,
    )

    widths = [1]
    pd.read_csv(io.BytesIO(content), names=[0], on_bad_lines=lambda line: widths.append(len(line)), **options)

    return pd.read_csv(io.BytesIO(content), names=list(range(max(widths))), **options)


def _read_csv_grid(content: bytes, encodings: Sequence[str]) -> List[List[str]]:
    """
    Read CSV bytes into a ragged grid of trimmed strings.

    Tries each encoding in order. Raises ParseError when the bytes are
    binary, match no encoding or are not delimited text.
    """
    if content.startswith(_ZIP_MAGIC) or b"\x00" in content[:4096]:
        raise ParseError("File is not a delimited text file (binary content found)")
    if not content.strip():
        return []

    for enc in encodings:
        try:
            df = _read_csv_frame(content, enc)
        except (UnicodeDecodeError, LookupError):
            continue
        except pd.errors.EmptyDataError:
            return []
        except (pd.errors.ParserError, csv.Error) as e:
            raise ParseError(f"Error reading CSV: {e}") from e
        return [[_cell_to_str(cell) for cell in row] for row in df.itertuples(index=False, name=None)]

    raise ParseError(
        f"Could not decode CSV with any of: {list(encodings)}"
    )


def _read_xlsx_grid(content: bytes) -> List[List[str]]:
    """Read the first worksheet of an XLSX workbook into a grid of strings."""
    try:
        df = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=str,
            engine="openpyxl",
        )
    except Exception as e:
        raise ParseError(f"Error reading Excel file: {e}") from e

    return [[_cell_to_str(cell) for cell in row] for row in df.itertuples(index=False, name=None)]


def _is_blank(row: Sequence[str]) -> bool:
    return not any(cell for cell in row)


def _dedupe_headers(raw_headers: Sequence[str]) -> Tuple[List[str], List[str]]:
    """
    Trim headers and make them unique.

    Blank headers become "column_N"; a later duplicate is renamed with a
    numeric suffix ("Phone" -> "Phone_2").

    Returns:
        Tuple of (headers, warnings)
    """
    cells = list(raw_headers)
    while cells and not cells[-1]:
        cells.pop()

    headers: List[str] = []
    warnings: List[str] = []
    seen = set()

    for position, raw in enumerate(cells, start=1):
        name = raw.strip() or f"column_{position}"
        if name in seen:
            suffix = 2
            while f"{name}_{suffix}" in seen:
                suffix += 1
            renamed = f"{name}_{suffix}"
            warnings.append(f"header '{name}' appears more than once, renamed to '{renamed}'")
            name = renamed
        seen.add(name)
        headers.append(name)

    return headers, warnings


def _build_result(grid: List[List[str]], max_rows: int) -> ParseResult:
    """Zip grid rows against the header row."""
    header_idx = next((i for i, row in enumerate(grid) if not _is_blank(row)), None)
    if header_idx is None:
        return ParseResult(headers=(), rows=(), warnings=("file is empty",))

    headers, warnings = _dedupe_headers(grid[header_idx])
    width = len(headers)

    rows: List[Dict[str, str]] = []
    line_numbers: List[int] = []

    for idx in range(header_idx + 1, len(grid)):
        line = idx + 1
        cells = grid[idx]

        if _is_blank(cells):
            # Trailing blank lines are not worth a warning
            if any(not _is_blank(rest) for rest in grid[idx + 1:]):
                warnings.append(f"row {line} is empty, skipped")
            continue

        if len(cells) > width:
            if any(cells[width:]):
                warnings.append(f"row {line} has extra columns, ignored")
            cells = cells[:width]
        elif len(cells) < width:
            cells = cells + [""] * (width - len(cells))

        rows.append(dict(zip(headers, cells)))
        line_numbers.append(line)

        if len(rows) > max_rows:
            raise ParseError(f"File has more than {max_rows} data rows")

    if not rows:
        warnings.append("file has a header row but no data rows")

    return ParseResult(
        headers=tuple(headers),
        rows=tuple(rows),
        warnings=tuple(warnings),
        line_numbers=tuple(line_numbers),
    )


def parse(
    content: bytes,
    file_format: str,
    encodings: Optional[Sequence[str]] = None,
    max_rows: Optional[int] = None,
) -> ParseResult:
    """
    Parse an uploaded spreadsheet.

    Args:
        content: Raw file bytes
        file_format: "csv" or "xlsx"
        encodings: CSV encodings to try (default from settings)
        max_rows: Maximum data rows accepted (default from settings)

    Returns:
        ParseResult with unique headers, rows and non-fatal warnings

    Raises:
        UnsupportedFormatError: If file_format is not csv/xlsx
        ParseError: If the file structure is unreadable

    Example:
        >>> result = parse(b"Phone,Name\\n050-123-4567,Dana\\n", "csv")
        >>> result.rows[0]["Phone"]
        '050-123-4567'
    """
    config = get_settings()
    fmt = (file_format or "").lower().lstrip(".")

    if fmt == "csv":
        grid = _read_csv_grid(content, encodings or config.csv_encodings)
    elif fmt == "xlsx":
        grid = _read_xlsx_grid(content)
    else:
        raise UnsupportedFormatError(
            f"Unsupported file format: {file_format!r}. Expected one of {SUPPORTED_FORMATS}"
        )

    result = _build_result(grid, max_rows or config.max_rows)

    logger.info(
        "Parsed upload",
        file_format=fmt,
        headers=len(result.headers),
        rows=len(result.rows),
        warnings=len(result.warnings),
    )

    return result


def parse_file(path: str, **kwargs) -> ParseResult:
    """Parse a spreadsheet from a local path, detecting the format from its name."""
    file_format = detect_format(path)
    return parse(Path(path).read_bytes(), file_format, **kwargs)
