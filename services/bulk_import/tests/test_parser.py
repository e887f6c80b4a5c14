"""Tests for the tabular parser."""

import io

import pandas as pd
import pytest

from services.bulk_import.parser import (
    ParseError,
    ParseResult,
    UnsupportedFormatError,
    detect_format,
    parse,
    parse_file,
)


def make_xlsx(rows):
    """Build an XLSX workbook from a list of row lists (first row is the header)."""
    buffer = io.BytesIO()
    pd.DataFrame(rows[1:], columns=rows[0]).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


class TestDetectFormat:
    """Tests for format detection."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("donors.csv", "csv"),
            ("DONORS.CSV", "csv"),
            ("export.txt", "csv"),
            ("pledges.xlsx", "xlsx"),
            ("/uploads/2025/yahrzeits.XLSX", "xlsx"),
        ],
    )
    def test_supported(self, filename, expected):
        assert detect_format(filename) == expected

    @pytest.mark.parametrize("filename", ["donors.xls", "donors.pdf", "donors", ""])
    def test_unsupported(self, filename):
        with pytest.raises(UnsupportedFormatError):
            detect_format(filename)


class TestParseCSV:
    """Tests for CSV parsing."""

    def test_basic(self):
        result = parse(b"Phone,Name\n050-123-4567,Dana\n0529876543,Avi\n", "csv")

        assert result.headers == ("Phone", "Name")
        assert len(result.rows) == 2
        assert result.rows[0] == {"Phone": "050-123-4567", "Name": "Dana"}
        assert result.warnings == ()
        assert result.line_numbers == (2, 3)

    def test_cells_are_trimmed(self):
        result = parse(b" Phone , Name \n 0501234567 ,  Dana \n", "csv")

        assert result.headers == ("Phone", "Name")
        assert result.rows[0] == {"Phone": "0501234567", "Name": "Dana"}

    def test_leading_blank_rows_before_header(self):
        result = parse(b"\n,,\nPhone,Name\n0501234567,Dana\n", "csv")

        assert result.headers == ("Phone", "Name")
        assert result.line_numbers == (4,)

    def test_duplicate_headers_renamed(self):
        result = parse(b"Phone,Phone,Name,Phone\n1,2,3,4\n", "csv")

        assert result.headers == ("Phone", "Phone_2", "Name", "Phone_3")
        assert result.rows[0]["Phone_2"] == "2"
        assert any("Phone" in w and "renamed" in w for w in result.warnings)

    def test_blank_header_named_by_position(self):
        result = parse(b"Phone,,Name\n1,2,3\n", "csv")

        assert result.headers == ("Phone", "column_2", "Name")

    def test_short_rows_padded(self):
        result = parse(b"Phone,Name,City\n0501234567\n", "csv")

        assert result.rows[0] == {"Phone": "0501234567", "Name": "", "City": ""}
        assert result.warnings == ()

    def test_long_rows_truncated_with_warning(self):
        result = parse(b"Phone,Name\n0501234567,Dana,extra\n", "csv")

        assert result.rows[0] == {"Phone": "0501234567", "Name": "Dana"}
        assert "row 2 has extra columns, ignored" in result.warnings

    def test_long_rows_with_empty_trailing_cells_not_warned(self):
        result = parse(b"Phone,Name\n0501234567,Dana,,\n", "csv")

        assert result.rows[0] == {"Phone": "0501234567", "Name": "Dana"}
        assert result.warnings == ()

    def test_empty_rows_skipped_with_warning(self):
        result = parse(b"Phone,Name\n0501234567,Dana\n,\n0529876543,Avi\n", "csv")

        assert len(result.rows) == 2
        assert "row 3 is empty, skipped" in result.warnings
        assert result.line_numbers == (2, 4)

    def test_trailing_blank_lines_not_warned(self):
        result = parse(b"Phone,Name\n0501234567,Dana\n\n\n", "csv")

        assert len(result.rows) == 1
        assert result.warnings == ()

    def test_row_wider_than_first_line(self):
        result = parse(b"Phone\n0501234567,Dana\n0529876543\n", "csv")

        assert result.headers == ("Phone",)
        assert result.rows[0] == {"Phone": "0501234567"}
        assert result.rows[1] == {"Phone": "0529876543"}
        assert "row 2 has extra columns, ignored" in result.warnings

    def test_na_like_cells_kept_as_text(self):
        result = parse(b"Phone,Notes,City\n0501234567,NA,null\n", "csv")

        assert result.rows[0] == {"Phone": "0501234567", "Notes": "NA", "City": "null"}

    def test_leading_zeros_kept(self):
        result = parse(b"Phone,Amount\n0501234567,007\n", "csv")

        assert result.rows[0] == {"Phone": "0501234567", "Amount": "007"}

    def test_semicolon_delimiter(self):
        result = parse(b"Phone;Name\n0501234567;Dana\n", "csv")

        assert result.headers == ("Phone", "Name")
        assert result.rows[0]["Name"] == "Dana"

    def test_quoted_cells_with_commas(self):
        result = parse(b'Phone,Notes\n0501234567,"Haifa, Israel"\n', "csv")

        assert result.rows[0]["Notes"] == "Haifa, Israel"

    def test_utf8_bom(self):
        result = parse("Phone,Name\n0501234567,דנה\n".encode("utf-8-sig"), "csv")

        assert result.headers == ("Phone", "Name")
        assert result.rows[0]["Name"] == "דנה"

    def test_hebrew_windows_encoding(self):
        result = parse("טלפון,שם\n0501234567,דנה\n".encode("cp1255"), "csv")

        assert result.headers == ("טלפון", "שם")
        assert result.rows[0]["שם"] == "דנה"

    def test_format_is_case_insensitive(self):
        result = parse(b"Phone\n1\n", "CSV")
        assert len(result.rows) == 1


class TestParseEmpty:
    """Empty input is a warning, not an error."""

    def test_empty_file(self):
        result = parse(b"", "csv")

        assert result.headers == ()
        assert result.rows == ()
        assert result.warnings == ("file is empty",)
        assert result.is_empty

    def test_blank_lines_only(self):
        result = parse(b"\n , \n\n", "csv")

        assert result.rows == ()
        assert "file is empty" in result.warnings

    def test_header_only(self):
        result = parse(b"Phone,Name\n", "csv")

        assert result.headers == ("Phone", "Name")
        assert result.rows == ()
        assert "file has a header row but no data rows" in result.warnings


class TestParseErrors:
    """Only unreadable files raise."""

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            parse(b"a,b\n", "pdf")

    def test_binary_content_as_csv(self):
        with pytest.raises(ParseError):
            parse(b"PK\x03\x04\x00\x00garbage", "csv")

    def test_undecodable_csv(self):
        with pytest.raises(ParseError, match="decode"):
            parse("Phone\n0501234567\n".encode("utf-16-le").replace(b"\x00", b"\xff"), "csv", encodings=["utf-8"])

    def test_corrupt_xlsx(self):
        with pytest.raises(ParseError):
            parse(b"this is not a workbook", "xlsx")

    def test_row_cap(self):
        content = b"Phone\n" + b"0501234567\n" * 4
        with pytest.raises(ParseError, match="more than 3"):
            parse(content, "csv", max_rows=3)

    def test_row_cap_allows_exact_limit(self):
        content = b"Phone\n" + b"0501234567\n" * 3
        assert len(parse(content, "csv", max_rows=3).rows) == 3


class TestParseXLSX:
    """Tests for XLSX parsing."""

    def test_basic(self):
        content = make_xlsx([["Phone", "Name"], ["050-123-4567", "Dana"], ["0529876543", "Avi"]])

        result = parse(content, "xlsx")

        assert result.headers == ("Phone", "Name")
        assert result.rows[0] == {"Phone": "050-123-4567", "Name": "Dana"}
        assert result.line_numbers == (2, 3)

    def test_empty_cells_become_empty_strings(self):
        content = make_xlsx([["Phone", "Name"], ["0501234567", None]])

        result = parse(content, "xlsx")

        assert result.rows[0]["Name"] == ""

    def test_numbers_read_as_text(self):
        content = make_xlsx([["Phone", "Amount"], ["0501234567", "1000"]])

        result = parse(content, "xlsx")

        assert result.rows[0]["Amount"] == "1000"


class TestParseResult:
    """Tests for ParseResult helpers."""

    def test_to_dict(self):
        result = ParseResult(headers=("Phone",), rows=({"Phone": "1"},), warnings=("w",))

        assert result.to_dict() == {"headers": ["Phone"], "row_count": 1, "warnings": ["w"]}

    def test_parse_file(self, tmp_path):
        path = tmp_path / "donors.csv"
        path.write_bytes(b"Phone\n0501234567\n")

        result = parse_file(str(path))

        assert result.rows[0]["Phone"] == "0501234567"
