"""Tests for the source loader."""

from unittest.mock import patch

import httpx
import pytest

from services.bulk_import.fetcher import FetchError, fetch_url, is_url, load_source
from services.bulk_import.parser import UnsupportedFormatError


def mock_client(responses):
    """httpx client answering with the given responses (or exceptions) in order."""
    queue = list(responses)
    calls = []

    def handler(request):
        calls.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.Client(transport=httpx.MockTransport(handler)), calls


class TestIsUrl:
    """Tests for URL detection."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("https://storage.example.com/org-1/donors.csv", True),
            ("http://localhost:9000/donors.xlsx", True),
            ("donors.csv", False),
            ("/tmp/donors.csv", False),
            ("ftp://example.com/donors.csv", False),
        ],
    )
    def test_is_url(self, source, expected):
        assert is_url(source) is expected


class TestLoadSource:
    """Tests for load_source."""

    def test_local_file(self, tmp_path):
        path = tmp_path / "donors.csv"
        path.write_bytes(b"Phone\n0501234567\n")

        content, file_format = load_source(str(path))

        assert content == b"Phone\n0501234567\n"
        assert file_format == "csv"

    def test_missing_local_file(self, tmp_path):
        with pytest.raises(FetchError):
            load_source(str(tmp_path / "missing.xlsx"))

    def test_unsupported_extension(self, tmp_path):
        with pytest.raises(UnsupportedFormatError):
            load_source(str(tmp_path / "donors.pdf"))

    def test_url(self):
        client, calls = mock_client([httpx.Response(200, content=b"xlsx-bytes")])

        content, file_format = load_source("https://storage.example.com/uploads/pledges.xlsx?sig=abc", client=client)

        assert content == b"xlsx-bytes"
        assert file_format == "xlsx"


class TestFetchUrl:
    """Retry behaviour."""

    @patch("services.bulk_import.fetcher.time.sleep")
    def test_retries_server_errors(self, mock_sleep):
        client, calls = mock_client([httpx.Response(503), httpx.Response(200, content=b"ok")])

        assert fetch_url("https://example.com/a.csv", client=client, max_retries=2) == b"ok"
        assert len(calls) == 2
        mock_sleep.assert_called_once_with(1)

    @patch("services.bulk_import.fetcher.time.sleep")
    def test_retries_timeouts(self, mock_sleep):
        client, calls = mock_client([httpx.ConnectTimeout("slow"), httpx.Response(200, content=b"ok")])

        assert fetch_url("https://example.com/a.csv", client=client, max_retries=1) == b"ok"

    @patch("services.bulk_import.fetcher.time.sleep")
    def test_client_error_not_retried(self, mock_sleep):
        client, calls = mock_client([httpx.Response(404, text="not found")])

        with pytest.raises(FetchError, match="404"):
            fetch_url("https://example.com/a.csv", client=client, max_retries=3)

        assert len(calls) == 1
        mock_sleep.assert_not_called()

    @patch("services.bulk_import.fetcher.time.sleep")
    def test_max_retries_exceeded(self, mock_sleep):
        client, calls = mock_client([httpx.Response(500) for _ in range(3)])

        with pytest.raises(FetchError, match="Max retries exceeded"):
            fetch_url("https://example.com/a.csv", client=client, max_retries=2)

        assert len(calls) == 3
        assert mock_sleep.call_count == 2
