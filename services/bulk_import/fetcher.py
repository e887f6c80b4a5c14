"""
Source loader for import files.

Uploaded spreadsheets are either on local disk or kept in object storage
behind an http(s) URL. ``load_source`` returns the raw bytes together with
the detected file format.
"""

import time
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx

from services.core.log_config import get_logger, log_api_call

from .parser import detect_format
from .settings import get_settings

logger = get_logger(__name__)

FETCH_HEADERS = {
    "User-Agent": "DonorbookImport/1.0",
    "Accept": "text/csv, application/vnd.openxmlformats-officedocument.spreadsheetml.sheet, */*",
}


class FetchError(Exception):
    """Raised when a source file cannot be loaded."""
    pass


def is_url(source: str) -> bool:
    return urlparse(str(source)).scheme in ("http", "https")


def fetch_url(
    url: str,
    client: Optional[httpx.Client] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> bytes:
    """
    Download a file, retrying timeouts, transport errors and 5xx responses.

    Args:
        url: http(s) URL
        client: httpx client (creates new if None)
        timeout: HTTP timeout in seconds (default from settings)
        max_retries: Max retry attempts (default from settings)

    Returns:
        Response body

    Raises:
        FetchError: On a 4xx response or when retries are exhausted
    """
    config = get_settings()
    timeout = timeout or config.http_timeout
    max_retries = config.http_max_retries if max_retries is None else max_retries

    close_client = False
    if client is None:
        client = httpx.Client(timeout=timeout, headers=FETCH_HEADERS, follow_redirects=True)
        close_client = True

    last_error = None
    try:
        for attempt in range(max_retries + 1):
            started = time.monotonic()
            try:
                response = client.get(url)
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
            except httpx.RequestError as e:
                last_error = f"Request error: {e}"
            else:
                log_api_call(
                    logger, "GET", url,
                    status_code=response.status_code,
                    duration_ms=(time.monotonic() - started) * 1000,
                    attempt=attempt + 1,
                )

                if response.status_code == 200:
                    return response.content

                if response.status_code < 500:
                    raise FetchError(
                        f"Download failed with status {response.status_code}: {response.text[:200]}"
                    )

                last_error = f"Server error {response.status_code}"

            if attempt < max_retries:
                logger.warning("Download failed, retrying", url=url, error=last_error, attempt=attempt + 1)
                time.sleep(2 ** attempt)
    finally:
        if close_client:
            client.close()

    raise FetchError(f"Max retries exceeded. Last error: {last_error}")


def load_source(source: str, client: Optional[httpx.Client] = None) -> Tuple[bytes, str]:
    """
    Load an import file from a local path or an http(s) URL.

    Returns:
        Tuple of (content, file_format)

    Raises:
        UnsupportedFormatError: If the name has no .csv/.xlsx suffix
        FetchError: If the file cannot be read or downloaded
    """
    if is_url(source):
        file_format = detect_format(urlparse(source).path)
        return fetch_url(source, client=client), file_format

    path = Path(source)
    file_format = detect_format(path.name)
    try:
        return path.read_bytes(), file_format
    except OSError as e:
        raise FetchError(f"Could not read {path}: {e}") from e
