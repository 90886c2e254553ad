"""
Fetcher for payment processor CSV exports.

Loads data from:
- Local file paths
- Remote URLs (with retries and timeout handling)

Every value is read as a string; blank cells stay empty strings so the
parser decides what counts as missing. Parsing is done in parser.py.
"""

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import urlparse

import httpx
import pandas as pd

from .settings import get_settings

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Error during data fetch operation."""
    pass


class UnsupportedFormatError(FetchError):
    """File format not supported."""
    pass


def _detect_format(path_or_url: str) -> str:
    """
    Detect file format from path or URL.

    Returns: "csv"
    Raises: UnsupportedFormatError if the source is not a CSV export
    """
    parsed = urlparse(path_or_url)
    if parsed.scheme in ("http", "https"):
        filename = Path(parsed.path).name
    else:
        filename = Path(path_or_url).name

    if filename.lower().endswith((".csv", ".txt")):
        return "csv"

    raise UnsupportedFormatError(
        f"Unsupported file format: {filename}. Expected a .csv export"
    )


def _read_csv(
    source: Union[str, BytesIO],
    encodings: Sequence[str],
) -> pd.DataFrame:
    """
    Read CSV into a DataFrame of strings.

    Tries each encoding in order; raises FetchError when none decodes.
    """
    for enc in encodings:
        try:
            if isinstance(source, BytesIO):
                source.seek(0)
            return pd.read_csv(
                source,
                encoding=enc,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
            )
        except UnicodeDecodeError:
            logger.debug(f"Could not decode CSV as {enc}, trying next encoding")
            continue
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except Exception as e:
            # Other errors should be raised
            raise FetchError(f"Error reading CSV: {e}") from e

    raise FetchError(
        f"Could not decode CSV with any of: {list(encodings)}"
    )


def _to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert DataFrame to list of dicts, replacing NaN with None."""
    return df.where(pd.notna(df), None).to_dict(orient="records")


def _encodings(encoding: Optional[str]) -> List[str]:
    settings = get_settings()
    primary = encoding or settings.csv_encoding
    ordered = [primary]
    for enc in settings.csv_fallback_encodings:
        if enc not in ordered:
            ordered.append(enc)
    return ordered


def fetch_from_file(
    file_path: str,
    encoding: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch a payment export from a local file.

    Args:
        file_path: Path to the CSV export
        encoding: Character encoding (default from settings, then fallbacks)

    Returns:
        List of dictionaries, one per row, in file order

    Raises:
        FetchError: If file cannot be read or decoded
        UnsupportedFormatError: If file format is not supported
        FileNotFoundError: If file does not exist

    Example:
        >>> records = fetch_from_file("data/payment_import/stripe_export.csv")
        >>> print(f"Loaded {len(records)} records")
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    _detect_format(file_path)
    logger.info(f"Loading CSV file: {file_path}")

    df = _read_csv(str(path), _encodings(encoding))
    records = _to_records(df)

    logger.info(f"Loaded {len(records)} records from {file_path}")
    return records


def fetch_from_url(
    url: str,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    encoding: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch a payment export from a remote URL.

    The whole file is downloaded before any row is processed.

    Args:
        url: URL to the CSV export
        timeout: Request timeout in seconds (default from settings)
        max_retries: Maximum retry attempts (default from settings)
        encoding: Character encoding for the CSV

    Returns:
        List of dictionaries, one per row

    Raises:
        FetchError: If download fails or file cannot be read
        UnsupportedFormatError: If file format is not supported
    """
    settings = get_settings()
    timeout = timeout or settings.http_timeout
    max_retries = max_retries if max_retries is not None else settings.http_max_retries

    _detect_format(url)
    logger.info(f"Downloading CSV from: {url}")

    last_error: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                response = client.get(url)
                response.raise_for_status()

            df = _read_csv(BytesIO(response.content), _encodings(encoding))
            records = _to_records(df)

            logger.info(f"Downloaded {len(records)} records from {url}")
            return records

        except httpx.HTTPStatusError as e:
            last_error = FetchError(
                f"HTTP error {e.response.status_code}: {e.response.text}"
            )
            logger.warning(
                f"HTTP error on attempt {attempt + 1}/{max_retries + 1}: {e}"
            )
        except httpx.RequestError as e:
            last_error = FetchError(f"Request error: {e}")
            logger.warning(
                f"Request error on attempt {attempt + 1}/{max_retries + 1}: {e}"
            )

    raise last_error or FetchError("Download failed after all retries")


def fetch(
    source: str,
    encoding: Optional[str] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Fetch a payment export from file path or URL (auto-detect).

    Example:
        >>> records = fetch("exports/stripe_2024.csv")
        >>> records = fetch("https://storage.example.org/exports/stripe_2024.csv")
    """
    parsed = urlparse(source)

    if parsed.scheme in ("http", "https"):
        return fetch_from_url(
            source,
            timeout=timeout,
            max_retries=max_retries,
            encoding=encoding,
        )
    return fetch_from_file(source, encoding=encoding)
