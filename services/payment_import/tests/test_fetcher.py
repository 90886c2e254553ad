"""Tests for the payment export fetcher."""

from io import BytesIO

import httpx
import pytest

from services.payment_import.fetcher import (
    FetchError,
    UnsupportedFormatError,
    _detect_format,
    _read_csv,
    fetch,
    fetch_from_file,
    fetch_from_url,
)

CSV_BYTES = b"Amount,Created (UTC),Billing Details Name\n10.00,2024-01-01,Jane Doe\n,2024-01-02,\n"


class TestDetectFormat:
    """Tests for format detection."""

    def test_detect_csv(self):
        assert _detect_format("exports/payments.csv") == "csv"
        assert _detect_format("exports/PAYMENTS.CSV") == "csv"
        assert _detect_format("exports/payments.txt") == "csv"

    def test_detect_from_url(self):
        assert _detect_format("https://example.com/exports/payments.csv?token=1") == "csv"

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            _detect_format("exports/payments.xlsx")

        with pytest.raises(UnsupportedFormatError):
            _detect_format("exports/payments.json")


class TestReadCsv:
    """Tests for CSV reading."""

    def test_values_are_strings_and_blanks_stay_empty(self):
        df = _read_csv(BytesIO(CSV_BYTES), ["utf-8"])

        assert len(df) == 2
        assert df.iloc[0]["Amount"] == "10.00"
        assert df.iloc[1]["Amount"] == ""

    def test_falls_back_to_cp1252(self):
        data = "Amount,Created (UTC),Billing Details Name\n10,2024-01-01,José\n".encode("cp1252")

        df = _read_csv(BytesIO(data), ["utf-8", "utf-8-sig", "cp1252"])

        assert df.iloc[0]["Billing Details Name"] == "José"

    def test_undecodable_raises(self):
        data = "Amount\n10 €\n".encode("cp1252")

        with pytest.raises(FetchError, match="Could not decode"):
            _read_csv(BytesIO(data), ["utf-8"])

    def test_empty_file(self):
        assert _read_csv(BytesIO(b""), ["utf-8"]).empty


class TestFetchFromFile:

    def test_reads_records_in_order(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_bytes(CSV_BYTES)

        records = fetch_from_file(str(path))

        assert records == [
            {"Amount": "10.00", "Created (UTC)": "2024-01-01", "Billing Details Name": "Jane Doe"},
            {"Amount": "", "Created (UTC)": "2024-01-02", "Billing Details Name": ""},
        ]

    def test_strips_utf8_bom(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_bytes(b"\xef\xbb\xbf" + CSV_BYTES)

        records = fetch_from_file(str(path), encoding="utf-8-sig")

        assert "Amount" in records[0]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            fetch_from_file(str(tmp_path / "missing.csv"))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "export.xlsx"
        path.write_bytes(b"not really excel")

        with pytest.raises(UnsupportedFormatError):
            fetch_from_file(str(path))


class TestFetchFromUrl:

    @pytest.fixture
    def mock_transport(self, monkeypatch):
        """Route httpx.Client through a MockTransport; returns the request log."""
        calls = []
        responses = []
        real_client = httpx.Client

        def handler(request):
            calls.append(request)
            return responses.pop(0)

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(httpx, "Client", client_factory)
        return calls, responses

    def test_downloads_csv(self, mock_transport):
        calls, responses = mock_transport
        responses.append(httpx.Response(200, content=CSV_BYTES))

        records = fetch_from_url("https://example.com/export.csv", max_retries=0)

        assert len(records) == 2
        assert len(calls) == 1

    def test_retries_then_succeeds(self, mock_transport):
        calls, responses = mock_transport
        responses.extend([httpx.Response(503, text="busy"), httpx.Response(200, content=CSV_BYTES)])

        records = fetch_from_url("https://example.com/export.csv", max_retries=2)

        assert len(records) == 2
        assert len(calls) == 2

    def test_gives_up_after_retries(self, mock_transport):
        calls, responses = mock_transport
        responses.extend([httpx.Response(404, text="gone")] * 2)

        with pytest.raises(FetchError, match="HTTP error 404"):
            fetch_from_url("https://example.com/export.csv", max_retries=1)

        assert len(calls) == 2

    def test_fetch_dispatches_urls(self, mock_transport):
        _, responses = mock_transport
        responses.append(httpx.Response(200, content=CSV_BYTES))

        assert len(fetch("https://example.com/export.csv", max_retries=0)) == 2
