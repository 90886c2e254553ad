"""Tests for the payment import CLI."""

import json
from unittest.mock import patch

import pytest

from services.payment_import import main as cli
from services.payment_import.report import ImportSummary


@pytest.fixture(autouse=True)
def cli_settings(import_settings):
    """Pin settings and leave logging configuration to the test session."""
    with patch.object(cli, "get_settings", return_value=import_settings), \
            patch.object(cli, "configure_logging"):
        yield import_settings


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'donations.db'}"


def read_summary(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


class TestCreateParser:

    def test_defaults(self):
        args = cli.create_parser().parse_args(["export.csv"])

        assert args.source == "export.csv"
        assert args.dry_run is False
        assert args.create_schema is False
        assert args.database_url is None

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.create_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


class TestMain:

    def test_import_prints_summary(self, capsys, csv_file, make_row, database_url):
        path = csv_file([
            make_row(charge_id="ch_1", status="Paid"),
            make_row(charge_id="ch_2", status="disputed"),
            make_row(charge_id="ch_3", amount=""),
        ])

        code = cli.main([str(path), "--database-url", database_url, "--create-schema"])

        summary = read_summary(capsys)
        assert code == 0
        assert summary["succeeded"] == 1
        assert summary["needs_attention"] == 1
        assert summary["row_errors"] == [{"row": 3, "reason": "Row 3: missing required field 'amount'"}]

    def test_rerun_is_skipped(self, capsys, csv_file, make_row, database_url):
        path = csv_file([make_row(charge_id="ch_1")])
        cli.main([str(path), "--database-url", database_url, "--create-schema"])
        capsys.readouterr()

        code = cli.main([str(path), "--database-url", database_url])

        assert code == 0
        assert read_summary(capsys)["skipped"] == 1

    def test_saves_report(self, capsys, csv_file, make_row, database_url, tmp_path):
        path = csv_file([make_row(charge_id="ch_1")])
        reports = tmp_path / "reports"

        cli.main([str(path), "--database-url", database_url, "--create-schema", "--report-dir", str(reports)])

        assert len(list(reports.glob("*.json"))) == 1

    def test_dry_run_needs_no_database(self, capsys, csv_file, make_row):
        path = csv_file([make_row(status="Paid")])

        code = cli.main([str(path), "--dry-run"])

        summary = read_summary(capsys)
        assert code == 0
        assert summary["dry_run"] is True
        assert summary["succeeded"] == 1

    def test_missing_database_url(self, capsys, csv_file, make_row):
        code = cli.main([str(csv_file([make_row()]))])

        assert code == 1
        assert capsys.readouterr().out == ""

    def test_malformed_database_url(self, capsys, csv_file, make_row):
        code = cli.main([str(csv_file([make_row()])), "--database-url", "not a url"])

        assert code == 1
        assert capsys.readouterr().out == ""

    def test_missing_file(self, database_url, tmp_path):
        assert cli.main([str(tmp_path / "missing.csv"), "--database-url", database_url]) == 1

    def test_unsupported_format(self, database_url, tmp_path):
        path = tmp_path / "export.xlsx"
        path.write_bytes(b"PK")

        assert cli.main([str(path), "--database-url", database_url]) == 1

    def test_unrecognized_header(self, csv_file, database_url):
        path = csv_file([{"Name": "Jane"}], header=["Name"])

        assert cli.main([str(path), "--database-url", database_url, "--create-schema"]) == 1

    def test_cancelled_run_exits_nonzero(self, capsys, csv_file, make_row, database_url):
        cancelled = ImportSummary(cancelled=True).finish()

        with patch.object(cli, "run_payment_import", return_value=cancelled):
            code = cli.main([str(csv_file([make_row()])), "--database-url", database_url])

        assert code == 1
        assert read_summary(capsys)["cancelled"] is True
