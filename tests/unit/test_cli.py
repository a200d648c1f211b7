"""Test CLI functionality."""

import json
from unittest.mock import AsyncMock, patch

import click
import pytest
from click.testing import CliRunner

from asset_ledger.cli import cli, main
from asset_ledger.utils import config
from asset_ledger.utils.errors import TransientLedgerError

from ..fakes import OWNER_A, OWNER_B, OWNER_C, FakeLedger


@pytest.fixture
def run_cli():
    """Invoke the CLI against a fake ledger."""

    def invoke(args: list[str], ledger: FakeLedger | None = None):
        runner = CliRunner()
        with (
            patch("asset_ledger.cli.setup_logging"),
            patch("asset_ledger.cli.open_reader", return_value=ledger or FakeLedger()),
        ):
            return runner.invoke(cli, args)

    return invoke


class TestCLI:
    """Test CLI commands and functionality."""

    def test_main_function_exists(self) -> None:
        """Test that main function exists and is callable."""
        assert callable(main)

    def test_cli_group_exists(self) -> None:
        """Test that CLI group exists."""
        assert isinstance(cli, click.Group)

    def test_cli_help(self, run_cli) -> None:
        """Test CLI help command."""
        result = run_cli(["--help"])

        assert result.exit_code == 0
        assert "Asset Ledger" in result.output
        for command in ("list", "mine", "accessible", "show", "stats", "status"):
            assert command in result.output

    def test_cli_version(self, run_cli) -> None:
        """Test CLI version option."""
        result = run_cli(["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_invalid_configuration_is_a_clean_error(self, monkeypatch) -> None:
        """Test bad settings exit with a message instead of a traceback."""
        monkeypatch.setenv("LEDGER_NETWORK", "bogus")
        config.reset_settings()

        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Invalid configuration" in result.output


class TestListCommands:
    """Test the asset listing commands."""

    def test_list_json(self, run_cli, scenario_ledger) -> None:
        """Test JSON output carries reconciled permissions."""
        result = run_cli(["list", "--format", "json"], scenario_ledger)

        assert result.exit_code == 0
        assets = json.loads(result.output)
        assert [asset["id"] for asset in assets] == [1, 2]
        assert assets[0]["permissions"] == sorted([OWNER_A.lower(), OWNER_B.lower()])
        assert scenario_ledger.closed

    def test_list_table(self, run_cli, scenario_ledger) -> None:
        """Test the default table output."""
        result = run_cli(["list"], scenario_ledger)

        assert result.exit_code == 0
        assert "Registered Assets" in result.output

    def test_list_empty(self, run_cli) -> None:
        """Test an empty registry."""
        result = run_cli(["list"])

        assert result.exit_code == 0
        assert "No assets found" in result.output

    def test_list_filters(self, run_cli, scenario_ledger) -> None:
        """Test search and category filters."""
        by_category = run_cli(["list", "-f", "json", "-c", "model"], scenario_ledger)
        by_search = run_cli(["list", "-f", "json", "-s", "rainfall"], scenario_ledger)

        assert [asset["id"] for asset in json.loads(by_category.output)] == [2]
        assert [asset["id"] for asset in json.loads(by_search.output)] == [1]

    def test_list_reports_failures(self, run_cli, scenario_ledger) -> None:
        """Test per-asset failures are shown."""
        scenario_ledger.fail(("events", 2), TransientLedgerError("reset"))

        result = run_cli(["list", "--no-cache"], scenario_ledger)

        assert result.exit_code == 0
        assert "Asset 2 could not be loaded" in result.output

    def test_list_unreachable_without_cache(self, run_cli, scenario_ledger) -> None:
        """Test a ledger outage with no cache is an error."""
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("connection refused"))

        result = run_cli(["list", "--no-cache"], scenario_ledger)

        assert result.exit_code == 1
        assert "connection refused" in result.output

    def test_list_falls_back_to_cache(self, run_cli, scenario_ledger) -> None:
        """Test cached assets are shown when the ledger goes down."""
        assert run_cli(["list"], scenario_ledger).exit_code == 0
        scenario_ledger.fail(("metadata", 1), TransientLedgerError("connection refused"))

        result = run_cli(["list"], scenario_ledger)

        assert result.exit_code == 0
        assert "showing cached" in result.output

    def test_mine(self, run_cli, scenario_ledger) -> None:
        """Test owned assets."""
        result = run_cli(["mine", OWNER_C, "-f", "json"], scenario_ledger)

        assert result.exit_code == 0
        assert [asset["id"] for asset in json.loads(result.output)] == [2]

    def test_accessible(self, run_cli, scenario_ledger) -> None:
        """Test granted assets."""
        result = run_cli(["accessible", OWNER_B, "-f", "json"], scenario_ledger)

        assert result.exit_code == 0
        assert [asset["id"] for asset in json.loads(result.output)] == [1]

    def test_stats(self, run_cli, scenario_ledger) -> None:
        """Test the statistics table."""
        result = run_cli(["stats"], scenario_ledger)

        assert result.exit_code == 0
        assert "Asset Statistics" in result.output
        assert "Total assets" in result.output


class TestShowCommand:
    """Test the single asset view."""

    def test_show(self, run_cli, scenario_ledger) -> None:
        """Test an asset with its access list and usage."""
        scenario_ledger.log_usage(1, OWNER_B, "trained")

        result = run_cli(["show", "1"], scenario_ledger)

        assert result.exit_code == 0
        assert "Rainfall Dataset" in result.output
        assert f"{OWNER_A.lower()} (owner)" in result.output
        assert OWNER_B.lower() in result.output
        assert "Usage History" in result.output

    def test_show_json(self, run_cli, scenario_ledger) -> None:
        """Test JSON output for one asset."""
        result = run_cli(["show", "2", "-f", "json"], scenario_ledger)

        assert result.exit_code == 0
        assert json.loads(result.output)["permissions"] == [OWNER_C.lower()]

    def test_show_not_found(self, run_cli, scenario_ledger) -> None:
        """Test a missing asset is not an error."""
        result = run_cli(["show", "3"], scenario_ledger)

        assert result.exit_code == 0
        assert "Asset 3 not found" in result.output

    def test_show_not_found_json(self, run_cli, scenario_ledger) -> None:
        """Test JSON output stays parseable for a missing asset."""
        result = run_cli(["show", "3", "-f", "json"], scenario_ledger)

        assert result.exit_code == 0
        assert result.output.startswith("null\n")

    def test_show_invalid_id(self, run_cli) -> None:
        """Test ids below one are rejected."""
        result = run_cli(["show", "0"])

        assert result.exit_code == 2
        assert "asset ids start at 1" in result.output


class TestStatusCommand:
    """Test configuration and connectivity status."""

    def test_status(self, run_cli) -> None:
        """Test configuration summary without touching the ledger."""
        result = run_cli(["status"])

        assert result.exit_code == 0
        assert "Asset Ledger Status" in result.output
        assert "localhost" in result.output

    def test_status_check_ledger(self, run_cli, scenario_ledger) -> None:
        """Test the connectivity check counts assets."""
        result = run_cli(["status", "--check-ledger"], scenario_ledger)

        assert result.exit_code == 0
        assert "Ledger reachable" in result.output
        assert "Registered assets: 2" in result.output

    def test_status_unreachable(self, run_cli, scenario_ledger) -> None:
        """Test an unreachable endpoint is reported."""
        scenario_ledger.is_connected = AsyncMock(return_value=False)

        result = run_cli(["status", "--check-ledger"], scenario_ledger)

        assert result.exit_code == 0
        assert "Ledger unreachable" in result.output
