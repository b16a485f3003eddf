"""Tests for the classifieds CLI commands."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from classifieds.cli import app
from classifieds.schemas.sync import SyncStats
from classifieds.sync.taxonomy_client import TaxonomyError


@pytest.fixture
def cli_runner():
    return CliRunner()


class TestSyncCommand:
    """Tests for 'classifieds sync'."""

    def test_sync_prints_counts(self, cli_runner):
        stats = SyncStats(categories=3, fields=5, options=5, skipped=1,
                          warnings=["Category not found for field group 9999"])
        with patch("classifieds.cli._run_sync", new=AsyncMock(return_value=stats)) as run:
            result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 0
        assert "Taxonomy sync" in result.output
        assert "Categories" in result.output
        assert "field group 9999" in result.output
        assert "Sync complete" in result.output
        run.assert_awaited_once_with(False)

    def test_sync_force(self, cli_runner):
        with patch("classifieds.cli._run_sync", new=AsyncMock(return_value=SyncStats())) as run:
            result = cli_runner.invoke(app, ["sync", "--force"])

        assert result.exit_code == 0
        run.assert_awaited_once_with(True)

    def test_sync_failure_exits_nonzero(self, cli_runner):
        error = TaxonomyError("Taxonomy API returned 503", status_code=503)
        with patch("classifieds.cli._run_sync", new=AsyncMock(side_effect=error)):
            result = cli_runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Sync failed" in result.output
        assert "Sync complete" not in result.output


class TestCategoriesCommand:
    """Tests for 'classifieds categories'."""

    def test_no_categories(self, cli_runner):
        with patch("classifieds.cli._load_categories", new=AsyncMock(return_value=[])):
            result = cli_runner.invoke(app, ["categories"])

        assert result.exit_code == 0
        assert "No categories stored" in result.output

    def test_lists_categories(self, cli_runner):
        rows = [
            (SimpleNamespace(id=1, external_id="129", name="Vehicles", parent_id=None), 0),
            (SimpleNamespace(id=2, external_id="1453", name="Cars", parent_id=1), 4),
        ]
        with patch("classifieds.cli._load_categories", new=AsyncMock(return_value=rows)):
            result = cli_runner.invoke(app, ["categories"])

        assert result.exit_code == 0
        assert "Categories (2)" in result.output
        assert "Vehicles" in result.output
        assert "1453" in result.output


def test_no_args_shows_help(cli_runner):
    result = cli_runner.invoke(app, [])
    assert "sync" in result.output
    assert "categories" in result.output
