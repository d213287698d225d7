"""Integration tests for the newshub CLI."""

import json
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from newshub.cache import CacheManager, SqliteDurableStore
from newshub.cli.main import cli
from newshub.models import Category, FetchResult
from newshub.preload import preload_key
from tests.helpers.articles import make_batch


CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


@pytest.fixture(autouse=True)
def isolated_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None]:
    """Run each command away from any local .env and reset logging afterwards."""
    monkeypatch.chdir(tmp_path)
    yield
    structlog.reset_defaults()


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def empty_sources(tmp_path: Path) -> Path:
    """Write a sources file without any source."""
    path = tmp_path / "sources.yaml"
    path.write_text("version: '1.0'\nsources: []\n")
    return path


class TestValidateConfig:
    """Tests for the validate-config command."""

    @pytest.mark.integration
    def test_shipped_config_is_valid(self, runner: CliRunner) -> None:
        """Test the shipped configuration validates."""
        result = runner.invoke(
            cli,
            [
                "--sources",
                str(CONFIG_DIR / "sources.yaml"),
                "--engine-config",
                str(CONFIG_DIR / "engine.yaml"),
                "validate-config",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Configuration is valid!" in result.output
        assert "Fetch timeout: 6000 ms" in result.output
        assert "Preload order: all, india, software" in result.output

    @pytest.mark.integration
    def test_invalid_sources_reported(
        self, runner: CliRunner, tmp_path: Path
    ) -> None:
        """Test validation errors are listed and the command fails."""
        path = tmp_path / "bad.yaml"
        path.write_text(
            "sources:\n"
            "  - id: Bad ID\n"
            "    name: Broken\n"
            "    url: https://broken.example.org/rss\n"
            "    categories: [tech]\n"
        )

        result = runner.invoke(cli, ["--sources", str(path), "validate-config"])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output
        assert "sources.0.id" in result.output

    @pytest.mark.integration
    def test_missing_sources_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a missing file is a validation failure, not a crash."""
        result = runner.invoke(
            cli, ["--sources", str(tmp_path / "absent.yaml"), "validate-config"]
        )

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output


class TestFetch:
    """Tests for the fetch command."""

    @pytest.mark.integration
    def test_fetch_without_sources_prints_placeholder(
        self, runner: CliRunner, empty_sources: Path
    ) -> None:
        """Test an unrouted category still prints articles."""
        result = runner.invoke(cli, ["--sources", str(empty_sources), "fetch", "tech"])

        assert result.exit_code == 0, result.output
        assert "tech (offline - sample data) [placeholder]" in result.output
        assert "  1. " in result.output

    @pytest.mark.integration
    def test_fetch_json(self, runner: CliRunner, empty_sources: Path) -> None:
        """Test JSON output of a fetch."""
        result = runner.invoke(
            cli, ["--sources", str(empty_sources), "fetch", "SPORTS", "--json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["origin"] == "placeholder"
        assert data["articles"]
        assert data["provider_label"] == "sports (offline - sample data)"

    @pytest.mark.integration
    def test_unknown_category_rejected(
        self, runner: CliRunner, empty_sources: Path
    ) -> None:
        """Test click rejects categories outside the enum."""
        result = runner.invoke(
            cli, ["--sources", str(empty_sources), "fetch", "gardening"]
        )

        assert result.exit_code == 2


class TestStatus:
    """Tests for the status command."""

    @pytest.mark.integration
    def test_empty_cache(self, runner: CliRunner, empty_sources: Path) -> None:
        """Test status without preloaded categories."""
        result = runner.invoke(cli, ["--sources", str(empty_sources), "status"])

        assert result.exit_code == 0, result.output
        assert "No cached categories." in result.output

    @pytest.mark.integration
    def test_status_reads_durable_cache(
        self, runner: CliRunner, empty_sources: Path, tmp_path: Path
    ) -> None:
        """Test status lists preload entries stored on disk."""
        db_path = tmp_path / "cache.db"
        with SqliteDurableStore(db_path) as store:
            with CacheManager(FetchResult, store) as cache:
                cache.set(preload_key(Category.TECH), make_batch("verge", 2))

        result = runner.invoke(
            cli,
            [
                "--sources",
                str(empty_sources),
                "--cache-db",
                str(db_path),
                "status",
                "--json",
            ],
        )

        assert result.exit_code == 0, result.output
        (row,) = json.loads(result.output)
        assert row["category"] == "tech"
        assert row["item_count"] == 2
        assert row["valid"] is True
        assert row["provider_label"] == "verge"
