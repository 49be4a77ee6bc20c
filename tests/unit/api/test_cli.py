"""Unit tests for the PagePilot CLI."""

from pathlib import Path

from typer.testing import CliRunner

from pagepilot import __version__
from pagepilot.api.cli.main import app

CONFIG_DIR = str(Path(__file__).resolve().parents[3] / "configs")

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_config_show_dev():
    result = runner.invoke(app, ["--config-dir", CONFIG_DIR, "config", "show", "--profile", "dev"])

    assert result.exit_code == 0
    assert "max_iterations" in result.stdout
    assert "gpt-4.1-mini" in result.stdout


def test_config_show_missing_profile():
    result = runner.invoke(app, ["--config-dir", CONFIG_DIR, "config", "show", "--profile", "nope"])

    assert result.exit_code == 1
    assert "Profile not found" in result.stdout
