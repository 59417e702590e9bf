"""Shared fixtures for CLI command tests."""

import logging
import os

import pytest
from click.testing import CliRunner

from anglesite_resilience.config import set_config


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """Run commands from an empty directory with no ANGLESITE_* variables."""
    for key in list(os.environ):
        if key.startswith("ANGLESITE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    set_config(None)


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the logger level and root handlers the CLI group installs."""
    package_logger = logging.getLogger("anglesite_resilience")
    root = logging.getLogger()
    level = package_logger.level
    handlers = list(root.handlers)
    yield
    package_logger.setLevel(level)
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
