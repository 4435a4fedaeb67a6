"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Keep a developer's real device settings out of the test run
for _name in list(os.environ):
    if _name.startswith("MIKROTIK_"):
        del os.environ[_name]

import pytest
import structlog

from mikrotik_backup.models.connection import ConnectionParameters
from tests.mock_ssh import MockSSHClient


@pytest.fixture
def mock_ssh():
    """Provide a fresh MockSSHClient."""
    return MockSSHClient()


@pytest.fixture
def params():
    return ConnectionParameters(
        host="192.168.88.1",
        port=22,
        username="admin",
        password="password",
    )


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """Run each test in its own directory so no stray .env is picked up."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo any structlog configuration a CLI test installed."""
    yield
    structlog.reset_defaults()
