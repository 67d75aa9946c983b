"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture
def db_path(tmp_path):
    """Path of a fresh database file inside pytest's temp dir."""
    return tmp_path / "test.db"
