"""
Shared fixtures for factory tests.
"""

import pytest

from worldgraph.config import Config


@pytest.fixture
def config(tmp_path):
    """Default configuration with the SQLite file inside a temp directory."""
    config = Config()
    config.sqlite.db_path = str(tmp_path / "world.db")
    return config
