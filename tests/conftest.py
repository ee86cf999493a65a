"""Shared test fixtures."""

from pathlib import Path

import pytest
from docserve.config import Config, ServeConfig, ServerConfig


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """Create the directory that gets served."""
    site = tmp_path / "site"
    site.mkdir()
    return site


@pytest.fixture
def test_config(site_dir: Path) -> Config:
    """Create a configuration serving site_dir with Markdown enabled."""
    return Config(
        server=ServerConfig(),
        serve=ServeConfig(root=site_dir, markdown=True),
    )
