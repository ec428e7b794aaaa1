"""Shared fixtures for the attache test suite."""

from __future__ import annotations

import pytest

from attache.core.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Deployment settings that ignore any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def storage_path(tmp_path) -> str:
    path = tmp_path / "storage"
    path.mkdir()
    return str(path)


@pytest.fixture
def source_file(tmp_path) -> str:
    """A small stand-in for an uploaded photo."""
    path = tmp_path / "uploads" / "coffee.jpg"
    path.parent.mkdir()
    path.write_bytes(b"\xff\xd8\xff\xe0 not really a jpeg")
    return str(path)
