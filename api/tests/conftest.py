"""Shared test fixtures."""

import os


# Settings are cached on first import; keep tests off real log files
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
from fastapi.testclient import TestClient

from src.main import app


@pytest.fixture
def client():
    """HTTP client without lifespan (no Cassandra or Redis)."""
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
