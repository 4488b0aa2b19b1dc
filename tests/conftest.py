"""Root test configuration: shared fixtures and session-level cleanup of runtime artifacts"""

import io
import os
from pathlib import Path

import pytest
from PIL import Image

from docsync.remote.memory import MemoryArtifactClient


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_FILES = ["docsync.db", "test.db"]


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove DB files created during the test session."""
    yield
    for name in _CLEANUP_FILES:
        p = _PROJECT_ROOT / name
        if p.exists():
            p.unlink()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep DOCSYNC_* variables from the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("DOCSYNC_"):
            monkeypatch.delenv(name)


@pytest.fixture(name="png_bytes")
def png_bytes_fixture():
    """A tiny valid PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (2, 2), (255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(name="client")
def client_fixture():
    """In-memory artifact service, logged in and connected to project 1."""
    client = MemoryArtifactClient()
    assert client.authenticate("admin", "secret")
    assert client.connect_to_project(1)
    return client
