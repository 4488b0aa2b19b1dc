"""Shared fixtures for integration tests"""

import pytest

from docsync.config import Settings


SERVER = "http://spira.test/Spira"


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(server_url=SERVER, username="admin", password="secret", project_id=1)


@pytest.fixture(name="write_doc")
def write_doc_fixture(tmp_path):
    """Write markdown text to tmp_path/<name> and return the path."""
    def write(text: str, name: str = "doc.md"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return write
