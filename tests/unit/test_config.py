"""Unit tests for config.py"""

import pytest
from pydantic import ValidationError

from docsync.config import StyleMapping, load_config


def test_load_config_uses_env_db_url(monkeypatch):
    """DOCSYNC_DB_URL env var is picked up by load_config."""
    monkeypatch.setenv("DOCSYNC_DB_URL", "sqlite:///env.db")
    settings = load_config()
    assert settings.db_url == "sqlite:///env.db"


def test_load_config_env_overrides_config_yaml(tmp_path, monkeypatch):
    """DOCSYNC_DB_URL takes precedence over config.yaml db_url."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("db_url: 'sqlite:///project.db'\n")
    monkeypatch.setenv("DOCSYNC_DB_URL", "sqlite:///override.db")
    settings = load_config()
    assert settings.db_url == "sqlite:///override.db"


def test_load_config_cli_overrides_env(monkeypatch):
    """A non-None CLI override beats the env var."""
    monkeypatch.setenv("DOCSYNC_PROJECT_ID", "3")
    settings = load_config(overrides={"project_id": 7, "server_url": None})
    assert settings.project_id == 7
    assert settings.server_url == ""


def test_load_config_defaults(tmp_path, monkeypatch):
    """Settings defaults apply when nothing else is configured."""
    monkeypatch.chdir(tmp_path)
    settings = load_config()
    assert settings.db_url == "sqlite:///docsync.db"
    assert settings.artifact_type == "requirements"
    assert settings.token_prefix == "Spira-"
    assert settings.project_id is None


def test_load_config_invalid_yaml(tmp_path, monkeypatch):
    """load_config raises ValueError when config.yaml contains invalid YAML."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config()


def test_load_config_rejects_non_mapping(tmp_path, monkeypatch):
    """A YAML list at the top level is not a valid config."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="expected a mapping"):
        load_config()


def test_load_config_rejects_unknown_artifact_type(monkeypatch):
    """artifact_type is limited to requirements and test-cases."""
    monkeypatch.setenv("DOCSYNC_ARTIFACT_TYPE", "releases")
    with pytest.raises(ValidationError):
        load_config()


# --- style mapping ---

def test_styles_read_from_config_yaml(tmp_path, monkeypatch):
    """Nested styles mapping in config.yaml replaces individual defaults."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("styles:\n  test_case: 'Heading 3'\n")
    settings = load_config()
    assert settings.styles.test_case == "Heading 3"
    assert settings.styles.test_case_folder == "Heading 1"


def test_requirement_level_lowest_wins():
    """Indent 4 and 5 share Heading 4 by default; the lower level is used."""
    styles = StyleMapping()
    assert styles.requirement_level("Heading 1") == 1
    assert styles.requirement_level("Heading 4") == 4
    assert styles.requirement_level("Normal") is None
    assert styles.requirement_level(None) is None


def test_column_index_parses_trailing_digits():
    """Column names map to 1-based indexes."""
    assert StyleMapping.column_index("Column 2") == 2
    assert StyleMapping.column_index("Column 12 ") == 12
    assert StyleMapping.column_index("Description") is None
