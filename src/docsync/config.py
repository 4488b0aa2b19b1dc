"""Application configuration: settings schema, style mapping and config.yaml loader"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "DOCSYNC_"

_COLUMN_RE = re.compile(r"(\d+)\s*$")


class StyleMapping(BaseModel):
    """Which style names mark artifact boundaries and which step-table columns hold what."""
    requirement_indent1:  str = "Heading 1"
    requirement_indent2:  str = "Heading 2"
    requirement_indent3:  str = "Heading 3"
    requirement_indent4:  str = "Heading 4"
    requirement_indent5:  str = "Heading 4"
    test_case_folder:     str = "Heading 1"
    test_case:            str = "Heading 2"
    step_description:     str = "Column 1"
    step_expected_result: str = "Column 2"
    step_sample_data:     str = "Column 3"

    def requirement_styles(self) -> list[str]:
        """Indent-level styles in level order (level 1 first)."""
        return [
            self.requirement_indent1, self.requirement_indent2, self.requirement_indent3,
            self.requirement_indent4, self.requirement_indent5,
        ]

    def requirement_level(self, style: Optional[str]) -> Optional[int]:
        """1-based indent level mapped to style; the lowest level wins on duplicates."""
        if not style:
            return None
        for level, name in enumerate(self.requirement_styles(), start=1):
            if name == style:
                return level
        return None

    @staticmethod
    def column_index(name: str) -> Optional[int]:
        """1-based column index from a name like 'Column 2', else None."""
        m = _COLUMN_RE.search(name or "")
        return int(m.group(1)) if m else None


class Settings(BaseModel):
    app_name:      str = "docsync"
    db_url:        str = "sqlite:///docsync.db"
    server_url:    str = Field(default="",        description="Web address of the artifact server")
    username:      str = Field(default="",        description="Login used against the artifact server")
    password:      str = Field(default="",        description="Password or API key for the login")
    project_id:    Optional[int] = Field(default=None, ge=1, description="Target project id")
    artifact_type: str = Field(default="requirements", pattern="^(requirements|test-cases)$",
                               description="What document boundaries become: requirements or test-cases")
    token_prefix:  str = Field(default="Spira-",  description="Prefix of identity tokens written to the side channel")
    timeout:       float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    parser_config: str = Field(default="gfm-like", description="MarkdownIt parser preset name")
    log_level:     str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_file:      Optional[str] = Field(default=None, description="Optional rotating log file")
    styles:        StyleMapping = Field(default_factory=StyleMapping)


# Nested models are only read from config.yaml.
_ENV_FIELDS = [name for name in Settings.model_fields if name != "styles"]


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then DOCSYNC_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in _ENV_FIELDS:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
