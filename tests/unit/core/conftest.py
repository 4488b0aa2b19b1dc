"""Shared fixtures for core unit tests"""

import pytest

from docsync.config import StyleMapping
from docsync.core.models import (
    FormattingRegion, ListInfo, ListKind, RunFormat, SideChannel, TableCell, TableRegion, TableRow, TextRun,
)


@pytest.fixture(name="styles")
def styles_fixture():
    return StyleMapping()


@pytest.fixture(name="heading")
def heading_fixture():
    """Factory for boundary regions: heading(text, level, identity='')."""
    def make(text: str, level: int = 1, identity: str = "", stamp: str = "") -> FormattingRegion:
        return FormattingRegion(
            style=f"Heading {level}",
            inlines=[TextRun(text)],
            outline_level=level,
            side_channel=SideChannel(identity, stamp),
            source=f"heading {text}",
        )
    return make


@pytest.fixture(name="para")
def para_fixture():
    """Factory for body paragraphs, optionally list items: para(text, list_kind=None, level=1)."""
    def make(text: str, list_kind: ListKind = None, level: int = 1, fmt: RunFormat = RunFormat()) -> FormattingRegion:
        return FormattingRegion(
            style="List Paragraph" if list_kind else "Normal",
            inlines=[TextRun(text, fmt)] if text else [],
            list_info=ListInfo(list_kind, level) if list_kind else None,
        )
    return make


@pytest.fixture(name="table")
def table_fixture():
    """Factory for table regions from rows of cell texts: table([["a", "b"], ["c", "d"]])."""
    def make(rows: list[list[str]], borders: bool = True) -> FormattingRegion:
        grid = TableRegion(borders=borders, rows=[
            TableRow(cells=[
                TableCell(regions=[FormattingRegion(style="Normal", inlines=[TextRun(text)] if text else [])])
                for text in row
            ])
            for row in rows
        ])
        return FormattingRegion(style="Table", table=grid)
    return make
