"""Markdown documents as a region source: markdown-it tokens in, comment side channel out"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from markdown_it import MarkdownIt

from docsync.core.identity import IGNORE_TOKEN
from docsync.core.models import (
    FormattingRegion, InlineImage, ListInfo, ListKind, RunFormat, SideChannel,
    TableCell, TableRegion, TableRow, TextRun,
)


logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r'^---\s*\n(.*?)\n---\s*\n', re.DOTALL)
MARKER_RE = re.compile(r"^<!--\s*docsync:\s*(?P<identity>[^\s@]*)\s*(?:@\s*(?P<stamp>\S+))?\s*-->$")
CODE_FONT = "monospace"
NORMAL_STYLE = "Normal"
LIST_STYLE = "List Paragraph"


def _make_parser(preset: str) -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def format_marker(channel: SideChannel) -> str:
    """Comment line that stores a side channel below its heading."""
    if channel.identity == IGNORE_TOKEN or not channel.stamp:
        return f"<!-- docsync: {channel.identity} -->"
    return f"<!-- docsync: {channel.identity} @ {channel.stamp} -->"


def parse_marker(text: str) -> Optional[SideChannel]:
    m = MARKER_RE.match(text.strip())
    if not m:
        return None
    return SideChannel(identity=m.group("identity") or "", stamp=m.group("stamp") or "")


@dataclass
class _Marker:
    """Where a heading's side channel lives (or will be inserted) in the source lines."""
    insert_at:   int            # line index just below the heading
    marker_line: Optional[int]  # existing comment line, if any
    channel:     SideChannel
    original:    str


def _merge_runs(inlines: list) -> list:
    """Join neighbouring text runs with identical formatting."""
    merged: list = []
    for item in inlines:
        if merged and isinstance(item, TextRun) and isinstance(merged[-1], TextRun) and merged[-1].format == item.format:
            merged[-1] = TextRun(merged[-1].text + item.text, item.format)
        else:
            merged.append(item)
    return merged


class _RegionReader:
    """Turns a markdown-it token stream into FormattingRegions."""

    def __init__(self, base_dir: Path, line_offset: int):
        self.base_dir = base_dir
        self.line_offset = line_offset
        self.regions: list[FormattingRegion] = []
        self.markers: list[_Marker] = []
        self._lists: list[ListKind] = []
        self._list_opened = False

    def _source(self, token) -> str:
        return f"line {token.map[0] + self.line_offset + 1}" if token.map else ""

    def read(self, tokens: list) -> None:
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if tok.type == "heading_open":
                i = self._heading(tokens, i)
                continue
            if tok.type == "bullet_list_open":
                self._lists.append(ListKind.bullet)
                self._list_opened = True
            elif tok.type == "ordered_list_open":
                self._lists.append(ListKind.numbered)
                self._list_opened = True
            elif tok.type in ("bullet_list_close", "ordered_list_close"):
                self._lists.pop()
            elif tok.type == "paragraph_open":
                self._paragraph(tok, tokens[i + 1])
            elif tok.type == "table_open":
                i = self._table(tokens, i)
                continue
            elif tok.type in ("fence", "code_block"):
                self._code(tok)
            i += 1

    def _heading(self, tokens: list, i: int) -> int:
        """Heading region plus its side channel; returns the index after the heading."""
        tok, inline = tokens[i], tokens[i + 1]
        level = int(tok.tag[1:])
        after = i + 3
        insert_at = tok.map[1] + self.line_offset
        marker_line = None
        channel = None
        if after < len(tokens) and tokens[after].type == "html_block":
            channel = parse_marker(tokens[after].content)
            if channel is not None:
                marker_line = tokens[after].map[0] + self.line_offset
                after += 1
        if channel is None:
            channel = SideChannel()
        self.markers.append(_Marker(insert_at, marker_line, channel, format_marker(channel)))
        self.regions.append(FormattingRegion(
            style=f"Heading {level}",
            inlines=self._inlines(inline),
            outline_level=level,
            side_channel=channel,
            source=self._source(tok),
        ))
        return after

    def _paragraph(self, tok, inline) -> None:
        list_info = None
        if self._lists:
            list_info = ListInfo(self._lists[-1], len(self._lists), start=self._list_opened)
            self._list_opened = False
        self.regions.append(FormattingRegion(
            style=LIST_STYLE if list_info else NORMAL_STYLE,
            inlines=self._inlines(inline),
            list_info=list_info,
            source=self._source(tok),
        ))

    def _code(self, tok) -> None:
        for line in tok.content.rstrip("\n").split("\n"):
            self.regions.append(FormattingRegion(
                style=NORMAL_STYLE,
                inlines=[TextRun(line, RunFormat(font=CODE_FONT))] if line else [],
                source=self._source(tok),
            ))

    def _table(self, tokens: list, i: int) -> int:
        """One table region for table_open..table_close; returns the index after it."""
        start = tokens[i]
        table = TableRegion()
        while tokens[i].type != "table_close":
            tok = tokens[i]
            if tok.type == "tr_open":
                table.rows.append(TableRow())
            elif tok.type in ("th_open", "td_open"):
                inline = tokens[i + 1]
                table.rows[-1].cells.append(TableCell(regions=[FormattingRegion(
                    style=NORMAL_STYLE,
                    inlines=self._inlines(inline) if inline.type == "inline" else [],
                    source=self._source(tok),
                )]))
            i += 1
        self.regions.append(FormattingRegion(style="Table", table=table, source=self._source(start)))
        return i + 1

    def _inlines(self, inline) -> list:
        items: list = []
        bold = italic = underline = 0
        for child in inline.children or []:
            kind = child.type
            fmt = RunFormat(bold=bold > 0, italic=italic > 0, underline=underline > 0)
            if kind == "text":
                items.append(TextRun(child.content, fmt))
            elif kind in ("softbreak", "hardbreak"):
                items.append(TextRun(" ", fmt))
            elif kind == "code_inline":
                items.append(TextRun(child.content, RunFormat(fmt.bold, fmt.italic, fmt.underline, CODE_FONT)))
            elif kind == "strong_open":
                bold += 1
            elif kind == "strong_close":
                bold -= 1
            elif kind == "em_open":
                italic += 1
            elif kind == "em_close":
                italic -= 1
            elif kind == "html_inline":
                tag = child.content.strip().lower()
                if tag == "<u>":
                    underline += 1
                elif tag == "</u>":
                    underline = max(0, underline - 1)
            elif kind == "image":
                image = self._image(child)
                if image is not None:
                    items.append(image)
        return _merge_runs(items)

    def _image(self, token) -> Optional[InlineImage]:
        src = token.attrGet("src") or ""
        if not src or "://" in src or src.startswith("data:"):
            logger.warning("Skipping non-local image %r", src[:80])
            return None
        path = self.base_dir / unquote(src)
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.warning("Skipping image %s: %s", path, e)
            return None
        return InlineImage(data=data, alt_text=token.content)


class MarkdownDocument:
    """A markdown file exposed as FormattingRegions, with write-back of side channels."""

    def __init__(self, text: str, base_dir: Path = Path("."), parser_config: str = "gfm-like",
                 path: Optional[Path] = None):
        self.text = text
        self.path = path
        self.base_dir = base_dir
        self.parser_config = parser_config
        reader = self._read(text)
        self.regions = reader.regions
        self._markers = reader.markers

    def _read(self, text: str) -> _RegionReader:
        frontmatter = FRONTMATTER_RE.match(text)
        body = text[frontmatter.end():] if frontmatter else text
        offset = text[:frontmatter.end()].count("\n") if frontmatter else 0
        reader = _RegionReader(self.base_dir, offset)
        reader.read(_make_parser(self.parser_config).parse(body))
        return reader

    @classmethod
    def load(cls, path: Path, parser_config: str = "gfm-like") -> "MarkdownDocument":
        path = Path(path)
        return cls(path.read_text(encoding="utf-8"), base_dir=path.parent, parser_config=parser_config, path=path)

    def render(self) -> str:
        """Source text with every changed side channel written below its heading."""
        lines = self.text.splitlines(keepends=True)
        for marker in sorted(self._markers, key=lambda m: m.insert_at, reverse=True):
            rendered = format_marker(marker.channel)
            if rendered == marker.original:
                continue
            if marker.marker_line is not None:
                ending = "\n" if lines[marker.marker_line].endswith("\n") else ""
                lines[marker.marker_line] = rendered + ending
            elif marker.channel.identity:
                if marker.insert_at >= len(lines) and lines and not lines[-1].endswith("\n"):
                    lines[-1] += "\n"
                lines.insert(marker.insert_at, rendered + "\n")
        return "".join(lines)

    @property
    def changed(self) -> bool:
        return any(format_marker(m.channel) != m.original for m in self._markers)

    def save(self, path: Optional[Path] = None) -> bool:
        """Write side channels back; returns False when nothing changed."""
        target = path or self.path
        if target is None or not self.changed:
            return False
        text = self.render()
        Path(target).write_text(text, encoding="utf-8")
        self._reindex(text)
        logger.info("Updated side channels in %s", target)
        return True

    def _reindex(self, text: str) -> None:
        """Adopt text as the new source, keeping the live side-channel objects."""
        reader = self._read(text)
        for old, new in zip(self._markers, reader.markers):
            new.channel = old.channel
            new.original = format_marker(old.channel)
        self.text = text
        self._markers = reader.markers
