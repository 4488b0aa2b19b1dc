"""Rich-content transcoder: formatted runs, lists and inline images to portable markup"""

import logging
import re
import xml.etree.ElementTree as ET
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional
from xml.sax.saxutils import escape, quoteattr

from docsync.core.images import detect_format
from docsync.core.models import (
    AttachmentRecord, FormattingRegion, InlineImage, ListKind, RunFormat,
)


logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")

LIST_TAGS: dict[ListKind, str] = {ListKind.bullet: "ul", ListKind.numbered: "ol"}


def xml_safe(text: str) -> str:
    """Strip control characters 0x00-0x1F; everything else passes through untouched."""
    return _CONTROL_CHARS.sub("", text)


def paragraph_style(fmt: RunFormat) -> str:
    """Inline CSS for a paragraph's default formatting ('' when plain)."""
    parts = []
    if fmt.bold:
        parts.append("font-weight: bold;")
    if fmt.italic:
        parts.append("font-style: italic;")
    if fmt.underline:
        parts.append("text-decoration: underline;")
    if fmt.font:
        parts.append(f"font-family: {fmt.font};")
    return " ".join(parts)


def run_tags(run: RunFormat, base: RunFormat) -> list[tuple[str, dict[str, str]]]:
    """Inline tags a run needs on top of its paragraph default, outermost first."""
    tags: list[tuple[str, dict[str, str]]] = []
    if run.bold and not base.bold:
        tags.append(("b", {}))
    if run.italic and not base.italic:
        tags.append(("i", {}))
    if run.underline and not base.underline:
        tags.append(("u", {}))
    if run.font and run.font != base.font:
        tags.append(("span", {"style": f"font-family: {run.font};"}))
    return tags


def inner_markup(element: ET.Element) -> str:
    """Serialize element's content without the element's own tags."""
    parts = [escape(element.text)] if element.text else []
    parts.extend(ET.tostring(child, encoding="unicode") for child in element)
    return "".join(parts)


def rewrite_placeholder(markup: str, placeholder: str, url: str) -> str:
    """Point every image reference to placeholder at url instead."""
    return markup.replace(f'<img src="{placeholder}"', f"<img src={quoteattr(url)}")


def _append_text(parent: ET.Element, text: str) -> None:
    if not text:
        return
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text


@dataclass
class _Flow:
    """Where block content goes, plus the list structure currently open there."""
    container: ET.Element
    lists:     list[ET.Element] = field(default_factory=list)   # outermost first
    levels:    list[int] = field(default_factory=list)


class MarkupBuilder:
    """Accumulates the markup and extracted attachments of one artifact.

    Placeholder numbering restarts at 1 on reset(), i.e. once per artifact.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._root = ET.Element("body")
        self._flow = _Flow(self._root)
        self._next_image = 1
        self.attachments: list[AttachmentRecord] = []

    @property
    def markup(self) -> str:
        return inner_markup(self._root)

    @property
    def container(self) -> ET.Element:
        return self._flow.container

    @contextmanager
    def scoped(self, container: ET.Element):
        """Render block content into container with its own list state (table cells)."""
        saved = self._flow
        self._flow = _Flow(container)
        try:
            yield container
        finally:
            self._flow = saved

    def close_lists(self) -> None:
        self._flow.lists.clear()
        self._flow.levels.clear()

    # --- blocks ---

    def add_region(self, region: FormattingRegion) -> None:
        """Fold one paragraph or list item into the markup."""
        target = None
        if region.list_info is not None and region.list_info.level > 0:
            target = self._list_item(region.list_info.kind, region.list_info.level, region.list_info.start)
        if target is None:
            self.close_lists()
            target = ET.SubElement(self._flow.container, "p")
        self.render_paragraph(target, region)

    def render_paragraph(self, element: ET.Element, region: FormattingRegion) -> None:
        element.set("style", paragraph_style(region.defaults))
        self.render_inlines(element, region)
        if not len(element) and not element.text:
            ET.SubElement(element, "br")

    def _list_item(self, kind: ListKind, level: int, start: bool = False) -> Optional[ET.Element]:
        """New <li> at level, walking the open lists up or down from where they are.

        A start item closes any list already open at its level. Returns None when
        the list found at that level is of the other kind; the caller then falls
        back to a plain paragraph.
        """
        flow = self._flow
        tag = LIST_TAGS[kind]
        while flow.lists and (flow.levels[-1] > level or (start and flow.levels[-1] == level)):
            flow.lists.pop()
            flow.levels.pop()

        if not flow.lists:
            flow.lists.append(ET.SubElement(flow.container, tag))
            flow.levels.append(level)
        elif flow.levels[-1] < level:
            nested = ET.SubElement(flow.lists[-1][-1], tag)
            flow.lists.append(nested)
            flow.levels.append(level)
        elif flow.lists[-1].tag != tag:
            logger.debug("List kind changed at level %d; emitting a paragraph", level)
            return None
        return ET.SubElement(flow.lists[-1], "li")

    # --- inline content ---

    def render_inlines(self, parent: ET.Element, region: FormattingRegion, step_index: Optional[int] = None) -> None:
        """Append region's runs and images to parent."""
        for inline in region.inlines:
            if isinstance(inline, InlineImage):
                self._add_image(parent, inline, step_index)
                continue
            text = xml_safe(inline.text)
            if not text:
                continue
            tags = run_tags(inline.format, region.defaults)
            if not tags:
                _append_text(parent, text)
                continue
            element = ET.SubElement(parent, tags[0][0], tags[0][1])
            for tag, attrib in tags[1:]:
                element = ET.SubElement(element, tag, attrib)
            element.text = text

    def _add_image(self, parent: ET.Element, image: InlineImage, step_index: Optional[int]) -> None:
        extension = detect_format(image.data)
        if extension is None:
            return
        placeholder = f"Inline{self._next_image}.{extension}"
        self._next_image += 1
        alt = xml_safe(image.alt_text)
        ET.SubElement(parent, "img", {"src": placeholder, "alt": alt})
        self.attachments.append(AttachmentRecord(
            placeholder=placeholder,
            extension=extension,
            data=image.data,
            alt_text=alt,
            step_index=step_index,
        ))


def transcode(region: FormattingRegion) -> tuple[str, list[AttachmentRecord]]:
    """Markup and extracted attachments for a single region."""
    builder = MarkupBuilder()
    builder.add_region(region)
    return builder.markup, builder.attachments
