"""Table transcoder: column-span inference, header cells and step-record extraction"""

import xml.etree.ElementTree as ET
from typing import Optional

from docsync.config import StyleMapping
from docsync.core.markup import MarkupBuilder, inner_markup
from docsync.core.models import NOT_SPECIFIED, StepRecord, TableRegion, TableRow


TABLE_STYLE = "border-collapse: collapse;"
BORDER_STYLE = "border: black 1px solid;"


def nearest_block(breakpoints: list[float], width: float) -> int:
    """1-based index of the breakpoint nearest to width; ties go to the first."""
    best, best_distance = 1, None
    for index, point in enumerate(breakpoints, start=1):
        distance = abs(point - width)
        if best_distance is None or distance < best_distance:
            best, best_distance = index, distance
    return best


def basic_breakpoints(table: TableRegion) -> list[float]:
    """Cumulative cell widths of the first row with the table's maximum column count."""
    max_cols = table.max_columns
    for row in table.rows:
        if len(row.cells) == max_cols:
            points, total = [], 0.0
            for cell in row.cells:
                total += cell.width
                points.append(total)
            return points
    return []


def column_spans(table: TableRegion, row: TableRow) -> list[int]:
    """Colspan for every physical cell of row.

    A row with fewer cells than the widest row lost its alignment to merged
    cells; each cell is matched to the basic column whose right edge is
    nearest to the cell's own right edge.
    """
    max_cols = table.max_columns
    count = len(row.cells)
    if count == max_cols:
        return [1] * count
    if count == 1:
        return [max_cols]

    breakpoints = basic_breakpoints(table)
    spans: list[int] = []
    used, width = 0, 0.0
    for position, cell in enumerate(row.cells, start=1):
        width += cell.width
        remaining = count - position
        block = nearest_block(breakpoints, width)
        if block + remaining > max_cols:
            span = max_cols - remaining - used
        else:
            span = block - used
        span = max(span, 1)
        spans.append(span)
        used += span
    return spans


def render_table(builder: MarkupBuilder, table: TableRegion) -> ET.Element:
    """<table> element for table; cell content goes through builder."""
    style = f"{TABLE_STYLE} {BORDER_STYLE}" if table.borders else TABLE_STYLE
    element = ET.Element("table", {"style": style})
    for row_index, row in enumerate(table.rows):
        tr = ET.SubElement(element, "tr")
        tag = "th" if row_index == 0 else "td"
        for cell, span in zip(row.cells, column_spans(table, row)):
            attrib = {"style": BORDER_STYLE} if table.borders else {}
            if span > 1:
                attrib["colspan"] = str(span)
            with builder.scoped(ET.SubElement(tr, tag, attrib)) as target:
                for region in cell.regions:
                    if region.table is not None:
                        target.append(render_table(builder, region.table))
                    else:
                        builder.add_region(region)
    return element


def append_table(builder: MarkupBuilder, table: TableRegion) -> None:
    """Add table to the builder's current container, closing any open list."""
    builder.close_lists()
    builder.container.append(render_table(builder, table))


def transcode_table(table: TableRegion) -> str:
    builder = MarkupBuilder()
    append_table(builder, table)
    return builder.markup


# --- test steps ---

def _cell_markup(builder: MarkupBuilder, row: TableRow, column: Optional[int], step_index: int) -> str:
    """Inline markup of one cell, paragraphs separated by <br />."""
    if column is None or not 1 <= column <= len(row.cells):
        return ""
    holder = ET.Element("div")
    for n, region in enumerate(row.cells[column - 1].regions):
        if n:
            ET.SubElement(holder, "br")
        builder.render_inlines(holder, region, step_index=step_index)
    return inner_markup(holder).strip()


def extract_steps(
    builder: MarkupBuilder,
    table: TableRegion,
    styles: StyleMapping,
    first_index: int = 0,
    ) -> list[StepRecord]:
    """Read body rows as test steps; images in a row become attachments of that step."""
    description = styles.column_index(styles.step_description)
    expected = styles.column_index(styles.step_expected_result)
    sample = styles.column_index(styles.step_sample_data)

    steps = []
    for offset, row in enumerate(table.rows[1:]):
        index = first_index + offset
        steps.append(StepRecord(
            description=_cell_markup(builder, row, description, index) or NOT_SPECIFIED,
            expected_result=_cell_markup(builder, row, expected, index),
            sample_data=_cell_markup(builder, row, sample, index),
        ))
    return steps
