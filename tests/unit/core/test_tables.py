"""Unit tests for core/tables.py"""

from docsync.core.markup import MarkupBuilder
from docsync.core.models import (
    NOT_SPECIFIED, FormattingRegion, InlineImage, StepRecord, TableCell, TableRegion, TableRow, TextRun,
)
from docsync.core.tables import basic_breakpoints, column_spans, extract_steps, nearest_block, transcode_table


def _grid(*widths_per_row) -> TableRegion:
    return TableRegion(rows=[
        TableRow(cells=[TableCell(regions=[], width=w) for w in widths]) for widths in widths_per_row
    ])


# --- column spans ---

def test_nearest_block_ties_go_first():
    assert nearest_block([1.0, 2.0, 3.0], 2.2) == 2
    assert nearest_block([1.0, 2.0], 1.5) == 1


def test_full_row_has_no_spans():
    table = _grid([1, 1, 1, 1], [1, 1, 1, 1])
    assert column_spans(table, table.rows[1]) == [1, 1, 1, 1]


def test_merged_row_spans_nearest_columns():
    """Two double-width cells in a four-column table each span two columns."""
    table = _grid([1, 1, 1, 1], [2, 2])
    assert basic_breakpoints(table) == [1, 2, 3, 4]
    assert column_spans(table, table.rows[1]) == [2, 2]


def test_uneven_merge():
    table = _grid([1, 1, 1, 1], [1, 2, 1])
    assert column_spans(table, table.rows[1]) == [1, 2, 1]


def test_single_cell_spans_whole_table():
    table = _grid([1, 1, 1], [3])
    assert column_spans(table, table.rows[1]) == [3]


def test_spans_always_fill_the_row():
    """Trailing cells keep at least one column each."""
    table = _grid([1, 1, 1, 1], [3.9, 0.05, 0.05])
    spans = column_spans(table, table.rows[1])
    assert sum(spans) == 4
    assert all(span >= 1 for span in spans)


# --- rendering ---

def test_header_row_uses_th(table):
    markup = transcode_table(table([["Name", "Value"], ["a", "1"]]).table)
    border = "border: black 1px solid;"
    assert markup == (
        f'<table style="border-collapse: collapse; {border}">'
        f'<tr><th style="{border}"><p style="">Name</p></th><th style="{border}"><p style="">Value</p></th></tr>'
        f'<tr><td style="{border}"><p style="">a</p></td><td style="{border}"><p style="">1</p></td></tr>'
        "</table>"
    )


def test_borderless_table(table):
    markup = transcode_table(table([["x"]], borders=False).table)
    assert markup == '<table style="border-collapse: collapse;"><tr><th><p style="">x</p></th></tr></table>'


def test_colspan_written_for_merged_cells(table):
    region = table([["a", "b", "c", "d"], ["wide", "also wide"]])
    region.table.rows[1].cells[0].width = 2
    region.table.rows[1].cells[1].width = 2
    markup = transcode_table(region.table)
    assert markup.count('colspan="2"') == 2


# --- test steps ---

def test_extract_steps_reads_body_rows(table, styles):
    """Header row is skipped; columns come from the style mapping."""
    region = table([
        ["Description", "Expected", "Sample"],
        ["Open page", "Page shown", "/login"],
        ["", "Nothing", ""],
    ])
    steps = extract_steps(MarkupBuilder(), region.table, styles)
    assert steps == [
        StepRecord("Open page", "Page shown", "/login"),
        StepRecord(NOT_SPECIFIED, "Nothing", ""),
    ]


def test_extract_steps_short_rows(table, styles):
    """Missing cells yield empty fields."""
    steps = extract_steps(MarkupBuilder(), table([["D"], ["Only a description"]]).table, styles)
    assert steps == [StepRecord("Only a description", "", "")]


def test_step_images_belong_to_their_step(styles, png_bytes):
    """Images in a step row are attachments owned by that step index."""
    def cell(*inlines):
        return TableCell(regions=[FormattingRegion(inlines=list(inlines))])

    grid = TableRegion(rows=[
        TableRow(cells=[cell(TextRun("D")), cell(TextRun("E"))]),
        TableRow(cells=[cell(TextRun("Look at "), InlineImage(png_bytes)), cell(TextRun("ok"))]),
    ])
    builder = MarkupBuilder()
    steps = extract_steps(builder, grid, styles, first_index=3)
    assert steps[0].description == 'Look at <img src="Inline1.png" alt="" />'
    assert [a.step_index for a in builder.attachments] == [3]
