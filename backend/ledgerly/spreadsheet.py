"""XLSX rendering of a table view via openpyxl."""
from __future__ import annotations

import io
from typing import Any, Sequence

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .aggregation import TOTAL_LABEL, totals_label_index
from .coercion import ColumnType, display_text, is_blank, normalize_date, to_number
from .models import TableColumn, TableRow
from .tables import row_value

SHEET_TITLE = "Data"
WIDTH_SAMPLE_ROWS = 200
MIN_WIDTH = 10
MAX_WIDTH = 40


def sheet_value(stored: Any, column_type: ColumnType | str) -> Any:
    """Native cell value: numbers stay numeric, dates become ``YYYY-MM-DD``."""
    column_type = ColumnType.parse(column_type)
    if column_type.is_numeric:
        return None if is_blank(stored) else to_number(stored)
    if column_type is ColumnType.DATE:
        return normalize_date(stored) or None
    return sheet_text(display_text(stored)) or None


def sheet_text(text: str) -> str:
    """Text with the control characters worksheets reject removed."""
    return ILLEGAL_CHARACTERS_RE.sub("", text)


def _append_literal(ws, values: Sequence[Any]) -> None:
    ws.append(values)
    for cell in ws[ws.max_row]:
        # user text never becomes a formula
        if isinstance(cell.value, str):
            cell.data_type = "s"


def column_width(values: Sequence[Any]) -> int:
    longest = max((len(display_text(value)) for value in values if value is not None), default=0)
    return min(max(longest + 2, MIN_WIDTH), MAX_WIDTH)


def generate_table_xlsx(
    columns: Sequence[TableColumn],
    view_rows: Sequence[TableRow],
    totals: dict[int, float],
    show_totals: bool = True,
) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    header = [sheet_text(column.name) for column in columns]
    _append_literal(ws, header)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    body = [[sheet_value(row_value(row, column), column.type) for column in columns] for row in view_rows]
    for values in body:
        _append_literal(ws, values)

    if show_totals and totals:
        totals_row = [totals.get(column.id) for column in columns]
        label_at = totals_label_index(columns, totals)
        if label_at is None:
            # every column holds a number; the label trails the row
            totals_row.append(TOTAL_LABEL)
        else:
            totals_row[label_at] = TOTAL_LABEL
        _append_literal(ws, totals_row)
        for cell in ws[ws.max_row]:
            cell.font = Font(bold=True)

    sample = body[:WIDTH_SAMPLE_ROWS]
    for index, name in enumerate(header):
        ws.column_dimensions[get_column_letter(index + 1)].width = column_width(
            [name] + [values[index] for values in sample]
        )

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def read_header_row(content: bytes) -> list[str]:
    """Header row of the first sheet of an XLSX file."""
    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True)
    try:
        ws = wb.worksheets[0]
        first = next(ws.iter_rows(min_row=1, max_row=1, values_only=True), ())
        return ["" if value is None else str(value) for value in first]
    finally:
        wb.close()
