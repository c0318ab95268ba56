"""
Table export service.

Renders a form table (schema header row + persisted rows) as an Excel
workbook so operators can work with submissions in a spreadsheet.

Public API:
  generate_table_export(table_name, columns, rows) -> bytes
"""

import io
import logging

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from app.models.table import SchemaColumn

logger = logging.getLogger(__name__)

_HEADER_FONT = Font(bold=True, size=11)

_HEADER_FILL = PatternFill(
    start_color="D9E1F2",
    end_color="D9E1F2",
    fill_type="solid",
)

_MIN_COLUMN_WIDTH = 12
_MAX_COLUMN_WIDTH = 60

# Excel sheet titles: max 31 chars, no []:*?/\
_INVALID_TITLE_CHARS = set('[]:*?/\\')


def _sheet_title(table_name: str) -> str:
    title = "".join("_" if ch in _INVALID_TITLE_CHARS else ch for ch in table_name)
    return title[:31] or "Submissions"


def generate_table_export(
    table_name: str,
    columns: list[SchemaColumn],
    rows: list[list[str]],
) -> bytes:
    """
    Build the workbook.

    Rows persisted before a column existed are shorter than the header; they
    are padded with empty cells.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = _sheet_title(table_name)

    headers = [c.name for c in columns]
    ws.append(headers)
    for col_idx in range(1, len(headers) + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL

    width = len(headers)
    for row in rows:
        padded = (list(row) + [""] * width)[:width] if width else list(row)
        ws.append(padded)

    for col_idx, header in enumerate(headers, start=1):
        values = [header] + [r[col_idx - 1] for r in rows if len(r) >= col_idx]
        longest = max((len(str(v)) for v in values), default=0)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(
            max(longest + 2, _MIN_COLUMN_WIDTH), _MAX_COLUMN_WIDTH
        )

    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Exported {len(rows)} row(s) of {table_name!r}")
    return buffer.getvalue()
