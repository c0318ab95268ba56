"""
Row builder.

Maps a submission onto the table schema: one cell per column, in column
order. Every value of a multi-valued field is kept; the persisted cell joins
them with ", " while the unflattened values stay available for the
notification email.

Public API:
  guard_literal(value) -> str
  RowBuilder(store, ingester).build(submission, schema) -> BuiltRow
  RowBuilder.persist(ctx, row)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Union

from app.models.table import ColumnKind, SchemaColumn
from app.services.file_ingester import EmptyFile, FileIngester, StoredFile
from app.services.form_data import Submission, SubmissionContext
from app.services.interfaces import TabularStore

logger = logging.getLogger(__name__)

CELL_SEPARATOR = ", "

# Leading quote makes spreadsheet viewers keep the value as text
LITERAL_TEXT_PREFIX = "'"

# "+34 600 111 222", "+1 (555) 010-9999"
_PHONE_LIKE_PATTERN = re.compile(r"^\+[\d\s().-]*\d[\d\s().-]*$")

CellValue = Union[str, StoredFile, EmptyFile]


@dataclass
class RowCell:
    column: SchemaColumn
    display: str
    values: list[CellValue] = field(default_factory=list)


@dataclass
class BuiltRow:
    """Result of RowBuilder.build()."""
    cells: list[RowCell]

    @property
    def displays(self) -> list[str]:
        return [cell.display for cell in self.cells]


def guard_literal(value: str) -> str:
    """Quote phone-like values ("+34 600...") so spreadsheets keep them as text."""
    if _PHONE_LIKE_PATTERN.match(value):
        return f"{LITERAL_TEXT_PREFIX}{value}"
    return value


def _display(value: CellValue) -> str:
    if isinstance(value, str):
        return value
    return value.display_value


class RowBuilder:

    def __init__(self, store: TabularStore, ingester: FileIngester):
        self.store = store
        self.ingester = ingester

    def build(self, submission: Submission, schema: list[SchemaColumn]) -> BuiltRow:
        cells: list[RowCell] = []
        for column in schema:
            raw_values = submission.fields.values(column.name)
            values = [self._convert(column, raw, submission.context) for raw in raw_values]
            display = CELL_SEPARATOR.join(_display(v) for v in values)
            cells.append(RowCell(column=column, display=display, values=values or [""]))
        return BuiltRow(cells=cells)

    def _convert(self, column: SchemaColumn, raw: str, ctx: SubmissionContext) -> CellValue:
        match column.kind:
            case ColumnKind.FILE if raw:
                return self.ingester.ingest(raw, ctx)
            case _:
                return guard_literal(raw) if raw else ""

    def persist(self, ctx: SubmissionContext, row: BuiltRow) -> None:
        self.store.append_row(ctx.table_name, row.displays)
        logger.info(f"Appended row with {len(row.cells)} cell(s) to {ctx.table_name!r}")
