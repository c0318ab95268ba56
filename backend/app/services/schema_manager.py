"""
Schema manager for append-only form tables.

A table's columns only ever grow: names the form declares that the table does
not have yet are appended at the end, in declaration order, in a single
extension call. Existing columns keep their position and their recorded type
tag.

Public API:
  SchemaManager(store).resolve(table, declared) -> list[SchemaColumn]
"""

import logging
from typing import Iterable

from app.models.submission import HeaderDeclaration
from app.models.table import SchemaColumn
from app.services.interfaces import TabularStore

logger = logging.getLogger(__name__)


def missing_columns(
    existing: list[SchemaColumn],
    declared: Iterable[HeaderDeclaration],
) -> list[SchemaColumn]:
    """Declared columns absent from ``existing``, first declaration wins."""
    known = {column.name for column in existing}
    missing: list[SchemaColumn] = []
    for header in declared:
        if header.name in known:
            continue
        known.add(header.name)
        missing.append(SchemaColumn(name=header.name, type=header.type))
    return missing


class SchemaManager:
    """Resolves and extends the column list of a form table."""

    def __init__(self, store: TabularStore):
        self.store = store

    def resolve(
        self,
        table: str,
        declared: Iterable[HeaderDeclaration],
    ) -> list[SchemaColumn]:
        """
        Return the table's full ordered column list after appending any
        declared columns it lacks.

        Calling twice with the same declaration appends nothing the second
        time. Concurrent callers may both append the same new column; the
        store offers no conditional write to prevent it.
        """
        existing = self.store.get_columns(table)
        missing = missing_columns(existing, declared)

        if missing:
            logger.info(
                f"Extending table {table!r} with {len(missing)} column(s): "
                f"{[c.name for c in missing]}"
            )
            self.store.append_columns(table, missing)

        return existing + missing
