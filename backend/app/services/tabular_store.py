"""
Supabase-backed tabular store for form tables.

Tables (PostgREST):
  form_tables   name (pk), columns (jsonb list of {name, type}), created_at, updated_at
  form_rows     id, table_name, cells (jsonb list of strings), created_at

Column extension is read-then-write with no conditional update: two
concurrent submissions that both see a column missing can append it twice.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from app.db import supabase_admin
from app.models.table import SchemaColumn
from app.services.interfaces import StoreError

logger = logging.getLogger(__name__)

TABLES_TABLE = "form_tables"
ROWS_TABLE = "form_rows"


class SupabaseTabularStore:

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        client = self._client or supabase_admin
        if not client:
            raise ValueError("SUPABASE_SERVICE_KEY is required for table operations")
        return client

    def _fetch_table(self, table: str) -> Optional[dict]:
        try:
            result = (
                self.client.table(TABLES_TABLE)
                .select("name, columns")
                .eq("name", table)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreError(f"Failed to read table {table!r}: {str(e)}")
        return result.data[0] if result.data else None

    def table_exists(self, table: str) -> bool:
        return self._fetch_table(table) is not None

    def get_columns(self, table: str) -> list[SchemaColumn]:
        """Persisted columns of ``table``; [] when the table does not exist yet."""
        record = self._fetch_table(table)
        if not record:
            return []
        return [SchemaColumn.from_dict(c) for c in record.get("columns") or []]

    def append_columns(self, table: str, columns: list[SchemaColumn]) -> None:
        """Append ``columns`` after the existing ones, creating the table if needed."""
        if not columns:
            return

        now_iso = datetime.now(timezone.utc).isoformat()
        record = self._fetch_table(table)
        new_columns = [c.to_dict() for c in columns]

        try:
            if record is None:
                self.client.table(TABLES_TABLE).insert({
                    "name": table,
                    "columns": new_columns,
                    "created_at": now_iso,
                    "updated_at": now_iso,
                }).execute()
            else:
                merged = list(record.get("columns") or []) + new_columns
                (
                    self.client.table(TABLES_TABLE)
                    .update({"columns": merged, "updated_at": now_iso})
                    .eq("name", table)
                    .execute()
                )
        except Exception as e:
            raise StoreError(f"Failed to extend columns of {table!r}: {str(e)}")

    def append_row(self, table: str, cells: list[str]) -> None:
        try:
            result = self.client.table(ROWS_TABLE).insert({
                "table_name": table,
                "cells": cells,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            raise StoreError(f"Failed to append row to {table!r}: {str(e)}")

        if not result.data:
            raise StoreError(f"Failed to append row to {table!r}: insert returned no data")

    def get_rows(self, table: str) -> list[list[str]]:
        """All persisted rows of ``table``, oldest first."""
        try:
            result = (
                self.client.table(ROWS_TABLE)
                .select("cells")
                .eq("table_name", table)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            raise StoreError(f"Failed to read rows of {table!r}: {str(e)}")
        return [list(r.get("cells") or []) for r in result.data or []]
