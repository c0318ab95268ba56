"""
Form table router.

Endpoints:
  GET /{table_name}/export    download a table as .xlsx (auth: X-Admin-Key)

Environment variables
---------------------
ADMIN_API_KEY   Shared key checked in the X-Admin-Key header. When unset,
                every request is rejected.
"""

import io
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import StreamingResponse

from app import config
from app.services.table_export import generate_table_export
from app.services.tabular_store import SupabaseTabularStore

logger = logging.getLogger(__name__)

router = APIRouter()

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_tabular_store() -> SupabaseTabularStore:
    return SupabaseTabularStore()


def _verify_admin_key(x_admin_key: Optional[str] = Header(None)) -> None:
    """Raise 401 if the admin key is missing, unconfigured, or does not match."""
    expected = config.get_admin_api_key()
    if not expected:
        logger.warning("ADMIN_API_KEY is not configured, table export requests will be rejected")
        raise HTTPException(status_code=401, detail="Admin key not configured")

    if not x_admin_key or x_admin_key != expected:
        raise HTTPException(status_code=401, detail="Invalid admin key")


@router.get("/{table_name}/export")
def export_table(
    table_name: str,
    _: None = Depends(_verify_admin_key),
    store: SupabaseTabularStore = Depends(get_tabular_store),
) -> StreamingResponse:
    """
    Stream a form table as an Excel workbook.

    ``table_name`` is the stored name, e.g. "acme#contact" (URL-encode the #
    as %23).
    """
    columns = store.get_columns(table_name)
    if not columns and not store.table_exists(table_name):
        raise HTTPException(status_code=404, detail="Table not found")

    rows = store.get_rows(table_name)
    content = generate_table_export(table_name, columns, rows)

    filename = re.sub(r"[^\w\-.]", "_", table_name) + ".xlsx"
    return StreamingResponse(
        io.BytesIO(content),
        media_type=_XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
