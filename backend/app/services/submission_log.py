"""
Submission audit log.

Every processed or failed submission leaves a trail in the submission_logs
table so operators can replay what a form sent and what went wrong.

Table (PostgREST):
  submission_logs   id, logged_at, form (table name), message
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from app.db import supabase_admin
from app.services.interfaces import StoreError

logger = logging.getLogger(__name__)

LOGS_TABLE = "submission_logs"


class SupabaseSubmissionLog:

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        client = self._client or supabase_admin
        if not client:
            raise ValueError("SUPABASE_SERVICE_KEY is required for log operations")
        return client

    def append(self, table: str, message: str) -> None:
        logger.debug(f"[{table}] {message}")
        try:
            self.client.table(LOGS_TABLE).insert({
                "logged_at": datetime.now(timezone.utc).isoformat(),
                "form": table,
                "message": message,
            }).execute()
        except Exception as e:
            raise StoreError(f"Failed to write submission log: {str(e)}")
