"""
Supabase-backed key/value counters.

Holds the hourly rate-limit buckets (rate_{table}_{hour}) and the daily mail
usage (mail_sent_{YYYY-MM-DD}).

Table (PostgREST):
  counters   key (pk), value (int), updated_at

Increments are a read followed by an upsert, so concurrent requests can
undercount. That is acceptable for both uses.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from app.db import supabase_admin
from app.services.interfaces import StoreError

logger = logging.getLogger(__name__)

COUNTERS_TABLE = "counters"


class SupabaseCounterStore:

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        client = self._client or supabase_admin
        if not client:
            raise ValueError("SUPABASE_SERVICE_KEY is required for counter operations")
        return client

    def get(self, key: str) -> int:
        try:
            result = (
                self.client.table(COUNTERS_TABLE)
                .select("value")
                .eq("key", key)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreError(f"Failed to read counter {key!r}: {str(e)}")
        if not result.data:
            return 0
        return int(result.data[0].get("value") or 0)

    def set(self, key: str, value: int) -> None:
        try:
            self.client.table(COUNTERS_TABLE).upsert({
                "key": key,
                "value": value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            raise StoreError(f"Failed to write counter {key!r}: {str(e)}")

    def delete(self, key: str) -> None:
        try:
            self.client.table(COUNTERS_TABLE).delete().eq("key", key).execute()
        except Exception as e:
            raise StoreError(f"Failed to delete counter {key!r}: {str(e)}")

    def increment(self, key: str) -> int:
        value = self.get(key) + 1
        self.set(key, value)
        return value
