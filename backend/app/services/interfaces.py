"""
Collaborator interfaces consumed by the submission pipeline.

The pipeline only talks to these protocols. Supabase-backed implementations
live in tabular_store, storage, counters and submission_log; the Resend-backed
mail sender lives in mailer. Tests substitute in-memory fakes.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from app.models.table import SchemaColumn


@dataclass
class StoredBlob:
    """What the blob store hands back after an upload."""
    id: str
    view_url: str
    thumbnail_url: Optional[str] = None


class TabularStore(Protocol):
    def get_columns(self, table: str) -> list[SchemaColumn]: ...

    def append_columns(self, table: str, columns: list[SchemaColumn]) -> None: ...

    def append_row(self, table: str, cells: list[str]) -> None: ...


class BlobStore(Protocol):
    def store(
        self,
        domain: str,
        form_id: str,
        content: bytes,
        mime_type: str,
        filename: str,
    ) -> StoredBlob: ...


class MailSender(Protocol):
    def send(
        self,
        bcc: str,
        reply_to: str,
        subject: str,
        html_body: str,
        sender_name: str,
    ) -> None: ...

    def remaining_quota(self) -> int: ...


class SubmissionLog(Protocol):
    def append(self, table: str, message: str) -> None: ...


class CounterStore(Protocol):
    def get(self, key: str) -> int: ...

    def set(self, key: str, value: int) -> None: ...

    def increment(self, key: str) -> int: ...

    def delete(self, key: str) -> None: ...


class StoreError(Exception):
    """Raised by the concrete stores when the backend rejects an operation."""
