"""
Shared fixtures and in-memory collaborators.

The fakes implement the protocols in app.services.interfaces so pipeline
tests can assert on side effects (rows, files, emails, log lines) instead of
the response body, which is identical for accepted and spam submissions.
"""

import os
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

# Ensure env vars are set before importing anything that triggers app.db.
# The keys only need a JWT-like shape; no request ever reaches Supabase.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "eyJhbGciOiJIUzI1NiJ9.eyJyb2xlIjoic2VydmljZSJ9.dGVzdA")
os.environ.setdefault("FORM_TIMEZONE", "Europe/Madrid")

from app.models.table import SchemaColumn
from app.services.interfaces import StoredBlob
from app.services.processor import Collaborators

MADRID = ZoneInfo("Europe/Madrid")


class InMemoryTabularStore:
    def __init__(self):
        self.columns: dict[str, list[SchemaColumn]] = {}
        self.rows: dict[str, list[list[str]]] = {}
        self.append_columns_calls = 0
        self.fail_on_append_row = False

    def get_columns(self, table):
        return list(self.columns.get(table, []))

    def append_columns(self, table, columns):
        self.append_columns_calls += 1
        self.columns.setdefault(table, []).extend(columns)

    def append_row(self, table, cells):
        if self.fail_on_append_row:
            raise RuntimeError("store unavailable")
        self.rows.setdefault(table, []).append(list(cells))

    def get_rows(self, table):
        return [list(r) for r in self.rows.get(table, [])]

    def table_exists(self, table):
        return table in self.columns


class InMemoryBlobStore:
    def __init__(self):
        self.files: list[dict] = []
        self.fail = False

    def store(self, domain, form_id, content, mime_type, filename):
        if self.fail:
            raise RuntimeError("bucket unavailable")
        blob_id = f"{domain}/{form_id}/{len(self.files)}/{filename}"
        self.files.append({
            "id": blob_id,
            "content": content,
            "mime_type": mime_type,
            "filename": filename,
        })
        return StoredBlob(
            id=blob_id,
            view_url=f"https://files.test/view/{blob_id}",
            thumbnail_url=f"https://files.test/thumb/{blob_id}",
        )


class InMemoryCounterStore:
    def __init__(self):
        self.values: dict[str, int] = {}
        self.fail_on_delete = False
        self.fail_on_increment = False

    def get(self, key):
        return self.values.get(key, 0)

    def set(self, key, value):
        self.values[key] = value

    def increment(self, key):
        if self.fail_on_increment:
            raise RuntimeError("increment failed")
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    def delete(self, key):
        if self.fail_on_delete:
            raise RuntimeError("delete failed")
        self.values.pop(key, None)


class RecordingMailSender:
    def __init__(self, quota: int = 100):
        self.sent: list[dict] = []
        self.quota = quota
        self.fail = False

    def send(self, bcc, reply_to, subject, html_body, sender_name):
        if self.fail:
            raise RuntimeError("mail transport down")
        self.sent.append({
            "bcc": bcc,
            "reply_to": reply_to,
            "subject": subject,
            "html_body": html_body,
            "sender_name": sender_name,
        })

    def remaining_quota(self):
        return self.quota - len(self.sent)


class RecordingLog:
    def __init__(self):
        self.entries: list[tuple[str, str]] = []

    def append(self, table, message):
        self.entries.append((table, message))

    def messages(self, table=None):
        return [m for t, m in self.entries if table is None or t == table]


@pytest.fixture
def tabular_store():
    return InMemoryTabularStore()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def counters():
    return InMemoryCounterStore()


@pytest.fixture
def mail_sender():
    return RecordingMailSender()


@pytest.fixture
def submission_log():
    return RecordingLog()


@pytest.fixture
def collaborators(tabular_store, blob_store, counters, mail_sender, submission_log):
    return Collaborators(
        tabular_store=tabular_store,
        blob_store=blob_store,
        mail_sender=mail_sender,
        log=submission_log,
        counters=counters,
    )


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 14, 10, 15, 30, tzinfo=MADRID)
