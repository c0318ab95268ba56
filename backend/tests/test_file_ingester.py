"""
Tests for inline file payload parsing, thumbnail classification and the
never-raising ingest() boundary.
"""

import base64
from datetime import datetime

import pytest

from app.services.file_ingester import (
    EmptyFile,
    FileIngester,
    FilePayloadError,
    StoredFile,
    is_thumbnailable,
    parse_file_payload,
)
from app.services.form_data import SubmissionContext


def _encode(content: bytes, mime_type: str, filename: str | None = None) -> str:
    payload = f"data:{mime_type};base64,{base64.b64encode(content).decode()}"
    if filename:
        payload += f",{filename}"
    return payload


@pytest.fixture
def ctx():
    return SubmissionContext(
        domain="acme",
        form_id="jobs",
        table_name="acme#jobs",
        received_at=datetime(2026, 3, 14, 10, 15, 30),
    )


@pytest.fixture
def ingester(blob_store, submission_log):
    return FileIngester(blob_store, submission_log)


class TestParseFilePayload:

    def test_splits_on_all_separators(self):
        payload = "data|text/plain:base64;" + base64.b64encode(b"hi").decode() + "|notes.txt"
        parsed = parse_file_payload(payload, default_filename="fallback")
        assert parsed.mime_type == "text/plain"
        assert parsed.content == b"hi"
        assert parsed.filename == "notes.txt"

    def test_filename_defaults_when_absent(self):
        parsed = parse_file_payload(_encode(b"x", "image/png"), default_filename="2026-03-14-10-15-30")
        assert parsed.filename == "2026-03-14-10-15-30"

    def test_missing_mime_type_raises(self):
        with pytest.raises(FilePayloadError) as exc_info:
            parse_file_payload("data", default_filename="f")
        assert exc_info.value.error_code == "missing_mime_type"

    def test_missing_payload_raises(self):
        with pytest.raises(FilePayloadError) as exc_info:
            parse_file_payload("data:image/png;base64", default_filename="f")
        assert exc_info.value.error_code == "missing_payload"

    def test_invalid_base64_raises(self):
        with pytest.raises(FilePayloadError) as exc_info:
            parse_file_payload("data:image/png;base64,@@not-base64@@", default_filename="f")
        assert exc_info.value.error_code == "invalid_base64"


class TestThumbnailable:

    @pytest.mark.parametrize("mime_type", [
        "image/png",
        "image/jpeg",
        "video/mp4",
        "application/pdf",
        "application/msword",
        "application/vnd.msword",
        "application/vnd.ms-excel",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.oasis.opendocument.text",
        "application/vnd.google-apps.document",
    ])
    def test_whitelisted(self, mime_type):
        assert is_thumbnailable(mime_type)

    @pytest.mark.parametrize("mime_type", [
        "text/plain",
        "application/zip",
        "application/octet-stream",
        "audio/mpeg",
        "",
    ])
    def test_not_whitelisted(self, mime_type):
        assert not is_thumbnailable(mime_type)


class TestIngest:

    def test_stores_decoded_bytes_with_thumbnail_for_images(self, ingester, blob_store, ctx):
        content = b"\x89PNG\r\n\x1a\nfake image bytes"
        result = ingester.ingest(_encode(content, "image/png", "photo.png"), ctx)

        assert isinstance(result, StoredFile)
        assert result.content == content
        assert result.mime_type == "image/png"
        assert result.filename == "photo.png"
        assert result.thumbnail_url is not None
        assert result.display_value == result.thumbnail_url

        stored = blob_store.files[0]
        assert stored["content"] == content
        assert stored["id"].startswith("acme/jobs/")

    def test_no_thumbnail_for_other_types(self, ingester, ctx):
        result = ingester.ingest(_encode(b"PK\x03\x04", "application/zip", "bundle.zip"), ctx)
        assert isinstance(result, StoredFile)
        assert result.thumbnail_url is None
        assert result.display_value == result.view_url

    def test_null_sentinel_is_empty_not_error(self, ingester, blob_store, submission_log, ctx):
        result = ingester.ingest("null", ctx)
        assert isinstance(result, EmptyFile)
        assert not result.failed
        assert blob_store.files == []
        assert submission_log.entries == []

    def test_malformed_payload_degrades_and_logs(self, ingester, submission_log, ctx):
        result = ingester.ingest("garbage", ctx)
        assert isinstance(result, EmptyFile)
        assert result.failed
        assert result.display_value == ""
        assert any("Error processing base64 file" in m for m in submission_log.messages("acme#jobs"))

    def test_storage_failure_degrades(self, ingester, blob_store, ctx):
        blob_store.fail = True
        result = ingester.ingest(_encode(b"abc", "application/pdf", "cv.pdf"), ctx)
        assert isinstance(result, EmptyFile)
        assert "bucket unavailable" in result.reason

    def test_log_failure_does_not_escape(self, blob_store, ctx):
        class BrokenLog:
            def append(self, table, message):
                raise RuntimeError("log down")

        ingester = FileIngester(blob_store, BrokenLog())
        result = ingester.ingest(_encode(b"abc", "application/pdf", "cv.pdf"), ctx)
        assert isinstance(result, StoredFile)

    def test_default_filename_uses_submission_timestamp(self, ingester, ctx):
        result = ingester.ingest(_encode(b"abc", "application/pdf"), ctx)
        assert result.filename == "2026-03-14-10-15-30"
