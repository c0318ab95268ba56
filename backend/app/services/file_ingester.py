"""
Inline file ingestion.

File inputs are posted as a single token string, e.g.

    data:image/png;base64,iVBORw0KGgo...,photo.png

Tokens are runs of characters outside ``: ; , |``:

    [0] prefix   [1] mime type   [2] encoding marker   [3] base64 payload   [4] filename (optional)

The literal value "null" means the visitor left the input empty.

Ingestion never raises: any failure is written to the submission log and an
EmptyFile marker is returned so the rest of the row still gets built.

Public API:
  parse_file_payload(payload, default_filename) -> FilePayload
  is_thumbnailable(mime_type) -> bool
  looks_like_file_payload(value) -> bool
  FileIngester(blob_store, log).ingest(payload, ctx) -> StoredFile | EmptyFile
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from app.services.form_data import SubmissionContext
from app.services.interfaces import BlobStore, SubmissionLog

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NO_FILE_SENTINEL = "null"

_TOKEN_PATTERN = re.compile(r"[^:;,|]+")

# "data:<mime>;base64,..." with any of the token separators
_INLINE_PAYLOAD_PATTERN = re.compile(r"^data[:;,|]+[^:;,|]+[:;,|]+base64[:;,|]", re.IGNORECASE)

# Mime types the storage backend can render a preview for
_THUMBNAIL_MIME_PATTERN = re.compile(
    r"^(image/|video/|application/(pdf|vnd\.google-apps|vnd\.openxmlformats-officedocument"
    r"|(vnd\.)?msword|vnd\.ms-excel|vnd\.ms-powerpoint|vnd\.oasis\.opendocument))"
)


# ---------------------------------------------------------------------------
# Exceptions and data structures
# ---------------------------------------------------------------------------

class FilePayloadError(Exception):
    """Raised when an inline file payload cannot be parsed or decoded."""
    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


@dataclass
class FilePayload:
    """Result of parse_file_payload()."""
    mime_type: str
    content: bytes
    filename: str


@dataclass
class StoredFile:
    """An ingested attachment, ready for display in the row and the email."""
    mime_type: str
    filename: str
    storage_id: str
    view_url: str
    thumbnail_url: Optional[str] = None
    content: bytes = field(default=b"", repr=False)

    @property
    def display_value(self) -> str:
        return self.thumbnail_url or self.view_url


@dataclass
class EmptyFile:
    """No usable file: the visitor sent none, or ingestion failed."""
    reason: str = "no file submitted"
    failed: bool = False

    @property
    def display_value(self) -> str:
        return ""


IngestResult = Union[StoredFile, EmptyFile]


# ---------------------------------------------------------------------------
# Parsing and classification
# ---------------------------------------------------------------------------

def is_thumbnailable(mime_type: str) -> bool:
    return bool(_THUMBNAIL_MIME_PATTERN.match(mime_type or ""))


def looks_like_file_payload(value: str) -> bool:
    return bool(_INLINE_PAYLOAD_PATTERN.match(value or ""))


def parse_file_payload(payload: str, default_filename: str) -> FilePayload:
    """
    Split and decode an inline file payload.

    Raises:
        FilePayloadError: no mime type, no payload, or invalid base64.
    """
    tokens = _TOKEN_PATTERN.findall(payload or "")

    mime_type = tokens[1].strip() if len(tokens) > 1 else ""
    if not mime_type:
        raise FilePayloadError("MIME type not found in base64 string", "missing_mime_type")

    if len(tokens) < 4 or not tokens[3].strip():
        raise FilePayloadError("Base64 payload not found", "missing_payload")

    try:
        content = base64.b64decode(tokens[3].strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise FilePayloadError(f"Invalid base64 payload: {e}", "invalid_base64")

    filename = tokens[4].strip() if len(tokens) > 4 and tokens[4].strip() else default_filename

    return FilePayload(mime_type=mime_type, content=content, filename=filename)


# ---------------------------------------------------------------------------
# Ingester
# ---------------------------------------------------------------------------

class FileIngester:
    """Decodes inline payloads, stores them and classifies them for display."""

    def __init__(self, blob_store: BlobStore, log: SubmissionLog):
        self.blob_store = blob_store
        self.log = log

    def ingest(self, payload: str, ctx: SubmissionContext) -> IngestResult:
        if payload == NO_FILE_SENTINEL:
            return EmptyFile()

        try:
            parsed = parse_file_payload(payload, default_filename=ctx.timestamp_label)
            blob = self.blob_store.store(
                ctx.domain,
                ctx.form_id,
                parsed.content,
                parsed.mime_type,
                parsed.filename,
            )
        except Exception as e:
            logger.warning(f"File ingestion failed for {ctx.table_name!r}: {e}")
            self._log(ctx, f"Error processing base64 file: {e}")
            return EmptyFile(reason=str(e), failed=True)

        thumbnail_url = blob.thumbnail_url if is_thumbnailable(parsed.mime_type) else None
        stored = StoredFile(
            mime_type=parsed.mime_type,
            filename=parsed.filename,
            storage_id=blob.id,
            view_url=blob.view_url,
            thumbnail_url=thumbnail_url or None,
            content=parsed.content,
        )
        self._log(ctx, f"Stored file {stored.filename}: {stored.view_url}")
        return stored

    def _log(self, ctx: SubmissionContext, message: str) -> None:
        # The audit log must not turn a contained file failure into a fatal one
        try:
            self.log.append(ctx.table_name, message)
        except Exception as e:
            logger.warning(f"Failed to write submission log for {ctx.table_name!r}: {e}")
