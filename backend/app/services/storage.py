"""
Supabase Storage service for form attachments.
Handles upload and public/preview URL generation.
"""

import os
import re
from typing import Optional
from uuid import uuid4
from urllib.parse import urlparse, urlunparse

from supabase import Client

from app import config
from app.db import supabase_admin
from app.services.interfaces import StoredBlob

THUMBNAIL_SIZE = 320


def sanitize_filename(filename: str) -> str:
    """Replace spaces and special chars with underscores."""
    return re.sub(r'[^\w\-.]', '_', filename) or "file"


def build_storage_path(domain: str, form_id: str, filename: str) -> str:
    """
    Storage path: {domain}/{form_id}/{uuid}/{sanitized_filename}

    The UUID segment keeps two visitors uploading "cv.pdf" to the same form
    from overwriting each other while preserving the original filename.
    Domain and form id are sanitized so they cannot add path segments.
    """
    return (
        f"{sanitize_filename(domain)}/{sanitize_filename(form_id)}/"
        f"{uuid4().hex}/{sanitize_filename(filename)}"
    )


def _rewrite_public_url_host(url: str) -> str:
    """
    Replace the host in a storage URL with the browser-accessible Supabase URL.

    When the backend runs inside Docker it uses an internal URL like
    ``http://host.docker.internal:54321`` so it can reach the Supabase API.
    Supabase embeds that internal host in every URL it generates, making
    those URLs unreachable from a mail client.

    If ``SUPABASE_PUBLIC_URL`` is set it is used as the replacement origin.
    If the env var is not set the URL is returned unchanged.
    """
    public_url = os.getenv("SUPABASE_PUBLIC_URL", "").strip()
    if not public_url:
        return url

    parsed_url = urlparse(url)
    parsed_public = urlparse(public_url)

    # Swap scheme + netloc; keep path/query/fragment from the storage URL.
    return urlunparse((
        parsed_public.scheme,
        parsed_public.netloc,
        parsed_url.path,
        parsed_url.params,
        parsed_url.query,
        parsed_url.fragment,
    ))


class SupabaseBlobStore:
    """
    Stores attachments in a public Supabase Storage bucket.

    The bucket is FORM_UPLOADS_BUCKET (default "form-uploads"). The view URL
    is the object's public URL; the thumbnail URL goes through Supabase's
    image render endpoint.
    """

    def __init__(self, client: Optional[Client] = None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket or config.get_uploads_bucket()

    @property
    def client(self) -> Client:
        client = self._client or supabase_admin
        if not client:
            raise ValueError("SUPABASE_SERVICE_KEY is required for storage operations")
        return client

    def store(
        self,
        domain: str,
        form_id: str,
        content: bytes,
        mime_type: str,
        filename: str,
    ) -> StoredBlob:
        """
        Upload an attachment and return its id (the storage path) and URLs.

        Raises:
            Exception: If upload or URL generation fails
        """
        storage_path = build_storage_path(domain, form_id, filename)
        bucket = self.client.storage.from_(self.bucket)

        try:
            bucket.upload(
                storage_path,
                content,
                {"content-type": mime_type, "upsert": "true"},
            )
        except Exception as e:
            raise Exception(f"Failed to upload file to storage: {str(e)}")

        try:
            view_url = bucket.get_public_url(storage_path)
            thumbnail_url = bucket.get_public_url(
                storage_path,
                {"transform": {"width": THUMBNAIL_SIZE, "height": THUMBNAIL_SIZE, "resize": "contain"}},
            )
        except Exception as e:
            raise Exception(f"Failed to generate public URL: {str(e)}")

        return StoredBlob(
            id=storage_path,
            view_url=_rewrite_public_url_host(view_url),
            thumbnail_url=_rewrite_public_url_host(thumbnail_url),
        )
