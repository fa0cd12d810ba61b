"""
NoteShare Backend — Supabase Storage Backend
==============================================

What:  BlobStore implementation on top of a Supabase Storage bucket.
How:   The supabase-py client is synchronous, so every SDK call runs in the
       threadpool. Downloads stream the object's public URL through httpx.
When:  Selected with BLOB_BACKEND=supabase.

Object keys: notes/<epoch-ms>-<name-stem>-<short-uuid><ext>
"""

import logging
import re
import time
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional

from starlette.concurrency import run_in_threadpool
from supabase import Client, create_client

from noteshare.config import settings
from noteshare.exceptions import UpstreamStorageError
from noteshare.services.blob_store import BlobStore, StoredBlob, open_remote_stream

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def build_object_key(original_name: str) -> str:
    """Readable, collision-free object key derived from the original file name."""
    path = Path(original_name)
    stem = _UNSAFE_KEY_CHARS.sub("-", path.stem).strip("-")[:80] or "file"
    return f"notes/{int(time.time() * 1000)}-{stem}-{uuid.uuid4().hex[:8]}{path.suffix.lower()}"


class SupabaseBlobStore(BlobStore):
    """Supabase Storage bucket adapter."""

    name = "supabase"

    def __init__(self, client: Optional[Client] = None, bucket: Optional[str] = None):
        """
        Args:
            client: Pre-built Supabase client (tests pass a mock).
            bucket: Bucket name override (default: settings.supabase_bucket).
        """
        if client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise ValueError(
                    "SUPABASE_URL and SUPABASE_KEY environment variables must be set"
                )
            client = create_client(settings.supabase_url, settings.supabase_key)
        self.client = client
        self.bucket = bucket or settings.supabase_bucket
        logger.info("SupabaseBlobStore initialized for bucket=%s", self.bucket)

    async def store(self, content: bytes, original_name: str, content_type: str) -> StoredBlob:
        key = build_object_key(original_name)

        def _upload() -> str:
            bucket = self.client.storage.from_(self.bucket)
            bucket.upload(key, content, {"content-type": content_type, "upsert": "false"})
            return bucket.get_public_url(key)

        try:
            url = await run_in_threadpool(_upload)
        except Exception as e:
            logger.error("Supabase upload of %s failed: %s", key, str(e))
            raise UpstreamStorageError(
                message="File upload failed. Please try again.",
                context={"blob_id": key, "error_type": type(e).__name__},
            ) from e

        logger.info("Blob stored in %s: %s (%d bytes)", self.bucket, key, len(content))
        return StoredBlob(url=url, blob_id=key)

    async def remove(self, blob_id: str) -> None:
        try:
            await run_in_threadpool(self.client.storage.from_(self.bucket).remove, [blob_id])
        except Exception as e:
            logger.error("Supabase delete of %s failed: %s", blob_id, str(e))
            raise UpstreamStorageError(
                message="Failed to delete the stored file.",
                context={"blob_id": blob_id, "error_type": type(e).__name__},
            ) from e
        logger.info("Blob removed from %s: %s", self.bucket, blob_id)

    async def open_stream(self, blob_id: str) -> AsyncIterator[bytes]:
        url = self.client.storage.from_(self.bucket).get_public_url(blob_id)
        return await open_remote_stream(url)
