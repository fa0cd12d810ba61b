"""
NoteShare Backend — Blob Store Adapter
========================================

What:  Abstract contract for the object store that holds note files, the
       local-disk implementation, and the shared remote streaming helper.
How:   Concrete stores inherit from BlobStore and implement store(),
       remove() and open_stream(). get_blob_store() builds the configured
       backend once and is also the FastAPI dependency routes use.
Who:   NoteService (store/remove), DownloadService (open_stream),
       the /api/files route (LocalBlobStore.resolve_path).

Backends:
    - LocalBlobStore:    files under STORAGE_ROOT/YYYY/MM/DD/<uuid>.<ext>,
                         served back by GET /api/files/{path}
    - SupabaseBlobStore: Supabase Storage bucket (services/supabase_store.py)

Contract:
    - store() returns StoredBlob(url, blob_id) or raises UpstreamStorageError
    - remove() raises UpstreamStorageError on failure; callers decide whether
      that failure is fatal (it never is for note deletion)
    - open_stream() validates the blob is reachable before returning, so the
      caller can still answer with an error status; failures while iterating
      raise UpstreamStorageError
    - No retries: a failed call surfaces immediately
    - A body returned by open_stream() may expose aclose(); consumers call
      it when they stop before the end of the body
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, NamedTuple, Optional

import aiofiles
import aiofiles.os
import httpx

from noteshare.config import settings
from noteshare.exceptions import UpstreamStorageError

logger = logging.getLogger(__name__)


class StoredBlob(NamedTuple):
    """Result of a successful store(): public locator and store-side id."""
    url: str
    blob_id: str


class BlobStore(ABC):
    """
    Abstract interface for the remote object store holding note files.

    Implementations:
        - LocalBlobStore: disk-backed, used in development and tests
        - SupabaseBlobStore: Supabase Storage bucket
    """

    name = "abstract"

    @abstractmethod
    async def store(self, content: bytes, original_name: str, content_type: str) -> StoredBlob:
        """
        Persist the bytes and return where they can be fetched from.

        Raises:
            UpstreamStorageError: the store rejected or failed the write.
        """
        ...

    @abstractmethod
    async def remove(self, blob_id: str) -> None:
        """
        Delete a previously stored blob. Removing an already-absent blob
        is not an error.

        Raises:
            UpstreamStorageError: the store failed the delete.
        """
        ...

    @abstractmethod
    async def open_stream(self, blob_id: str) -> AsyncIterator[bytes]:
        """
        Open the blob for reading and return an async iterator of chunks.

        Raises:
            UpstreamStorageError: the blob cannot be opened (raised here) or
                the transfer breaks (raised while iterating).
        """
        ...


# ══════════════════════════════════════════════════════════════════════════
# Remote Streaming Helper
# ══════════════════════════════════════════════════════════════════════════

async def open_remote_stream(
    url: str,
    chunk_size: Optional[int] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> "RemoteBody":
    """
    Start an HTTP GET against url and return its body as a RemoteBody.

    The request is sent and its status checked here, before any byte is
    relayed; only the body is read lazily, chunk by chunk, so the whole
    object is never held in memory.

    Args:
        url:        Absolute http(s) locator
        chunk_size: Bytes per relayed chunk (default: settings.download_chunk_size)
        timeout:    Connect/read timeout in seconds (default: settings.download_timeout)
        transport:  Optional httpx transport (tests pass httpx.MockTransport)
    """
    chunk_size = chunk_size or settings.download_chunk_size
    client = httpx.AsyncClient(
        timeout=timeout or settings.download_timeout,
        follow_redirects=True,
        transport=transport,
    )
    response: Optional[httpx.Response] = None
    try:
        response = await client.send(client.build_request("GET", url), stream=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        if response is not None:
            await response.aclose()
        await client.aclose()
        logger.error("Could not open remote file %s: %s", url, str(e))
        raise UpstreamStorageError(
            message="Could not fetch the file from storage.",
            context={"url": url, "error": str(e)},
        ) from e

    return RemoteBody(client, response, chunk_size, url)


class RemoteBody:
    """
    Lazily relayed body of an opened remote response.

    Iterating relays the body and closes the connection when done.
    aclose() releases the response and its client without reading the
    body, for when the consumer stops early or never starts.
    """

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response, chunk_size: int, url: str):
        self.client = client
        self.response = response
        self.chunk_size = chunk_size
        self.url = url
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        relayed = 0
        try:
            async for chunk in self.response.aiter_bytes(self.chunk_size):
                relayed += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            logger.error("Remote stream from %s broke after %d bytes: %s", self.url, relayed, str(e))
            raise UpstreamStorageError(
                message="The file transfer was interrupted.",
                context={"url": self.url, "bytes_relayed": relayed, "error": str(e)},
            ) from e
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


# ══════════════════════════════════════════════════════════════════════════
# Local Disk Backend
# ══════════════════════════════════════════════════════════════════════════

# Used when the original name carries no usable extension
EXTENSION_FOR_TYPE = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


class LocalBlobStore(BlobStore):
    """
    Stores blobs on local disk in date-organized directories.

    Directory Structure:
        storage/
        └── 2024/
            └── 01/
                └── 15/
                    ├── a1b2c3d4-5678.pdf
                    └── e5f6g7h8-9012.png

    The blob id is the path relative to the storage root; the public URL is
    {public_base_url}/api/files/{blob_id}. UUID filenames contain no user
    input, so no path traversal through names.
    """

    name = "local"

    def __init__(self, storage_root: Optional[str] = None, public_base_url: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
            public_base_url: Override the URL prefix of returned locators.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalBlobStore initialized with storage_root=%s", self.storage_root)

    def _generate_blob_id(self, original_name: str, content_type: str) -> str:
        """YYYY/MM/DD/<uuid><ext>, extension taken from the original name."""
        extension = Path(original_name).suffix.lower() or EXTENSION_FOR_TYPE.get(content_type, "")
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        return f"{date_dir}/{uuid.uuid4()}{extension}"

    def resolve_path(self, blob_id: str) -> Path:
        """
        Absolute path of a blob id, refusing anything outside the storage root.

        Raises:
            UpstreamStorageError: blob_id escapes the storage root.
        """
        path = (self.storage_root / blob_id).resolve()
        if not path.is_relative_to(self.storage_root):
            raise UpstreamStorageError(
                message="Invalid stored file reference.",
                context={"blob_id": blob_id},
            )
        return path

    def url_for(self, blob_id: str) -> str:
        return f"{self.public_base_url}/api/files/{blob_id}"

    async def store(self, content: bytes, original_name: str, content_type: str) -> StoredBlob:
        blob_id = self._generate_blob_id(original_name, content_type)
        path = self.resolve_path(blob_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store blob at %s: %s", path, str(e))
            raise UpstreamStorageError(
                message="Failed to save the uploaded file. Please try again.",
                context={"blob_id": blob_id, "os_error": str(e)},
            ) from e

        logger.info("Blob stored: %s (%d bytes, %s)", blob_id, len(content), content_type)
        return StoredBlob(url=self.url_for(blob_id), blob_id=blob_id)

    async def remove(self, blob_id: str) -> None:
        path = self.resolve_path(blob_id)
        try:
            await aiofiles.os.remove(path)
            logger.info("Blob removed: %s", blob_id)
        except FileNotFoundError:
            logger.debug("Blob already gone: %s", blob_id)
        except OSError as e:
            logger.error("Failed to remove blob %s: %s", blob_id, str(e))
            raise UpstreamStorageError(
                message="Failed to delete the stored file.",
                context={"blob_id": blob_id, "os_error": str(e)},
            ) from e

    async def open_stream(self, blob_id: str) -> AsyncIterator[bytes]:
        path = self.resolve_path(blob_id)
        if not path.is_file():
            logger.error("Stored blob is missing on disk: %s", blob_id)
            raise UpstreamStorageError(
                message="The stored file could not be found.",
                context={"blob_id": blob_id},
            )
        return self._read_chunks(path, settings.download_chunk_size)

    async def _read_chunks(self, path: Path, chunk_size: int) -> AsyncIterator[bytes]:
        try:
            async with aiofiles.open(path, "rb") as f:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            logger.error("Reading blob %s failed: %s", path.name, str(e))
            raise UpstreamStorageError(
                message="The file transfer was interrupted.",
                context={"path": path.name, "os_error": str(e)},
            ) from e


# ── Singleton Accessor ────────────────────────────────────────────────────
_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """
    Return the configured blob store, building it on first use.

    Also used as a FastAPI dependency; tests override it through
    app.dependency_overrides.
    """
    global _blob_store
    if _blob_store is None:
        if settings.blob_backend == "supabase":
            from noteshare.services.supabase_store import SupabaseBlobStore
            _blob_store = SupabaseBlobStore()
        else:
            _blob_store = LocalBlobStore()
    return _blob_store
