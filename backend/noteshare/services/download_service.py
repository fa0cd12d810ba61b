"""
NoteShare Backend — Download Relay
====================================

What:  Streams a note's document back to the requester.
How:   Opens the upstream (blob store for managed blobs, plain HTTP for
       external locators) before the response starts, then relays the body
       chunk by chunk through a StreamingResponse.
Who:   Called by GET /api/notes/{id}/download.

Failure timing:
    - before the first byte: UpstreamStorageError → normal 502 error envelope
    - mid-transfer:          UpstreamStorageError raised from the iterator;
                             the server aborts the half-sent response
    - response finished:     DownloadStream.aclose() runs as the response's
                             background task, so an upstream left open by an
                             early disconnect is released
"""

import logging
import unicodedata
import uuid
from typing import AsyncIterator, Dict, NamedTuple, Optional
from urllib.parse import quote

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.exceptions import NotFoundError
from noteshare.models.note import Note
from noteshare.services.blob_store import BlobStore, open_remote_stream

logger = logging.getLogger(__name__)

FALLBACK_MEDIA_TYPE = "application/octet-stream"


class DownloadStream(NamedTuple):
    """An opened upstream body plus the response metadata to send with it."""
    body: AsyncIterator[bytes]
    media_type: str
    headers: Dict[str, str]

    async def aclose(self) -> None:
        """Release the upstream connection; safe after the body was fully relayed."""
        close = getattr(self.body, "aclose", None)
        if close is not None:
            await close()


def content_disposition(file_name: str) -> str:
    """
    attachment header carrying the original name.

    Non-ASCII names get an ASCII approximation in filename= and the exact
    name in filename*= (RFC 5987).
    """
    ascii_name = unicodedata.normalize("NFKD", file_name).encode("ascii", "ignore").decode("ascii")
    ascii_name = "".join(ch for ch in ascii_name if ch.isprintable() and ch not in '"\\')
    ascii_name = ascii_name.strip() or "download"
    if ascii_name == file_name:
        return f'attachment; filename="{ascii_name}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name, safe='')}"


class DownloadService:

    def __init__(self, blob_store: BlobStore, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            blob_store: Store holding managed blobs.
            transport:  httpx transport for external locators (tests pass
                        httpx.MockTransport).
        """
        self.blob_store = blob_store
        self.transport = transport

    async def open_download(self, db: AsyncSession, note_id: uuid.UUID) -> DownloadStream:
        """
        Resolve the note's locator and open the upstream stream.

        Raises:
            NotFoundError:        note absent, or it carries no locator
            UpstreamStorageError: the upstream could not be opened
        """
        row = (
            await db.execute(
                select(Note.file_url, Note.file_name, Note.file_type, Note.blob_id).where(Note.id == note_id)
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        if not row.file_url and not row.blob_id:
            raise NotFoundError(resource="file", resource_id=str(note_id))

        if row.blob_id:
            body = await self.blob_store.open_stream(row.blob_id)
        else:
            body = await open_remote_stream(row.file_url, transport=self.transport)

        media_type = row.file_type if row.file_type and "/" in row.file_type else FALLBACK_MEDIA_TYPE
        file_name = row.file_name or "download"
        logger.info("Download of note %s started (%s)", note_id, "managed" if row.blob_id else "external")
        return DownloadStream(
            body=body,
            media_type=media_type,
            headers={"Content-Disposition": content_disposition(file_name)},
        )
