"""
NoteShare Backend — Download Relay Tests
==========================================

What:  Content-Disposition building and DownloadService.open_download for
       managed blobs and external locators.
How:   LocalBlobStore under tmp_path for managed blobs; httpx.MockTransport
       stands in for external hosts.
"""

import uuid

import httpx
import pytest
from sqlalchemy import select

from conftest import PDF_BYTES, note_fields, pdf_upload
from noteshare.exceptions import NotFoundError, UpstreamStorageError
from noteshare.models.note import Note
from noteshare.services.download_service import DownloadService, content_disposition
from noteshare.services.note_service import NoteService


async def _collect(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


class TestContentDisposition:

    def test_ascii_name(self):
        assert content_disposition("unit3.pdf") == 'attachment; filename="unit3.pdf"'

    def test_non_ascii_name_keeps_exact_name_encoded(self):
        header = content_disposition("résumé.pdf")
        assert 'filename="resume.pdf"' in header
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in header

    def test_quotes_are_dropped_from_plain_name(self):
        header = content_disposition('my "best" notes.pdf')
        assert 'filename="my best notes.pdf"' in header

    def test_unrepresentable_name_falls_back(self):
        assert content_disposition("講義.pdf").startswith('attachment; filename=".pdf"')
        assert 'filename="download"' in content_disposition("講義")


class TestOpenDownload:

    @pytest.mark.asyncio
    async def test_managed_blob(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(), upload=pdf_upload("unit3.pdf"),
        )

        download = await DownloadService(blob_store).open_download(db_session, note.id)

        assert download.media_type == "application/pdf"
        assert download.headers["Content-Disposition"] == 'attachment; filename="unit3.pdf"'
        assert await _collect(download.body) == PDF_BYTES

    @pytest.mark.asyncio
    async def test_external_locator(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(file_url="https://cdn.example.com/a.pdf", file_type="application/pdf"),
        )
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=b"remote bytes")

        service = DownloadService(blob_store, transport=httpx.MockTransport(handler))
        download = await service.open_download(db_session, note.id)

        assert seen == ["https://cdn.example.com/a.pdf"]
        assert download.media_type == "application/pdf"
        assert download.headers["Content-Disposition"] == 'attachment; filename="Uploaded File"'
        assert await _collect(download.body) == b"remote bytes"

    @pytest.mark.asyncio
    async def test_aclose_releases_unread_external_body(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(file_url="https://cdn.example.com/a.pdf"),
        )
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"remote bytes"))
        download = await DownloadService(blob_store, transport=transport).open_download(db_session, note.id)

        await download.aclose()

        assert download.body.response.is_closed
        assert download.body.client.is_closed

    @pytest.mark.asyncio
    async def test_aclose_after_managed_download(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(), upload=pdf_upload(),
        )
        download = await DownloadService(blob_store).open_download(db_session, note.id)

        assert await _collect(download.body) == PDF_BYTES
        await download.aclose()

    @pytest.mark.asyncio
    async def test_unknown_media_type_falls_back(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(file_url="https://cdn.example.com/a", file_type="pdf"),
        )
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x"))

        download = await DownloadService(blob_store, transport=transport).open_download(db_session, note.id)

        assert download.media_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_upstream_error_before_first_byte(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(file_url="https://cdn.example.com/gone.pdf"),
        )
        transport = httpx.MockTransport(lambda request: httpx.Response(404))

        with pytest.raises(UpstreamStorageError):
            await DownloadService(blob_store, transport=transport).open_download(db_session, note.id)

    @pytest.mark.asyncio
    async def test_managed_blob_missing_from_store(self, db_session, alice, blob_store):
        note = await NoteService(blob_store=blob_store).create_note(
            db_session, alice, note_fields(), upload=pdf_upload(),
        )
        blob_id = (await db_session.execute(select(Note.blob_id).where(Note.id == note.id))).scalar_one()
        await blob_store.remove(blob_id)

        with pytest.raises(UpstreamStorageError):
            await DownloadService(blob_store).open_download(db_session, note.id)

    @pytest.mark.asyncio
    async def test_missing_note(self, db_session, blob_store):
        with pytest.raises(NotFoundError):
            await DownloadService(blob_store).open_download(db_session, uuid.uuid4())
