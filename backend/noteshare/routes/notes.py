"""
NoteShare Backend — Notes Route Handlers
==========================================

What:  Note lifecycle endpoints, the download relay and local file serving.
How:   Extracts form fields and uploads, delegates to NoteService /
       DownloadService, returns the JSON envelopes.
Who:   Called by the frontend upload, browse and note detail pages.

Routes:
    POST   /api/notes                  create (multipart)
    GET    /api/notes                  list / search
    GET    /api/notes/mine             list / search the caller's uploads
    GET    /api/notes/{id}             detail
    PATCH  /api/notes/{id}             partial update (multipart)
    DELETE /api/notes/{id}             delete
    GET    /api/notes/{id}/download    stream the document
    GET    /api/files/{path}           serve a blob of the local backend
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTask

from noteshare.auth import get_current_user
from noteshare.config import settings
from noteshare.database import get_db_session
from noteshare.exceptions import NotFoundError, UpstreamStorageError, ValidationError
from noteshare.models.user import User
from noteshare.schemas.note import (
    ErrorResponse,
    NoteDeleteResponse,
    NoteEnvelope,
    NoteFields,
    NoteListResponse,
    NoteUpdateEnvelope,
)
from noteshare.services.blob_store import BlobStore, LocalBlobStore, get_blob_store
from noteshare.services.download_service import DownloadService
from noteshare.services.file_service import UploadedDocument
from noteshare.services.note_service import NoteService

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Notes"])


# ── Dependencies ──────────────────────────────────────────────────────────

def get_note_service(blob_store: BlobStore = Depends(get_blob_store)) -> NoteService:
    return NoteService(blob_store)


def get_download_service(blob_store: BlobStore = Depends(get_blob_store)) -> DownloadService:
    return DownloadService(blob_store)


def note_form(
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    college_name: Optional[str] = Form(default=None, alias="collegeName"),
    course_name: Optional[str] = Form(default=None, alias="courseName"),
    batch: Optional[str] = Form(default=None),
    subject_name: Optional[str] = Form(default=None, alias="subjectName"),
    semester: Optional[str] = Form(default=None),
    file_url: Optional[str] = Form(default=None, alias="fileUrl"),
    file_name: Optional[str] = Form(default=None, alias="fileName"),
    file_type: Optional[str] = Form(default=None, alias="fileType"),
) -> NoteFields:
    """
    Text fields of the create/update form.

    Any `uploader` field a client sends is not declared here and therefore
    ignored; ownership always comes from the authenticated caller.
    """
    return NoteFields(
        title=title,
        description=description,
        college_name=college_name,
        course_name=course_name,
        batch=batch,
        subject_name=subject_name,
        semester=semester,
        file_url=file_url,
        file_name=file_name,
        file_type=file_type,
    )


async def read_upload(file: Optional[UploadFile]) -> Optional[UploadedDocument]:
    """
    Read an uploaded part into memory, at most max_file_size + 1 bytes so an
    oversized file is detected without buffering all of it.
    """
    if file is None or not file.filename:
        return None
    try:
        content = await file.read(settings.max_file_size + 1)
    finally:
        await file.close()
    return UploadedDocument(filename=file.filename, content_type=file.content_type, content=content)


# ── Lifecycle ─────────────────────────────────────────────────────────────

@router.post(
    "/notes",
    response_model=NoteEnvelope,
    status_code=201,
    responses={
        400: {"description": "Invalid fields or file", "model": ErrorResponse},
        401: {"description": "No caller identity", "model": ErrorResponse},
        502: {"description": "Blob store failed", "model": ErrorResponse},
    },
    summary="Create a note",
    description=(
        "Creates a note from the seven metadata fields and exactly one file source: "
        "a multipart `file` (PDF, DOC, DOCX, JPG or PNG, max 25MB) or an http(s) `fileUrl`."
    ),
)
async def create_note(
    fields: NoteFields = Depends(note_form),
    file: Optional[UploadFile] = File(default=None),
    caller: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
    db: AsyncSession = Depends(get_db_session),
) -> NoteEnvelope:
    upload = await read_upload(file)
    note = await service.create_note(db=db, caller=caller, fields=fields, upload=upload)
    return NoteEnvelope(message="Note created successfully", note=note)


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List and search notes",
    description=(
        "Newest-first list of notes. `search` matches title, description, subject, "
        "college and course; the other filters match one field each. All matching is "
        "case-insensitive substring matching."
    ),
)
async def list_notes(
    response: Response,
    search: Optional[str] = Query(default=None, description="Free-text search"),
    subject: Optional[str] = Query(default=None),
    college: Optional[str] = Query(default=None),
    course: Optional[str] = Query(default=None),
    semester: Optional[str] = Query(default=None),
    batch: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100, description="Items per page (max 100)"),
    cursor: Optional[str] = Query(
        default=None,
        description="next_cursor of the previous page. Omit for the first page.",
    ),
    service: NoteService = Depends(get_note_service),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    result = await service.list_notes(
        db=db,
        search=search,
        subject=subject,
        college=college,
        course=course,
        semester=semester,
        batch=batch,
        limit=limit,
        cursor=cursor,
    )
    response.headers["X-Total-Count"] = str(result.count)
    return result


@router.get(
    "/notes/mine",
    response_model=NoteListResponse,
    responses={
        401: {"description": "Missing or malformed X-User-ID", "model": ErrorResponse},
        404: {"description": "Unknown user", "model": ErrorResponse},
    },
    summary="List the caller's own uploads",
    description="Same filters and pagination as GET /api/notes, restricted to notes the caller uploaded.",
)
async def list_my_notes(
    response: Response,
    search: Optional[str] = Query(default=None, description="Free-text search"),
    subject: Optional[str] = Query(default=None),
    college: Optional[str] = Query(default=None),
    course: Optional[str] = Query(default=None),
    semester: Optional[str] = Query(default=None),
    batch: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100, description="Items per page (max 100)"),
    cursor: Optional[str] = Query(default=None),
    caller: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListResponse:
    result = await service.list_notes(
        db=db,
        search=search,
        subject=subject,
        college=college,
        course=course,
        semester=semester,
        batch=batch,
        limit=limit,
        cursor=cursor,
        uploader_id=caller.id,
    )
    response.headers["X-Total-Count"] = str(result.count)
    return result


@router.get(
    "/notes/{note_id}",
    response_model=NoteEnvelope,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get a single note by ID",
)
async def get_note(
    note_id: UUID,
    service: NoteService = Depends(get_note_service),
    db: AsyncSession = Depends(get_db_session),
) -> NoteEnvelope:
    note = await service.get_note(db=db, note_id=note_id)
    return NoteEnvelope(note=note)


@router.patch(
    "/notes/{note_id}",
    response_model=NoteUpdateEnvelope,
    responses={
        400: {"description": "Invalid fields or file", "model": ErrorResponse},
        403: {"description": "Not the uploader", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
        502: {"description": "Blob store failed", "model": ErrorResponse},
    },
    summary="Update a note",
    description=(
        "Partial update by the uploader. Blank fields are left unchanged. A new `file` "
        "replaces the stored document; a `fileUrl` points the note at an external file."
    ),
)
async def update_note(
    note_id: UUID,
    fields: NoteFields = Depends(note_form),
    file: Optional[UploadFile] = File(default=None),
    caller: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
    db: AsyncSession = Depends(get_db_session),
) -> NoteUpdateEnvelope:
    upload = await read_upload(file)
    note, old_blob_removed = await service.update_note(
        db=db, caller=caller, note_id=note_id, fields=fields, upload=upload,
    )
    return NoteUpdateEnvelope(
        message="Note updated successfully",
        note=note,
        old_blob_removed=old_blob_removed,
    )


@router.delete(
    "/notes/{note_id}",
    response_model=NoteDeleteResponse,
    responses={
        403: {"description": "Not the uploader", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Delete a note and its stored file",
)
async def delete_note(
    note_id: UUID,
    caller: User = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
    db: AsyncSession = Depends(get_db_session),
) -> NoteDeleteResponse:
    blob_removed = await service.delete_note(db=db, caller=caller, note_id=note_id)
    return NoteDeleteResponse(id=note_id, blob_removed=blob_removed)


# ── Files ─────────────────────────────────────────────────────────────────

@router.get(
    "/notes/{note_id}/download",
    responses={
        200: {"description": "Document bytes"},
        404: {"description": "Note not found", "model": ErrorResponse},
        502: {"description": "Storage unreachable", "model": ErrorResponse},
    },
    summary="Download the note's document",
)
async def download_note(
    note_id: UUID,
    service: DownloadService = Depends(get_download_service),
    db: AsyncSession = Depends(get_db_session),
) -> StreamingResponse:
    download = await service.open_download(db=db, note_id=note_id)
    return StreamingResponse(
        download.body,
        media_type=download.media_type,
        headers=download.headers,
        background=BackgroundTask(download.aclose),
    )


@router.get(
    "/files/{blob_id:path}",
    summary="Serve a stored file (local blob backend)",
    responses={
        200: {"description": "Stored file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(
    blob_id: str,
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileResponse:
    if not isinstance(blob_store, LocalBlobStore):
        raise NotFoundError(resource="file", resource_id=blob_id)
    try:
        path = blob_store.resolve_path(blob_id)
    except UpstreamStorageError:
        raise ValidationError(message="Invalid file path", field="path")

    if not path.is_file():
        raise NotFoundError(resource="file", resource_id=blob_id)

    return FileResponse(
        path=str(path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
