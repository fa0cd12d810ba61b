"""
NoteShare Backend — Archive Route Handlers
============================================

What:  The caller's archive ("saved notes") set.
Who:   Called by the frontend save button and the saved-notes page.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.auth import get_current_user
from noteshare.database import get_db_session
from noteshare.models.user import User
from noteshare.schemas.note import ArchiveListResponse, ArchiveResponse, ErrorResponse
from noteshare.services.archive_service import archive_service

router = APIRouter(prefix="/api/archives", tags=["Archives"])


@router.get(
    "",
    response_model=ArchiveListResponse,
    summary="List your archived notes",
)
async def list_archives(
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ArchiveListResponse:
    notes = await archive_service.list_archives(db=db, caller=caller)
    return ArchiveListResponse(notes=notes)


@router.post(
    "/{note_id}",
    response_model=ArchiveResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Archive a note",
)
async def archive_note(
    note_id: UUID,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ArchiveResponse:
    already = await archive_service.archive(db=db, caller=caller, note_id=note_id)
    message = "Note already archived" if already else "Note archived successfully"
    return ArchiveResponse(message=message, already_archived=already)


@router.delete(
    "/{note_id}",
    response_model=ArchiveResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Remove a note from your archive",
)
async def unarchive_note(
    note_id: UUID,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ArchiveResponse:
    removed = await archive_service.unarchive(db=db, caller=caller, note_id=note_id)
    message = "Note removed from archive" if removed else "Note was not archived"
    return ArchiveResponse(message=message)
