"""
NoteShare Backend — Engagement Route Handlers
===============================================

What:  Likes, comments and the download counter.
Who:   Called by the frontend note cards and comment threads.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.auth import get_current_user
from noteshare.database import get_db_session
from noteshare.models.user import User
from noteshare.schemas.note import (
    CommentRequest,
    CommentsResponse,
    DownloadCountResponse,
    ErrorResponse,
    LikeResponse,
)
from noteshare.services.engagement_service import engagement_service

router = APIRouter(prefix="/api/notes", tags=["Engagement"])

_NOT_FOUND = {404: {"description": "Note or comment not found", "model": ErrorResponse}}
_FORBIDDEN = {403: {"description": "Not the owner", "model": ErrorResponse}}


@router.put(
    "/{note_id}/like",
    response_model=LikeResponse,
    responses=_NOT_FOUND,
    summary="Like or unlike a note",
)
async def toggle_like(
    note_id: UUID,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeResponse:
    liked, likes = await engagement_service.toggle_like(db=db, caller=caller, note_id=note_id)
    return LikeResponse(liked=liked, likes=likes)


@router.post(
    "/{note_id}/comments",
    response_model=CommentsResponse,
    status_code=201,
    responses=_NOT_FOUND,
    summary="Comment on a note",
)
async def add_comment(
    note_id: UUID,
    body: CommentRequest,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentsResponse:
    comments = await engagement_service.add_comment(db=db, caller=caller, note_id=note_id, text=body.text)
    return CommentsResponse(message="Comment added successfully", comments=comments)


@router.put(
    "/{note_id}/comments/{comment_id}",
    response_model=CommentsResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Edit your comment",
)
async def edit_comment(
    note_id: UUID,
    comment_id: UUID,
    body: CommentRequest,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentsResponse:
    comments = await engagement_service.edit_comment(
        db=db, caller=caller, note_id=note_id, comment_id=comment_id, text=body.text,
    )
    return CommentsResponse(message="Comment updated successfully", comments=comments)


@router.delete(
    "/{note_id}/comments/{comment_id}",
    response_model=CommentsResponse,
    responses={**_NOT_FOUND, **_FORBIDDEN},
    summary="Delete a comment",
    description="The comment's author or the note's uploader may delete it. Unknown ids are a no-op.",
)
async def delete_comment(
    note_id: UUID,
    comment_id: UUID,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentsResponse:
    comments = await engagement_service.delete_comment(
        db=db, caller=caller, note_id=note_id, comment_id=comment_id,
    )
    return CommentsResponse(message="Comment deleted successfully", comments=comments)


@router.put(
    "/{note_id}/download",
    response_model=DownloadCountResponse,
    responses=_NOT_FOUND,
    summary="Count a download",
)
async def increment_download(
    note_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DownloadCountResponse:
    count = await engagement_service.increment_download(db=db, note_id=note_id)
    return DownloadCountResponse(download_count=count)
