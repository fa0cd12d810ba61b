"""
NoteShare Backend — Note Service (Lifecycle Orchestrator)
===========================================================

What:  Create, read, list, update and delete notes while keeping the note
       record and its blob in the blob store consistent.
How:   Composes FileService (validation), a BlobStore (bytes) and the
       database session (records).
Who:   Called by the /api/notes route handlers.

Ordering Rules (database and blob store share no transaction):
    ┌──────────┐    ┌──────────┐    ┌──────────────┐    ┌──────────────┐
    │ Validate │───▶│  Store   │───▶│ Commit note  │───▶│ Remove old   │
    │ (no I/O) │    │ new blob │    │   record     │    │ blob (b.e.)  │
    └──────────┘    └──────────┘    └──────────────┘    └──────────────┘

    - Validation and ownership checks run before any side effect
    - A new blob is always stored before the old one is removed
    - A commit failure after a store removes the new blob, best-effort
    - Old-blob removal is best-effort: failures are logged and reported
      in the response, never rolled back
    - Delete removes the blob first, then the record; a failed blob
      removal never blocks the record deletion
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.exceptions import (
    AuthorizationError,
    MissingFieldsError,
    NoteShareError,
    NotFoundError,
    UnknownError,
    ValidationError,
)
from noteshare.models.note import Note, NoteComment, NoteLike
from noteshare.models.user import User, UserArchivedNote
from noteshare.schemas.note import (
    CommentResponse,
    NoteFields,
    NoteListResponse,
    NoteResponse,
    UserSummary,
)
from noteshare.services.blob_store import BlobStore
from noteshare.services.file_service import FileService, UploadedDocument, file_service

logger = logging.getLogger(__name__)

# Python attribute → wire name reported in "Missing required fields"
REQUIRED_FIELDS = {
    "title": "title",
    "description": "description",
    "college_name": "collegeName",
    "course_name": "courseName",
    "batch": "batch",
    "subject_name": "subjectName",
    "semester": "semester",
}
METADATA_FIELDS = tuple(REQUIRED_FIELDS)

DEFAULT_LINKED_FILE_NAME = "Uploaded File"
DEFAULT_RELINKED_FILE_NAME = "File from URL"
DEFAULT_LINKED_FILE_TYPE = "application/octet-stream"

# Columns matched by the free-text `search` parameter
SEARCH_COLUMNS = (
    Note.title,
    Note.description,
    Note.subject_name,
    Note.college_name,
    Note.course_name,
)


def _present(value: Optional[str]) -> bool:
    """Blank strings count as absent."""
    return value is not None and value.strip() != ""


def _format_cursor(note: Note) -> str:
    return f"{note.created_at.isoformat()}_{note.id}"


def _parse_cursor(cursor: str) -> Tuple[datetime, Optional[UUID]]:
    """
    Split a listing cursor into its timestamp and note id.

    Returns: (created_at in UTC, id or None for a bare timestamp cursor)
    Raises:  ValidationError if either part is malformed.
    """
    stamp, _, raw_id = cursor.rpartition("_")
    if not stamp:
        stamp, raw_id = raw_id, ""
    try:
        cursor_dt = datetime.fromisoformat(stamp)
        cursor_id = UUID(raw_id) if raw_id else None
    except ValueError:
        raise ValidationError(
            message="Invalid cursor. Use the next_cursor value of the previous page.",
            field="cursor",
        )
    if cursor_dt.tzinfo is not None:
        cursor_dt = cursor_dt.astimezone(timezone.utc)
    else:
        cursor_dt = cursor_dt.replace(tzinfo=timezone.utc)
    return cursor_dt, cursor_id


def to_note_response(note: Note) -> NoteResponse:
    """Map a loaded Note (with uploader, likes and comments) to its wire model."""
    return NoteResponse(
        id=note.id,
        title=note.title,
        description=note.description,
        college_name=note.college_name,
        course_name=note.course_name,
        batch=note.batch,
        subject_name=note.subject_name,
        semester=note.semester,
        file_url=note.file_url,
        file_name=note.file_name,
        file_type=note.file_type,
        uploader=UserSummary.model_validate(note.uploader),
        likes=[like.user_id for like in note.likes],
        comments=[CommentResponse.model_validate(c) for c in note.comments],
        archived=note.archived,
        download_count=note.download_count,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


class NoteService:
    """
    Business logic layer for the note lifecycle.

    Responsibilities:
        - create_note(): validate → store blob → insert record
        - update_note(): validate → store new blob → commit → remove old blob
        - delete_note(): remove blob (best-effort) → delete record and children
        - get_note() / list_notes(): reads

    The blob store is injected per instance so tests (and the supabase
    backend) can be swapped in without touching this class.
    """

    def __init__(self, blob_store: BlobStore, files: Optional[FileService] = None):
        self.blob_store = blob_store
        self.files = files or file_service

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _load_note(self, db: AsyncSession, note_id: UUID) -> Note:
        """
        Fetch a note with fresh relationship data.

        populate_existing: after a commit the identity map may still hold a
        stale copy of the note and its comment/like collections.
        """
        result = await db.execute(
            select(Note)
            .where(Note.id == note_id)
            .execution_options(populate_existing=True)
        )
        note = result.scalar_one_or_none()
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    async def _remove_blob_quietly(self, blob_id: str) -> bool:
        """Best-effort blob removal. Returns whether the store confirmed it."""
        try:
            await self.blob_store.remove(blob_id)
            return True
        except Exception as e:
            logger.warning(
                "Best-effort removal of blob %s failed (%s): %s",
                blob_id, type(e).__name__, str(e),
            )
            return False

    async def _commit_or_discard(
        self,
        db: AsyncSession,
        new_blob_id: Optional[str],
        action: str,
    ) -> None:
        """
        Commit the session. On failure roll back, remove the blob stored
        for this request (if any) and raise UnknownError.
        """
        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Database error while trying to %s: %s", action, str(e), exc_info=True)
            if new_blob_id:
                await self._remove_blob_quietly(new_blob_id)
            raise UnknownError(
                message=f"Could not {action}. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    def _check_file_source(self, fields: NoteFields, upload: Optional[UploadedDocument]) -> None:
        has_upload = upload is not None
        has_url = _present(fields.file_url)
        if has_upload and has_url:
            raise ValidationError(
                message="Provide either a file upload or a file URL, not both.",
                field="file",
            )

    # ── Create ────────────────────────────────────────────────────────────

    async def create_note(
        self,
        db: AsyncSession,
        caller: User,
        fields: NoteFields,
        upload: Optional[UploadedDocument] = None,
    ) -> NoteResponse:
        """
        Create a note from form fields and exactly one file source.

        Workflow:
            1. Check all seven metadata fields are present
            2. Check exactly one of upload / file_url, validate it
            3. Store the upload (if any) in the blob store
            4. Insert and commit the Note row owned by the caller

        Raises:
            ValidationError:      missing fields, bad file source, bad file
            UpstreamStorageError: the blob store rejected the upload (no row)
            UnknownError:         the insert failed (new blob removed b.e.)
        """
        missing = [wire for attr, wire in REQUIRED_FIELDS.items() if not _present(getattr(fields, attr))]
        if missing:
            raise MissingFieldsError(missing)

        self._check_file_source(fields, upload)
        if upload is None and not _present(fields.file_url):
            raise ValidationError(
                message="No file content provided. Upload a file or provide a URL.",
                field="file",
            )

        blob_id: Optional[str] = None
        if upload is not None:
            file_type = self.files.validate_upload(upload.filename, upload.content_type, upload.content)
            stored = await self.blob_store.store(upload.content, upload.filename, file_type)
            file_url, file_name, blob_id = stored.url, upload.filename, stored.blob_id
        else:
            file_url = self.files.validate_external_url(fields.file_url)
            file_name = fields.file_name if _present(fields.file_name) else DEFAULT_LINKED_FILE_NAME
            file_type = fields.file_type if _present(fields.file_type) else DEFAULT_LINKED_FILE_TYPE

        note = Note(
            **{attr: getattr(fields, attr).strip() for attr in METADATA_FIELDS},
            file_url=file_url,
            file_name=file_name,
            file_type=file_type,
            blob_id=blob_id,
            uploader_id=caller.id,
        )
        db.add(note)
        await self._commit_or_discard(db, blob_id, "create the note")
        logger.info(
            "Note %s created by %s (%s)",
            note.id, caller.id, "managed blob" if blob_id else "external file",
        )

        return to_note_response(await self._load_note(db, note.id))

    # ── Read ──────────────────────────────────────────────────────────────

    async def get_note(self, db: AsyncSession, note_id: UUID) -> NoteResponse:
        """
        Retrieve a single note by ID.

        Raises:
            NotFoundError: Note with given ID does not exist (→ 404)
            UnknownError:  Query execution failed (→ 500)
        """
        try:
            note = await self._load_note(db, note_id)
            return to_note_response(note)
        except NoteShareError:
            raise
        except Exception as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise UnknownError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": str(note_id)},
            ) from e

    async def list_notes(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        subject: Optional[str] = None,
        college: Optional[str] = None,
        course: Optional[str] = None,
        semester: Optional[str] = None,
        batch: Optional[str] = None,
        limit: int = 50,
        cursor: Optional[str] = None,
        uploader_id: Optional[UUID] = None,
    ) -> NoteListResponse:
        """
        Filtered, newest-first listing with cursor-based pagination.

        Filters:
            search: case-insensitive substring over title, description,
                    subject, college and course (any of them)
            subject/college/course/semester/batch: case-insensitive
                    substring on that one column; all filters are ANDed
            uploader_id: exact match, used by the "my uploads" listing

        Cursor:
            "<created_at ISO>_<id>" of the last item. The next page holds
            notes ordered after it by (created_at DESC, id DESC), so notes
            sharing a timestamp are neither skipped nor repeated. A bare
            ISO datetime is also accepted.

        Query plan (no filters):
            SELECT * FROM notes
            WHERE created_at < :ts OR (created_at = :ts AND id < :id)
            ORDER BY created_at DESC, id DESC LIMIT :limit + 1
            → Uses idx_notes_created_at
        """
        conditions = []
        if uploader_id is not None:
            conditions.append(Note.uploader_id == uploader_id)
        if _present(search):
            term = search.strip()
            conditions.append(or_(*(col.icontains(term, autoescape=True) for col in SEARCH_COLUMNS)))
        for column, value in (
            (Note.subject_name, subject),
            (Note.college_name, college),
            (Note.course_name, course),
            (Note.semester, semester),
            (Note.batch, batch),
        ):
            if _present(value):
                conditions.append(column.icontains(value.strip(), autoescape=True))

        cursor_dt, cursor_id = _parse_cursor(cursor) if cursor else (None, None)

        try:
            query = select(Note)
            if conditions:
                query = query.where(and_(*conditions))
            if cursor_id is not None:
                query = query.where(or_(
                    Note.created_at < cursor_dt,
                    and_(Note.created_at == cursor_dt, Note.id < cursor_id),
                ))
            elif cursor_dt is not None:
                query = query.where(Note.created_at < cursor_dt)
            # Fetch one extra to determine has_more without a second scan
            query = query.order_by(desc(Note.created_at), desc(Note.id)).limit(limit + 1)
            notes = list((await db.execute(query)).scalars().all())

            count_query = select(func.count(Note.id))
            if conditions:
                count_query = count_query.where(and_(*conditions))
            total_count = (await db.execute(count_query)).scalar() or 0
        except Exception as e:
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise UnknownError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        has_more = len(notes) > limit
        if has_more:
            notes = notes[:limit]
        next_cursor = _format_cursor(notes[-1]) if has_more and notes else None

        return NoteListResponse(
            count=total_count,
            notes=[to_note_response(n) for n in notes],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ── Update ────────────────────────────────────────────────────────────

    async def update_note(
        self,
        db: AsyncSession,
        caller: User,
        note_id: UUID,
        fields: NoteFields,
        upload: Optional[UploadedDocument] = None,
    ) -> Tuple[NoteResponse, Optional[bool]]:
        """
        Partially update a note; only the uploader may do so.

        Returns:
            (updated note, old_blob_removed) where old_blob_removed is None
            when no managed blob was replaced.

        Replacement file:
            the new blob is stored and the record committed before the old
            managed blob is removed. A failed store leaves the record
            untouched; a failed removal only orphans the old blob.

        External locator:
            no blob-store interaction; any previous managed blob is orphaned
            and blob_id becomes NULL.
        """
        note = await self._load_note(db, note_id)
        if note.uploader_id != caller.id:
            raise AuthorizationError(
                message="You can only update your own notes",
                context={"note_id": str(note_id)},
            )

        self._check_file_source(fields, upload)
        file_type: Optional[str] = None
        new_url: Optional[str] = None
        if upload is not None:
            file_type = self.files.validate_upload(upload.filename, upload.content_type, upload.content)
        elif _present(fields.file_url):
            new_url = self.files.validate_external_url(fields.file_url)

        changes = {attr: getattr(fields, attr).strip() for attr in METADATA_FIELDS if _present(getattr(fields, attr))}

        old_blob_id = note.blob_id
        new_blob_id: Optional[str] = None
        if upload is not None:
            stored = await self.blob_store.store(upload.content, upload.filename, file_type)
            new_blob_id = stored.blob_id
            changes.update(
                file_url=stored.url,
                file_name=upload.filename,
                file_type=file_type,
                blob_id=stored.blob_id,
            )
        elif new_url is not None:
            changes.update(
                file_url=new_url,
                file_name=fields.file_name if _present(fields.file_name) else DEFAULT_RELINKED_FILE_NAME,
                file_type=fields.file_type if _present(fields.file_type) else DEFAULT_LINKED_FILE_TYPE,
                blob_id=None,
            )
            if old_blob_id:
                logger.info("Note %s now links an external file; blob %s left in place", note_id, old_blob_id)

        for attr, value in changes.items():
            setattr(note, attr, value)
        await self._commit_or_discard(db, new_blob_id, "update the note")
        logger.info("Note %s updated by %s: %s", note_id, caller.id, sorted(changes))

        old_blob_removed: Optional[bool] = None
        if new_blob_id and old_blob_id:
            old_blob_removed = await self._remove_blob_quietly(old_blob_id)

        return to_note_response(await self._load_note(db, note_id)), old_blob_removed

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_note(self, db: AsyncSession, caller: User, note_id: UUID) -> Optional[bool]:
        """
        Delete a note, its managed blob, comments, likes and archive rows.

        Returns:
            blob_removed: None if the note had no managed blob, otherwise
            whether the blob store confirmed the removal.
        """
        note = await self._load_note(db, note_id)
        if note.uploader_id != caller.id:
            raise AuthorizationError(
                message="You can only delete your own notes",
                context={"note_id": str(note_id)},
            )

        blob_removed: Optional[bool] = None
        if note.blob_id:
            blob_removed = await self._remove_blob_quietly(note.blob_id)

        # Children first; the ON DELETE CASCADE on the schema covers the same rows
        await db.execute(delete(NoteComment).where(NoteComment.note_id == note_id))
        await db.execute(delete(NoteLike).where(NoteLike.note_id == note_id))
        await db.execute(delete(UserArchivedNote).where(UserArchivedNote.note_id == note_id))
        await db.execute(delete(Note).where(Note.id == note_id))
        await self._commit_or_discard(db, None, "delete the note")

        logger.info("Note %s deleted by %s (blob_removed=%s)", note_id, caller.id, blob_removed)
        return blob_removed
