"""
NoteShare Backend — Archive Service
=====================================

What:  Per-user "saved for later" set of notes, and the note's archived flag.
How:   Membership rows live in user_archived_notes. After every archive or
       unarchive the flag is recomputed in the same transaction with one
       correlated UPDATE: archived = EXISTS(any membership row for the note).
Who:   Called by the /api/archives route handlers.

The flag therefore always means "archived by at least one user"; one user
unarchiving never clears it for the others.
"""

import logging
import uuid
from typing import List

from sqlalchemy import delete, desc, exists, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.exceptions import NotFoundError
from noteshare.models.note import Note
from noteshare.models.user import User, UserArchivedNote
from noteshare.schemas.note import NoteResponse
from noteshare.services.note_service import to_note_response

logger = logging.getLogger(__name__)


class ArchiveService:

    async def _ensure_note(self, db: AsyncSession, note_id: uuid.UUID) -> None:
        found = (await db.execute(select(Note.id).where(Note.id == note_id))).scalar_one_or_none()
        if found is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))

    async def _recompute_archived_flag(self, db: AsyncSession, note_id: uuid.UUID) -> None:
        """Set notes.archived from the membership rows in a single statement."""
        await db.execute(
            update(Note)
            .where(Note.id == note_id)
            .values(archived=exists().where(UserArchivedNote.note_id == Note.id))
            .execution_options(synchronize_session=False)
        )

    async def archive(self, db: AsyncSession, caller: User, note_id: uuid.UUID) -> bool:
        """
        Add the note to the caller's archive.

        Returns:
            already_archived: True if the note was already in the archive.
        """
        user_id = caller.id
        await self._ensure_note(db, note_id)

        present = (
            await db.execute(
                select(UserArchivedNote.note_id).where(
                    UserArchivedNote.user_id == user_id,
                    UserArchivedNote.note_id == note_id,
                )
            )
        ).scalar_one_or_none()
        already_archived = present is not None

        if not already_archived:
            try:
                await db.execute(insert(UserArchivedNote).values(user_id=user_id, note_id=note_id))
                await self._recompute_archived_flag(db, note_id)
                await db.commit()
            except IntegrityError:
                # Same membership row inserted by a concurrent request
                await db.rollback()
                already_archived = True

        if already_archived:
            await self._recompute_archived_flag(db, note_id)
            await db.commit()

        logger.info("Note %s archived by %s (already=%s)", note_id, user_id, already_archived)
        return already_archived

    async def unarchive(self, db: AsyncSession, caller: User, note_id: uuid.UUID) -> bool:
        """
        Remove the note from the caller's archive. Not being archived is not
        an error.

        Returns:
            Whether a membership row was removed.
        """
        user_id = caller.id
        await self._ensure_note(db, note_id)

        result = await db.execute(
            delete(UserArchivedNote).where(
                UserArchivedNote.user_id == user_id,
                UserArchivedNote.note_id == note_id,
            )
        )
        await self._recompute_archived_flag(db, note_id)
        await db.commit()

        removed = bool(result.rowcount)
        logger.info("Note %s unarchived by %s (removed=%s)", note_id, user_id, removed)
        return removed

    async def list_archives(self, db: AsyncSession, caller: User) -> List[NoteResponse]:
        """The caller's archived notes, most recently archived first."""
        result = await db.execute(
            select(Note)
            .join(UserArchivedNote, UserArchivedNote.note_id == Note.id)
            .where(UserArchivedNote.user_id == caller.id)
            .order_by(desc(UserArchivedNote.archived_at))
            .execution_options(populate_existing=True)
        )
        return [to_note_response(note) for note in result.scalars().all()]


# ── Singleton Instance ────────────────────────────────────────────────────
archive_service = ArchiveService()
