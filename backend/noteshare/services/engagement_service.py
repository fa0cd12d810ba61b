"""
NoteShare Backend — Engagement Service
========================================

What:  Likes, comments and the download counter of a note.
How:   Every mutation is one INSERT, UPDATE or DELETE statement against its
       own table, so concurrent requests never overwrite each other's work.
Who:   Called by the like/comment/download-count route handlers.

Ownership:
    - edit a comment:   its author only
    - delete a comment: its author or the note's uploader
    - deleting a comment that does not exist succeeds without effect
"""

import logging
import uuid
from typing import List, Tuple

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.database import utcnow
from noteshare.exceptions import AuthorizationError, NotFoundError
from noteshare.models.note import Note, NoteComment, NoteLike
from noteshare.models.user import User
from noteshare.schemas.note import CommentResponse

logger = logging.getLogger(__name__)


class EngagementService:

    async def _note_uploader(self, db: AsyncSession, note_id: uuid.UUID) -> uuid.UUID:
        """Uploader id of the note; NotFoundError if the note is absent."""
        uploader_id = (
            await db.execute(select(Note.uploader_id).where(Note.id == note_id))
        ).scalar_one_or_none()
        if uploader_id is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return uploader_id

    async def _comments(self, db: AsyncSession, note_id: uuid.UUID) -> List[CommentResponse]:
        result = await db.execute(
            select(NoteComment)
            .where(NoteComment.note_id == note_id)
            .order_by(NoteComment.created_at)
            .execution_options(populate_existing=True)
        )
        return [CommentResponse.model_validate(c) for c in result.scalars().all()]

    async def _find_comment(
        self, db: AsyncSession, note_id: uuid.UUID, comment_id: uuid.UUID
    ) -> NoteComment | None:
        result = await db.execute(
            select(NoteComment).where(
                NoteComment.id == comment_id,
                NoteComment.note_id == note_id,
            )
        )
        return result.scalar_one_or_none()

    # ── Likes ─────────────────────────────────────────────────────────────

    async def toggle_like(
        self, db: AsyncSession, caller: User, note_id: uuid.UUID
    ) -> Tuple[bool, List[uuid.UUID]]:
        """
        Remove the caller's like if present, otherwise add it.

        Returns:
            (liked, likes): membership after the toggle and the like list in
            the order the likes were given.
        """
        # Read before any rollback can expire the caller instance
        user_id = caller.id
        await self._note_uploader(db, note_id)

        removed = await db.execute(
            delete(NoteLike).where(NoteLike.note_id == note_id, NoteLike.user_id == user_id)
        )
        if removed.rowcount:
            liked = False
            await db.commit()
        else:
            liked = True
            try:
                await db.execute(insert(NoteLike).values(note_id=note_id, user_id=user_id))
                await db.commit()
            except IntegrityError:
                # A concurrent toggle inserted the same (note, user) row first
                await db.rollback()
                logger.debug("Like on %s by %s already present", note_id, user_id)

        likes = (
            await db.execute(
                select(NoteLike.user_id)
                .where(NoteLike.note_id == note_id)
                .order_by(NoteLike.created_at)
            )
        ).scalars().all()
        logger.info("Note %s %s by %s", note_id, "liked" if liked else "unliked", user_id)
        return liked, list(likes)

    # ── Comments ──────────────────────────────────────────────────────────

    async def add_comment(
        self, db: AsyncSession, caller: User, note_id: uuid.UUID, text: str
    ) -> List[CommentResponse]:
        """Append one comment; returns the note's full comment sequence."""
        await self._note_uploader(db, note_id)

        now = utcnow()
        comment_id = uuid.uuid4()
        await db.execute(
            insert(NoteComment).values(
                id=comment_id,
                note_id=note_id,
                user_id=caller.id,
                username=caller.username,
                text=text,
                commented_at=now,
                created_at=now,
            )
        )
        await db.commit()
        logger.info("Comment %s added to note %s by %s", comment_id, note_id, caller.id)
        return await self._comments(db, note_id)

    async def edit_comment(
        self,
        db: AsyncSession,
        caller: User,
        note_id: uuid.UUID,
        comment_id: uuid.UUID,
        text: str,
    ) -> List[CommentResponse]:
        """Replace a comment's text and refresh its commented_at (author only)."""
        await self._note_uploader(db, note_id)

        comment = await self._find_comment(db, note_id, comment_id)
        if comment is None:
            raise NotFoundError(resource="comment", resource_id=str(comment_id))
        if comment.user_id != caller.id:
            raise AuthorizationError(
                message="You can only edit your own comments",
                context={"comment_id": str(comment_id)},
            )

        await db.execute(
            update(NoteComment)
            .where(NoteComment.id == comment_id, NoteComment.note_id == note_id)
            .values(text=text, commented_at=utcnow())
        )
        await db.commit()
        logger.info("Comment %s on note %s edited", comment_id, note_id)
        return await self._comments(db, note_id)

    async def delete_comment(
        self,
        db: AsyncSession,
        caller: User,
        note_id: uuid.UUID,
        comment_id: uuid.UUID,
    ) -> List[CommentResponse]:
        """
        Delete one comment. The author or the note's uploader may delete;
        an unknown comment id leaves the sequence unchanged.
        """
        uploader_id = await self._note_uploader(db, note_id)

        comment = await self._find_comment(db, note_id, comment_id)
        if comment is None:
            logger.debug("Comment %s on note %s already absent", comment_id, note_id)
            return await self._comments(db, note_id)
        if caller.id not in (comment.user_id, uploader_id):
            raise AuthorizationError(
                message="You can only delete your own comments or comments on your notes",
                context={"comment_id": str(comment_id)},
            )

        await db.execute(
            delete(NoteComment).where(NoteComment.id == comment_id, NoteComment.note_id == note_id)
        )
        await db.commit()
        logger.info("Comment %s on note %s deleted by %s", comment_id, note_id, caller.id)
        return await self._comments(db, note_id)

    # ── Downloads ─────────────────────────────────────────────────────────

    async def increment_download(self, db: AsyncSession, note_id: uuid.UUID) -> int:
        """
        Atomically add one to the note's download counter.

        The increment happens in the database (download_count + 1), so N
        concurrent calls add exactly N.
        """
        result = await db.execute(
            update(Note)
            .where(Note.id == note_id)
            .values(download_count=Note.download_count + 1)
            .returning(Note.download_count)
            .execution_options(synchronize_session=False)
        )
        count = result.scalar_one_or_none()
        if count is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        await db.commit()
        return count


# ── Singleton Instance ────────────────────────────────────────────────────
engagement_service = EngagementService()
