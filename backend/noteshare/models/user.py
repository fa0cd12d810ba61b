"""
NoteShare Backend — User SQLAlchemy Models
============================================

What:  The slice of the user record the note core depends on: identity,
       display name, and the per-user archive relation.
Who:   Loaded by the auth boundary; written by ArchiveService.

Registration, passwords and profile editing belong to the user-management
service and are not modeled here.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from noteshare.database import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class UserArchivedNote(Base):
    """
    Membership row: user_id has note_id in their archive.

    The composite primary key keeps a note at most once per user. Rows
    disappear with the note (ON DELETE CASCADE, plus an explicit delete in
    NoteService.delete_note).
    """

    __tablename__ = "user_archived_notes"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("idx_user_archived_notes_note_id", "note_id"),
    )
