"""
NoteShare Backend — Note SQLAlchemy Models
============================================

What:  ORM models for the `notes`, `note_comments` and `note_likes` tables.
How:   Inherit from the shared DeclarativeBase; Alembic reads these for migrations.
Who:   Used by NoteService, EngagementService, ArchiveService and DownloadService.

Table Design Rationale:
    - Comments and likes are rows of their own tables, not a serialized list
      on the note. Every mutation is one INSERT/UPDATE/DELETE, so two
      concurrent comment additions can never overwrite each other.
    - note_likes has a composite primary key (note_id, user_id): a user
      appears at most once per note, enforced by the database.
    - blob_id is set only when this service stored the file; NULL means
      file_url points at an external resource we must never delete.
    - (created_at DESC, id DESC) index serves the newest-first listing.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from noteshare.database import Base, utcnow
from noteshare.models.user import User


class Note(Base):
    """
    Metadata record describing one uploaded or linked document.

    Lifecycle:
        1. Created by NoteService.create_note after the blob (if any) is stored
        2. Metadata/blob replaced by NoteService.update_note (uploader only)
        3. Likes, comments and download_count mutated by EngagementService
        4. archived recomputed by ArchiveService
        5. Deleted by NoteService.delete_note together with its comments,
           likes and archive rows

    Query Patterns:
        - List/search: ILIKE filters on metadata columns, ORDER BY created_at DESC, id DESC
        - Get single note: primary key lookup, comments/likes loaded by selectin
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Metadata (mutable by the uploader) ────────────────────────────────
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    college_name: Mapped[str] = mapped_column(String(255), nullable=False)
    course_name: Mapped[str] = mapped_column(String(255), nullable=False)
    batch: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_name: Mapped[str] = mapped_column(String(255), nullable=False)
    semester: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Blob Reference ────────────────────────────────────────────────────
    # The four columns below are always written together.
    file_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(255), nullable=False)
    blob_id: Mapped[Optional[str]] = mapped_column(String(512), nullable=True, default=None)

    # ── Ownership ─────────────────────────────────────────────────────────
    uploader_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # ── Engagement Counters / Flags ───────────────────────────────────────
    # archived: true while at least one user has this note in their archive
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    # ── Relationships ─────────────────────────────────────────────────────
    # lazy="selectin": async sessions cannot lazy-load on attribute access
    uploader: Mapped["User"] = relationship(lazy="selectin")
    comments: Mapped[List["NoteComment"]] = relationship(
        back_populates="note",
        order_by="NoteComment.created_at",
        lazy="selectin",
        passive_deletes=True,
    )
    likes: Mapped[List["NoteLike"]] = relationship(
        back_populates="note",
        order_by="NoteLike.created_at",
        lazy="selectin",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_notes_created_at", created_at.desc(), id.desc()),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}', uploader_id={self.uploader_id})>"


class NoteComment(Base):
    """
    A comment owned by exactly one note; no lifecycle of its own.

    username is a display snapshot taken when the comment is written and is
    not kept in sync with later username changes.
    """

    __tablename__ = "note_comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    # Refreshed on every edit
    commented_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    # Never changes; defines append order
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    note: Mapped["Note"] = relationship(back_populates="comments")

    def __repr__(self) -> str:
        return f"<NoteComment(id={self.id}, note_id={self.note_id}, user_id={self.user_id})>"


class NoteLike(Base):
    """One user's like on one note."""

    __tablename__ = "note_likes"

    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    note: Mapped["Note"] = relationship(back_populates="likes")
