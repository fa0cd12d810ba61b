"""Create users, notes and engagement tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: users, notes, note_comments, note_likes and
       user_archived_notes.
How:   PostgreSQL UUID primary keys, TIMESTAMP WITH TIME ZONE, and ON DELETE
       CASCADE from every child table to notes.

Rollback: downgrade() drops all five tables (destructive: all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str, comment: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
        comment=comment,
    )


def upgrade() -> None:
    """Column rationale lives in noteshare/models/note.py and models/user.py."""
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        _timestamp("created_at", "When the account was created (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "notes",
        _uuid_pk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("college_name", sa.String(255), nullable=False),
        sa.Column("course_name", sa.String(255), nullable=False),
        sa.Column("batch", sa.String(100), nullable=False),
        sa.Column("subject_name", sa.String(255), nullable=False),
        sa.Column("semester", sa.String(100), nullable=False),
        sa.Column("file_url", sa.String(2048), nullable=False, comment="Locator of the document"),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_type", sa.String(255), nullable=False),
        sa.Column(
            "blob_id",
            sa.String(512),
            nullable=True,
            comment="Blob store id when the file is managed by this service; NULL for external URLs",
        ),
        sa.Column("uploader_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "archived",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
            comment="True while at least one user has archived the note",
        ),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at", "When the note was created (UTC)"),
        _timestamp("updated_at", "Last modification (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["uploader_id"], ["users.id"], name="fk_notes_uploader_id"),
    )
    # Newest-first listing
    op.create_index("idx_notes_created_at", "notes", [sa.text("created_at DESC"), sa.text("id DESC")])
    op.create_index("ix_notes_uploader_id", "notes", ["uploader_id"])

    op.create_table(
        "note_comments",
        _uuid_pk(),
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("username", sa.String(100), nullable=False, comment="Display name snapshot"),
        sa.Column("text", sa.Text(), nullable=False),
        _timestamp("commented_at", "Creation or last edit (UTC)"),
        _timestamp("created_at", "Append order; never changes"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["note_id"], ["notes.id"], name="fk_note_comments_note_id", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_note_comments_user_id"),
    )
    op.create_index("ix_note_comments_note_id", "note_comments", ["note_id"])

    op.create_table(
        "note_likes",
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        _timestamp("created_at", "When the like was given (UTC)"),
        sa.PrimaryKeyConstraint("note_id", "user_id"),
        sa.ForeignKeyConstraint(
            ["note_id"], ["notes.id"], name="fk_note_likes_note_id", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_note_likes_user_id", ondelete="CASCADE"
        ),
    )

    op.create_table(
        "user_archived_notes",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=False),
        _timestamp("archived_at", "When the user archived the note (UTC)"),
        sa.PrimaryKeyConstraint("user_id", "note_id"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_user_archived_notes_user_id", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["note_id"], ["notes.id"], name="fk_user_archived_notes_note_id", ondelete="CASCADE"
        ),
    )
    op.create_index("idx_user_archived_notes_note_id", "user_archived_notes", ["note_id"])


def downgrade() -> None:
    """Drop every table, children first. WARNING: destructive."""
    op.drop_index("idx_user_archived_notes_note_id", table_name="user_archived_notes")
    op.drop_table("user_archived_notes")
    op.drop_table("note_likes")
    op.drop_index("ix_note_comments_note_id", table_name="note_comments")
    op.drop_table("note_comments")
    op.drop_index("ix_notes_uploader_id", table_name="notes")
    op.drop_index("idx_notes_created_at", table_name="notes")
    op.drop_table("notes")
    op.drop_table("users")
