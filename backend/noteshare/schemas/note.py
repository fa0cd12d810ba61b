"""
NoteShare Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract between frontend and backend.
How:   FastAPI uses these models to validate request bodies, serialize
       responses and generate the OpenAPI documentation.

Every success body carries `success: true`; failures are rendered by the
exception handlers in main.py as ErrorResponse with `success: false`.
Field names are camelCase on the wire (the frontend's convention) and
snake_case in Python.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for wire models: camelCase aliases, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteFields(APIModel):
    """
    Text fields of a create or update form.

    Every field is optional here; create-note enforces the required ones,
    update-note treats blank values as absent.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    college_name: Optional[str] = None
    course_name: Optional[str] = None
    batch: Optional[str] = None
    subject_name: Optional[str] = None
    semester: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None


class CommentRequest(APIModel):
    """Body of add-comment and edit-comment. Text is accepted as-is."""
    text: str = Field(description="Comment text")


# ══════════════════════════════════════════════════════════════════════════
# Building Blocks
# ══════════════════════════════════════════════════════════════════════════


class UserSummary(APIModel):
    id: uuid.UUID
    username: str


class CommentResponse(APIModel):
    """
    What:  One comment in a note's comment sequence.
    Note:  username is the snapshot taken when the comment was written.
    """
    id: uuid.UUID
    user_id: uuid.UUID = Field(description="Author of the comment")
    username: str = Field(description="Author's display name at comment time")
    text: str
    commented_at: datetime = Field(description="Creation or last edit time (UTC)")


class NoteResponse(APIModel):
    """
    What:  Full representation of a note, including engagement data.
    Who:   Returned by get-note, create-note, update-note and list endpoints.
    """
    id: uuid.UUID = Field(description="Unique note identifier (UUID)")
    title: str
    description: str
    college_name: str
    course_name: str
    batch: str
    subject_name: str
    semester: str
    file_url: str = Field(description="Locator of the document")
    file_name: str = Field(description="Original file name (display only)")
    file_type: str = Field(description="MIME type of the document")
    uploader: UserSummary
    likes: List[uuid.UUID] = Field(default_factory=list, description="User ids who liked the note")
    comments: List[CommentResponse] = Field(default_factory=list)
    archived: bool = Field(description="True while at least one user has archived the note")
    download_count: int
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(APIModel):
    """Single-note success envelope (create, get, update)."""
    success: bool = True
    message: str = "OK"
    note: NoteResponse


class NoteUpdateEnvelope(NoteEnvelope):
    """
    Update result. old_blob_removed is None when no managed blob was
    replaced, False when the old blob could not be removed.
    """
    old_blob_removed: Optional[bool] = None


class NoteDeleteResponse(APIModel):
    """
    Delete result. blob_removed is None when the note had no managed blob,
    False when removing it failed (the record is deleted regardless).
    """
    success: bool = True
    message: str = "Note deleted"
    id: uuid.UUID
    blob_removed: Optional[bool] = None


class NoteListResponse(APIModel):
    """
    What:  Filtered, newest-first page of notes.

    How cursor works:
        - next_cursor: "<created_at>_<id>" of the last item in the current page
        - Client sends it back as `cursor` to get the next page
    """
    success: bool = True
    count: int = Field(description="Total number of notes matching the filters")
    notes: List[NoteResponse]
    next_cursor: Optional[str] = Field(
        default=None,
        description="Cursor for next page (created_at and id of the last note). Null if no more pages.",
    )
    has_more: bool = False


class LikeResponse(APIModel):
    success: bool = True
    liked: bool = Field(description="Whether the caller likes the note after the toggle")
    likes: List[uuid.UUID]


class CommentsResponse(APIModel):
    """Result of a comment mutation: the note's full comment sequence."""
    success: bool = True
    message: str
    comments: List[CommentResponse]


class DownloadCountResponse(APIModel):
    success: bool = True
    download_count: int


class ArchiveResponse(APIModel):
    success: bool = True
    message: str
    already_archived: Optional[bool] = None


class ArchiveListResponse(APIModel):
    success: bool = True
    notes: List[NoteResponse]


# ══════════════════════════════════════════════════════════════════════════
# Error Response Model
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized failure envelope for all API errors.

    Example:
        {
            "success": false,
            "error": "validation_error",
            "message": "Missing required fields: title, batch",
            "details": {"missing_fields": ["title", "batch"]},
            "request_id": "a1b2c3d4"
        }
    """
    success: bool = Field(default=False)
    error: str = Field(description="Machine-readable error kind")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer health checks.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    blob_store: str = Field(description="Configured blob backend")
    uptime_seconds: float = Field(description="Seconds since service started")
