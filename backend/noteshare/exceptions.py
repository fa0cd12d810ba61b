"""
NoteShare Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for the error kinds the API reports.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the JSON failure envelope with the matching HTTP status code.
Who:   Raised by services, the auth boundary and routes; caught by handlers.

Exception Hierarchy:
    NoteShareError (base)
    ├── ValidationError          → 400 validation_error
    ├── AuthenticationError      → 401 authentication_error
    ├── AuthorizationError       → 403 authorization_error
    ├── NotFoundError            → 404 not_found
    ├── ConflictError            → 409 conflict
    ├── UpstreamStorageError     → 502 upstream_storage_error
    └── UnknownError             → 500 unknown_error
"""

from typing import Any, Dict, List, Optional


class NoteShareError(Exception):
    """
    Base exception for all NoteShare application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; only some kinds return it)
    """

    kind = "unknown_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteShareError):
    """
    Raised when client input fails validation.

    When:    Missing metadata fields, disallowed file type or size, both or
             neither file sources supplied, malformed external locator.
    HTTP:    400 Bad Request

    Always raised before any storage side effect.
    """

    kind = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class MissingFieldsError(ValidationError):
    """ValidationError naming every required field that was absent or blank."""

    def __init__(self, missing: List[str]):
        super().__init__(
            message=f"Missing required fields: {', '.join(missing)}",
            context={"missing_fields": list(missing)},
        )
        self.missing = list(missing)


class AuthenticationError(NoteShareError):
    """
    Raised when a request reaches a protected operation without a caller
    identity from the authentication gateway.

    HTTP:    401 Unauthorized
    """

    kind = "authentication_error"
    status_code = 401

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(NoteShareError):
    """
    Raised when the caller is not the owner of the resource being mutated.

    When:    Updating/deleting someone else's note, editing someone else's
             comment, deleting a comment you neither wrote nor own the note of.
    HTTP:    403 Forbidden
    """

    kind = "authorization_error"
    status_code = 403

    def __init__(
        self,
        message: str = "You are not allowed to modify this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NoteShareError):
    """
    Raised when a requested resource does not exist.

    When:    Note, comment or user absent.
    HTTP:    404 Not Found

    SQLAlchemy returns None for missing records; services convert that
    None into NotFoundError so routes never see HTTP concerns.
    """

    kind = "not_found"
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(NoteShareError):
    """
    Raised when a uniqueness rule would be violated (duplicate username or
    email on a user record).

    Reserved for the user-management path, which lives outside this
    service; no notes code raises it. Repeated likes and archives are
    idempotent rather than conflicting. The kind stays registered so both
    services share one error envelope.

    HTTP:    409 Conflict
    """

    kind = "conflict"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamStorageError(NoteShareError):
    """
    Raised when the blob store fails.

    When:    store/remove raised, the upstream refused a download, or the
             download stream broke mid-transfer.
    HTTP:    502 Bad Gateway

    The message is generic; the SDK/transport error goes into context and
    is logged server-side only.
    """

    kind = "upstream_storage_error"
    status_code = 502

    def __init__(
        self,
        message: str = "The file storage service failed. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UnknownError(NoteShareError):
    """
    Raised for anything unanticipated (database failures included).

    HTTP:    500 Internal Server Error
    """

    kind = "unknown_error"
    status_code = 500

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
