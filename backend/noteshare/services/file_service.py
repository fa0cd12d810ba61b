"""
NoteShare Backend — Upload Validation Service
===============================================

What:  Validates incoming documents and external file locators before any
       blob-store interaction.
How:   Checks declared content type, extension and size of uploaded bytes,
       then sniffs the file header with libmagic (python-magic) so renamed
       files are caught; checks that external locators are absolute http(s)
       URLs.
Who:   Called by NoteService on create and update.

Validation order (cheapest first):
    1. Content type: the declared MIME type must be an allowed document type
    2. Extension:    must be allowed and consistent with the content type
    3. Size:         non-empty and at most settings.max_file_size bytes
    4. Magic bytes:  the detected type must agree with the declared type
"""

import logging
from pathlib import Path
from typing import NamedTuple, Optional
from urllib.parse import urlparse

import magic

from noteshare.config import settings
from noteshare.exceptions import UnknownError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# MIME type → extensions accepted for it
ALLOWED_MIME_TYPES = {
    "application/pdf": {".pdf"},
    "application/msword": {".doc"},
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": {".docx"},
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
}

# Non-canonical spellings some clients send
MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
}

ALLOWED_EXTENSIONS = set().union(*ALLOWED_MIME_TYPES.values())

# Declared type → types libmagic may report for a genuine file of that type.
# Older libmagic builds report Office documents by their container format.
DETECTED_MIME_TYPES = {
    "application/pdf": {"application/pdf"},
    "application/msword": {
        "application/msword",
        "application/vnd.ms-office",
        "application/x-ole-storage",
        "application/CDFV2",
    },
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": {
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/zip",
    },
    "image/jpeg": {"image/jpeg"},
    "image/png": {"image/png"},
}

# libmagic only needs the leading bytes
MAGIC_HEADER_BYTES = 8192


class UploadedDocument(NamedTuple):
    """Raw bytes of an uploaded file as received from the multipart form."""
    filename: str
    content_type: Optional[str]
    content: bytes


class FileService:
    """
    Stateless validator for the two ways a note can reference a document:
    uploaded bytes or an external locator.
    """

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_content_type(self, content_type: Optional[str]) -> str:
        """
        Normalize and check the declared MIME type.

        Returns: Canonical MIME type (lowercase, parameters stripped).
        Raises:  ValidationError if the type is not an allowed document type.
        """
        mime = (content_type or "").split(";")[0].strip().lower()
        mime = MIME_ALIASES.get(mime, mime)
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File type '{mime or 'unknown'}' is not supported. "
                    "Only PDF, DOC, DOCX, JPG, and PNG files are allowed"
                ),
                field="file",
                context={"content_type": mime, "allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return mime

    def validate_extension(self, filename: str, content_type: str) -> str:
        """
        Check the original name's extension against the content type.

        Returns: Normalized extension (lowercase with dot).
        Raises:  ValidationError for unknown or mismatched extensions.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File extension '{ext or 'none'}' is not supported. "
                    f"Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        if ext not in ALLOWED_MIME_TYPES[content_type]:
            raise ValidationError(
                message=f"File extension '{ext}' does not match content type '{content_type}'",
                field="file",
                context={"extension": ext, "content_type": content_type},
            )
        return ext

    def validate_size(self, size: int) -> None:
        """
        Reject empty files and files above the configured maximum.

        Raises: ValidationError with a human-readable size limit message.
        """
        max_mb = self.max_file_size / (1024 * 1024)
        if size == 0:
            raise ValidationError(message="The uploaded file is empty.", field="file")
        if size > self.max_file_size:
            raise ValidationError(
                message=f"File is too large. Maximum size is {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    def validate_mime_type(self, content: bytes, filename: str, declared: str) -> str:
        """
        Inspect the file header bytes and check them against the declared type.

        A text file renamed to notes.pdf and sent as application/pdf passes
        the type and extension checks; its header does not.

        Args:
            content:  Raw bytes of the upload
            filename: Original name (for messages and logs only)
            declared: Canonical declared MIME type

        Returns: The type libmagic detected.
        Raises:
            ValidationError: the content is not a file of the declared type
            UnknownError:    libmagic failed to inspect the content
        """
        try:
            detected = magic.from_buffer(content[:MAGIC_HEADER_BYTES], mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed for %s: %s", filename, str(e))
            raise UnknownError(
                message="Could not verify the file type. Please try again.",
                context={"error": str(e)},
            ) from e

        if detected not in DETECTED_MIME_TYPES[declared]:
            logger.warning(
                "Upload %s declared as %s but its content is %s", filename, declared, detected,
            )
            raise ValidationError(
                message=(
                    f"File content does not match its type '{declared}'. "
                    "Only PDF, DOC, DOCX, JPG, and PNG files are allowed"
                ),
                field="file",
                context={"declared_mime": declared, "detected_mime": detected},
            )
        return detected

    def validate_upload(self, filename: str, content_type: Optional[str], content: bytes) -> str:
        """
        Full validation pipeline for uploaded bytes.

        Returns: The canonical MIME type to store alongside the note.
        """
        mime = self.validate_content_type(content_type)
        self.validate_extension(filename, mime)
        self.validate_size(len(content))
        self.validate_mime_type(content, filename, mime)
        logger.debug("Upload validated: %s (%s, %d bytes)", filename, mime, len(content))
        return mime

    def validate_external_url(self, file_url: str) -> str:
        """
        Check that an externally hosted locator is an absolute http(s) URL.

        Returns: The locator with surrounding whitespace removed.
        """
        url = file_url.strip()
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValidationError(
                message=f"Invalid file URL: {url}. Please provide a valid http(s) URL.",
                field="fileUrl",
            )
        return url


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
