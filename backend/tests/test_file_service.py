"""
NoteShare Backend — Upload Validation Unit Tests
==================================================

What:  Tests for FileService (content type, extension, size, external URL).
How:   Pure functions over bytes and strings; no I/O.

Test Strategy:
    ✅ Allowed document types (.pdf .doc .docx .jpg .jpeg .png)
    ✅ Rejected types and extension/type mismatches
    ✅ Size limits (empty, at limit, over limit)
    ✅ File header bytes must match the declared type (renamed files)
    ✅ External locators must be absolute http(s) URLs
"""

import pytest

from conftest import JPEG_BYTES, PDF_BYTES, PNG_BYTES, TEXT_BYTES
from noteshare.exceptions import ValidationError
from noteshare.services.file_service import FileService

DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class TestContentTypeValidation:

    def setup_method(self):
        self.service = FileService(max_file_size=1024 * 1024)

    @pytest.mark.parametrize(
        "content_type",
        ["application/pdf", "application/msword", DOCX, "image/jpeg", "image/png"],
    )
    def test_allowed_types(self, content_type):
        assert self.service.validate_content_type(content_type) == content_type

    def test_type_is_normalized(self):
        """Parameters and case are stripped; image/jpg is an alias of image/jpeg."""
        assert self.service.validate_content_type("Application/PDF; charset=binary") == "application/pdf"
        assert self.service.validate_content_type("image/jpg") == "image/jpeg"

    @pytest.mark.parametrize("content_type", ["image/gif", "text/html", "application/zip", None, ""])
    def test_rejected_types(self, content_type):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_content_type(content_type)


class TestExtensionValidation:

    def setup_method(self):
        self.service = FileService(max_file_size=1024 * 1024)

    def test_matching_extension(self):
        assert self.service.validate_extension("notes.PDF", "application/pdf") == ".pdf"
        assert self.service.validate_extension("scan.jpeg", "image/jpeg") == ".jpeg"
        assert self.service.validate_extension("essay.docx", DOCX) == ".docx"

    def test_unknown_extension_rejected(self):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_extension("malware.exe", "application/pdf")

    def test_missing_extension_rejected(self):
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_extension("noextension", "application/pdf")

    def test_mismatched_extension_rejected(self):
        """A .png name declared as a PDF is refused."""
        with pytest.raises(ValidationError, match="does not match"):
            self.service.validate_extension("photo.png", "application/pdf")


class TestSizeValidation:

    def setup_method(self):
        self.service = FileService(max_file_size=1024 * 1024)

    def test_within_limit(self):
        self.service.validate_size(1000)

    def test_at_limit(self):
        self.service.validate_size(1024 * 1024)

    def test_over_limit(self):
        with pytest.raises(ValidationError, match="too large") as exc_info:
            self.service.validate_size(1024 * 1024 + 1)
        assert exc_info.value.context["actual_size"] == 1024 * 1024 + 1

    def test_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(0)


class TestMimeTypeDetection:

    def setup_method(self):
        self.service = FileService(max_file_size=1024 * 1024)

    @pytest.mark.parametrize(
        "content,declared",
        [(PDF_BYTES, "application/pdf"), (PNG_BYTES, "image/png"), (JPEG_BYTES, "image/jpeg")],
    )
    def test_genuine_files(self, content, declared):
        assert self.service.validate_mime_type(content, "upload", declared) == declared

    def test_text_renamed_to_pdf_rejected(self):
        with pytest.raises(ValidationError, match="does not match") as exc_info:
            self.service.validate_upload("notes.pdf", "application/pdf", TEXT_BYTES)
        assert exc_info.value.context["detected_mime"] == "text/plain"

    def test_png_declared_as_jpeg_rejected(self):
        """A .jpg name and image/jpeg type do not make PNG bytes a JPEG."""
        with pytest.raises(ValidationError, match="does not match"):
            self.service.validate_upload("scan.jpg", "image/jpeg", PNG_BYTES)


class TestUploadPipeline:

    def setup_method(self):
        self.service = FileService(max_file_size=1024 * 1024)

    def test_valid_upload_returns_canonical_type(self):
        assert self.service.validate_upload("scan.jpg", "image/jpg", JPEG_BYTES) == "image/jpeg"

    def test_type_checked_before_size(self):
        """An empty .exe is reported for its type, not its size."""
        with pytest.raises(ValidationError, match="not supported"):
            self.service.validate_upload("malware.exe", "application/x-msdownload", b"")


class TestExternalUrlValidation:

    def setup_method(self):
        self.service = FileService()

    def test_https_url(self):
        url = "https://cdn.example.com/notes/unit3.pdf"
        assert self.service.validate_external_url(f"  {url} ") == url

    @pytest.mark.parametrize(
        "url",
        ["ftp://example.com/a.pdf", "example.com/a.pdf", "javascript:alert(1)", "https://", "/relative/path"],
    )
    def test_rejected_urls(self, url):
        with pytest.raises(ValidationError, match="Invalid file URL") as exc_info:
            self.service.validate_external_url(url)
        assert exc_info.value.field == "fileUrl"
