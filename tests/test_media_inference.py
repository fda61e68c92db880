"""Unit tests for MIME type, filename and block type inference."""
from app.models import FileInfo
from app.processing.media_inference import (
    infer_block_type,
    infer_filename,
    infer_mime_type,
    normalize_content_type,
    remote_path_basename,
    sanitize_filename,
)


def make_file(file_type="document", **fields) -> FileInfo:
    return FileInfo(file_id="f1", file_unique_id="u1", type=file_type, **fields)


class TestSanitizeFilename:
    def test_replaces_unsafe_runs_with_single_underscore(self):
        assert sanitize_filename("  my report (final).pdf ") == "my_report_final_.pdf"

    def test_collapses_repeated_underscores(self):
        assert sanitize_filename("a___b") == "a_b"

    def test_falls_back_when_nothing_remains(self):
        assert sanitize_filename("   ") == "telegram_file"

    def test_truncates_keeping_the_head(self):
        assert sanitize_filename("a" * 300) == "a" * 180


class TestInferMimeType:
    def test_telegram_mime_type_wins(self):
        file = make_file(mime_type="application/pdf", file_name="notes.txt")
        assert infer_mime_type(file, "application/octet-stream", "documents/file_1.zip") == "application/pdf"

    def test_response_content_type_is_normalized(self):
        assert infer_mime_type(make_file(), "Image/PNG; charset=binary") == "image/png"

    def test_declared_filename_extension(self):
        assert infer_mime_type(make_file(file_name="Report.PDF")) == "application/pdf"

    def test_remote_path_extension(self):
        assert infer_mime_type(make_file(), None, "documents/file_3.csv") == "text/csv"

    def test_remote_url_extension(self):
        path = "https://api.telegram.org/file/bot123:abc/videos/file_9.mov"
        assert infer_mime_type(make_file(), None, path) == "video/quicktime"

    def test_attachment_type_default(self):
        assert infer_mime_type(make_file("voice")) == "audio/ogg"
        assert infer_mime_type(make_file("photo")) == "image/jpeg"

    def test_octet_stream_fallback(self):
        assert infer_mime_type(make_file(), None, "documents/file_3") == "application/octet-stream"


class TestInferFilename:
    def test_declared_name_is_sanitized(self):
        assert infer_filename(make_file(file_name="my scan.pdf"), None, "application/pdf") == "my_scan.pdf"

    def test_remote_path_basename(self):
        assert infer_filename(make_file("photo"), "photos/file_12.jpg", "image/jpeg") == "file_12.jpg"

    def test_synthesized_from_type_and_mime(self):
        assert infer_filename(make_file("photo"), None, "image/jpeg") == "photo_u1.jpg"

    def test_synthesized_with_unknown_mime(self):
        assert infer_filename(make_file(), None, "application/x-unknown") == "document_u1.bin"


class TestInferBlockType:
    def test_media_prefixes(self):
        assert infer_block_type(make_file(), "image/webp", "sticker.webp") == "image"
        assert infer_block_type(make_file(), "video/mp4", "clip.mp4") == "video"
        assert infer_block_type(make_file(), "audio/mpeg", "song.mp3") == "audio"

    def test_pdf_by_mime_without_extension(self):
        assert infer_block_type(make_file(), "application/pdf", "document_u1") == "pdf"

    def test_pdf_by_extension(self):
        assert infer_block_type(make_file(), "application/octet-stream", "scan.PDF") == "pdf"

    def test_telegram_type_mapping(self):
        assert infer_block_type(make_file("voice"), "application/octet-stream", "voice_u1.bin") == "audio"
        assert infer_block_type(make_file("video_note"), "application/octet-stream", "note.bin") == "video"

    def test_generic_document_is_file(self):
        assert infer_block_type(make_file(), "application/zip", "archive.zip") == "file"


def test_remote_path_basename_handles_urls_and_paths():
    assert remote_path_basename("https://api.telegram.org/file/bot1:x/voice/file_7.oga") == "file_7.oga"
    assert remote_path_basename("photos/file_1.jpg") == "file_1.jpg"
    assert remote_path_basename(None) is None


def test_normalize_content_type_empty():
    assert normalize_content_type("") is None
    assert normalize_content_type("; charset=utf-8") is None
