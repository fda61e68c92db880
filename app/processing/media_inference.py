"""
Content type, filename and Notion block type inference for Telegram attachments.

Telegram metadata is often incomplete (photos carry no MIME type or name, voice notes
no name), so every resolver here falls back through a fixed priority list and always
returns a usable value.
"""
import re
from typing import Optional
from urllib.parse import urlsplit
from app.models import FileInfo, NotionBlockType

FALLBACK_MIME_TYPE = "application/octet-stream"
FALLBACK_FILENAME = "telegram_file"
MAX_FILENAME_LENGTH = 180

EXTENSION_TO_MIME = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "svg": "image/svg+xml",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "m4v": "video/x-m4v",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "oga": "audio/ogg",
    "opus": "audio/ogg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "json": "application/json",
    "csv": "text/csv",
    "zip": "application/zip",
}

MIME_TO_EXTENSION = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
    "video/x-matroska": "mkv",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/flac": "flac",
    "application/pdf": "pdf",
    "text/plain": "txt",
    "application/json": "json",
    "text/csv": "csv",
}

DEFAULT_MIME_BY_TYPE = {
    "photo": "image/jpeg",
    "video": "video/mp4",
    "video_note": "video/mp4",
    "animation": "video/mp4",
    "audio": "audio/ogg",
    "voice": "audio/ogg",
    "sticker": "image/webp",
}

BLOCK_TYPE_BY_TELEGRAM_TYPE = {
    "photo": "image",
    "video": "video",
    "video_note": "video",
    "audio": "audio",
    "voice": "audio",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_EXTENSION = re.compile(r"\.([a-z0-9]{1,10})$", re.IGNORECASE)


def sanitize_filename(filename: str) -> str:
    """
    Makes a filename safe for Notion uploads.
    Trims whitespace, replaces unsafe character runs with a single underscore and
    truncates the result to 180 characters (keeping the head).
    Args:
        filename: The candidate filename.
    Returns:
        The sanitized filename, or "telegram_file" if nothing usable remains.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", filename.strip())
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned)
    cleaned = cleaned or FALLBACK_FILENAME
    return cleaned[:MAX_FILENAME_LENGTH]


def extension_from_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    match = _EXTENSION.search(name)
    return match.group(1).lower() if match else None


def mime_from_extension(extension: Optional[str]) -> Optional[str]:
    if not extension:
        return None
    return EXTENSION_TO_MIME.get(extension.lower())


def extension_from_mime(mime_type: Optional[str]) -> Optional[str]:
    if not mime_type:
        return None
    return MIME_TO_EXTENSION.get(mime_type.lower())


def remote_path_basename(file_path: Optional[str]) -> Optional[str]:
    """Returns the last path segment of a Telegram file path, which may also be a full download URL."""
    if not file_path:
        return None
    path = urlsplit(file_path).path if "://" in file_path else file_path
    basename = path.rstrip("/").split("/")[-1]
    return basename or None


def normalize_content_type(content_type: Optional[str]) -> Optional[str]:
    """Strips parameters from a Content-Type header value and lower-cases it."""
    if not content_type:
        return None
    normalized = content_type.split(";")[0].strip().lower()
    return normalized or None


def infer_mime_type(
    file: FileInfo,
    response_content_type: Optional[str] = None,
    file_path: Optional[str] = None,
) -> str:
    """
    Resolves the content type of an attachment.
    Priority: Telegram mime_type, download Content-Type, declared filename extension,
    remote path extension, a per-attachment-type default, application/octet-stream.
    Args:
        file: The Telegram attachment metadata.
        response_content_type: Content-Type header of the download response, if any.
        file_path: The remote file path returned by getFile, if any.
    Returns:
        A MIME type string.
    """
    if file.mime_type:
        return file.mime_type
    response_mime = normalize_content_type(response_content_type)
    if response_mime:
        return response_mime
    from_name = mime_from_extension(extension_from_name(file.file_name))
    if from_name:
        return from_name
    from_path = mime_from_extension(extension_from_name(remote_path_basename(file_path)))
    if from_path:
        return from_path
    return DEFAULT_MIME_BY_TYPE.get(file.type, FALLBACK_MIME_TYPE)


def infer_filename(file: FileInfo, file_path: Optional[str], mime_type: str) -> str:
    """
    Resolves the filename used for the Notion upload.
    Args:
        file: The Telegram attachment metadata.
        file_path: The remote file path returned by getFile, if any.
        mime_type: The already resolved MIME type, used for synthesized names.
    Returns:
        A sanitized filename.
    """
    if file.file_name:
        return sanitize_filename(file.file_name)
    from_path = remote_path_basename(file_path)
    if from_path:
        return sanitize_filename(from_path)
    extension = extension_from_mime(mime_type) or "bin"
    return sanitize_filename(f"{file.type}_{file.file_unique_id or 'unknown'}.{extension}")


def infer_block_type(file: FileInfo, mime_type: str, filename: str) -> NotionBlockType:
    """
    Chooses the Notion block type that will embed the uploaded file.
    Args:
        file: The Telegram attachment metadata.
        mime_type: The resolved MIME type.
        filename: The resolved filename.
    Returns:
        One of image, video, audio, pdf or file.
    """
    lower_mime = mime_type.lower()
    if lower_mime.startswith("image/"):
        return "image"
    if lower_mime.startswith("video/"):
        return "video"
    if lower_mime.startswith("audio/"):
        return "audio"
    if lower_mime == "application/pdf" or filename.lower().endswith(".pdf"):
        return "pdf"
    return BLOCK_TYPE_BY_TELEGRAM_TYPE.get(file.type, "file")
