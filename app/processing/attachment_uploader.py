"""
Per-attachment upload pipeline: Telegram download to Notion file upload.

Each attachment runs fetch, infer, size check, upload and block building in strict
sequence. Attachments are processed one at a time in message order. Every failure is
caught at the attachment boundary and recorded as a "failed" state, so one bad file can
never abort its siblings or the page that was already created.
"""
import logging
from typing import Any, Dict, List, Sequence, Tuple
from app.errors import MetadataUnavailableError
from app.models import AttachmentUploadOutcome, AttachmentUploadState, FileInfo
from app.processing.media_inference import (
    FALLBACK_MIME_TYPE,
    infer_block_type,
    infer_filename,
    infer_mime_type,
    sanitize_filename,
)
from app.processing.notion_blocks import build_attachment_block
from app.services.notion_upload_service import NotionUploadService
from app.services.telegram_service import TelegramService

logger = logging.getLogger(__name__)


class AttachmentUploader:
    """Uploads Telegram attachments to Notion and records the outcome of each one."""

    def __init__(
        self,
        telegram: TelegramService,
        notion_uploads: NotionUploadService,
        max_file_bytes: int,
    ) -> None:
        self.telegram = telegram
        self.notion_uploads = notion_uploads
        self.max_file_bytes = max_file_bytes

    @staticmethod
    def _base_state(file: FileInfo) -> Dict[str, Any]:
        """Pre-download identity fields; name, type and size are replaced once the file is downloaded."""
        return {
            "file_id": file.file_id,
            "file_unique_id": file.file_unique_id,
            "type": file.type,
            "file_name": sanitize_filename(file.file_name or f"{file.type}_{file.file_unique_id or 'unknown'}"),
            "mime_type": file.mime_type or FALLBACK_MIME_TYPE,
            "size_bytes": file.file_size or 0,
        }

    async def upload(self, file: FileInfo) -> AttachmentUploadOutcome:
        """
        Runs the full pipeline for a single attachment.
        Args:
            file: The attachment to upload.
        Returns:
            The upload state, plus a content block when the upload succeeded. Never raises.
        """
        base_state = self._base_state(file)
        try:
            return await self._upload(file, base_state)
        except Exception as error:
            reason = str(error) or "Unknown upload error"
            logger.warning(f"Attachment {file.type} {file.file_unique_id} failed to upload: {reason}")
            return AttachmentUploadOutcome(
                state=AttachmentUploadState(**base_state, status="failed", reason=reason)
            )

    async def _upload(self, file: FileInfo, base_state: Dict[str, Any]) -> AttachmentUploadOutcome:
        if not file.file_id:
            raise MetadataUnavailableError("Telegram attachment has no file_id")
        file_path = await self.telegram.resolve_file_path(file.file_id)
        downloaded = await self.telegram.download_file(self.telegram.build_download_url(file_path))
        size = downloaded.size
        mime_type = infer_mime_type(file, downloaded.content_type, file_path)
        filename = infer_filename(file, file_path, mime_type)
        resolved = {**base_state, "file_name": filename, "mime_type": mime_type, "size_bytes": size}

        if size > self.max_file_bytes:
            logger.info(
                f"Skipping attachment {filename}: {size} bytes exceeds the configured maximum of "
                f"{self.max_file_bytes} bytes."
            )
            return AttachmentUploadOutcome(
                state=AttachmentUploadState(
                    **resolved,
                    status="skipped",
                    reason=f"File exceeds TELEGRAM_NOTION_MAX_FILE_BYTES ({self.max_file_bytes})",
                )
            )

        upload_id = await self.notion_uploads.upload(downloaded.content, filename, mime_type)
        block_type = infer_block_type(file, mime_type, filename)
        logger.info(f"Uploaded attachment {filename} to Notion as {block_type} block source {upload_id}.")
        return AttachmentUploadOutcome(
            state=AttachmentUploadState(
                **resolved,
                status="uploaded",
                notion_file_upload_id=upload_id,
                notion_block_type=block_type,
            ),
            block=build_attachment_block(block_type, upload_id, f"{filename} ({file.type}, {size} bytes)"),
        )

    async def upload_all(
        self, files: Sequence[FileInfo]
    ) -> Tuple[List[AttachmentUploadState], List[Dict[str, Any]]]:
        """
        Uploads attachments sequentially in message order.
        Args:
            files: The attachments extracted from one message.
        Returns:
            The upload states (one per file) and the content blocks of successful uploads.
        """
        states: List[AttachmentUploadState] = []
        blocks: List[Dict[str, Any]] = []
        for file in files:
            outcome = await self.upload(file)
            states.append(outcome.state)
            if outcome.block is not None:
                blocks.append(outcome.block)
        return states, blocks
