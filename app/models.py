"""
Pydantic models for Telegram attachments, upload outcomes and ingestion results.

These models carry data between the Telegram parser, the attachment upload pipeline
and the page assembly step. Upload states are serialized verbatim into the JSON
ledger block appended to every page that had attachments.
"""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict

AttachmentType = Literal[
    "document", "photo", "video", "audio", "voice", "video_note", "animation", "sticker"
]
UploadStatus = Literal["uploaded", "skipped", "failed"]
NotionBlockType = Literal["image", "video", "audio", "pdf", "file"]
UpdateType = Literal["message", "channel_post", "edited_message"]


class FileInfo(BaseModel):
    """Describes one Telegram attachment before it is downloaded; identifiers may be missing from malformed payloads."""
    model_config = ConfigDict(frozen=True)

    file_id: Optional[str] = None
    file_unique_id: Optional[str] = None
    file_size: Optional[int] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    type: AttachmentType


class AttachmentUploadState(BaseModel):
    """The recorded outcome of uploading one attachment to Notion."""
    model_config = ConfigDict(frozen=True)

    file_id: Optional[str] = None
    file_unique_id: Optional[str] = None
    type: AttachmentType
    file_name: str
    mime_type: str
    size_bytes: int
    status: UploadStatus
    notion_file_upload_id: Optional[str] = None
    notion_block_type: Optional[NotionBlockType] = None
    reason: Optional[str] = None

    def to_ledger_entry(self) -> Dict[str, Any]:
        """Returns the JSON-ready form written into the upload ledger."""
        return self.model_dump(exclude_none=True)


class AttachmentUploadOutcome(BaseModel):
    """Pairs an upload state with the content block to append when the upload succeeded."""

    state: AttachmentUploadState
    block: Optional[Dict[str, Any]] = None


class ChatInfo(BaseModel):
    """The subset of a Telegram chat used for titles and page properties."""

    id: int
    title: Optional[str] = None
    type: Optional[str] = None

    @property
    def label(self) -> str:
        return self.title or f"Chat {self.id}"


class ParsedMessage(BaseModel):
    """A Telegram message reduced to the fields the page assembly needs."""

    update_id: int
    update_type: UpdateType
    chat: ChatInfo
    message_id: int
    message_thread_id: Optional[int] = None
    date: Optional[int] = None
    text: str = ""
    raw_text: Optional[str] = None
    caption: Optional[str] = None
    files: List[FileInfo] = []


class TelegramNotionSchema(BaseModel):
    """Property names discovered on the target database; None means the property is absent."""
    model_config = ConfigDict(frozen=True)

    title_prop: str = "Name"
    chat_id_prop: Optional[str] = None
    topic_id_prop: Optional[str] = None
    message_id_prop: Optional[str] = None
    update_id_prop: Optional[str] = None
    status_prop: Optional[str] = None
    status_not_started: Optional[str] = None
    data_source_id: Optional[str] = None


class IngestionResult(BaseModel):
    """Outcome of ingesting one Telegram update."""

    status: Literal["created", "duplicate", "ignored"]
    update_id: Optional[int] = None
    page_id: Optional[str] = None
    title: Optional[str] = None
    uploads: List[AttachmentUploadState] = []


class CreatedPage(BaseModel):
    """A page created during a polling run."""

    page_id: str
    update_id: int
    title: str


class PollingResult(BaseModel):
    """Summary returned by one polling pass."""

    fetched: int = 0
    created: int = 0
    pages: List[CreatedPage] = []
    last_offset: Optional[int] = None
