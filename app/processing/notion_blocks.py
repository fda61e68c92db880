"""
Builders for the Notion block payloads appended to ingested pages.
"""
import json
from typing import Any, Dict, Iterator, List, Sequence

RICH_TEXT_CHUNK_LENGTH = 1900
BLOCK_APPEND_BATCH_SIZE = 100


def split_text(value: str, max_length: int = RICH_TEXT_CHUNK_LENGTH) -> List[str]:
    """Splits text into chunks below Notion's 2000 character rich text limit."""
    if not value:
        return [""]
    return [value[i:i + max_length] for i in range(0, len(value), max_length)]


def to_rich_text(value: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": {"content": chunk}} for chunk in split_text(value)]


def build_paragraph_block(text: str) -> Dict[str, Any]:
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": to_rich_text(text)},
    }


def build_json_code_block(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Wraps a JSON-serializable payload in a code block for downstream machine consumption.
    Args:
        payload: The data to serialize.
    Returns:
        A Notion code block with language "json".
    """
    return {
        "object": "block",
        "type": "code",
        "code": {
            "language": "json",
            "rich_text": to_rich_text(json.dumps(payload, indent=2, ensure_ascii=False)),
        },
    }


def build_attachment_block(block_type: str, file_upload_id: str, caption: str) -> Dict[str, Any]:
    """
    Builds a media or file block that references a completed Notion file upload.
    Args:
        block_type: One of image, video, audio, pdf or file.
        file_upload_id: The ID of the Notion file upload.
        caption: Caption text shown below the block.
    Returns:
        The block payload.
    """
    return {
        "object": "block",
        "type": block_type,
        block_type: {
            "type": "file_upload",
            "file_upload": {"id": file_upload_id},
            "caption": to_rich_text(caption),
        },
    }


def batched(blocks: Sequence[Dict[str, Any]], size: int = BLOCK_APPEND_BATCH_SIZE) -> Iterator[List[Dict[str, Any]]]:
    for start in range(0, len(blocks), size):
        yield list(blocks[start:start + size])
