"""
Client for Notion's File Upload API.

Moves an in-memory byte buffer into a Notion file upload that blocks can reference.
Files up to 20 MiB are sent in a single part; larger files are sent as sequential
20 MiB parts followed by an explicit completion call. A failed session is abandoned;
retrying means creating a new one.
"""
import json
import logging
import math
from typing import Any, Dict, Optional
from urllib.parse import quote
import httpx
from app.config import Settings, settings as default_settings
from app.errors import NotionRequestError

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_PART_SIZE_BYTES = 20 * 1024 * 1024


def parse_notion_error(body: str) -> str:
    """
    Extracts the human-readable message from a Notion error response body.
    Args:
        body: The raw response text.
    Returns:
        The "message" field when the body is a JSON object carrying one, else the body verbatim.
    """
    try:
        parsed = json.loads(body)
    except ValueError:
        return body
    if isinstance(parsed, dict) and parsed.get("message") is not None:
        return str(parsed["message"])
    return body


def count_parts(size: int) -> int:
    """Number of 20 MiB parts needed for a payload; empty payloads still take one part."""
    return max(1, math.ceil(size / NOTION_PART_SIZE_BYTES))


class NotionUploadService:
    """Uploads file contents to Notion over raw HTTP."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initializes the upload client with the Notion token and API version from settings.
        Args:
            config: Settings to read credentials from; defaults to the application settings.
            http_client: Optional httpx client, mainly for tests.
        """
        self.settings = config or default_settings
        self._http_client = http_client

    @property
    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.NOTION_API_TOKEN}",
            "Notion-Version": self.settings.NOTION_API_VERSION,
        }

    async def upload(self, content: bytes, filename: str, content_type: str) -> str:
        """
        Uploads a buffer to Notion and returns the resulting file upload ID.
        Args:
            content: The complete file contents.
            filename: The filename to register with Notion.
            content_type: The MIME type of the contents.
        Returns:
            The Notion file upload ID, ready to be referenced by a block.
        Raises:
            NotionRequestError: If creating the session, sending a part or completing fails.
        """
        if self._http_client is not None:
            return await self._upload(self._http_client, content, filename, content_type)
        async with httpx.AsyncClient(timeout=None) as client:
            return await self._upload(client, content, filename, content_type)

    async def _upload(self, client: httpx.AsyncClient, content: bytes, filename: str, content_type: str) -> str:
        size = len(content)
        number_of_parts = count_parts(size)
        multi_part = number_of_parts > 1
        upload_id = await self._create(client, filename, content_type, number_of_parts)
        logger.info(
            f"Created Notion file upload {upload_id} for {filename} "
            f"({size} bytes, {number_of_parts} part(s))."
        )
        for index in range(number_of_parts):
            start = index * NOTION_PART_SIZE_BYTES
            end = min(start + NOTION_PART_SIZE_BYTES, size)
            await self._send_part(
                client,
                upload_id,
                content[start:end],
                filename,
                content_type,
                part_number=index + 1 if multi_part else None,
            )
        if multi_part:
            await self._request_json(client, "POST", f"file_uploads/{quote(upload_id, safe='')}/complete")
            logger.info(f"Completed multi-part Notion file upload {upload_id}.")
        return upload_id

    async def _create(self, client: httpx.AsyncClient, filename: str, content_type: str, number_of_parts: int) -> str:
        payload: Dict[str, Any] = {"filename": filename, "content_type": content_type}
        if number_of_parts > 1:
            payload.update(mode="multi_part", number_of_parts=number_of_parts)
        else:
            payload["mode"] = "single_part"
        created = await self._request_json(client, "POST", "file_uploads", payload)
        upload_id = created.get("id")
        if not isinstance(upload_id, str) or not upload_id.strip():
            raise NotionRequestError("Notion API response missing file_upload.id", method="POST", path="file_uploads")
        return upload_id

    async def _send_part(
        self,
        client: httpx.AsyncClient,
        upload_id: str,
        chunk: bytes,
        filename: str,
        content_type: str,
        part_number: Optional[int] = None,
    ) -> None:
        path = f"file_uploads/{quote(upload_id, safe='')}/send"
        data = {"part_number": str(part_number)} if part_number is not None else None
        logger.debug(f"Sending {len(chunk)} bytes to Notion file upload {upload_id} (part {part_number or 1}).")
        response = await client.post(
            self._url(path),
            headers=self._auth_headers,
            files={"file": (filename, chunk, content_type)},
            data=data,
        )
        self._raise_for_status(response, "POST", path)

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        response = await client.request(method, self._url(path), headers=self._auth_headers, json=body)
        self._raise_for_status(response, method, path)
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _url(path: str) -> str:
        return f"{NOTION_API_BASE}/{path}"

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        if response.is_success:
            return
        raise NotionRequestError(
            f"Notion API {method} /{path} failed: {response.status_code} {parse_notion_error(response.text)}",
            method=method,
            path=path,
            http_status=response.status_code,
        )
