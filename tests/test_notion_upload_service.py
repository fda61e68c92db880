"""Unit tests for the Notion File Upload client.

Requests are served by an httpx.MockTransport that records every call, so the
tests can assert on the exact create/send/complete sequence.
"""
import json
import httpx
import pytest
from app.errors import NotionRequestError
from app.services import notion_upload_service
from app.services.notion_upload_service import (
    NOTION_PART_SIZE_BYTES,
    NotionUploadService,
    count_parts,
    parse_notion_error,
)


class NotionRecorder:
    """Fake Notion API answering file upload calls and recording each request."""

    def __init__(self, create_body=None, send_response=None):
        self.create_body = {"id": "up-1", "status": "pending"} if create_body is None else create_body
        self.send_response = send_response
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/file_uploads":
            return httpx.Response(200, json=self.create_body)
        if path.endswith("/send"):
            return self.send_response or httpx.Response(200, json={"id": "up-1", "status": "pending"})
        if path.endswith("/complete"):
            return httpx.Response(200, json={"id": "up-1", "status": "uploaded"})
        return httpx.Response(404, json={"message": "unexpected path"})

    def paths(self, suffix):
        return [request for request in self.requests if request.url.path.endswith(suffix)]


def make_service(settings, recorder):
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return NotionUploadService(settings, http_client=client)


class TestCountParts:
    def test_exactly_one_part_size_is_single_part(self):
        assert count_parts(NOTION_PART_SIZE_BYTES) == 1

    def test_one_byte_over_needs_two_parts(self):
        assert count_parts(NOTION_PART_SIZE_BYTES + 1) == 2

    def test_empty_payload_still_takes_one_part(self):
        assert count_parts(0) == 1

    def test_large_payload(self):
        assert count_parts(5 * NOTION_PART_SIZE_BYTES + 10) == 6


class TestParseNotionError:
    def test_json_message(self):
        assert parse_notion_error('{"object": "error", "message": "Invalid part"}') == "Invalid part"

    def test_json_without_message(self):
        assert parse_notion_error('{"object": "error"}') == '{"object": "error"}'

    def test_plain_text(self):
        assert parse_notion_error("Bad gateway") == "Bad gateway"


class TestUpload:
    @pytest.mark.asyncio
    async def test_twenty_mib_exactly_is_sent_in_one_part(self, settings):
        recorder = NotionRecorder()
        service = make_service(settings, recorder)

        upload_id = await service.upload(bytes(NOTION_PART_SIZE_BYTES), "file_1", "application/octet-stream")

        assert upload_id == "up-1"
        create = json.loads(recorder.paths("/file_uploads")[0].content)
        assert create == {"filename": "file_1", "content_type": "application/octet-stream", "mode": "single_part"}
        sends = recorder.paths("/send")
        assert len(sends) == 1
        assert b'name="part_number"' not in sends[0].content
        assert recorder.paths("/complete") == []

    @pytest.mark.asyncio
    async def test_multi_part_sends_numbered_parts_then_completes(self, settings, monkeypatch):
        monkeypatch.setattr(notion_upload_service, "NOTION_PART_SIZE_BYTES", 4)
        recorder = NotionRecorder()
        service = make_service(settings, recorder)

        await service.upload(b"abcdefghij", "clip.mp4", "video/mp4")

        create = json.loads(recorder.requests[0].content)
        assert create["mode"] == "multi_part"
        assert create["number_of_parts"] == 3
        sends = recorder.paths("/send")
        assert len(sends) == 3
        for number, (request, chunk) in enumerate(zip(sends, [b"abcd", b"efgh", b"ij"]), start=1):
            assert f'name="part_number"\r\n\r\n{number}\r\n'.encode() in request.content
            assert b'filename="clip.mp4"' in request.content
            assert b"\r\n\r\n" + chunk + b"\r\n" in request.content
        assert len(recorder.paths("/complete")) == 1
        assert recorder.requests[-1].url.path == "/v1/file_uploads/up-1/complete"

    @pytest.mark.asyncio
    async def test_upload_id_is_escaped_in_send_and_complete_paths(self, settings, monkeypatch):
        monkeypatch.setattr(notion_upload_service, "NOTION_PART_SIZE_BYTES", 4)
        recorder = NotionRecorder(create_body={"id": "up/1"})

        upload_id = await make_service(settings, recorder).upload(b"abcdef", "a.bin", "application/octet-stream")

        assert upload_id == "up/1"
        raw_paths = [request.url.raw_path for request in recorder.requests[1:]]
        assert raw_paths == [
            b"/v1/file_uploads/up%2F1/send",
            b"/v1/file_uploads/up%2F1/send",
            b"/v1/file_uploads/up%2F1/complete",
        ]

    @pytest.mark.asyncio
    async def test_requests_carry_auth_and_version_headers(self, settings):
        recorder = NotionRecorder()
        await make_service(settings, recorder).upload(b"data", "a.txt", "text/plain")

        for request in recorder.requests:
            assert request.headers["Authorization"] == "Bearer secret_notion"
            assert request.headers["Notion-Version"] == "2025-09-03"

    @pytest.mark.asyncio
    async def test_failed_send_reports_parsed_notion_message(self, settings):
        recorder = NotionRecorder(
            send_response=httpx.Response(400, json={"object": "error", "message": "Invalid part"})
        )

        with pytest.raises(NotionRequestError) as excinfo:
            await make_service(settings, recorder).upload(b"data", "a.txt", "text/plain")

        assert str(excinfo.value) == "Notion API POST /file_uploads/up-1/send failed: 400 Invalid part"
        assert excinfo.value.http_status == 400
        assert recorder.paths("/complete") == []

    @pytest.mark.asyncio
    async def test_failed_send_with_plain_text_body(self, settings):
        recorder = NotionRecorder(send_response=httpx.Response(502, text="Bad gateway"))

        with pytest.raises(NotionRequestError, match="failed: 502 Bad gateway"):
            await make_service(settings, recorder).upload(b"data", "a.txt", "text/plain")

    @pytest.mark.asyncio
    async def test_create_response_without_id(self, settings):
        recorder = NotionRecorder(create_body={"status": "pending"})

        with pytest.raises(NotionRequestError, match="Notion API response missing file_upload.id"):
            await make_service(settings, recorder).upload(b"data", "a.txt", "text/plain")

        assert recorder.paths("/send") == []
