"""Unit tests for the notion-client wrapper."""
from unittest.mock import AsyncMock, Mock
import pytest
from app.errors import NotionRequestError
from app.services.notion_service import NotionService, number_equals_filter


@pytest.fixture
def client():
    """A notion-client AsyncClient stand-in."""
    client = Mock()
    client.databases.retrieve = AsyncMock()
    client.databases.query = AsyncMock(return_value={"results": []})
    client.request = AsyncMock()
    client.pages.create = AsyncMock(return_value={"id": "page-1"})
    client.blocks.children.append = AsyncMock(return_value={})
    return client


def test_database_id_is_formatted(settings, client):
    service = NotionService(settings, client=client)
    assert service.database_id == "312009f0-0c20-8036-be25-c17b44b2c667"


@pytest.mark.asyncio
async def test_schema_is_read_from_data_source(settings, client):
    client.databases.retrieve.return_value = {"id": "db", "data_sources": [{"id": "ds-1", "name": "Inbox"}]}
    client.request.return_value = {"object": "data_source", "properties": {"Name": {"type": "title"}}}

    properties, data_source_id = await NotionService(settings, client=client).get_schema_properties()

    assert properties == {"Name": {"type": "title"}}
    assert data_source_id == "ds-1"
    client.request.assert_awaited_once_with(path="data_sources/ds-1", method="GET")


@pytest.mark.asyncio
async def test_schema_falls_back_to_database_properties(settings, client):
    client.databases.retrieve.return_value = {"id": "db", "properties": {"Name": {"type": "title"}}}

    properties, data_source_id = await NotionService(settings, client=client).get_schema_properties()

    assert properties == {"Name": {"type": "title"}}
    assert data_source_id is None
    client.request.assert_not_awaited()


@pytest.mark.asyncio
async def test_page_exists_queries_data_source(settings, client):
    client.request.return_value = {"results": [{"id": "page-1"}]}
    filter_ = number_equals_filter("Update ID", 1)

    assert await NotionService(settings, client=client).page_exists(filter_, "ds-1") is True
    client.request.assert_awaited_once_with(
        path="data_sources/ds-1/query",
        method="POST",
        body={"filter": {"property": "Update ID", "number": {"equals": 1}}, "page_size": 1},
    )


@pytest.mark.asyncio
async def test_page_exists_queries_database_without_data_source(settings, client):
    service = NotionService(settings, client=client)

    assert await service.page_exists(number_equals_filter("Update ID", 1)) is False
    client.databases.query.assert_awaited_once_with(
        database_id=service.database_id,
        filter={"property": "Update ID", "number": {"equals": 1}},
        page_size=1,
    )


@pytest.mark.asyncio
async def test_create_page(settings, client):
    service = NotionService(settings, client=client)
    children = [{"type": "paragraph"}]

    assert await service.create_page({"Name": {"title": []}}, children) == "page-1"
    client.pages.create.assert_awaited_once_with(
        parent={"database_id": service.database_id},
        properties={"Name": {"title": []}},
        children=children,
    )


@pytest.mark.asyncio
async def test_create_page_without_id(settings, client):
    client.pages.create.return_value = {"object": "page"}

    with pytest.raises(NotionRequestError, match="missing page.id"):
        await NotionService(settings, client=client).create_page({}, [])


@pytest.mark.asyncio
async def test_append_blocks_in_batches_of_100(settings, client):
    blocks = [{"type": "paragraph", "index": index} for index in range(250)]

    await NotionService(settings, client=client).append_blocks("page-1", blocks)

    calls = client.blocks.children.append.await_args_list
    assert [len(call.kwargs["children"]) for call in calls] == [100, 100, 50]
    assert all(call.kwargs["block_id"] == "page-1" for call in calls)
    assert calls[2].kwargs["children"][-1]["index"] == 249
