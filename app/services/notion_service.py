"""
Service layer for interacting with the Notion API.

This module wraps the notion-client SDK for the operations the ingestion needs:
reading the target database schema, looking up pages created for an earlier delivery
of the same update, creating pages and appending blocks in batches. Since Notion API
version 2025-09-03 a database's properties live on its data source, so schema reads
and queries follow that extra indirection when the database exposes data sources.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from notion_client import AsyncClient
from app.config import Settings, settings as default_settings
from app.errors import NotionRequestError
from app.processing.notion_blocks import batched

logger = logging.getLogger(__name__)


def number_equals_filter(property_name: str, value: int) -> Dict[str, Any]:
    return {"property": property_name, "number": {"equals": value}}


class NotionService:
    """A client to interact with the Notion API."""

    def __init__(self, config: Optional[Settings] = None, *, client: Optional[AsyncClient] = None) -> None:
        """
        Initializes the Notion async client with the token and API version from settings.
        Args:
            config: Settings to read credentials from; defaults to the application settings.
            client: Optional pre-built notion-client instance.
        """
        self.settings = config or default_settings
        self.client = client or AsyncClient(
            auth=self.settings.NOTION_API_TOKEN,
            notion_version=self.settings.NOTION_API_VERSION,
        )
        self.database_id = self.settings.formatted_database_id

    async def get_schema_properties(self) -> Tuple[Any, Optional[str]]:
        """
        Retrieves the live property map of the configured database.
        Returns:
            A tuple of the property map (None if Notion returned none) and the ID of the
            data source it was read from, if any.
        Raises:
            APIResponseError: If a retrieve call fails.
        """
        logger.info(f"Retrieving schema for Notion database ID: {self.database_id}")
        database = await self.client.databases.retrieve(database_id=self.database_id)
        data_sources = database.get("data_sources")
        if isinstance(data_sources, list) and data_sources:
            data_source_id = data_sources[0].get("id")
            logger.debug(f"Database {self.database_id} is backed by data source {data_source_id}.")
            data_source = await self.client.request(path=f"data_sources/{data_source_id}", method="GET")
            return data_source.get("properties"), data_source_id
        return database.get("properties"), None

    async def _query_database(self, data_source_id: Optional[str] = None, **params: Any) -> Dict[str, Any]:
        """
        Queries the configured database, through its data source when one is known.
        Args:
            data_source_id: The data source to query, if the schema was read from one.
            params: Additional parameters forwarded to the query endpoint.
        Returns:
            The raw Notion API response.
        Raises:
            RuntimeError: If no query method is available on the client.
        """
        if data_source_id:
            logger.debug(f"Querying Notion data source {data_source_id}.")
            return await self.client.request(path=f"data_sources/{data_source_id}/query", method="POST", body=params)
        query_callable = getattr(self.client.databases, "query", None)
        if callable(query_callable):
            logger.debug("Querying Notion database via databases.query endpoint.")
            return await query_callable(database_id=self.database_id, **params)
        raise RuntimeError("Unsupported notion-client version: no query method available.")

    async def page_exists(self, filter_: Dict[str, Any], data_source_id: Optional[str] = None) -> bool:
        """
        Checks whether any page matches the given property filter.
        Args:
            filter_: A Notion query filter.
            data_source_id: The data source to query, if known.
        Returns:
            True if at least one page matches.
        """
        response = await self._query_database(data_source_id, filter=filter_, page_size=1)
        return bool(response.get("results"))

    async def create_page(self, properties: Dict[str, Any], children: Sequence[Dict[str, Any]]) -> str:
        """
        Creates a new page in the Notion database.
        Args:
            properties: The page properties keyed by property name.
            children: Initial content blocks.
        Returns:
            The ID of the created page.
        Raises:
            APIResponseError: If the page creation fails.
            NotionRequestError: If Notion returned no page ID.
        """
        logger.info("Creating a new page in Notion.")
        logger.debug(f"Page properties: {properties}")
        response = await self.client.pages.create(
            parent={"database_id": self.database_id},
            properties=properties,
            children=list(children),
        )
        page_id = response.get("id")
        if not isinstance(page_id, str) or not page_id.strip():
            raise NotionRequestError("Notion API response missing page.id")
        logger.info(f"Successfully created Notion page with ID: {page_id}")
        return page_id

    async def append_blocks(self, page_id: str, blocks: List[Dict[str, Any]]) -> None:
        """
        Appends blocks to a page, at most 100 per request.
        Args:
            page_id: The page to append to.
            blocks: The blocks to append, in order.
        Raises:
            APIResponseError: If an append call fails; earlier batches stay appended.
        """
        for batch in batched(blocks):
            await self.client.blocks.children.append(block_id=page_id, children=batch)
            logger.debug(f"Appended {len(batch)} block(s) to Notion page {page_id}.")
