"""
Orchestrates the ingestion of Telegram updates into the Notion database.

This module contains the main business logic, coordinating the services to:
1. Parse the update and resolve the database schema.
2. Skip updates that already have a page (duplicate deliveries).
3. Create the page with its properties, a readable body and a JSON audit block.
4. Upload attachments and append the upload ledger and attachment blocks.
5. Acknowledge the source message with a reaction.

Webhook deliveries call `process_update` for one update; the polling runtime calls `run`,
which fetches a batch via getUpdates and feeds each update through the same path.

The duplicate check and the page creation are not atomic: two concurrent deliveries of
the same update can both pass the check and create two pages. Notion offers no unique
constraint or lock to close that window, so it is accepted.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from app.config import Settings, settings as default_settings
from app.errors import MalformedInputError, SchemaUnavailableError, log_notion_failure
from app.models import (
    AttachmentUploadState,
    CreatedPage,
    IngestionResult,
    ParsedMessage,
    PollingResult,
    TelegramNotionSchema,
)
from app.processing.attachment_uploader import AttachmentUploader
from app.processing.message_parser import build_audit_payload, build_content, build_title, parse_update
from app.processing.notion_blocks import build_json_code_block, build_paragraph_block
from app.processing.schema_resolver import resolve_schema
from app.services.notion_service import NotionService, number_equals_filter
from app.services.notion_upload_service import NotionUploadService
from app.services.telegram_service import TelegramService
from app.state_manager import get_polling_offset, save_polling_offset

logger = logging.getLogger(__name__)

MAX_POLLING_LIMIT = 100


class WorkflowProcessor:
    """Encapsulates the logic for turning Telegram updates into Notion pages."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        telegram_service: Optional[TelegramService] = None,
        notion_service: Optional[NotionService] = None,
        uploader: Optional[AttachmentUploader] = None,
    ) -> None:
        """
        Initializes all necessary services.
        Raises:
            ConfigurationError: If the Telegram or Notion token is missing.
        """
        self.settings = config or default_settings
        self.settings.require_tokens()
        self.telegram = telegram_service or TelegramService(self.settings)
        self.notion = notion_service or NotionService(self.settings)
        self.uploader = uploader or AttachmentUploader(
            self.telegram,
            NotionUploadService(self.settings),
            self.settings.TELEGRAM_NOTION_MAX_FILE_BYTES,
        )
        self._reset_summary()

    def _reset_summary(self) -> None:
        """Resets the summary dictionary for a new run."""
        self.summary = {
            "fetched_from_telegram": 0,
            "pages_created": 0,
            "duplicates_skipped": 0,
            "updates_ignored": 0,
            "updates_failed": 0,
            "attachments_uploaded": 0,
            "attachments_skipped": 0,
            "attachments_failed": 0,
        }

    async def resolve_schema(self) -> TelegramNotionSchema:
        """
        Reads the database schema and resolves the property names the pages will use.
        Returns:
            The resolved schema.
        Raises:
            SchemaUnavailableError: If Notion returned no usable property map.
            APIResponseError: If the retrieve calls fail.
        """
        properties, data_source_id = await self.notion.get_schema_properties()
        schema = resolve_schema(properties, data_source_id)
        if schema is None:
            raise SchemaUnavailableError("Notion data source returned no properties")
        logger.debug(f"Resolved Notion schema: {schema}")
        return schema

    async def process_update(
        self,
        update: Dict[str, Any],
        schema: Optional[TelegramNotionSchema] = None,
    ) -> IngestionResult:
        """
        Ingests a single Telegram update.
        Args:
            update: The raw update payload.
            schema: A schema resolved earlier in the same run; resolved on demand if omitted.
        Returns:
            The outcome: created, duplicate or ignored.
        Raises:
            MalformedInputError: If the payload has no numeric update_id.
            SchemaUnavailableError: If the database schema cannot be read.
            APIResponseError: If Notion fails before or during page creation.
        """
        parsed = parse_update(update)
        if parsed is None:
            logger.info(f"Update {update.get('update_id')} carries no usable message. Ignoring.")
            self.summary["updates_ignored"] += 1
            return IngestionResult(status="ignored", update_id=update.get("update_id"))

        context = {
            "database_id": self.notion.database_id,
            "chat_id": parsed.chat.id,
            "message_id": parsed.message_id,
            "update_id": parsed.update_id,
        }
        phase = "database_retrieve"
        try:
            if schema is None:
                schema = await self.resolve_schema()
            phase = "dedupe_query"
            if await self._has_existing_page(schema, parsed):
                logger.info(f"Skipping update {parsed.update_id}: a page already exists for it.")
                self.summary["duplicates_skipped"] += 1
                return IngestionResult(status="duplicate", update_id=parsed.update_id)
            phase = "create_page"
            title = build_title(parsed)
            page_id = await self.notion.create_page(
                self._build_properties(schema, parsed, title),
                [
                    build_paragraph_block(build_content(parsed)),
                    build_json_code_block(
                        build_audit_payload(
                            parsed,
                            self.settings.NOTION_API_VERSION,
                            self.settings.TELEGRAM_NOTION_MAX_FILE_BYTES,
                        )
                    ),
                ],
            )
        except SchemaUnavailableError as error:
            log_notion_failure("Notion schema unavailable", error, phase=phase, **context)
            raise
        except Exception as error:
            log_notion_failure("Notion create failed", error, phase=phase, **context)
            raise
        self.summary["pages_created"] += 1

        uploads = await self._process_attachments(page_id, parsed)
        await self.telegram.set_message_reaction(parsed.chat.id, parsed.message_id)
        return IngestionResult(
            status="created",
            update_id=parsed.update_id,
            page_id=page_id,
            title=title,
            uploads=uploads,
        )

    async def _has_existing_page(self, schema: TelegramNotionSchema, parsed: ParsedMessage) -> bool:
        """
        Looks for a page created by an earlier delivery of the same update.
        Matches on Update ID when the database has that property, otherwise on Chat ID and
        Message ID together. Without either, duplicates cannot be detected.
        """
        if schema.update_id_prop:
            filter_: Optional[Dict[str, Any]] = number_equals_filter(schema.update_id_prop, parsed.update_id)
        elif schema.chat_id_prop and schema.message_id_prop:
            filter_ = {
                "and": [
                    number_equals_filter(schema.chat_id_prop, parsed.chat.id),
                    number_equals_filter(schema.message_id_prop, parsed.message_id),
                ]
            }
        else:
            logger.debug("Database has no Update ID or Chat/Message ID properties; duplicate check skipped.")
            return False
        return await self.notion.page_exists(filter_, schema.data_source_id)

    @staticmethod
    def _build_properties(schema: TelegramNotionSchema, parsed: ParsedMessage, title: str) -> Dict[str, Any]:
        properties: Dict[str, Any] = {
            schema.title_prop: {"title": [{"type": "text", "text": {"content": title}}]},
        }
        if schema.chat_id_prop:
            properties[schema.chat_id_prop] = {"number": parsed.chat.id}
        if schema.topic_id_prop and parsed.message_thread_id is not None:
            properties[schema.topic_id_prop] = {"number": parsed.message_thread_id}
        if schema.message_id_prop:
            properties[schema.message_id_prop] = {"number": parsed.message_id}
        if schema.update_id_prop:
            properties[schema.update_id_prop] = {"number": parsed.update_id}
        if schema.status_prop and schema.status_not_started:
            properties[schema.status_prop] = {"status": {"name": schema.status_not_started}}
        return properties

    async def _process_attachments(self, page_id: str, parsed: ParsedMessage) -> List[AttachmentUploadState]:
        """
        Uploads the message's attachments and appends the ledger and attachment blocks.
        Failures here never propagate: the page already exists and must be kept.
        Args:
            page_id: The created page.
            parsed: The parsed message.
        Returns:
            One upload state per attachment.
        """
        if not parsed.files:
            return []
        states, blocks = await self.uploader.upload_all(parsed.files)
        for state in states:
            self.summary[f"attachments_{state.status}"] += 1

        ledger = build_json_code_block({
            "upload_synced_at": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "uploads": [state.to_ledger_entry() for state in states],
        })
        try:
            await self.notion.append_blocks(page_id, [ledger])
        except Exception as error:
            log_notion_failure("Upload ledger append failed", error, page_id=page_id, phase="append_ledger")

        if blocks:
            try:
                await self.notion.append_blocks(page_id, blocks)
            except Exception as error:
                log_notion_failure("Attachment block append failed", error, page_id=page_id, phase="append_attachments")
                await self._append_block_error_note(page_id, error)
        return states

    async def _append_block_error_note(self, page_id: str, error: Exception) -> None:
        note = build_json_code_block({"upload_block_append_error": str(error) or "Unknown append error"})
        try:
            await self.notion.append_blocks(page_id, [note])
        except Exception as fallback_error:
            log_notion_failure("Fallback note append failed", fallback_error, page_id=page_id, phase="append_fallback")

    async def run(self, offset: Optional[int] = None, limit: Optional[int] = None) -> PollingResult:
        """
        Executes one polling pass: fetch a batch of updates and ingest each one.
        The offset of the next update is persisted after every ingested update, so a
        failing update is fetched again by the next pass.
        Args:
            offset: getUpdates offset; defaults to the persisted offset.
            limit: Maximum number of updates to fetch (clamped to 1-100).
        Returns:
            The created pages and the next offset.
        """
        logger.info("🚀 Starting polling run...")
        self._reset_summary()
        result = PollingResult()
        if limit is None:
            limit = self.settings.POLLING_LIMIT
        limit = min(max(limit, 1), MAX_POLLING_LIMIT)
        if offset is None:
            offset = get_polling_offset(self.settings.STATE_FILE_PATH)
        try:
            updates = await self.telegram.get_updates(offset=offset, limit=limit)
            result.fetched = len(updates)
            self.summary["fetched_from_telegram"] = len(updates)
            if not updates:
                logger.info("No new updates found. ✨")
                return result
            schema = await self.resolve_schema()
            for update in updates:
                try:
                    ingested = await self.process_update(update, schema=schema)
                except MalformedInputError as error:
                    logger.warning(f"Skipping malformed update from getUpdates: {error}")
                    continue
                if ingested.status == "created":
                    result.pages.append(
                        CreatedPage(page_id=ingested.page_id, update_id=ingested.update_id, title=ingested.title)
                    )
                result.last_offset = ingested.update_id + 1
                save_polling_offset(result.last_offset, self.settings.STATE_FILE_PATH)
        except Exception as e:
            self.summary["updates_failed"] += 1
            logger.critical(f"A critical, unhandled error occurred during the polling run: {e}", exc_info=True)
        finally:
            result.created = len(result.pages)
            self._log_summary()
        return result

    def _log_summary(self) -> None:
        """Logs the final summary report of the run."""
        report = f"""
        \n-------------------------------------------------
        📊 INGESTION RUN SUMMARY
        -------------------------------------------------
        - Telegram Updates Fetched:   {self.summary['fetched_from_telegram']}

        - Pages:
          - ✅ Created:               {self.summary['pages_created']}
          - 🔁 Duplicates Skipped:    {self.summary['duplicates_skipped']}
          - 💤 Ignored:               {self.summary['updates_ignored']}
          - ❌ Failed:                {self.summary['updates_failed']}

        - Attachments:
          - ✅ Uploaded:              {self.summary['attachments_uploaded']}
          - ⏭️ Skipped:               {self.summary['attachments_skipped']}
          - ❌ Failed:                {self.summary['attachments_failed']}
        -------------------------------------------------
        """
        logger.info(report)
        logger.info("Ingestion run finished. ✅")
