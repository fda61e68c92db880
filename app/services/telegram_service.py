"""
Service layer for interacting with the Telegram Bot API.

This module resolves attachment file paths, downloads file contents, fetches updates
for the polling runtime and manages the webhook registration, encapsulating the
specifics of the python-telegram-bot SDK. Downloads go through httpx directly because
the upload pipeline needs the file server's status code and Content-Type header.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence
import httpx
from pydantic import BaseModel
from telegram import Bot, ReactionTypeEmoji
from telegram.error import TelegramError
from app.config import Settings, settings as default_settings
from app.errors import FileDownloadError, MetadataUnavailableError

logger = logging.getLogger(__name__)

TELEGRAM_FILE_BASE_URL = "https://api.telegram.org/file/bot"
ALLOWED_UPDATES = ("message", "channel_post", "edited_message")
READ_ACK_EMOJI = "👀"


class DownloadedFile(BaseModel):
    """The fully buffered body of a Telegram file download."""

    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class TelegramService:
    """A client to interact with the Telegram Bot API."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        bot: Optional[Bot] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initializes the Telegram Bot using the token from settings.
        Args:
            config: Settings to read the bot token from; defaults to the application settings.
            bot: Optional pre-built Bot instance.
            http_client: Optional httpx client used for file downloads.
        """
        self.settings = config or default_settings
        self.token = self.settings.TELEGRAM_BOT_TOKEN
        try:
            self.bot = bot or Bot(token=self.token)
        except TelegramError as error:
            logger.critical(
                f"Failed to initialize Telegram Bot. Is the TELEGRAM_BOT_TOKEN correct? Error: {error}",
                exc_info=True,
            )
            raise
        self._http_client = http_client

    def build_download_url(self, file_path: str) -> str:
        """Returns the file server URL for a getFile path; full URLs are passed through unchanged."""
        if file_path.startswith(("http://", "https://")):
            return file_path
        return f"{TELEGRAM_FILE_BASE_URL}{self.token}/{file_path}"

    async def resolve_file_path(self, file_id: str) -> str:
        """
        Calls getFile to obtain the remote path of an attachment.
        Args:
            file_id: The session-scoped file identifier from the message.
        Returns:
            The file path (or full download URL) reported by Telegram.
        Raises:
            MetadataUnavailableError: If Telegram returned no file path.
            TelegramError: If the API call fails.
        """
        logger.debug(f"Resolving Telegram file path for file_id {file_id}")
        telegram_file = await self.bot.get_file(file_id)
        file_path = getattr(telegram_file, "file_path", None)
        if not file_path:
            raise MetadataUnavailableError("Telegram getFile did not return file_path")
        return file_path

    async def download_file(self, url: str) -> DownloadedFile:
        """
        Downloads a Telegram file into memory.
        Args:
            url: The file server URL.
        Returns:
            The downloaded bytes and the response Content-Type.
        Raises:
            FileDownloadError: If the file server answers with a non-2xx status.
        """
        if self._http_client is not None:
            return await self._download(self._http_client, url)
        async with httpx.AsyncClient(timeout=None, follow_redirects=True) as client:
            return await self._download(client, url)

    @staticmethod
    async def _download(client: httpx.AsyncClient, url: str) -> DownloadedFile:
        response = await client.get(url)
        if not response.is_success:
            raise FileDownloadError(response.status_code)
        return DownloadedFile(content=response.content, content_type=response.headers.get("content-type"))

    async def set_message_reaction(self, chat_id: int, message_id: int) -> None:
        """
        Reacts to the source message as a read acknowledgment. Failures are logged and ignored.
        Args:
            chat_id: The chat containing the message.
            message_id: The message to react to.
        """
        try:
            await self.bot.set_message_reaction(
                chat_id=chat_id,
                message_id=message_id,
                reaction=[ReactionTypeEmoji(READ_ACK_EMOJI)],
            )
        except TelegramError as error:
            logger.warning(f"Could not set read reaction on message {message_id} in chat {chat_id}: {error}")

    async def get_updates(
        self,
        offset: Optional[int] = None,
        limit: int = 50,
        allowed_updates: Sequence[str] = ALLOWED_UPDATES,
    ) -> List[Dict[str, Any]]:
        """
        Fetches new updates from the Telegram Bot API via polling.
        Args:
            offset: The identifier of the first update to be returned.
            limit: Maximum number of updates to return (1-100).
            allowed_updates: Update types to receive.
        Returns:
            The updates as raw JSON dictionaries.
        Raises:
            TelegramError: If the API call fails.
        """
        logger.info(f"Fetching Telegram updates with offset: {offset}, limit: {limit}")
        try:
            updates = await self.bot.get_updates(
                offset=offset,
                limit=limit,
                allowed_updates=list(allowed_updates),
            )
        except TelegramError as e:
            logger.error(f"Failed to fetch updates from Telegram: {e}", exc_info=True)
            raise
        logger.info(f"Found {len(updates)} new updates from Telegram.")
        return [update.to_dict() for update in updates]

    async def set_webhook(self, url: str, *, secret_token: Optional[str] = None) -> bool:
        """
        Sets the webhook for the Telegram bot.
        Args:
            url: The public URL to set as the webhook.
            secret_token: Optional secret token Telegram will send with every delivery.
        Returns:
            True if the webhook was successfully set, False otherwise.
        Raises:
            TelegramError: If the API call fails.
        """
        try:
            success = await self.bot.set_webhook(
                url=url,
                secret_token=secret_token,
                allowed_updates=list(ALLOWED_UPDATES),
            )
            if success:
                logger.info(f"Webhook successfully set to {url}")
            else:
                logger.error("Failed to set webhook.")
            return success
        except TelegramError as error:
            logger.error(f"Error setting webhook: {error}", exc_info=True)
            raise

    async def delete_webhook(self) -> bool:
        """
        Deletes the currently set webhook so getUpdates can be used.
        Returns:
            True if the webhook was successfully deleted, False otherwise.
        Raises:
            TelegramError: If the API call fails.
        """
        try:
            success = await self.bot.delete_webhook(drop_pending_updates=False)
            if success:
                logger.info("Webhook successfully deleted.")
            else:
                logger.warning("Failed to delete webhook or no webhook was set.")
            return success
        except TelegramError as error:
            logger.error(f"Error deleting webhook: {error}", exc_info=True)
            raise
