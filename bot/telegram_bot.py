"""
Telegram publisher for the Crypto Quote Poller.

Provides:
- Destination resolution for the configured channel id
- Text and photo (chart + caption) delivery
- A small command Application (/start, /status) whose update polling
  runs alongside the poll loop
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from telegram import Bot, Chat, Update
from telegram.error import TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes, TypeHandler

from errors import ConfigurationError, PublishError

logger = logging.getLogger(__name__)


# =============================================================================
# CONTENT TYPES
# =============================================================================


@dataclass(frozen=True)
class TextContent:
    """A plain text message."""

    text: str


@dataclass(frozen=True)
class PhotoContent:
    """An image file sent with a caption."""

    file_path: str
    caption: str = ""


Content = Union[TextContent, PhotoContent]


START_MESSAGE = """👋 Crypto Quote Poller

I post price summaries for the tracked coins to the configured channel.

/status - Show the last published summary"""

NO_STATUS_MESSAGE = "No quotes have been published yet."


# =============================================================================
# TELEGRAM PUBLISHER CLASS
# =============================================================================


class TelegramPublisher:
    """
    Sends poll-cycle output to a single Telegram chat.

    Delivery is best-effort by default: send failures are logged and
    reported as a False return value, and never retried. With
    raise_on_failure they are raised as PublishError instead.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        bot: Optional[Bot] = None,
        raise_on_failure: bool = False,
    ):
        """
        Initialize the publisher.

        Args:
            token: Telegram bot token (used when no bot is given)
            bot: Existing Bot instance, e.g. an Application's bot
            raise_on_failure: Raise PublishError instead of returning False
        """
        if bot is None:
            if not token:
                raise ConfigurationError("BOT_TOKEN is required")
            bot = Bot(token=token)
        self.bot = bot
        self.raise_on_failure = raise_on_failure

        # Last delivered summary, served by /status
        self.last_summary: Optional[str] = None
        self.last_published_at: Optional[datetime] = None

    async def initialize(self) -> None:
        """Open the bot's HTTP client (not needed for an Application's bot)."""
        await self.bot.initialize()

    async def shutdown(self) -> None:
        await self.bot.shutdown()

    async def resolve_destination(self, channel_id: int) -> Chat:
        """
        Look up the destination chat once at loop start.

        Raises:
            ConfigurationError: if the chat cannot be resolved
        """
        try:
            chat = await self.bot.get_chat(chat_id=channel_id)
        except TelegramError as e:
            raise ConfigurationError(f"Could not resolve channel {channel_id}: {e}") from e
        logger.info(f"Resolved destination {channel_id}: {chat.title or chat.username or chat.type}")
        return chat

    async def send_text(self, destination: Chat, text: str) -> bool:
        """
        Send a text message.

        Returns:
            True if delivered, False if empty or rejected
        """
        if not text.strip():
            logger.debug("Skipping empty text message")
            return False

        try:
            await self.bot.send_message(chat_id=destination.id, text=text)
        except TelegramError as e:
            return self._failed(f"Failed to send message to {destination.id}: {e}", e)

        self._remember(text)
        return True

    async def send_photo(self, destination: Chat, file_path: str, caption: str = "") -> bool:
        """
        Send an image file with a caption.

        Returns:
            True if delivered, False if the file is unreadable or rejected
        """
        try:
            with open(file_path, "rb") as photo:
                await self.bot.send_photo(
                    chat_id=destination.id,
                    photo=photo,
                    caption=caption or None,
                )
        except (TelegramError, OSError) as e:
            return self._failed(f"Failed to send photo {file_path} to {destination.id}: {e}", e)

        self._remember(caption)
        return True

    async def publish(self, destination: Chat, content: Content) -> bool:
        """Send either kind of content."""
        if isinstance(content, PhotoContent):
            return await self.send_photo(destination, content.file_path, content.caption)
        return await self.send_text(destination, content.text)

    def _failed(self, message: str, error: Exception) -> bool:
        logger.error(message)
        if self.raise_on_failure:
            raise PublishError(message) from error
        return False

    def _remember(self, summary: str) -> None:
        if summary:
            self.last_summary = summary
            self.last_published_at = datetime.now()

    # =========================================================================
    # COMMAND HANDLERS
    # =========================================================================

    async def handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start command."""
        await update.effective_message.reply_text(START_MESSAGE)

    async def handle_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /status command with the last published summary."""
        if self.last_summary is None:
            await update.effective_message.reply_text(NO_STATUS_MESSAGE)
            return

        stamp = self.last_published_at.strftime("%Y-%m-%d %H:%M")
        await update.effective_message.reply_text(f"{self.last_summary}Last update: {stamp}")


async def log_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log every incoming update before the command handlers see it."""
    chat_id = update.effective_chat.id if update.effective_chat else None
    logger.info(f"Update {update.update_id} from chat {chat_id}")


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def build_application(token: str) -> Application:
    """
    Create the Telegram Application that runs the update receive loop.

    Args:
        token: Telegram bot token

    Returns:
        Configured (not yet initialized) Application
    """
    if not token:
        raise ConfigurationError("BOT_TOKEN is required")
    return Application.builder().token(token).build()


def attach_handlers(app: Application, publisher: TelegramPublisher) -> None:
    """Register update logging and the /start and /status commands."""
    app.add_handler(TypeHandler(Update, log_update), group=-1)
    app.add_handler(CommandHandler("start", publisher.handle_start))
    app.add_handler(CommandHandler("status", publisher.handle_status))


def create_publisher(
    token: Optional[str] = None,
    app: Optional[Application] = None,
    raise_on_failure: bool = False,
) -> TelegramPublisher:
    """
    Factory function to create a TelegramPublisher.

    Reuses the Application's bot when one is given so that a single
    HTTP connection pool serves both the receive loop and delivery.
    """
    if app is not None:
        publisher = TelegramPublisher(bot=app.bot, raise_on_failure=raise_on_failure)
        attach_handlers(app, publisher)
        return publisher
    return TelegramPublisher(token=token, raise_on_failure=raise_on_failure)
