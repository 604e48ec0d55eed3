"""
Telegram module for the Crypto Quote Poller.

Provides channel delivery and the bot's command handlers.
"""

from bot.telegram_bot import (
    PhotoContent,
    TelegramPublisher,
    TextContent,
    build_application,
    create_publisher,
)

__all__ = [
    "PhotoContent",
    "TelegramPublisher",
    "TextContent",
    "build_application",
    "create_publisher",
]
