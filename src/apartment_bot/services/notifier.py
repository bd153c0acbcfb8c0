"""Telegram notifications for new listings."""

import logging
import re
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import InvalidToken, TelegramError
from telegram.request import HTTPXRequest

from ..adapters.base import DEFAULT_TIMEOUT
from ..exceptions import ConfigError
from ..models.listing import ListingRecord

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

_MARKDOWN_SPECIAL = re.compile(r"([_*`\[])")


def escape_markdown(value) -> str:
    """Escape Telegram (legacy) Markdown control characters in free text."""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", str(value or ""))


class TelegramNotifier:
    """
    Send one Markdown message per new listing to a single chat.

    Messages are rendered from per-source Jinja2 templates
    (templates/<source>.md.j2). Delivery failures are logged and reported
    as False, never raised, so a broken chat never blocks the pipeline.
    """

    def __init__(self, bot: Bot, chat_id: str, template_dir: Optional[str] = None):
        self.bot = bot
        self.chat_id = chat_id
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.jinja_env.filters["md"] = escape_markdown

    @classmethod
    def from_settings(cls, settings) -> "TelegramNotifier":
        timeout = settings.request_timeout or DEFAULT_TIMEOUT
        request = HTTPXRequest(connect_timeout=timeout, read_timeout=timeout, write_timeout=timeout)
        bot = Bot(token=settings.telegram_bot_token, request=request)
        return cls(bot, settings.telegram_chat_id)

    def render(self, listing: ListingRecord, applied: Optional[bool] = None) -> str:
        template = self.jinja_env.get_template(f"{listing.source.value}.md.j2")
        return template.render(listing=listing, applied=applied).strip()

    async def notify(self, listing: ListingRecord, applied: Optional[bool] = None) -> bool:
        """
        Format and send the message for a listing.

        Args:
            listing: The new listing
            applied: True/False if an application was attempted, None if not

        Returns:
            True if Telegram accepted the message
        """
        logger.info(f"Sending {listing.source.value} notification for: {listing.title}")
        sent = await self.send(self.render(listing, applied))
        if sent:
            logger.info(f"Notification sent for: {listing.title}")
        return sent

    async def send(self, text: str) -> bool:
        try:
            await self.bot.send_message(
                chat_id=self.chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN,
            )
        except TelegramError as e:
            logger.error(f"Error sending Telegram message: {e}")
            return False
        return True

    async def initialize(self) -> None:
        """
        Open the Bot API client and verify the token.

        An unreachable API is only logged; sending retries on the next listing.

        Raises:
            ConfigError: If Telegram rejects the bot token
        """
        try:
            await self.bot.initialize()
        except InvalidToken as e:
            raise ConfigError(f"Telegram rejected TELEGRAM_BOT_TOKEN: {e}") from e
        except TelegramError as e:
            logger.warning(f"Could not reach Telegram at startup: {e}")

    async def __aenter__(self) -> "TelegramNotifier":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.bot.shutdown()
