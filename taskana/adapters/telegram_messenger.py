"""Telegram messaging adapter — implements MessagingPort.

Wraps a telegram.Bot instance. Conversation IDs are Telegram chat IDs as
strings; media handles are Telegram file IDs.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import TelegramError

from taskana.ports.messaging_port import MessagingError, SentMessage

logger = logging.getLogger(__name__)


class TelegramMessenger:
    """Telegram implementation of MessagingPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_text(self, conversation_id: str, text: str) -> SentMessage:
        try:
            message = await self._bot.send_message(chat_id=int(conversation_id), text=text)
        except TelegramError as exc:
            logger.error("Telegram send to %s failed: %s", conversation_id, exc)
            return SentMessage(success=False)
        return SentMessage(success=True, message_id=str(message.message_id))

    async def download_media(self, media_handle: object) -> bytes:
        try:
            tg_file = await self._bot.get_file(str(media_handle))
            data = await tg_file.download_as_bytearray()
        except TelegramError as exc:
            raise MessagingError(f"Failed to download media {media_handle}: {exc}") from exc
        return bytes(data)
