"""
Send alerts via the Telegram Bot API (sendMessage).
Requires TELEGRAM_BOT_TOKEN in env. Every call carries a timeout; a timeout, non-200
response or transport error is reported as a failed send (False), never raised.
"""
import logging
from typing import Any, Protocol

import httpx

from waveping.core.constants import TELEGRAM_MAX_MESSAGE_CHARS
from waveping.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# One inline keyboard: rows of buttons, each {"text": ..., "url": ...} or {"text": ..., "callback_data": ...}
Buttons = list[list[dict[str, str]]]


class PushChannel(Protocol):
    """Outbound channel: one call = one addressed message. Must be safe to call from worker threads."""

    def send(self, chat_id: int, text: str, buttons: Buttons | None = None) -> bool:
        """Deliver text (chunked if needed). True once the first part was accepted."""
        ...


def split_message(text: str, limit: int = TELEGRAM_MAX_MESSAGE_CHARS) -> list[str]:
    """
    Split text into chunks of at most `limit` chars, breaking at newlines when possible.
    A single line longer than the limit is force-split. "\\n".join(chunks) == text.
    """
    if len(text) <= limit:
        return [text]
    chunks: list[str] = []
    current: str | None = None
    for line in text.split("\n"):
        while len(line) > limit:
            if current is not None:
                chunks.append(current)
                current = None
            chunks.append(line[:limit])
            line = line[limit:]
        if current is None:
            current = line
        elif len(current) + 1 + len(line) <= limit:
            current = f"{current}\n{line}"
        else:
            chunks.append(current)
            current = line
    if current is not None:
        chunks.append(current)
    return chunks


class TelegramChannel:
    """Telegram Bot API sender. transport is for tests (httpx.MockTransport)."""

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        max_chars: int = TELEGRAM_MAX_MESSAGE_CHARS,
        transport: httpx.BaseTransport | None = None,
    ):
        if not (bot_token or "").strip():
            raise ConfigurationError("Telegram bot token (TELEGRAM_BOT_TOKEN) is not set")
        self._url = f"{api_base.rstrip('/')}/bot{bot_token.strip()}/sendMessage"
        self._timeout = timeout
        self._max_chars = min(max_chars, TELEGRAM_MAX_MESSAGE_CHARS)
        self._transport = transport

    def _post(self, client: httpx.Client, chat_id: int, payload: dict[str, Any]) -> bool:
        try:
            resp = client.post(self._url, json=payload)
        except httpx.TimeoutException:
            logger.warning("Telegram sendMessage timed out for chat %s", chat_id)
            return False
        except httpx.HTTPError as e:
            logger.warning("Telegram request failed for chat %s: %s", chat_id, e)
            return False
        if resp.status_code == 200:
            try:
                return bool(resp.json().get("ok", True))
            except ValueError:
                return True
        if resp.status_code == 429:
            logger.warning("Telegram rate limited chat %s: %s", chat_id, resp.text[:200])
        else:
            logger.warning("Telegram returned %s for chat %s: %s", resp.status_code, chat_id, resp.text[:200])
        return False

    def send(self, chat_id: int, text: str, buttons: Buttons | None = None) -> bool:
        """
        The first chunk is the commit point: False only if it was not accepted. Once it is,
        the message counts as delivered and a later chunk failing is logged, not retried.
        """
        chunks = [c for c in split_message(text, self._max_chars) if c.strip()]
        if not chunks:
            logger.warning("Refusing to send an empty message to chat %s", chat_id)
            return False
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            for i, chunk in enumerate(chunks):
                is_last = i == len(chunks) - 1
                payload: dict[str, Any] = {
                    "chat_id": chat_id,
                    "text": chunk,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                }
                if is_last and buttons:
                    payload["reply_markup"] = {"inline_keyboard": buttons}
                if not is_last:
                    payload["disable_notification"] = True
                if self._post(client, chat_id, payload):
                    continue
                if i == 0:
                    return False
                logger.warning(
                    "Chat %s received %s of %s parts; dropping the rest so the message is not repeated",
                    chat_id,
                    i,
                    len(chunks),
                )
                break
        return True

