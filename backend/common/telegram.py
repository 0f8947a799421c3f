import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from common.errors import NotificationError
from common.models import InlineButton, OutboundMessage

logger = logging.getLogger(__name__)

TELEGRAM_TEXT_MAX_LEN = 4096
SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_telegram_secret(headers: Mapping[str, str], secret: Optional[str]) -> bool:
    if not secret:
        return True
    return headers.get(SECRET_HEADER) == secret


def extract_command(text: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Parses a string for a command like /add_task buy milk.
    Returns (command, args_string) with the leading slash removed.
    """
    if not text or not text.startswith("/"):
        return None, None

    parts = text.split(maxsplit=1)
    command = parts[0][1:].lower().split("@")[0]  # strip @botname suffix
    args = parts[1] if len(parts) > 1 else None
    return command, args


def build_inline_keyboard(button: InlineButton) -> Dict[str, Any]:
    return {"inline_keyboard": [[{"text": button.label, "callback_data": button.callback_data}]]}


class TelegramClient:
    def __init__(
        self,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"{api_base.rstrip('/')}/bot{bot_token}"
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)

    async def send(self, message: OutboundMessage) -> Dict[str, Any]:
        """
        Sends a message to a chat, optionally with a single inline button.
        Raises NotificationError when Telegram does not accept it.
        """
        payload: Dict[str, Any] = {
            "chat_id": message.chat_id,
            "text": (message.text or "")[:TELEGRAM_TEXT_MAX_LEN],
        }
        if message.inline_button is not None:
            payload["reply_markup"] = build_inline_keyboard(message.inline_button)

        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/sendMessage", json=payload)
        except httpx.HTTPError as exc:
            logger.error("Failed to send Telegram message to chat %s: %s", message.chat_id, exc)
            raise NotificationError(f"Telegram request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(
                "Failed to send Telegram message (status=%s, body=%s)",
                resp.status_code,
                resp.text,
            )
            raise NotificationError(
                f"Telegram rejected message with status {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        if not resp.content:
            return {"ok": True}
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Telegram returned a non-JSON body (status=%s, body=%s)", resp.status_code, resp.text)
            raise NotificationError(
                "Telegram returned a non-JSON response",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> bool:
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text[:200]
        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/answerCallbackQuery", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Failed to answer callback query %s: %s", callback_query_id, exc)
            return False
        if resp.status_code >= 400:
            logger.warning(
                "Failed to answer callback query (status=%s, body=%s)",
                resp.status_code,
                resp.text,
            )
            return False
        return True

    async def get_me(self) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.get(f"{self.base_url}/getMe")
        if resp.status_code >= 400:
            if resp.status_code in {401, 403}:
                return {"ok": False, "reason": "telegram_auth_failed"}
            return {"ok": False, "reason": f"telegram_http_{resp.status_code}"}
        try:
            payload = resp.json() if resp.content else {}
        except ValueError:
            return {"ok": False, "reason": "telegram_invalid_response"}
        if isinstance(payload, dict) and payload.get("ok") is True:
            return {"ok": True}
        return {"ok": False, "reason": "telegram_invalid_response"}
