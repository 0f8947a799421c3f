"""API Gateway proxy entry point for running the bot as a Lambda function."""
import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

from api.dispatcher import Dispatcher, build_dispatcher
from common.config import Settings, configure_logging
from common.telegram import SECRET_HEADER, verify_telegram_secret

logger = logging.getLogger(__name__)

_dispatcher: Optional[Dispatcher] = None


def _get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        settings = Settings()
        configure_logging(settings)
        _dispatcher = build_dispatcher(settings)
    return _dispatcher


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _header(event: Dict[str, Any], name: str) -> Optional[str]:
    # API Gateway does not normalize header case.
    headers = event.get("headers") or {}
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _body(event: Dict[str, Any]) -> str:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body).decode("utf-8")
        except ValueError:
            # Let the dispatcher treat it as a malformed update.
            return ""
    return body


def lambda_handler(event: Dict[str, Any], context: Any, dispatcher: Optional[Dispatcher] = None) -> Dict[str, Any]:
    dispatcher = dispatcher or _get_dispatcher()
    secret = dispatcher.settings.TELEGRAM_WEBHOOK_SECRET
    provided = _header(event, SECRET_HEADER)
    if not verify_telegram_secret({SECRET_HEADER: provided} if provided is not None else {}, secret):
        logger.warning("Rejecting webhook call with invalid secret")
        return _response(403, {"detail": "Unauthorized webhook source"})

    status_code, body = asyncio.run(dispatcher.handle(_body(event)))
    return _response(status_code, body)
