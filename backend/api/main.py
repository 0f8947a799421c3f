import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from api.dispatcher import Dispatcher, build_dispatcher
from api.schemas import TelegramWebhookResponse
from common.config import Settings, configure_logging
from common.errors import StoreError
from common.telegram import verify_telegram_secret

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/v1/integrations/telegram/webhook"

router = APIRouter()


def get_dispatcher(request: Request) -> Dispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Dispatcher not initialized")
    return dispatcher

# --- Health ---

@router.get("/health/live")
async def health_live():
    return {"status": "ok"}

@router.get("/health/ready")
async def health_ready(dispatcher: Dispatcher = Depends(get_dispatcher)):
    try:
        await asyncio.to_thread(dispatcher.repository.ping)
    except StoreError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "store": "error"})
    return {"status": "ready", "store": "ok"}

async def _check_telegram(dispatcher: Dispatcher) -> Dict[str, Any]:
    try:
        return await dispatcher.telegram.get_me()
    except httpx.HTTPError as e:
        return {"ok": False, "reason": f"telegram_unreachable: {type(e).__name__}"}

async def _check_store(dispatcher: Dispatcher) -> Dict[str, Any]:
    try:
        await asyncio.to_thread(dispatcher.repository.ping)
    except StoreError as e:
        return {"ok": False, "reason": str(e)}
    return {"ok": True}

@router.get("/health/preflight")
async def health_preflight(dispatcher: Dispatcher = Depends(get_dispatcher)):
    checks = {
        "telegram": await _check_telegram(dispatcher),
        "store": await _check_store(dispatcher),
    }
    ok = all(check.get("ok") is True for check in checks.values())
    return JSONResponse(status_code=200 if ok else 503, content={"ok": ok, "checks": checks})

# --- Telegram Integration ---

@router.post(WEBHOOK_PATH, response_model=TelegramWebhookResponse)
async def telegram_webhook(request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    if not verify_telegram_secret(request.headers, dispatcher.settings.TELEGRAM_WEBHOOK_SECRET):
        raise HTTPException(status_code=403, detail="Unauthorized webhook source")

    body = await request.body()
    status_code, payload = await dispatcher.handle(body)
    return JSONResponse(status_code=status_code, content=payload)


def create_app(dispatcher: Optional[Dispatcher] = None, settings: Optional[Settings] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "dispatcher", None) is None:
            loaded = settings or Settings()
            configure_logging(loaded)
            app.state.dispatcher = build_dispatcher(loaded)
            logger.info("Task bot started (env=%s, table=%s)", loaded.APP_ENV, loaded.TASKS_TABLE)
        yield

    app = FastAPI(title="Task Bot", lifespan=lifespan)
    if dispatcher is not None:
        app.state.dispatcher = dispatcher

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(router)
    return app


app = create_app()
