"""HTTP surface: Telegram webhook plus maintenance endpoints.

  POST /webhook      - Telegram update push (acknowledged immediately)
  GET  /setWebhook   - register <origin>/webhook with Telegram
  GET  /me           - bot identity
  GET  /             - health check

Updates are processed after the response is sent (FastAPI background
task). The task runs to completion and any exception escaping the
dispatcher is logged and reported to the admin.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .communication import messages as msgs
from .communication.errors import ConfigError, classify_error
from .communication.telegram import TelegramTransport
from .config import RelaySettings, load_settings
from .db.connection import close_db, init_db, is_initialized
from .directory import Directory, MemoryDirectory, PostgresDirectory
from .dispatcher import RelayDispatcher

logger = logging.getLogger("relaybot.server")

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


async def process_update_guarded(dispatcher: RelayDispatcher, update: dict):
    """Background unit of work for one update."""
    try:
        await dispatcher.handle_update(update)
    except Exception as e:
        logger.error(f"Unhandled error while processing update: {e}", exc_info=True)
        await dispatcher.notify_admin(msgs.bot_error(classify_error(e)))


def build_directory(settings: RelaySettings) -> Optional[Directory]:
    if not settings.tracking_enabled:
        return None
    if settings.database_url:
        return PostgresDirectory()
    return MemoryDirectory()


def create_app(
    settings: Optional[RelaySettings] = None,
    transport=None,
    directory: Optional[Directory] = None,
) -> FastAPI:
    """Build the ASGI app. ``transport``/``directory`` may be injected for tests."""
    settings = settings or load_settings()
    missing = settings.missing_required()

    if transport is None and not missing:
        transport = TelegramTransport(settings.bot_token)
    if directory is None:
        directory = build_directory(settings)
    dispatcher = RelayDispatcher(settings, transport, directory) if transport is not None else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(directory, PostgresDirectory):
            await init_db(settings.database_url)
            await directory.ensure_schema()
            logger.info("Recipient directory: PostgreSQL")
        yield
        if transport is not None and hasattr(transport, "close"):
            await transport.close()
        if is_initialized():
            await close_db()

    app = FastAPI(title="relaybot", lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatcher = dispatcher

    @app.middleware("http")
    async def require_config(request: Request, call_next):
        if missing:
            return PlainTextResponse(str(ConfigError(missing)), status_code=500)
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return PlainTextResponse("Not Found", status_code=404)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    def _system_error(background_tasks: BackgroundTasks, e: Exception) -> PlainTextResponse:
        logger.error(f"Request handling error: {e}", exc_info=True)
        background_tasks.add_task(dispatcher.notify_admin, msgs.system_error(classify_error(e)))
        return PlainTextResponse("Internal Server Error", status_code=500)

    @app.post("/webhook")
    async def webhook(request: Request, background_tasks: BackgroundTasks):
        if settings.webhook_secret:
            if request.headers.get(SECRET_HEADER) != settings.webhook_secret:
                return PlainTextResponse("Unauthorized", status_code=401)

        try:
            update = await request.json()
            if not isinstance(update, dict):
                raise ValueError("update payload is not a JSON object")
        except Exception as e:
            logger.error(f"Webhook error: {e}")
            background_tasks.add_task(dispatcher.notify_admin, msgs.bot_error(classify_error(e)))
            return PlainTextResponse("Internal Server Error", status_code=500)

        if update.get("message"):
            background_tasks.add_task(process_update_guarded, dispatcher, update)

        return PlainTextResponse("OK")

    @app.get("/setWebhook")
    async def set_webhook(request: Request, background_tasks: BackgroundTasks):
        webhook_url = f"{request.url.scheme}://{request.url.netloc}/webhook"
        try:
            result = await transport.register_webhook(webhook_url, settings.webhook_secret or "")
        except Exception as e:
            return _system_error(background_tasks, e)
        return JSONResponse(result)

    @app.get("/me")
    async def me(background_tasks: BackgroundTasks):
        try:
            result = await transport.get_self_info()
        except Exception as e:
            return _system_error(background_tasks, e)
        return JSONResponse(result)

    @app.get("/")
    async def health():
        return PlainTextResponse("Telegram Bot is running!")

    return app
