"""HTTP surface: Telegram webhook intake plus the transaction read and analytics endpoints.

Run with: uvicorn safemoney.main:app
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Query, Request

from safemoney.core.config import Settings, get_settings
from safemoney.core.container import ServiceHub, build_hub
from safemoney.core.errors import PersistenceFailure
from safemoney.core.logging import setup_logging
from safemoney.services.analytics import global_stats, summarize

logger = logging.getLogger(__name__)


def _hub(request: Request) -> ServiceHub:
    return request.app.state.hub


def create_app(settings: Settings | None = None, hub: ServiceHub | None = None) -> FastAPI:
    settings = settings or (hub.settings if hub is not None else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = hub is None
        if owned:
            setup_logging(settings.log_level)
        app.state.hub = hub if hub is not None else build_hub(settings)
        if owned:
            bot = app.state.hub.bot
            if settings.webhook_url and bot is not None:
                await bot.set_webhook(settings.webhook_url, secret_token=settings.webhook_secret)
                logger.info("webhook_registered", extra={"event": "webhook_registered"})
        try:
            yield
        finally:
            if owned:
                await app.state.hub.close()

    app = FastAPI(title="SafeMoney conversion bot", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    @app.post("/webhook")
    async def telegram_webhook(
        request: Request,
        x_telegram_bot_api_secret_token: str | None = Header(default=None),
    ) -> dict:
        if settings.webhook_secret and x_telegram_bot_api_secret_token != settings.webhook_secret:
            raise HTTPException(status_code=403, detail="bad secret token")
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("webhook_body_not_json", extra={"event": "webhook_body_not_json"})
            return {"ok": True}
        await _hub(request).router.handle_raw(payload)
        return {"ok": True}

    @app.get("/api/transactions")
    async def list_transactions(request: Request, user_id: int | None = Query(default=None, alias="userId")) -> list[dict]:
        recorder = _hub(request).recorder
        try:
            records = await recorder.list_all() if user_id is None else await recorder.list_for_user(user_id)
        except PersistenceFailure as exc:
            logger.error("transactions_read_failed", exc_info=exc, extra={"event": "transactions_read_failed"})
            raise HTTPException(status_code=500, detail="Internal Server Error") from exc
        return [r.to_dict() for r in records]

    @app.get("/api/analytics")
    async def analytics(request: Request) -> dict:
        try:
            records = await _hub(request).recorder.list_all()
        except PersistenceFailure as exc:
            logger.error("analytics_read_failed", exc_info=exc, extra={"event": "analytics_read_failed"})
            raise HTTPException(status_code=500, detail="Internal Server Error") from exc
        fiat = settings.fiat()
        return {
            "stats": global_stats(records, fiat).to_dict(),
            "users": [s.to_dict() for s in summarize(records, fiat)],
        }

    return app


app = create_app()
