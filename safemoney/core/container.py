from __future__ import annotations

from dataclasses import dataclass

from aiogram import Bot
from sqlalchemy.ext.asyncio import AsyncEngine

from safemoney.adapters.prices import PriceOracle
from safemoney.adapters.telegram import TelegramTransport
from safemoney.bot.handlers import UpdateRouter
from safemoney.core.cache import RedisCache
from safemoney.core.config import Settings
from safemoney.core.http import ResilientHTTPClient
from safemoney.db.session import build_engine, build_session_factory
from safemoney.services.conversation_state import ConversationStateStore
from safemoney.services.conversion import ConversionEngine
from safemoney.services.transactions import TransactionRecorder


@dataclass
class ServiceHub:
    settings: Settings
    router: UpdateRouter
    recorder: TransactionRecorder
    bot: Bot | None = None
    transport: TelegramTransport | None = None
    http: ResilientHTTPClient | None = None
    cache: RedisCache | None = None
    db_engine: AsyncEngine | None = None

    async def close(self) -> None:
        if self.transport is not None:
            await self.transport.close()
        if self.http is not None:
            await self.http.close()
        if self.cache is not None:
            await self.cache.close()
        if self.db_engine is not None:
            await self.db_engine.dispose()


def build_hub(settings: Settings) -> ServiceHub:
    fiat = settings.fiat()
    assets = settings.supported_assets_list()

    http = ResilientHTTPClient(timeout=settings.http_timeout, retries=settings.http_retries)
    cache = RedisCache(settings.redis_url) if settings.redis_url else None
    oracle = PriceOracle(
        http,
        settings.coingecko_base,
        fiat,
        cache=cache,
        cache_ttl=settings.price_cache_ttl,
        test_mode=settings.test_mode,
        mock_prices=settings.mock_prices,
    )

    db_engine = build_engine(settings.database_url, serverless=settings.serverless_mode)
    recorder = TransactionRecorder(build_session_factory(db_engine), fiat, assets)

    bot = Bot(token=settings.telegram_bot_token)
    transport = TelegramTransport(bot)
    router = UpdateRouter(
        settings,
        transport,
        ConversationStateStore(),
        ConversionEngine(oracle, fiat, assets),
        oracle,
        recorder,
    )
    return ServiceHub(
        settings=settings,
        router=router,
        recorder=recorder,
        bot=bot,
        transport=transport,
        http=http,
        cache=cache,
        db_engine=db_engine,
    )
