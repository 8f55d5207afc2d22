from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool


def normalize_database_url(raw_url: str) -> str:
    url = (raw_url or "").strip()
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://") :]
    elif url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://") :]
    return url


def normalize_asyncpg_query(url: str) -> tuple[str, dict]:
    parsed = urlsplit(url)
    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    filtered: list[tuple[str, str]] = []
    connect_args: dict = {}

    sslmode = None
    for key, value in pairs:
        k = key.lower()
        if k == "sslmode":
            sslmode = (value or "").lower().strip()
            continue
        if k == "channel_binding":
            # libpq option not supported by asyncpg connect().
            continue
        filtered.append((key, value))

    if sslmode and sslmode not in {"disable", "allow"}:
        connect_args["ssl"] = "require"

    rebuilt = parsed._replace(query=urlencode(filtered))
    return urlunsplit(rebuilt), connect_args


def build_engine(database_url: str, serverless: bool = False) -> AsyncEngine:
    engine_kwargs: dict = {"pool_pre_ping": True}
    if serverless:
        # Serverless workers should avoid persistent pooled connections.
        engine_kwargs["poolclass"] = NullPool

    url = normalize_database_url(database_url)
    if url.startswith("postgresql+asyncpg://"):
        url, connect_args = normalize_asyncpg_query(url)
        if connect_args:
            engine_kwargs["connect_args"] = connect_args
    return create_async_engine(url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
