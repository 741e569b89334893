"""Database base configuration."""
import os
import ssl
from typing import AsyncIterator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from fieldops.settings import settings


def normalize_async_pg_url(url: str) -> str:
    """Ensure URL uses asyncpg driver; hosted Postgres often hands out postgresql:// (sync)."""
    u = (url or "").strip()
    if u.startswith("postgresql://"):
        return u.replace("postgresql://", "postgresql+asyncpg://", 1)
    return u


def async_pg_connect_args(url: str) -> dict:
    """asyncpg does not accept sslmode; translate sslmode=require into an ssl argument.
    DATABASE_SSL_VERIFY=true keeps strict certificate verification."""
    qs = parse_qs(urlparse(url).query, keep_blank_values=True)
    if qs.get("sslmode") != ["require"]:
        return {}
    if os.environ.get("DATABASE_SSL_VERIFY", "false").strip().lower() in ("true", "1"):
        return {"ssl": True}
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return {"ssl": ctx}


def async_pg_url_without_sslmode(url: str) -> str:
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    qs.pop("sslmode", None)
    return urlunparse(parsed._replace(query=urlencode(qs, doseq=True)))


_db_url = normalize_async_pg_url(settings.database_url)
engine = create_async_engine(
    async_pg_url_without_sslmode(_db_url),
    connect_args=async_pg_connect_args(_db_url),
    echo=settings.database_echo,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        yield session


# Models are imported in fieldops/main.py (and alembic/env.py) to avoid circular imports:
# base.py -> models/__init__.py -> checklist.py -> base.py
