"""Database base configuration."""
import os
import ssl
import sys
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase


def normalize_async_pg_url(url: str) -> str:
    """Ensure URL uses asyncpg driver; cloud often gives postgresql:// (sync)."""
    u = (url or "").strip()
    if u.startswith("postgresql://"):
        return u.replace("postgresql://", "postgresql+asyncpg://", 1)
    return u


def _ssl_context_no_verify() -> ssl.SSLContext:
    """SSL context that skips certificate verification (for managed hosts with self-signed chains)."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def async_pg_connect_args(url: str) -> dict:
    """Build connect_args for asyncpg: use ssl when URL has sslmode=require (asyncpg does not accept sslmode).
    Set DATABASE_SSL_VERIFY=true to enable strict certificate verification."""
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    if qs.get("sslmode") != ["require"]:
        return {}
    verify = os.environ.get("DATABASE_SSL_VERIFY", "false").strip().lower()
    if verify in ("true", "1"):
        return {"ssl": True}
    return {"ssl": _ssl_context_no_verify()}


def async_pg_url_without_sslmode(url: str) -> str:
    """Return URL with sslmode removed so asyncpg does not get unknown kwarg sslmode."""
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    qs.pop("sslmode", None)
    return urlunparse(parsed._replace(query=urlencode(qs, doseq=True)))


# Tests build their own engines (in-memory / file SQLite); skip the production engine there.
_is_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

if not _is_pytest:
    from marketplace.settings import settings

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
else:
    engine = None
    AsyncSessionLocal = None


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# Models are imported in marketplace/infra/db/models/__init__.py; importing them here
# would be circular (base.py -> models -> base.py).
