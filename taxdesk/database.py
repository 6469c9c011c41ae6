"""Database connection and session management."""

from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from taxdesk.config import settings


def strip_ssl_params(url: str) -> str:
    """Drop sslmode/ssl query params, which asyncpg does not accept in the URL."""
    if "sslmode=" not in url and "ssl=" not in url:
        return url
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    query.pop("sslmode", None)
    query.pop("ssl", None)
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def get_engine_url_and_connect_args() -> tuple[str, dict]:
    """Engine URL plus asyncpg connect_args (SSL requested via the URL)."""
    url = settings.database_url
    connect_args = {}
    if "sslmode=require" in url or "ssl=require" in url:
        connect_args["ssl"] = "require"
    return strip_ssl_params(url), connect_args


_db_url, _connect_args = get_engine_url_and_connect_args()


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


engine = create_async_engine(
    _db_url,
    echo=settings.log_level == "DEBUG",
    connect_args=_connect_args,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
