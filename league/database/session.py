import logging
import pathlib
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from league.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass

_engine: AsyncEngine | None = None
_async_session: async_sessionmaker[AsyncSession] | None = None


def _ensure_data_dir(database_url: str):
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        pathlib.Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db(database_url: Optional[str] = None) -> async_sessionmaker[AsyncSession]:
    """
    Create the engine and session factory, then create missing tables.

    Args:
        database_url: Overrides ``settings.database_url``

    Returns:
        The session factory
    """
    global _engine, _async_session
    url = database_url or settings.database_url
    _ensure_data_dir(url)
    _engine = create_async_engine(url, echo=False, future=True)
    _async_session = async_sessionmaker(_engine, expire_on_commit=False)

    # import models and create tables
    from . import models  # noqa: F401
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.debug(f"Database ready: {make_url(url).render_as_string(hide_password=True)}")
    return _async_session


async def close_db():
    global _engine, _async_session
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session = None


def get_session() -> async_sessionmaker[AsyncSession]:
    assert _async_session is not None, "DB is not initialized"
    return _async_session


def async_session() -> AsyncSession:
    """Open a database session.

    Usage:
        async with async_session() as session:
            ...
    """
    assert _async_session is not None, "DB is not initialized"
    return _async_session()
