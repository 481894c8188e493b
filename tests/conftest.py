"""Pytest configuration and fixtures."""

import itertools
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from league.database.session import Base
from league.services.league_service import LeagueService
from league.services.records import PlayerRecord, SeasonRecord, build_match


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class MatchFactory:
    """Builds validated match records with increasing ids."""

    def __init__(self):
        self._ids = itertools.count(1)

    def __call__(
        self,
        player_one_id: int,
        player_two_id: int,
        player_one_points: int,
        player_two_points: int,
        played_at: Optional[datetime] = None,
        season_id: Optional[int] = None,
    ):
        match_id = next(self._ids)
        if played_at is None:
            played_at = utc(2024, 3, 1) + timedelta(hours=match_id)
        return build_match(
            match_id,
            player_one_id,
            player_two_id,
            player_one_points,
            player_two_points,
            played_at,
            season_id,
        )


@pytest.fixture
def make_match() -> MatchFactory:
    return MatchFactory()


@pytest.fixture
def players():
    """Four players, ids 1-4."""
    return [
        PlayerRecord(id=1, name="Alice"),
        PlayerRecord(id=2, name="Bob"),
        PlayerRecord(id=3, name="Carol"),
        PlayerRecord(id=4, name="Dave"),
    ]


@pytest.fixture
def march_2024() -> SeasonRecord:
    """The March 2024 season in UTC."""
    return SeasonRecord(
        id=1,
        name="Season March 2024",
        start_date=utc(2024, 3, 1),
        end_date=utc(2024, 3, 31, 23, 59, 59, 999000),
    )


@pytest_asyncio.fixture
async def test_db(tmp_path) -> AsyncGenerator:
    """File-backed SQLite database; yields a session factory."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'league.db'}", echo=False)

    # import models so their tables are registered
    from league.database import models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)

    yield session_maker

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def service(test_db) -> LeagueService:
    return LeagueService(session_factory=test_db, tz=timezone.utc)
