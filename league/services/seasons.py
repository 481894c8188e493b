"""
Season Partitioner - monthly season windows.

Every match belongs to the season of the local calendar month in which it
was played. Seasons are created lazily: the first lookup for a month
without a season asks the caller to create one.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple

from league.services.records import SeasonRecord
from league.utils import ensure_utc

logger = logging.getLogger(__name__)

SEASON_NAME_PREFIX = "Season"

MonthKey = Tuple[int, int]


@dataclass(frozen=True)
class SeasonWindow:
    """
    Boundaries of one calendar-month season.

    Attributes:
        year: Calendar year
        month: Calendar month (1-12)
        start: First instant of the month in the league timezone
        end: Last instant (23:59:59.999) of the month in the league timezone
        name: Display name
    """
    year: int
    month: int
    start: datetime
    end: datetime
    name: str

    @property
    def key(self) -> MonthKey:
        return (self.year, self.month)


def month_key(ts: datetime, tz: tzinfo) -> MonthKey:
    """Return the local (year, month) a timestamp falls in."""
    local = ensure_utc(ts).astimezone(tz)
    return (local.year, local.month)


def season_name(year: int, month: int) -> str:
    """Build the display name, e.g. ``Season March 2024``."""
    return f"{SEASON_NAME_PREFIX} {calendar.month_name[month]} {year}"


def season_window(ts: datetime, tz: tzinfo) -> SeasonWindow:
    """
    Compute the season window containing ``ts``.

    Args:
        ts: Timestamp (naive values are read as UTC)
        tz: League timezone the months are counted in

    Returns:
        SeasonWindow for the local calendar month of ``ts``
    """
    year, month = month_key(ts, tz)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime(year, month, last_day, 23, 59, 59, 999000, tzinfo=tz)
    return SeasonWindow(year=year, month=month, start=start, end=end, name=season_name(year, month))


class SeasonCache:
    """
    Lookup of known seasons by local (year, month).

    Populated lazily as seasons are found or created and never evicted; it
    holds nothing that cannot be rebuilt from the persisted season table,
    so a fresh process starts from :meth:`from_seasons`.
    """

    def __init__(self, tz: tzinfo):
        self.tz = tz
        self._by_month: Dict[MonthKey, SeasonRecord] = {}

    @classmethod
    def from_seasons(cls, seasons: Iterable[SeasonRecord], tz: tzinfo) -> "SeasonCache":
        cache = cls(tz)
        for season in seasons:
            cache.add(season)
        return cache

    def add(self, season: SeasonRecord) -> SeasonRecord:
        """
        Remember a season; the first season seen for a month wins.

        Returns:
            The season cached for that month
        """
        key = month_key(season.start_date, self.tz)
        existing = self._by_month.get(key)
        if existing is not None and existing.id != season.id:
            logger.warning(
                f"Duplicate season {season.id} for {key}, keeping season {existing.id}"
            )
            return existing
        self._by_month[key] = season
        return season

    def get(self, key: MonthKey) -> Optional[SeasonRecord]:
        return self._by_month.get(key)

    def __len__(self) -> int:
        return len(self._by_month)

    def __contains__(self, key: MonthKey) -> bool:
        return key in self._by_month

    def seasons(self) -> list:
        """All cached seasons, newest first."""
        return [self._by_month[key] for key in sorted(self._by_month, reverse=True)]


class SeasonPartitioner:
    """
    Assigns timestamps to monthly seasons.

    Membership is decided by the local (year, month) of the timestamp, so
    every instant resolves to exactly one season: 23:59:59.999 on the last
    day of a month belongs to that month, 00:00 on the 1st to the next.
    """

    def __init__(self, cache: SeasonCache):
        self.cache = cache

    @property
    def tz(self) -> tzinfo:
        return self.cache.tz

    def window_for(self, ts: datetime) -> SeasonWindow:
        return season_window(ts, self.tz)

    def locate(self, ts: datetime) -> Optional[SeasonRecord]:
        """Return the known season containing ``ts`` or None."""
        return self.cache.get(month_key(ts, self.tz))

    async def season_for(
        self,
        ts: datetime,
        create: Callable[[SeasonWindow], Awaitable[SeasonRecord]],
    ) -> SeasonRecord:
        """
        Return the season containing ``ts``, creating it when missing.

        Repeated calls for timestamps in the same month return the same
        season without calling ``create`` again.

        Args:
            ts: Timestamp to place
            create: Coroutine function that persists (or finds) the season
                for the window and returns it
        """
        existing = self.locate(ts)
        if existing is not None:
            return existing
        window = self.window_for(ts)
        season = await create(window)
        return self.cache.add(season)


def has_elapsed(season: SeasonRecord, now: datetime) -> bool:
    """True once the whole season window lies in the past."""
    return ensure_utc(season.end_date) < ensure_utc(now)


def season_contains(season: SeasonRecord, ts: datetime) -> bool:
    """
    Check whether ``ts`` falls inside the season window.

    The end bound is extended to the start of the next month so instants
    after 23:59:59.999 still land in the closing season.
    """
    instant = ensure_utc(ts)
    upper = ensure_utc(season.end_date) + timedelta(milliseconds=1)
    return ensure_utc(season.start_date) <= instant < upper
