"""League Service - players, matches and seasons backed by the database.

Loads the persisted league into plain records, runs the rating, statistics,
standings and recommendation rules over them and writes back the few
derived facts that are stored: season assignment of matches and the
champion of each elapsed season.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, event, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league.config import settings
from league.database.models import Match, Player, Season
from league.database.session import get_session
from league.services.elo import RatingEngine, RatingPoint, compute_rating_deltas
from league.services.recommendations import RecommendationReport, recommend_matches
from league.services.records import (
    MatchRecord,
    PlayerRecord,
    SeasonRecord,
    UnknownPlayerError,
    decide_winner,
    validate_match_input,
)
from league.services.rivalries import (
    DEFAULT_RIVALRY_LIMIT,
    HeadToHead,
    Rivalry,
    head_to_head,
    hottest_rivalries,
    pair_matches,
)
from league.services.seasons import SeasonCache, SeasonPartitioner, SeasonWindow
from league.services.standings import (
    SeasonSummary,
    apply_champions,
    matches_by_season,
    pending_champions,
    rank_career,
    summarize_season,
)
from league.services.statistics import PlayerStats, build_all_player_stats
from league.utils import ensure_utc, to_db_datetime, utc_now

logger = logging.getLogger(__name__)

# Longest accepted player name
MAX_NAME_LENGTH = 100


# ============================================================================
# Errors
# ============================================================================

class PlayerNotFoundError(UnknownPlayerError):
    """Raised when an operation names a player that does not exist."""

    def __init__(self, player_id):
        super().__init__(player_id, f"Player {player_id} not found.")


class MatchNotFoundError(LookupError):
    """Raised when an operation names a match that does not exist."""

    def __init__(self, match_id: int):
        super().__init__(f"Match {match_id} not found.")
        self.match_id = match_id


class DuplicatePlayerError(ValueError):
    """Raised when a player name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"A player named '{name}' already exists.")
        self.name = name


class PlayerValidationError(ValueError):
    """Raised for an empty, overlong or all-digit player name."""


class SeasonNotFoundError(LookupError):
    """Raised when an operation names a season that does not exist."""

    def __init__(self, season_id: int):
        super().__init__(f"Season {season_id} not found.")
        self.season_id = season_id


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class MatchView:
    """
    A match with its players and the rating change it caused.

    Attributes:
        match: The match record
        player_one: First listed player
        player_two: Second listed player
        player_one_rating_delta: Season rating change of player one
        player_two_rating_delta: Season rating change of player two
    """
    match: MatchRecord
    player_one: PlayerRecord
    player_two: PlayerRecord
    player_one_rating_delta: int = 0
    player_two_rating_delta: int = 0

    @property
    def winner(self) -> PlayerRecord:
        return self.player_one if self.match.winner_id == self.player_one.id else self.player_two


@dataclass(frozen=True)
class SeasonsOverview:
    """All seasons newest first, plus the id of the current one."""
    seasons: List[SeasonSummary] = field(default_factory=list)
    current_season_id: Optional[int] = None


@dataclass
class LeagueState:
    """Everything loaded for one read: players by name, matches, seasons by start."""
    players: List[PlayerRecord]
    matches: List[MatchRecord]
    seasons: List[SeasonRecord]

    @property
    def player_index(self) -> Dict[int, PlayerRecord]:
        return {player.id: player for player in self.players}


# ============================================================================
# Row conversion
# ============================================================================

def player_record(row: Player) -> PlayerRecord:
    return PlayerRecord(
        id=row.id,
        name=row.name,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


def season_record(row: Season) -> SeasonRecord:
    return SeasonRecord(
        id=row.id,
        name=row.name,
        start_date=ensure_utc(row.start_date),
        end_date=ensure_utc(row.end_date),
        champion_id=row.champion_id,
    )


def match_record(row: Match) -> MatchRecord:
    return MatchRecord(
        id=row.id,
        player_one_id=row.player_one_id,
        player_two_id=row.player_two_id,
        player_one_points=row.player_one_points,
        player_two_points=row.player_two_points,
        winner_id=row.winner_id,
        played_at=ensure_utc(row.played_at),
        season_id=row.season_id,
    )


def clean_name(name: str) -> str:
    """
    Normalize a player name.

    Raises:
        PlayerValidationError: If the name is empty, too long or only digits
    """
    if not isinstance(name, str) or not name.strip():
        raise PlayerValidationError("Name is required.")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise PlayerValidationError(f"Name cannot exceed {MAX_NAME_LENGTH} characters.")
    # digit-only references are read as player ids
    if name.isdigit():
        raise PlayerValidationError("Name cannot consist of digits only.")
    return name


# ============================================================================
# League Service
# ============================================================================

class LeagueService:
    """
    Service for the league's players, matches and seasons.

    Every operation works on one session, so it sees a consistent
    snapshot. Operations accept an optional session; when omitted one is
    opened from the configured factory and closed afterwards.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        tz: Optional[tzinfo] = None,
        engine: Optional[RatingEngine] = None,
    ):
        self._session_factory = session_factory
        self.tz = tz or settings.tz
        self.engine = engine or RatingEngine()
        self._season_cache: Optional[SeasonCache] = None

    @asynccontextmanager
    async def _session_scope(self, session: Optional[AsyncSession]) -> AsyncIterator[AsyncSession]:
        if session is not None:
            yield session
            return

        factory = self._session_factory or get_session()
        session = factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # =========================================================================
    # Loading
    # =========================================================================

    async def _partitioner(self, session: AsyncSession) -> SeasonPartitioner:
        if self._season_cache is None:
            rows = await session.scalars(select(Season).order_by(Season.start_date, Season.id))
            self._season_cache = SeasonCache.from_seasons(
                (season_record(row) for row in rows), self.tz
            )
            logger.debug(f"Loaded {len(self._season_cache)} seasons into cache")
        return SeasonPartitioner(self._season_cache)

    async def _season_for(self, session: AsyncSession, ts: datetime) -> SeasonRecord:
        """Find or create the season containing ``ts``; the caller commits."""
        partitioner = await self._partitioner(session)

        async def create(window: SeasonWindow) -> SeasonRecord:
            instant = to_db_datetime(ts)
            row = await session.scalar(
                select(Season)
                .where(
                    Season.start_date <= instant,
                    Season.end_date > instant - timedelta(milliseconds=1),
                )
                .order_by(Season.id)
                .limit(1)
            )
            if row is None:
                row = Season(
                    name=window.name,
                    start_date=to_db_datetime(window.start),
                    end_date=to_db_datetime(window.end),
                )
                session.add(row)
                await session.flush()
                self._drop_cache_unless_committed(session)
                logger.info(f"Created season {row.name} (ID: {row.id})")
            return season_record(row)

        return await partitioner.season_for(ts, create)

    def _drop_cache_unless_committed(self, session: AsyncSession) -> None:
        """Forget cached seasons if the session's transaction ends without a commit."""
        committed = False

        def on_commit(sync_session):
            nonlocal committed
            committed = True

        def on_end(sync_session, transaction):
            if transaction.parent is None and not committed:
                self._season_cache = None
                logger.debug("Season cache dropped after rollback")

        event.listen(session.sync_session, "after_commit", on_commit)
        event.listen(session.sync_session, "after_transaction_end", on_end)

    async def _get_player(self, session: AsyncSession, player_id: int) -> Player:
        player = await session.get(Player, player_id)
        if player is None:
            raise PlayerNotFoundError(player_id)
        return player

    async def _get_match(self, session: AsyncSession, match_id: int) -> Match:
        match = await session.get(Match, match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        return match

    async def _backfill_seasons(self, session: AsyncSession) -> int:
        """Assign a season to every match that has none."""
        rows = (await session.scalars(select(Match).where(Match.season_id.is_(None)))).all()
        for row in rows:
            season = await self._season_for(session, ensure_utc(row.played_at))
            row.season_id = season.id
        if rows:
            await session.flush()
            logger.info(f"Assigned seasons to {len(rows)} matches")
        return len(rows)

    async def _load_state(self, session: AsyncSession) -> LeagueState:
        await self._backfill_seasons(session)
        players = await session.scalars(select(Player).order_by(Player.name, Player.id))
        matches = await session.scalars(select(Match).order_by(Match.played_at, Match.id))
        seasons = await session.scalars(select(Season).order_by(Season.start_date, Season.id))
        return LeagueState(
            players=[player_record(row) for row in players],
            matches=[match_record(row) for row in matches],
            seasons=[season_record(row) for row in seasons],
        )

    async def _ensure_champions(
        self,
        session: AsyncSession,
        state: LeagueState,
        now: datetime,
    ) -> LeagueState:
        """Record champions of elapsed seasons that have none yet."""
        assignments = pending_champions(
            state.seasons,
            matches_by_season(state.matches),
            state.players,
            now,
            self.engine,
        )
        if not assignments:
            return state

        for assignment in assignments:
            await session.execute(
                update(Season)
                .where(Season.id == assignment.season_id)
                .values(champion_id=assignment.champion_id)
            )
        state.seasons = apply_champions(state.seasons, assignments)
        if self._season_cache is not None:
            updated = {a.season_id for a in assignments}
            for season in state.seasons:
                if season.id in updated:
                    self._season_cache.add(season)
        return state

    def _views(self, state: LeagueState, matches: Sequence[MatchRecord]) -> List[MatchView]:
        """Matches newest first, with players and rating deltas."""
        index = state.player_index
        deltas = compute_rating_deltas(state.matches, self.engine)
        ordered = sorted(matches, key=lambda m: (m.played_at, m.id), reverse=True)
        views = []
        for match in ordered:
            delta = deltas.get(match.id)
            views.append(
                MatchView(
                    match=match,
                    player_one=index[match.player_one_id],
                    player_two=index[match.player_two_id],
                    player_one_rating_delta=delta.player_one_delta if delta else 0,
                    player_two_rating_delta=delta.player_two_delta if delta else 0,
                )
            )
        return views

    # =========================================================================
    # Players
    # =========================================================================

    async def list_player_stats(
        self,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> List[PlayerStats]:
        """
        Career statistics for every player, ordered by name.

        Elapsed seasons get their champion recorded first so championship
        counts are up to date.

        Args:
            now: Reference time (defaults to the current time)
            session: Optional database session

        Returns:
            List of PlayerStats
        """
        now = ensure_utc(now or utc_now())
        async with self._session_scope(session) as session:
            current = await self._season_for(session, now)
            state = await self._load_state(session)
            state = await self._ensure_champions(session, state, now)
            await session.commit()
            return build_all_player_stats(state.players, state.matches, current, state.seasons)

    async def leaderboard(
        self,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> List[PlayerStats]:
        """Career leaderboard: win rate, then point differential."""
        return rank_career(await self.list_player_stats(now, session))

    async def find_player(self, reference: str, session: Optional[AsyncSession] = None) -> PlayerRecord:
        """
        Look up a player by id or by name (case-insensitive).

        Raises:
            PlayerNotFoundError: If no player matches
        """
        reference = reference.strip()
        async with self._session_scope(session) as session:
            if reference.isdecimal():
                return player_record(await self._get_player(session, int(reference)))

            rows = await session.scalars(select(Player).order_by(Player.id))
            for row in rows:
                if row.name.casefold() == reference.casefold():
                    return player_record(row)
            raise PlayerNotFoundError(reference)

    async def create_player(self, name: str, session: Optional[AsyncSession] = None) -> PlayerRecord:
        """
        Register a new player.

        Raises:
            PlayerValidationError: If the name is empty
            DuplicatePlayerError: If the name is taken
        """
        name = clean_name(name)
        async with self._session_scope(session) as session:
            player = Player(name=name)
            session.add(player)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicatePlayerError(name) from None

            logger.info(f"Created player {player.name} (ID: {player.id})")
            return player_record(player)

    async def rename_player(
        self,
        player_id: int,
        name: str,
        session: Optional[AsyncSession] = None,
    ) -> PlayerRecord:
        """
        Change a player's name.

        Raises:
            PlayerValidationError: If the name is empty
            PlayerNotFoundError: If the player does not exist
            DuplicatePlayerError: If the name is taken
        """
        name = clean_name(name)
        async with self._session_scope(session) as session:
            player = await self._get_player(session, player_id)
            previous = player.name
            player.name = name
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicatePlayerError(name) from None

            logger.info(f"Renamed player {previous} to {name} (ID: {player_id})")
            return player_record(player)

    async def delete_player(self, player_id: int, session: Optional[AsyncSession] = None) -> PlayerRecord:
        """
        Remove a player together with every match they played.

        Seasons they won lose their champion; it is recomputed on the next
        read from the remaining matches.

        Raises:
            PlayerNotFoundError: If the player does not exist
        """
        async with self._session_scope(session) as session:
            player = await self._get_player(session, player_id)
            record = player_record(player)

            result = await session.execute(
                delete(Match).where(
                    or_(Match.player_one_id == player_id, Match.player_two_id == player_id)
                )
            )
            await session.execute(
                update(Season).where(Season.champion_id == player_id).values(champion_id=None)
            )
            await session.execute(delete(Player).where(Player.id == player_id))
            await session.commit()

            # cached seasons may still name the player as champion
            self._season_cache = None
            logger.info(
                f"Deleted player {record.name} (ID: {player_id}) "
                f"and {result.rowcount} matches"
            )
            return record

    # =========================================================================
    # Matches
    # =========================================================================

    async def _require_players(self, session: AsyncSession, *player_ids: int) -> None:
        for player_id in player_ids:
            await self._get_player(session, player_id)

    async def _match_view(self, session: AsyncSession, match: Match) -> MatchView:
        state = await self._load_state(session)
        season_matches = [m for m in state.matches if m.season_id == match.season_id]
        delta = self.engine.rate_season(season_matches).deltas.get(match.id)
        record = match_record(match)
        index = state.player_index
        return MatchView(
            match=record,
            player_one=index[record.player_one_id],
            player_two=index[record.player_two_id],
            player_one_rating_delta=delta.player_one_delta if delta else 0,
            player_two_rating_delta=delta.player_two_delta if delta else 0,
        )

    async def record_match(
        self,
        player_one_id: int,
        player_two_id: int,
        player_one_points: int,
        player_two_points: int,
        played_at: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> MatchView:
        """
        Record a match result.

        The winner is derived from the scores and the match is assigned to
        the season of the month it was played in.

        Args:
            player_one_id: First player
            player_two_id: Second player
            player_one_points: First player's score
            player_two_points: Second player's score
            played_at: When it was played (defaults to now; naive is UTC)
            session: Optional database session

        Returns:
            MatchView of the stored match

        Raises:
            MatchValidationError: If the result is invalid
            PlayerNotFoundError: If a player does not exist
        """
        validate_match_input(player_one_id, player_two_id, player_one_points, player_two_points)
        played_at = ensure_utc(played_at or utc_now())

        async with self._session_scope(session) as session:
            await self._require_players(session, player_one_id, player_two_id)
            season = await self._season_for(session, played_at)

            match = Match(
                player_one_id=player_one_id,
                player_two_id=player_two_id,
                player_one_points=player_one_points,
                player_two_points=player_two_points,
                winner_id=decide_winner(
                    player_one_id, player_two_id, player_one_points, player_two_points
                ),
                played_at=to_db_datetime(played_at),
                season_id=season.id,
            )
            session.add(match)
            await session.flush()
            view = await self._match_view(session, match)
            await session.commit()

            logger.info(
                f"Recorded match {match.id}: {view.player_one.name} {player_one_points}-"
                f"{player_two_points} {view.player_two.name} in {season.name}"
            )
            return view

    async def update_match(
        self,
        match_id: int,
        player_one_id: Optional[int] = None,
        player_two_id: Optional[int] = None,
        player_one_points: Optional[int] = None,
        player_two_points: Optional[int] = None,
        played_at: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> MatchView:
        """
        Change some fields of a match; omitted fields keep their value.

        The merged result is validated as a whole, the winner re-derived
        and the season re-assigned from the (possibly new) timestamp.

        Raises:
            MatchNotFoundError: If the match does not exist
            MatchValidationError: If the merged result is invalid
            PlayerNotFoundError: If a player does not exist
        """
        async with self._session_scope(session) as session:
            match = await self._get_match(session, match_id)

            one = match.player_one_id if player_one_id is None else player_one_id
            two = match.player_two_id if player_two_id is None else player_two_id
            one_points = match.player_one_points if player_one_points is None else player_one_points
            two_points = match.player_two_points if player_two_points is None else player_two_points
            when = ensure_utc(match.played_at if played_at is None else played_at)

            validate_match_input(one, two, one_points, two_points)
            await self._require_players(session, one, two)
            season = await self._season_for(session, when)

            match.player_one_id = one
            match.player_two_id = two
            match.player_one_points = one_points
            match.player_two_points = two_points
            match.winner_id = decide_winner(one, two, one_points, two_points)
            match.played_at = to_db_datetime(when)
            match.season_id = season.id
            await session.flush()
            view = await self._match_view(session, match)
            await session.commit()

            logger.info(f"Updated match {match_id}")
            return view

    async def delete_match(self, match_id: int, session: Optional[AsyncSession] = None) -> MatchRecord:
        """
        Delete a match.

        Raises:
            MatchNotFoundError: If the match does not exist
        """
        async with self._session_scope(session) as session:
            match = await self._get_match(session, match_id)
            record = match_record(match)
            await session.delete(match)
            await session.commit()

            logger.info(f"Deleted match {match_id}")
            return record

    async def list_matches(
        self,
        player_id: Optional[int] = None,
        limit: Optional[int] = None,
        session: Optional[AsyncSession] = None,
    ) -> List[MatchView]:
        """
        Matches newest first with the rating change each one caused.

        Matches stored without a season are assigned one first.

        Args:
            player_id: Only matches involving this player
            limit: Maximum number of matches
            session: Optional database session

        Raises:
            PlayerNotFoundError: If ``player_id`` does not exist
        """
        async with self._session_scope(session) as session:
            if player_id is not None:
                await self._get_player(session, player_id)
            state = await self._load_state(session)
            await session.commit()

            matches = state.matches
            if player_id is not None:
                matches = [m for m in matches if m.involves(player_id)]
            views = self._views(state, matches)
            return views[:limit] if limit is not None else views

    # =========================================================================
    # Seasons
    # =========================================================================

    async def get_or_create_season(
        self,
        ts: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> SeasonRecord:
        """Return the season containing ``ts`` (default now), creating it if needed."""
        ts = ensure_utc(ts or utc_now())
        async with self._session_scope(session) as session:
            season = await self._season_for(session, ts)
            await session.commit()
            return season

    async def list_seasons(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        session: Optional[AsyncSession] = None,
    ) -> SeasonsOverview:
        """
        Season summaries, newest first.

        Ensures the current season exists and champions of elapsed seasons
        are recorded.

        Args:
            now: Reference time (defaults to the current time)
            limit: Standings rows per season (defaults to settings)
            session: Optional database session
        """
        now = ensure_utc(now or utc_now())
        limit = settings.standings_limit if limit is None else limit
        async with self._session_scope(session) as session:
            current = await self._season_for(session, now)
            state = await self._load_state(session)
            state = await self._ensure_champions(session, state, now)
            await session.commit()

            grouped = matches_by_season(state.matches)
            summaries = [
                summarize_season(
                    season,
                    grouped.get(season.id, []),
                    state.players,
                    now,
                    limit=limit,
                    engine=self.engine,
                )
                for season in reversed(state.seasons)
            ]
            return SeasonsOverview(seasons=summaries, current_season_id=current.id)

    # =========================================================================
    # Insights
    # =========================================================================

    async def recommendations(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        include_unplayed: bool = False,
        session: Optional[AsyncSession] = None,
    ) -> RecommendationReport:
        """Pairings worth playing next, for the current season."""
        now = ensure_utc(now or utc_now())
        limit = settings.recommendation_limit if limit is None else limit
        async with self._session_scope(session) as session:
            current = await self._season_for(session, now)
            state = await self._load_state(session)
            await session.commit()
            return recommend_matches(
                state.players,
                state.matches,
                current,
                now,
                limit=limit,
                include_unplayed=include_unplayed,
                engine=self.engine,
            )

    async def head_to_head(
        self,
        player_a_id: int,
        player_b_id: int,
        session: Optional[AsyncSession] = None,
    ) -> Tuple[Optional[HeadToHead], List[MatchView]]:
        """
        Record between two players and their meetings, newest first.

        Raises:
            PlayerNotFoundError: If a player does not exist
        """
        async with self._session_scope(session) as session:
            await self._require_players(session, player_a_id, player_b_id)
            state = await self._load_state(session)
            await session.commit()

            index = state.player_index
            summary = head_to_head(index[player_a_id], index[player_b_id], state.matches)
            meetings = pair_matches(player_a_id, player_b_id, state.matches)
            return summary, self._views(state, meetings)

    async def rivalries(
        self,
        limit: int = DEFAULT_RIVALRY_LIMIT,
        session: Optional[AsyncSession] = None,
    ) -> List[Rivalry]:
        """Most played pairings."""
        async with self._session_scope(session) as session:
            state = await self._load_state(session)
            await session.commit()
            return hottest_rivalries(state.players, state.matches, limit)

    async def rating_trajectory(
        self,
        player_id: int,
        season_id: Optional[int] = None,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> List[RatingPoint]:
        """
        A player's rating steps within a season, oldest first.

        Args:
            player_id: The player
            season_id: Season to replay (defaults to the current season)
            now: Reference time picking the current season
            session: Optional database session

        Raises:
            PlayerNotFoundError: If the player does not exist
            SeasonNotFoundError: If ``season_id`` does not exist
        """
        now = ensure_utc(now or utc_now())
        async with self._session_scope(session) as session:
            await self._get_player(session, player_id)
            if season_id is None:
                season_id = (await self._season_for(session, now)).id
            elif await session.get(Season, season_id) is None:
                raise SeasonNotFoundError(season_id)
            state = await self._load_state(session)
            await session.commit()

            season_matches = [m for m in state.matches if m.season_id == season_id]
            return self.engine.rate_season(season_matches).trajectories.get(player_id, [])
