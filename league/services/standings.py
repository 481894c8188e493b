"""
Standings Composer - season and career rankings, season champions.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from league.services.elo import RatingEngine
from league.services.records import (
    MatchRecord,
    PlayerRecord,
    SeasonRecord,
    index_players,
    require_player,
)
from league.services.seasons import has_elapsed, season_contains
from league.services.statistics import PlayerStats, tally

logger = logging.getLogger(__name__)

# Number of standings rows included in a season summary
DEFAULT_STANDINGS_LIMIT = 10


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class SeasonStanding:
    """
    A single row of a season's standings.

    Attributes:
        player: The player
        rating: Elo rating after the season's matches so far
    """
    player: PlayerRecord
    wins: int
    losses: int
    matches: int
    points_for: int
    points_against: int
    win_rate: float
    rating: int
    point_differential: int


@dataclass(frozen=True)
class ChampionAssignment:
    """A champion to be written back to an elapsed season."""
    season_id: int
    champion_id: int


@dataclass(frozen=True)
class SeasonSummary:
    """
    Season overview as shown in reports.

    Attributes:
        season: The season record (champion included once assigned)
        matches: Number of matches played in the season
        champion: Champion player, if any
        standings: Top rows of the season standings
        is_current: True for the season containing "now"
    """
    season: SeasonRecord
    matches: int
    champion: Optional[PlayerRecord]
    standings: List[SeasonStanding] = field(default_factory=list)
    is_current: bool = False


# ============================================================================
# Rankings
# ============================================================================

def season_sort_key(standing: SeasonStanding):
    """Rating, point differential and matches played, all descending; then id."""
    return (
        -standing.rating,
        -standing.point_differential,
        -standing.matches,
        standing.player.id,
    )


def career_sort_key(stats: PlayerStats):
    """Win rate then point differential, descending; then name and id."""
    return (
        -stats.win_rate,
        -stats.point_differential,
        stats.player.name.casefold(),
        stats.player.id,
    )


def calculate_season_standings(
    matches: Sequence[MatchRecord],
    players: Iterable[PlayerRecord],
    engine: Optional[RatingEngine] = None,
) -> List[SeasonStanding]:
    """
    Rank everyone who played in a season's matches.

    Args:
        matches: Matches of one season
        players: Player set the matches reference
        engine: Rating engine (default settings if omitted)

    Returns:
        Standings sorted by rating, point differential, matches played

    Raises:
        UnknownPlayerError: If a match references a player not in ``players``
    """
    index = index_players(players)
    ratings = (engine or RatingEngine()).rate_season(matches)

    standings = []
    for player_id, rating in ratings.ratings.items():
        player = require_player(index, player_id)
        totals = tally(player_id, matches)
        standings.append(
            SeasonStanding(
                player=player,
                wins=totals.wins,
                losses=totals.losses,
                matches=totals.matches,
                points_for=totals.points_for,
                points_against=totals.points_against,
                win_rate=totals.win_rate,
                rating=rating,
                point_differential=totals.point_differential,
            )
        )

    standings.sort(key=season_sort_key)
    return standings


def rank_career(stats: Iterable[PlayerStats]) -> List[PlayerStats]:
    """Career leaderboard ordering."""
    return sorted(stats, key=career_sort_key)


# ============================================================================
# Champions
# ============================================================================

def matches_by_season(matches: Iterable[MatchRecord]) -> Dict[int, List[MatchRecord]]:
    """Group matches by assigned season id, skipping unassigned ones."""
    grouped: Dict[int, List[MatchRecord]] = {}
    for match in matches:
        if match.season_id is not None:
            grouped.setdefault(match.season_id, []).append(match)
    return grouped


def pending_champions(
    seasons: Iterable[SeasonRecord],
    season_matches: Mapping[int, Sequence[MatchRecord]],
    players: Iterable[PlayerRecord],
    now: datetime,
    engine: Optional[RatingEngine] = None,
) -> List[ChampionAssignment]:
    """
    Champions still to be recorded for elapsed seasons.

    A season qualifies once its end lies before ``now``, it has no
    champion yet and at least one match was played. The champion is the
    top of its standings. Seasons that already have a champion never
    produce an assignment, so running this again after the write-back is
    a no-op.

    Args:
        seasons: All known seasons
        season_matches: Matches per season id
        players: Player set
        now: Reference time

    Returns:
        Assignments to persist, in season order
    """
    players = list(players)
    assignments = []
    for season in seasons:
        if season.champion_id is not None or not has_elapsed(season, now):
            continue
        matches = season_matches.get(season.id, [])
        if not matches:
            continue
        standings = calculate_season_standings(matches, players, engine)
        champion = standings[0].player
        logger.info(f"Season {season.name} elapsed, champion: {champion.name}")
        assignments.append(ChampionAssignment(season_id=season.id, champion_id=champion.id))
    return assignments


def apply_champions(
    seasons: Iterable[SeasonRecord],
    assignments: Iterable[ChampionAssignment],
) -> List[SeasonRecord]:
    """Return the seasons with the given champions filled in."""
    champion_for = {a.season_id: a.champion_id for a in assignments}
    return [
        replace(season, champion_id=champion_for[season.id])
        if season.id in champion_for
        else season
        for season in seasons
    ]


def summarize_season(
    season: SeasonRecord,
    matches: Sequence[MatchRecord],
    players: Iterable[PlayerRecord],
    now: datetime,
    limit: int = DEFAULT_STANDINGS_LIMIT,
    engine: Optional[RatingEngine] = None,
) -> SeasonSummary:
    """
    Build the overview of one season.

    Args:
        season: The season
        matches: Matches assigned to the season
        players: Player set
        now: Reference time deciding ``is_current``
        limit: Maximum standings rows
    """
    players = list(players)
    index = index_players(players)
    standings = calculate_season_standings(matches, players, engine)
    champion = index.get(season.champion_id) if season.champion_id is not None else None
    return SeasonSummary(
        season=season,
        matches=len(matches),
        champion=champion,
        standings=standings[:limit],
        is_current=season_contains(season, now),
    )
