"""
Head-to-head records between pairs of players.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from league.services.records import (
    MatchRecord,
    PlayerRecord,
    SeasonRecord,
    index_players,
    require_player,
)
from league.services.seasons import season_contains
from league.utils import ensure_utc

PairKey = Tuple[int, int]

# Rivalries need at least this many meetings
RIVALRY_MIN_MEETINGS = 2
DEFAULT_RIVALRY_LIMIT = 6


def pair_key(player_a_id: int, player_b_id: int) -> PairKey:
    """Order-independent key for a pair of players."""
    return (min(player_a_id, player_b_id), max(player_a_id, player_b_id))


@dataclass
class PairAggregate:
    """
    Running totals for one unordered pair.

    ``low_id`` is the smaller player id; the ``low_*``/``high_*`` fields
    belong to the corresponding side.
    """
    low_id: int
    high_id: int
    meetings: int = 0
    season_meetings: int = 0
    low_wins: int = 0
    high_wins: int = 0
    low_points: int = 0
    high_points: int = 0
    last_played: Optional[datetime] = None

    @property
    def key(self) -> PairKey:
        return (self.low_id, self.high_id)


def aggregate_pairs(
    matches: Iterable[MatchRecord],
    current_season: Optional[SeasonRecord] = None,
) -> Dict[PairKey, PairAggregate]:
    """
    Fold matches into per-pair totals.

    Args:
        matches: Match history
        current_season: Season counted in ``season_meetings``
    """
    aggregates: Dict[PairKey, PairAggregate] = {}
    for match in matches:
        key = pair_key(match.player_one_id, match.player_two_id)
        entry = aggregates.get(key)
        if entry is None:
            entry = aggregates[key] = PairAggregate(low_id=key[0], high_id=key[1])

        entry.meetings += 1
        if current_season is not None and season_contains(current_season, match.played_at):
            entry.season_meetings += 1

        played_at = ensure_utc(match.played_at)
        if entry.last_played is None or entry.last_played < played_at:
            entry.last_played = played_at

        if match.won_by(entry.low_id):
            entry.low_wins += 1
        else:
            entry.high_wins += 1
        entry.low_points += match.points_for(entry.low_id)
        entry.high_points += match.points_for(entry.high_id)

    return aggregates


@dataclass(frozen=True)
class HeadToHead:
    """Record between player A and player B, from A's point of view."""
    player_a: PlayerRecord
    player_b: PlayerRecord
    matches: int
    player_a_wins: int
    player_b_wins: int
    player_a_points: int
    player_b_points: int
    last_played: Optional[datetime]

    @property
    def player_a_losses(self) -> int:
        return self.matches - self.player_a_wins

    @property
    def player_b_losses(self) -> int:
        return self.matches - self.player_b_wins

    @property
    def player_a_win_rate(self) -> float:
        return self.player_a_wins / self.matches if self.matches else 0.0

    @property
    def player_b_win_rate(self) -> float:
        return self.player_b_wins / self.matches if self.matches else 0.0

    @property
    def player_a_point_differential(self) -> int:
        return self.player_a_points - self.player_b_points


@dataclass(frozen=True)
class Rivalry:
    """A frequently played pairing; ``leader`` is None while level."""
    player_a: PlayerRecord
    player_b: PlayerRecord
    meetings: int
    player_a_wins: int
    player_b_wins: int
    last_played: Optional[datetime]
    leader: Optional[PlayerRecord]


def pair_matches(
    player_a_id: int,
    player_b_id: int,
    matches: Iterable[MatchRecord],
) -> List[MatchRecord]:
    """Matches between two players, newest first."""
    if player_a_id == player_b_id:
        return []
    key = pair_key(player_a_id, player_b_id)
    selected = [m for m in matches if pair_key(m.player_one_id, m.player_two_id) == key]
    return sorted(selected, key=lambda m: (ensure_utc(m.played_at), m.id), reverse=True)


def head_to_head(
    player_a: PlayerRecord,
    player_b: PlayerRecord,
    matches: Iterable[MatchRecord],
) -> Optional[HeadToHead]:
    """
    Summarize the meetings between two players.

    Returns:
        HeadToHead seen from ``player_a``, or None if they never met
    """
    if player_a.id == player_b.id:
        return None
    aggregate = aggregate_pairs(pair_matches(player_a.id, player_b.id, matches)).get(
        pair_key(player_a.id, player_b.id)
    )
    if aggregate is None:
        return None

    a_is_low = player_a.id == aggregate.low_id
    return HeadToHead(
        player_a=player_a,
        player_b=player_b,
        matches=aggregate.meetings,
        player_a_wins=aggregate.low_wins if a_is_low else aggregate.high_wins,
        player_b_wins=aggregate.high_wins if a_is_low else aggregate.low_wins,
        player_a_points=aggregate.low_points if a_is_low else aggregate.high_points,
        player_b_points=aggregate.high_points if a_is_low else aggregate.low_points,
        last_played=aggregate.last_played,
    )


def hottest_rivalries(
    players: Sequence[PlayerRecord],
    matches: Iterable[MatchRecord],
    limit: int = DEFAULT_RIVALRY_LIMIT,
) -> List[Rivalry]:
    """
    Most played pairings.

    Pairs with at least two meetings, ordered by meetings then most
    recent meeting, both descending.

    Raises:
        UnknownPlayerError: If a match references a player not in ``players``
    """
    index = index_players(players)
    candidates = [
        pair for pair in aggregate_pairs(matches).values()
        if pair.meetings >= RIVALRY_MIN_MEETINGS
    ]
    candidates.sort(key=lambda pair: pair.key)
    candidates.sort(key=lambda pair: (pair.meetings, pair.last_played), reverse=True)

    rivalries = []
    for pair in candidates[:limit]:
        low = require_player(index, pair.low_id)
        high = require_player(index, pair.high_id)
        if pair.low_wins == pair.high_wins:
            leader = None
        else:
            leader = low if pair.low_wins > pair.high_wins else high
        rivalries.append(
            Rivalry(
                player_a=low,
                player_b=high,
                meetings=pair.meetings,
                player_a_wins=pair.low_wins,
                player_b_wins=pair.high_wins,
                last_played=pair.last_played,
                leader=leader,
            )
        )
    return rivalries
