"""
Plain match, player and season records consumed by the league engines.

The engines never touch the database: the persistence layer hands them
fully materialized records and gets plain results back.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from league.utils import ensure_utc


class MatchValidationError(ValueError):
    """Raised when a submitted match result cannot be stored."""


class UnknownPlayerError(LookupError):
    """Raised when a match references a player that is not in the player set."""

    def __init__(self, player_id: int, message: Optional[str] = None):
        super().__init__(message or f"Unknown player id {player_id}")
        self.player_id = player_id


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class PlayerRecord:
    """A league player."""
    id: int
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SeasonRecord:
    """
    A monthly season window.

    Attributes:
        id: Season database ID
        name: Display name, e.g. "Season March 2024"
        start_date: First instant of the month (aware)
        end_date: Last instant of the month, 23:59:59.999 (aware)
        champion_id: Player recorded as champion once the season elapsed
    """
    id: int
    name: str
    start_date: datetime
    end_date: datetime
    champion_id: Optional[int] = None


@dataclass(frozen=True)
class MatchRecord:
    """
    A single played match.

    ``winner_id`` always equals the side with the strictly higher score;
    records are built through :func:`build_match` or validated by the
    persistence layer before reaching the engines.
    """
    id: int
    player_one_id: int
    player_two_id: int
    player_one_points: int
    player_two_points: int
    winner_id: int
    played_at: datetime
    season_id: Optional[int] = None

    def involves(self, player_id: int) -> bool:
        return player_id in (self.player_one_id, self.player_two_id)

    def opponent_of(self, player_id: int) -> int:
        if player_id == self.player_one_id:
            return self.player_two_id
        if player_id == self.player_two_id:
            return self.player_one_id
        raise ValueError(f"Player {player_id} did not play match {self.id}")

    def points_for(self, player_id: int) -> int:
        if player_id == self.player_one_id:
            return self.player_one_points
        if player_id == self.player_two_id:
            return self.player_two_points
        raise ValueError(f"Player {player_id} did not play match {self.id}")

    def points_against(self, player_id: int) -> int:
        return self.points_for(self.opponent_of(player_id))

    def won_by(self, player_id: int) -> bool:
        return self.winner_id == player_id

    @property
    def loser_id(self) -> int:
        return self.opponent_of(self.winner_id)


# ============================================================================
# Validation
# ============================================================================

def validate_match_input(
    player_one_id: int,
    player_two_id: int,
    player_one_points: int,
    player_two_points: int,
) -> None:
    """
    Check a match result before it is stored.

    Raises:
        MatchValidationError: For non-integer scores, self-play,
            tied scores or negative scores
    """
    for value in (player_one_points, player_two_points):
        if isinstance(value, bool) or not isinstance(value, int):
            raise MatchValidationError("Scores must be whole numbers.")
    if player_one_id == player_two_id:
        raise MatchValidationError("A player cannot play against themselves.")
    if player_one_points == player_two_points:
        raise MatchValidationError("A match always ends with a winner.")
    if player_one_points < 0 or player_two_points < 0:
        raise MatchValidationError("Scores cannot be negative.")


def decide_winner(
    player_one_id: int,
    player_two_id: int,
    player_one_points: int,
    player_two_points: int,
) -> int:
    """Return the id of the side with the higher score."""
    return player_one_id if player_one_points > player_two_points else player_two_id


def build_match(
    id: int,
    player_one_id: int,
    player_two_id: int,
    player_one_points: int,
    player_two_points: int,
    played_at: datetime,
    season_id: Optional[int] = None,
) -> MatchRecord:
    """Validate a result and build its record with the derived winner."""
    validate_match_input(player_one_id, player_two_id, player_one_points, player_two_points)
    return MatchRecord(
        id=id,
        player_one_id=player_one_id,
        player_two_id=player_two_id,
        player_one_points=player_one_points,
        player_two_points=player_two_points,
        winner_id=decide_winner(
            player_one_id, player_two_id, player_one_points, player_two_points
        ),
        played_at=ensure_utc(played_at),
        season_id=season_id,
    )


# ============================================================================
# Lookups
# ============================================================================

def index_players(players: Iterable[PlayerRecord]) -> Dict[int, PlayerRecord]:
    return {player.id: player for player in players}


def require_player(index: Mapping[int, PlayerRecord], player_id: int) -> PlayerRecord:
    """
    Look up a player, failing loudly for unknown ids.

    Raises:
        UnknownPlayerError: If ``player_id`` is not in ``index``
    """
    try:
        return index[player_id]
    except KeyError:
        raise UnknownPlayerError(player_id) from None


def chronological(matches: Iterable[MatchRecord]) -> list:
    """
    Sort matches oldest first.

    Matches sharing a timestamp are ordered by id, i.e. creation order.
    """
    return sorted(matches, key=lambda match: (ensure_utc(match.played_at), match.id))
