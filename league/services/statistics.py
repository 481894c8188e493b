"""
Aggregate statistics: tallies, streaks, badges and championships.

Everything here is recomputed from the full match history on each read.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from league.services.records import (
    MatchRecord,
    PlayerRecord,
    SeasonRecord,
    chronological,
    index_players,
    require_player,
)
from league.services.seasons import season_contains


class Badge(Enum):
    """
    Achievement labels earned from current-season performance.

    Each badge has a code and a display name.
    """
    IN_FORM = ("in_form", "In form")
    PERFECT_MONTH = ("perfect_month", "Perfect month")
    DOMINANCE = ("dominance", "Dominance")
    MARATHON = ("marathon", "Marathon player")
    WIN_MACHINE = ("win_machine", "Win machine")

    def __init__(self, code: str, display_name: str):
        self._code = code
        self._display_name = display_name

    @property
    def code(self) -> str:
        return self._code

    @property
    def display_name(self) -> str:
        return self._display_name


# Badge thresholds
IN_FORM_STREAK = 3
PERFECT_MONTH_MIN_MATCHES = 3
DOMINANCE_MIN_MATCHES = 5
DOMINANCE_MIN_WIN_RATE = 0.75
MARATHON_MIN_MATCHES = 10
WIN_MACHINE_STREAK = 5

# Streak length that triggers the one-time milestone notification
STREAK_MILESTONE = 5


@dataclass(frozen=True)
class PlayerStats:
    """Career statistics for one player."""
    player: PlayerRecord
    wins: int = 0
    losses: int = 0
    matches: int = 0
    points_for: int = 0
    points_against: int = 0
    win_rate: float = 0.0
    point_differential: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    championships: int = 0
    badges: Tuple[Badge, ...] = field(default_factory=tuple)
    just_reached_streak_five: bool = False

    @property
    def badge_names(self) -> List[str]:
        return [badge.display_name for badge in self.badges]


@dataclass(frozen=True)
class Tally:
    """Win/loss/points totals over a set of matches."""
    wins: int = 0
    losses: int = 0
    points_for: int = 0
    points_against: int = 0

    @property
    def matches(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return self.wins / self.matches if self.matches else 0.0

    @property
    def point_differential(self) -> int:
        return self.points_for - self.points_against


def tally(player_id: int, matches: Iterable[MatchRecord]) -> Tally:
    """Count wins, losses and points for a player over the matches they played."""
    wins = losses = points_for = points_against = 0
    for match in matches:
        if not match.involves(player_id):
            continue
        if match.won_by(player_id):
            wins += 1
        else:
            losses += 1
        points_for += match.points_for(player_id)
        points_against += match.points_against(player_id)
    return Tally(wins=wins, losses=losses, points_for=points_for, points_against=points_against)


def compute_streaks(player_id: int, matches: Iterable[MatchRecord]) -> Tuple[int, int]:
    """
    Win streaks over a player's matches in chronological order.

    Args:
        player_id: Player to evaluate
        matches: Matches (only those involving the player count)

    Returns:
        Tuple of (current_streak, longest_streak); the current streak is
        the run of wins ending at the most recent match
    """
    streak = 0
    longest = 0
    for match in chronological(m for m in matches if m.involves(player_id)):
        if match.won_by(player_id):
            streak += 1
            longest = max(longest, streak)
        else:
            streak = 0
    return streak, longest


def compute_badges(
    current_streak: int,
    longest_streak: int,
    season_matches: int,
    season_wins: int,
) -> Tuple[Badge, ...]:
    """
    Evaluate badge thresholds.

    Streak badges use career streaks; the others use the current season.
    """
    season_losses = season_matches - season_wins
    season_win_rate = season_wins / season_matches if season_matches else 0.0
    badges = []

    if current_streak >= IN_FORM_STREAK:
        badges.append(Badge.IN_FORM)
    if season_matches >= PERFECT_MONTH_MIN_MATCHES and season_losses == 0:
        badges.append(Badge.PERFECT_MONTH)
    if season_matches >= DOMINANCE_MIN_MATCHES and season_win_rate >= DOMINANCE_MIN_WIN_RATE:
        badges.append(Badge.DOMINANCE)
    if season_matches >= MARATHON_MIN_MATCHES:
        badges.append(Badge.MARATHON)
    if longest_streak >= WIN_MACHINE_STREAK:
        badges.append(Badge.WIN_MACHINE)

    return tuple(badges)


def count_championships(seasons: Iterable[SeasonRecord]) -> Dict[int, int]:
    """Number of seasons each player is recorded as champion of."""
    return dict(Counter(s.champion_id for s in seasons if s.champion_id is not None))


def build_player_stats(
    player: PlayerRecord,
    matches: Sequence[MatchRecord],
    current_season: Optional[SeasonRecord],
    championships: Dict[int, int],
) -> PlayerStats:
    """
    Build the statistics record for one player.

    Args:
        player: The player
        matches: Match history (career-wide or a season subset)
        current_season: Season the badges are evaluated against
        championships: Championship counts per player id

    Returns:
        PlayerStats with tallies, streaks, badges and championships
    """
    own = [match for match in matches if match.involves(player.id)]
    totals = tally(player.id, own)
    current_streak, longest_streak = compute_streaks(player.id, own)

    if current_season is not None:
        season_matches = [m for m in own if season_contains(current_season, m.played_at)]
    else:
        season_matches = []
    season_totals = tally(player.id, season_matches)

    return PlayerStats(
        player=player,
        wins=totals.wins,
        losses=totals.losses,
        matches=totals.matches,
        points_for=totals.points_for,
        points_against=totals.points_against,
        win_rate=totals.win_rate,
        point_differential=totals.point_differential,
        current_streak=current_streak,
        longest_streak=longest_streak,
        championships=championships.get(player.id, 0),
        badges=compute_badges(
            current_streak, longest_streak, season_totals.matches, season_totals.wins
        ),
        just_reached_streak_five=current_streak == STREAK_MILESTONE,
    )


def build_all_player_stats(
    players: Sequence[PlayerRecord],
    matches: Sequence[MatchRecord],
    current_season: Optional[SeasonRecord],
    seasons: Iterable[SeasonRecord] = (),
) -> List[PlayerStats]:
    """
    Statistics for every player, in the order the players were given.

    Raises:
        UnknownPlayerError: If a match references a player not in ``players``
    """
    index = index_players(players)
    for match in matches:
        require_player(index, match.player_one_id)
        require_player(index, match.player_two_id)

    championships = count_championships(seasons)
    return [
        build_player_stats(player, matches, current_season, championships)
        for player in players
    ]
