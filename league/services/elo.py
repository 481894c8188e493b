"""
Elo rating engine for season standings.

Every season starts from scratch: a player enters a season at the base
rating and is updated match by match in chronological order.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from league.services.records import MatchRecord, chronological

BASE_RATING = 1000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return math.floor(value + 0.5)


@dataclass
class EloChange:
    """Result of an Elo calculation after a match."""
    winner_delta: int
    loser_delta: int
    winner_new_elo: int
    loser_new_elo: int


@dataclass(frozen=True)
class MatchRatingDelta:
    """Signed rating change applied to each side of a match."""
    match_id: int
    player_one_delta: int
    player_two_delta: int


@dataclass(frozen=True)
class RatingPoint:
    """One step of a player's rating trajectory within a season."""
    match_id: int
    played_at: datetime
    opponent_id: int
    won: bool
    rating_before: int
    rating_after: int

    @property
    def delta(self) -> int:
        return self.rating_after - self.rating_before


@dataclass
class SeasonRatings:
    """
    Output of one chronological pass over a season's matches.

    Attributes:
        ratings: Final rating per player who appeared in the season
        trajectories: Rating steps per player, oldest first
        deltas: Rating change per match id
    """
    ratings: Dict[int, int] = field(default_factory=dict)
    trajectories: Dict[int, List[RatingPoint]] = field(default_factory=dict)
    deltas: Dict[int, MatchRatingDelta] = field(default_factory=dict)

    def rating_of(self, player_id: int) -> Optional[int]:
        return self.ratings.get(player_id)

    def history_of(self, player_id: int) -> List[int]:
        """Ratings held by a player: the base value then one per match."""
        points = self.trajectories.get(player_id, [])
        if not points:
            return []
        return [points[0].rating_before] + [point.rating_after for point in points]


class EloCalculator:
    """
    Elo rating calculator using the standard formula.

    The rating change depends on:
    - Current ratings of both players
    - Expected outcome based on rating difference
    - K-factor bounding the change per match
    """

    K_FACTOR = 32

    def expected_score(self, player_elo: int, opponent_elo: int) -> float:
        """
        Calculate expected score (probability of winning) for a player.

        E = 1 / (1 + 10^((opponent_elo - player_elo) / 400))

        Args:
            player_elo: Current rating of the player
            opponent_elo: Current rating of the opponent

        Returns:
            Expected score between 0 and 1
        """
        exponent = (opponent_elo - player_elo) / 400.0
        return 1.0 / (1.0 + 10 ** exponent)

    def calculate(self, winner_elo: int, loser_elo: int) -> EloChange:
        """
        Calculate Elo changes after a match.

        The loser's expectation is taken as the complement of the winner's,
        and each side is rounded on its own, so the two deltas may differ
        by one in magnitude.

        Args:
            winner_elo: Current rating of the winner
            loser_elo: Current rating of the loser

        Returns:
            EloChange with deltas and new ratings for both players
        """
        winner_delta, loser_delta = self.match_deltas(winner_elo, loser_elo, True)

        return EloChange(
            winner_delta=winner_delta,
            loser_delta=loser_delta,
            winner_new_elo=winner_elo + winner_delta,
            loser_new_elo=loser_elo + loser_delta,
        )

    def match_deltas(self, rating_one: int, rating_two: int, one_won: bool) -> Tuple[int, int]:
        """
        Rating changes for both sides, seen from player one.

        Ea = expected score of player one, Eb = 1 - Ea.

        Args:
            rating_one: Player one's current rating
            rating_two: Player two's current rating
            one_won: True if player one won

        Returns:
            Tuple of (player_one_delta, player_two_delta)
        """
        expected_one = self.expected_score(rating_one, rating_two)
        expected_two = 1.0 - expected_one
        score_one, score_two = (1.0, 0.0) if one_won else (0.0, 1.0)
        return (
            round_half_up(self.K_FACTOR * (score_one - expected_one)),
            round_half_up(self.K_FACTOR * (score_two - expected_two)),
        )


class RatingEngine:
    """Replays a season's matches to produce ratings, trajectories and deltas."""

    def __init__(self, calculator: Optional[EloCalculator] = None, base_rating: int = BASE_RATING):
        self.calculator = calculator or EloCalculator()
        self.base_rating = base_rating

    def rate_season(self, matches: Iterable[MatchRecord]) -> SeasonRatings:
        """
        Process one season's matches oldest first.

        Players enter at the base rating on their first match of the
        season; equal timestamps are replayed in match id order.

        Args:
            matches: Matches of a single season, in any order

        Returns:
            SeasonRatings for everyone who played
        """
        result = SeasonRatings()
        ratings = result.ratings

        for match in chronological(matches):
            one = ratings.setdefault(match.player_one_id, self.base_rating)
            two = ratings.setdefault(match.player_two_id, self.base_rating)

            one_delta, two_delta = self.calculator.match_deltas(
                one, two, match.winner_id == match.player_one_id
            )

            ratings[match.player_one_id] = one + one_delta
            ratings[match.player_two_id] = two + two_delta

            result.deltas[match.id] = MatchRatingDelta(
                match_id=match.id,
                player_one_delta=one_delta,
                player_two_delta=two_delta,
            )
            result.trajectories.setdefault(match.player_one_id, []).append(
                RatingPoint(
                    match_id=match.id,
                    played_at=match.played_at,
                    opponent_id=match.player_two_id,
                    won=match.winner_id == match.player_one_id,
                    rating_before=one,
                    rating_after=one + one_delta,
                )
            )
            result.trajectories.setdefault(match.player_two_id, []).append(
                RatingPoint(
                    match_id=match.id,
                    played_at=match.played_at,
                    opponent_id=match.player_one_id,
                    won=match.winner_id == match.player_two_id,
                    rating_before=two,
                    rating_after=two + two_delta,
                )
            )

        return result


def group_by_season(matches: Iterable[MatchRecord]) -> Dict[Optional[int], List[MatchRecord]]:
    """Bucket matches by season id; unassigned matches share the None bucket."""
    buckets: Dict[Optional[int], List[MatchRecord]] = defaultdict(list)
    for match in matches:
        buckets[match.season_id].append(match)
    return dict(buckets)


def compute_rating_deltas(
    matches: Iterable[MatchRecord],
    engine: Optional[RatingEngine] = None,
) -> Dict[int, MatchRatingDelta]:
    """
    Rating change per match, replaying each season separately.

    Args:
        matches: Matches across any number of seasons
        engine: Rating engine to use (default settings if omitted)

    Returns:
        Dict mapping match id to its MatchRatingDelta
    """
    engine = engine or RatingEngine()
    deltas: Dict[int, MatchRatingDelta] = {}
    for season_matches in group_by_season(matches).values():
        deltas.update(engine.rate_season(season_matches).deltas)
    return deltas


def format_rating_change(delta: int) -> str:
    """Format a rating change for display: ``+16``, ``-16`` or ``±0``."""
    if delta > 0:
        return f"+{delta}"
    elif delta < 0:
        return str(delta)
    else:
        return "±0"
