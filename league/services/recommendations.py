"""
Recommendation Scorer - which pairings are worth playing next.

Each pair is scored on three factors, each in [0, 1]:

- freshness: longer since the last meeting scores higher
- competitiveness: a closer historical win/loss record scores higher
- rating closeness: a smaller current-season rating gap scores higher

The weighted sum is scaled to 0-100.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from league.services.elo import RatingEngine
from league.services.records import (
    MatchRecord,
    PlayerRecord,
    SeasonRecord,
    index_players,
    require_player,
)
from league.services.rivalries import PairAggregate, PairKey, aggregate_pairs
from league.services.seasons import season_contains
from league.utils import ensure_utc

logger = logging.getLogger(__name__)

# Factor weights (sum to 100)
FRESHNESS_WEIGHT = 40
COMPETITIVENESS_WEIGHT = 35
RATING_CLOSENESS_WEIGHT = 25

# Days at which freshness reaches one half
FRESHNESS_HALF_LIFE_DAYS = 7
# Rating gap at which closeness reaches one half
RATING_GAP_SCALE = 100
# Closeness used when either player has no rating this season
NEUTRAL_CLOSENESS = 0.5

# Reason thresholds
CLOSE_RECORD_MIN_MEETINGS = 2
CLOSE_RECORD_MIN_COMPETITIVENESS = 0.8
STALE_MEETING_DAYS = 7
EVEN_RATING_GAP = 50

DEFAULT_RECOMMENDATION_LIMIT = 10


class Reason:
    """Labels attached to a recommendation."""
    NEVER_PLAYED = "Never played each other"
    CLOSE_RECORD = "Close historical record"
    EVEN_RATINGS = "Evenly matched ratings"
    NO_SEASON_MEETING = "No meeting yet this season"

    @staticmethod
    def stale(days: int) -> str:
        return f"Haven't played in {days} days"


@dataclass(frozen=True)
class Recommendation:
    """
    A suggested pairing.

    Attributes:
        player_one: Player with the lower id
        player_two: Player with the higher id
        score: Combined score (0-100, one decimal)
        player_one_wins: Historical wins of player one against player two
        player_two_wins: Historical wins of player two against player one
        total_meetings: All meetings between the two
        season_meetings: Meetings in the current season
        last_played_at: Most recent meeting, None if never played
        days_since_last_meeting: Whole days since that meeting
        rating_diff: Absolute current-season rating gap, None if unrated
        reasons: Human-readable labels
    """
    player_one: PlayerRecord
    player_two: PlayerRecord
    score: float
    player_one_wins: int
    player_two_wins: int
    total_meetings: int
    season_meetings: int
    last_played_at: Optional[datetime]
    days_since_last_meeting: Optional[int]
    rating_diff: Optional[int]
    reasons: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RecommendationReport:
    """Recommendations for the current season."""
    season: Optional[SeasonRecord]
    generated_at: datetime
    recommendations: List[Recommendation] = field(default_factory=list)


# ============================================================================
# Factors
# ============================================================================

def freshness_factor(days_since: Optional[int]) -> float:
    """d / (d + 7); pairs that never met are maximally fresh."""
    if days_since is None:
        return 1.0
    days = max(0, days_since)
    return days / (days + FRESHNESS_HALF_LIFE_DAYS)


def competitiveness_factor(wins_one: int, wins_two: int) -> float:
    """1 - |wins_one - wins_two| / meetings; 1 for pairs that never met."""
    meetings = wins_one + wins_two
    if meetings == 0:
        return 1.0
    return 1.0 - abs(wins_one - wins_two) / meetings


def rating_closeness_factor(rating_diff: Optional[int]) -> float:
    """1 / (1 + |gap| / 100); neutral when a rating is missing."""
    if rating_diff is None:
        return NEUTRAL_CLOSENESS
    return 1.0 / (1.0 + abs(rating_diff) / RATING_GAP_SCALE)


def combined_score(
    days_since: Optional[int],
    wins_one: int,
    wins_two: int,
    rating_diff: Optional[int],
) -> float:
    score = (
        FRESHNESS_WEIGHT * freshness_factor(days_since)
        + COMPETITIVENESS_WEIGHT * competitiveness_factor(wins_one, wins_two)
        + RATING_CLOSENESS_WEIGHT * rating_closeness_factor(rating_diff)
    )
    return round(score, 1)


def explain(
    meetings: int,
    season_meetings: int,
    wins_one: int,
    wins_two: int,
    days_since: Optional[int],
    rating_diff: Optional[int],
) -> Tuple[str, ...]:
    """Derive the reason labels from the scoring inputs."""
    reasons = []
    if meetings == 0:
        reasons.append(Reason.NEVER_PLAYED)
    else:
        if (
            meetings >= CLOSE_RECORD_MIN_MEETINGS
            and competitiveness_factor(wins_one, wins_two) >= CLOSE_RECORD_MIN_COMPETITIVENESS
        ):
            reasons.append(Reason.CLOSE_RECORD)
        if days_since is not None and days_since >= STALE_MEETING_DAYS:
            reasons.append(Reason.stale(days_since))
        if season_meetings == 0:
            reasons.append(Reason.NO_SEASON_MEETING)
    if rating_diff is not None and rating_diff <= EVEN_RATING_GAP:
        reasons.append(Reason.EVEN_RATINGS)
    return tuple(reasons)


# ============================================================================
# Scoring
# ============================================================================

def _days_between(earlier: datetime, later: datetime) -> int:
    return max(0, (ensure_utc(later) - ensure_utc(earlier)).days)


def score_pair(
    player_one: PlayerRecord,
    player_two: PlayerRecord,
    aggregate: Optional[PairAggregate],
    ratings: Dict[int, int],
    now: datetime,
) -> Recommendation:
    """
    Score one pair; ``player_one`` must have the lower id.

    Args:
        aggregate: Meeting totals, None if the pair never met
        ratings: Current-season ratings
        now: Reference time for freshness
    """
    aggregate = aggregate or PairAggregate(low_id=player_one.id, high_id=player_two.id)
    days_since = (
        _days_between(aggregate.last_played, now)
        if aggregate.last_played is not None
        else None
    )
    rating_one = ratings.get(player_one.id)
    rating_two = ratings.get(player_two.id)
    rating_diff = (
        abs(rating_one - rating_two)
        if rating_one is not None and rating_two is not None
        else None
    )

    return Recommendation(
        player_one=player_one,
        player_two=player_two,
        score=combined_score(days_since, aggregate.low_wins, aggregate.high_wins, rating_diff),
        player_one_wins=aggregate.low_wins,
        player_two_wins=aggregate.high_wins,
        total_meetings=aggregate.meetings,
        season_meetings=aggregate.season_meetings,
        last_played_at=aggregate.last_played,
        days_since_last_meeting=days_since,
        rating_diff=rating_diff,
        reasons=explain(
            aggregate.meetings,
            aggregate.season_meetings,
            aggregate.low_wins,
            aggregate.high_wins,
            days_since,
            rating_diff,
        ),
    )


def recommend_matches(
    players: Sequence[PlayerRecord],
    matches: Sequence[MatchRecord],
    current_season: Optional[SeasonRecord],
    now: datetime,
    limit: Optional[int] = DEFAULT_RECOMMENDATION_LIMIT,
    include_unplayed: bool = False,
    engine: Optional[RatingEngine] = None,
) -> RecommendationReport:
    """
    Rank pairings worth playing next.

    Args:
        players: Player set
        matches: Full match history
        current_season: Season used for ratings and season meetings
        now: Reference time
        limit: Maximum recommendations (None for all)
        include_unplayed: Also score pairs that never met

    Returns:
        RecommendationReport sorted by score, then by pair ids

    Raises:
        UnknownPlayerError: If a match references a player not in ``players``
    """
    index = index_players(players)
    aggregates = aggregate_pairs(matches, current_season)

    if current_season is not None:
        season_matches = [m for m in matches if season_contains(current_season, m.played_at)]
        ratings = (engine or RatingEngine()).rate_season(season_matches).ratings
    else:
        ratings = {}

    keys: List[PairKey] = list(aggregates)
    if include_unplayed:
        ids = sorted(index)
        keys = sorted(set(keys) | set(itertools.combinations(ids, 2)))

    recommendations = [
        score_pair(
            require_player(index, low),
            require_player(index, high),
            aggregates.get((low, high)),
            ratings,
            now,
        )
        for low, high in keys
    ]
    recommendations.sort(
        key=lambda rec: (-rec.score, rec.player_one.id, rec.player_two.id)
    )
    if limit is not None:
        recommendations = recommendations[:limit]

    logger.debug(f"Scored {len(keys)} pairings, returning {len(recommendations)}")
    return RecommendationReport(
        season=current_season,
        generated_at=ensure_utc(now),
        recommendations=recommendations,
    )
