"""
Property-based tests for the recommendation scorer.

Covers factor ranges and monotonicity, score bounds and ordering.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, strategies as st, settings

from league.services.recommendations import (
    combined_score,
    competitiveness_factor,
    freshness_factor,
    rating_closeness_factor,
    recommend_matches,
)
from league.services.records import PlayerRecord, SeasonRecord, build_match

NOW = datetime(2024, 3, 25, tzinfo=timezone.utc)
MARCH = SeasonRecord(
    id=1,
    name="Season March 2024",
    start_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
    end_date=datetime(2024, 3, 31, 23, 59, 59, 999000, tzinfo=timezone.utc),
)
PLAYERS = [PlayerRecord(i, f"Player {i}") for i in range(1, 6)]

days_strategy = st.integers(min_value=0, max_value=3650)
wins_strategy = st.integers(min_value=0, max_value=50)
gap_strategy = st.integers(min_value=0, max_value=2000)


class TestFactorProperties:
    @settings(max_examples=100)
    @given(a=days_strategy, b=days_strategy)
    def test_freshness_monotonic(self, a, b):
        low, high = sorted((a, b))
        assert 0.0 <= freshness_factor(low) <= freshness_factor(high) < 1.0

    @settings(max_examples=100)
    @given(a=gap_strategy, b=gap_strategy)
    def test_closeness_monotonic(self, a, b):
        low, high = sorted((a, b))
        assert 0.0 < rating_closeness_factor(high) <= rating_closeness_factor(low) <= 1.0

    @settings(max_examples=100)
    @given(wins_one=wins_strategy, wins_two=wins_strategy)
    def test_competitiveness_symmetric_in_range(self, wins_one, wins_two):
        value = competitiveness_factor(wins_one, wins_two)
        assert value == competitiveness_factor(wins_two, wins_one)
        assert 0.0 <= value <= 1.0

    @settings(max_examples=100)
    @given(
        days=st.one_of(st.none(), days_strategy),
        wins_one=wins_strategy,
        wins_two=wins_strategy,
        gap=st.one_of(st.none(), gap_strategy),
    )
    def test_score_bounds(self, days, wins_one, wins_two, gap):
        assert 0.0 <= combined_score(days, wins_one, wins_two, gap) <= 100.0


class TestRecommendationOrdering:
    @settings(max_examples=100)
    @given(
        results=st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=5),
                st.integers(min_value=1, max_value=5),
                st.booleans(),
                st.integers(min_value=0, max_value=60 * 24 * 40),
            ).filter(lambda r: r[0] != r[1]),
            max_size=25,
        ),
        include_unplayed=st.booleans(),
    )
    def test_sorted_by_score_then_ids(self, results, include_unplayed):
        matches = [
            build_match(i, one, two, 11 if won else 4, 4 if won else 11, NOW - timedelta(minutes=minutes))
            for i, (one, two, won, minutes) in enumerate(results, start=1)
        ]
        report = recommend_matches(PLAYERS, matches, MARCH, NOW, limit=None, include_unplayed=include_unplayed)
        keys = [(-r.score, r.player_one.id, r.player_two.id) for r in report.recommendations]

        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)
        assert all(r.player_one.id < r.player_two.id for r in report.recommendations)
        if include_unplayed:
            assert len(report.recommendations) == 10
