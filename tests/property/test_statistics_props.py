"""
Property-based tests for aggregate statistics.

Covers streak bounds, tally consistency and badge thresholds.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, strategies as st, settings

from league.services.records import PlayerRecord, SeasonRecord, build_match
from league.services.statistics import STREAK_MILESTONE, Badge, build_player_stats, compute_streaks, tally

START = datetime(2024, 3, 1, tzinfo=timezone.utc)
MARCH = SeasonRecord(
    id=1,
    name="Season March 2024",
    start_date=START,
    end_date=datetime(2024, 3, 31, 23, 59, 59, 999000, tzinfo=timezone.utc),
)

outcomes_strategy = st.lists(st.booleans(), max_size=40)


def matches_from(outcomes):
    """Player 1 against player 2, one match per hour; True is a win for player 1."""
    return [
        build_match(i + 1, 1, 2, 11 if won else 6, 6 if won else 11, START + timedelta(hours=i))
        for i, won in enumerate(outcomes)
    ]


def longest_run(outcomes) -> int:
    best = run = 0
    for won in outcomes:
        run = run + 1 if won else 0
        best = max(best, run)
    return best


class TestStreakProperties:
    @settings(max_examples=100)
    @given(outcomes=outcomes_strategy)
    def test_streaks_match_reference(self, outcomes):
        current, longest = compute_streaks(1, matches_from(outcomes))

        trailing = len(outcomes) - len("".join("W" if w else "L" for w in outcomes).rstrip("W"))
        assert current == trailing
        assert longest == longest_run(outcomes)
        assert 0 <= current <= longest <= len(outcomes)

    @settings(max_examples=100)
    @given(outcomes=outcomes_strategy)
    def test_streaks_mirror_for_opponent(self, outcomes):
        _, longest = compute_streaks(2, matches_from(outcomes))
        assert longest == longest_run([not won for won in outcomes])


class TestTallyProperties:
    @settings(max_examples=100)
    @given(outcomes=outcomes_strategy)
    def test_both_sides_balance(self, outcomes):
        matches = matches_from(outcomes)
        one, two = tally(1, matches), tally(2, matches)

        assert one.wins == two.losses
        assert one.matches == two.matches == len(outcomes)
        assert one.point_differential == -two.point_differential
        assert 0.0 <= one.win_rate <= 1.0


class TestBadgeProperties:
    @settings(max_examples=100)
    @given(outcomes=st.lists(st.booleans(), max_size=30))
    def test_badges_consistent_with_stats(self, outcomes):
        stats = build_player_stats(PlayerRecord(1, "Alice"), matches_from(outcomes), MARCH, {})

        assert (Badge.IN_FORM in stats.badges) == (stats.current_streak >= 3)
        assert (Badge.WIN_MACHINE in stats.badges) == (stats.longest_streak >= 5)
        assert (Badge.MARATHON in stats.badges) == (len(outcomes) >= 10)
        assert (Badge.PERFECT_MONTH in stats.badges) == (len(outcomes) >= 3 and all(outcomes))
        assert stats.just_reached_streak_five == (stats.current_streak == STREAK_MILESTONE)
