"""Tests for the match recommendation scorer."""

from datetime import datetime, timezone

import pytest

from league.services.recommendations import (
    Reason,
    competitiveness_factor,
    freshness_factor,
    rating_closeness_factor,
    recommend_matches,
)
from league.services.records import UnknownPlayerError


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2024, 3, 20, 12)


@pytest.fixture
def history(make_match):
    return [
        make_match(3, 4, 11, 6, utc(2024, 2, 10, 12)),
        make_match(1, 2, 11, 5, utc(2024, 3, 5, 12)),
        make_match(2, 1, 11, 8, utc(2024, 3, 6, 12)),
    ]


class TestFactors:
    def test_freshness(self):
        assert freshness_factor(None) == 1.0
        assert freshness_factor(0) == 0.0
        assert freshness_factor(7) == pytest.approx(0.5)

    def test_competitiveness(self):
        assert competitiveness_factor(0, 0) == 1.0
        assert competitiveness_factor(2, 2) == 1.0
        assert competitiveness_factor(3, 1) == pytest.approx(0.5)
        assert competitiveness_factor(4, 0) == 0.0

    def test_rating_closeness(self):
        assert rating_closeness_factor(None) == 0.5
        assert rating_closeness_factor(0) == 1.0
        assert rating_closeness_factor(100) == pytest.approx(0.5)


class TestRecommendMatches:
    def test_scores_played_pairs(self, players, history, march_2024):
        report = recommend_matches(players, history, march_2024, NOW)

        assert report.season == march_2024
        assert report.generated_at == NOW
        assert [(r.player_one.id, r.player_two.id) for r in report.recommendations] == [(1, 2), (3, 4)]

        rivals, strangers = report.recommendations
        assert rivals.score == 86.2
        assert (rivals.player_one_wins, rivals.player_two_wins) == (1, 1)
        assert rivals.total_meetings == 2
        assert rivals.season_meetings == 2
        assert rivals.days_since_last_meeting == 14
        assert rivals.rating_diff == 2
        assert rivals.last_played_at == utc(2024, 3, 6, 12)
        assert rivals.reasons == (
            Reason.CLOSE_RECORD,
            "Haven't played in 14 days",
            Reason.EVEN_RATINGS,
        )

        assert strangers.score == 46.4
        assert strangers.rating_diff is None
        assert strangers.season_meetings == 0
        assert strangers.reasons == ("Haven't played in 39 days", Reason.NO_SEASON_MEETING)

    def test_include_unplayed(self, players, history, march_2024):
        report = recommend_matches(players, history, march_2024, NOW, limit=None, include_unplayed=True)
        pairs = [(r.player_one.id, r.player_two.id) for r in report.recommendations]

        assert pairs == [(1, 3), (1, 4), (2, 3), (2, 4), (1, 2), (3, 4)]
        never = report.recommendations[0]
        assert never.score == 87.5
        assert never.total_meetings == 0
        assert never.last_played_at is None
        assert never.reasons == (Reason.NEVER_PLAYED,)

    def test_limit(self, players, history, march_2024):
        report = recommend_matches(players, history, march_2024, NOW, limit=1)
        assert len(report.recommendations) == 1

    def test_ordering_is_stable(self, players, history, march_2024):
        first = recommend_matches(players, history, march_2024, NOW, include_unplayed=True)
        second = recommend_matches(players, list(reversed(history)), march_2024, NOW, include_unplayed=True)

        assert first.recommendations == second.recommendations

    def test_without_season(self, players, history):
        report = recommend_matches(players, history, None, NOW)

        assert report.season is None
        assert all(r.rating_diff is None for r in report.recommendations)

    def test_no_matches(self, players, march_2024):
        assert recommend_matches(players, [], march_2024, NOW).recommendations == []

    def test_unknown_player(self, players, make_match, march_2024):
        with pytest.raises(UnknownPlayerError):
            recommend_matches(players, [make_match(1, 9, 11, 3)], march_2024, NOW)
