"""Tests for the Elo rating engine."""

from datetime import datetime, timezone

import pytest

from league.services.elo import (
    BASE_RATING,
    EloCalculator,
    RatingEngine,
    compute_rating_deltas,
    format_rating_change,
    group_by_season,
    round_half_up,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestEloCalculator:
    def test_equal_ratings_expectation(self):
        assert EloCalculator().expected_score(1000, 1000) == pytest.approx(0.5)

    def test_single_match_from_base(self):
        change = EloCalculator().calculate(1000, 1000)

        assert change.winner_delta == 16
        assert change.loser_delta == -16
        assert change.winner_new_elo == 1016
        assert change.loser_new_elo == 984

    def test_upset_pays_more(self):
        calculator = EloCalculator()
        favourite = calculator.calculate(1200, 1000)
        underdog = calculator.calculate(1000, 1200)

        assert underdog.winner_delta > favourite.winner_delta

    def test_match_deltas_from_player_one(self):
        one, two = EloCalculator().match_deltas(1000, 1000, one_won=False)
        assert (one, two) == (-16, 16)

    def test_no_floor_at_zero(self):
        change = EloCalculator().calculate(5, 0)
        assert change.loser_new_elo < 0


@pytest.mark.parametrize(
    "value, expected",
    [(15.5, 16), (-15.5, -15), (15.49, 15), (-0.5, 0), (0.0, 0)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


class TestRatingEngine:
    def test_one_match(self, make_match):
        result = RatingEngine().rate_season([make_match(1, 2, 11, 5)])

        assert result.ratings == {1: 1016, 2: 984}
        assert result.deltas[1].player_one_delta == 16
        assert result.deltas[1].player_two_delta == -16

    def test_players_enter_at_base_rating(self, make_match):
        matches = [make_match(1, 2, 11, 5), make_match(3, 1, 11, 9)]
        result = RatingEngine().rate_season(matches)

        # player 3 starts at 1000 even though player 1 is already at 1016
        assert result.trajectories[3][0].rating_before == BASE_RATING
        assert result.trajectories[1][1].rating_before == 1016

    def test_order_independent_of_input_order(self, make_match):
        matches = [make_match(1, 2, 11, 5), make_match(2, 3, 11, 8), make_match(3, 1, 11, 2)]

        forward = RatingEngine().rate_season(matches)
        backward = RatingEngine().rate_season(list(reversed(matches)))

        assert forward.ratings == backward.ratings

    def test_trajectory_and_history(self, make_match):
        matches = [make_match(1, 2, 11, 5), make_match(1, 2, 3, 11)]
        result = RatingEngine().rate_season(matches)

        points = result.trajectories[1]
        assert [p.won for p in points] == [True, False]
        assert points[0].delta == 16
        assert result.history_of(1) == [1000, 1016, result.rating_of(1)]
        assert result.history_of(99) == []
        assert result.rating_of(99) is None

    def test_empty_season(self):
        result = RatingEngine().rate_season([])
        assert result.ratings == {}
        assert result.deltas == {}

    def test_custom_base_rating(self, make_match):
        result = RatingEngine(base_rating=1500).rate_season([make_match(1, 2, 11, 5)])
        assert result.ratings == {1: 1516, 2: 1484}


class TestSeasonDeltas:
    def test_each_season_starts_fresh(self, make_match):
        march = make_match(1, 2, 11, 5, utc(2024, 3, 5), season_id=1)
        april = make_match(1, 2, 11, 5, utc(2024, 4, 5), season_id=2)

        deltas = compute_rating_deltas([march, april])

        assert deltas[march.id].player_one_delta == 16
        assert deltas[april.id].player_one_delta == 16

    def test_unassigned_matches_share_a_bucket(self, make_match):
        first = make_match(1, 2, 11, 5, utc(2024, 3, 5))
        second = make_match(1, 2, 11, 5, utc(2024, 4, 5))

        buckets = group_by_season([first, second])
        assert list(buckets) == [None]

        deltas = compute_rating_deltas([first, second])
        assert deltas[second.id].player_one_delta == 15


@pytest.mark.parametrize("delta, text", [(16, "+16"), (-16, "-16"), (0, "±0")])
def test_format_rating_change(delta, text):
    assert format_rating_change(delta) == text
