"""Tests for match records and input validation."""

from datetime import datetime, timezone

import pytest

from league.services.records import (
    MatchValidationError,
    PlayerRecord,
    UnknownPlayerError,
    build_match,
    chronological,
    decide_winner,
    index_players,
    require_player,
    validate_match_input,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestValidateMatchInput:
    def test_valid_result_passes(self):
        validate_match_input(1, 2, 11, 7)

    def test_self_play_rejected(self):
        with pytest.raises(MatchValidationError, match="against themselves"):
            validate_match_input(1, 1, 11, 7)

    def test_tie_rejected(self):
        with pytest.raises(MatchValidationError, match="winner"):
            validate_match_input(1, 2, 9, 9)

    def test_negative_score_rejected(self):
        with pytest.raises(MatchValidationError, match="negative"):
            validate_match_input(1, 2, -1, 11)

    @pytest.mark.parametrize("points", [11.0, "11", None, True])
    def test_non_integer_score_rejected(self, points):
        with pytest.raises(MatchValidationError, match="whole numbers"):
            validate_match_input(1, 2, points, 5)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_match_input(1, 1, 11, 7)


class TestBuildMatch:
    def test_winner_derived_from_scores(self):
        assert decide_winner(1, 2, 11, 7) == 1
        assert decide_winner(1, 2, 7, 11) == 2

    def test_build_match_normalizes_time(self):
        naive = datetime(2024, 3, 5, 18, 30)
        match = build_match(1, 1, 2, 5, 11, naive)

        assert match.winner_id == 2
        assert match.loser_id == 1
        assert match.played_at == utc(2024, 3, 5, 18, 30)

    def test_match_perspective_helpers(self):
        match = build_match(1, 1, 2, 11, 7, utc(2024, 3, 5))

        assert match.involves(1) and match.involves(2)
        assert not match.involves(3)
        assert match.opponent_of(1) == 2
        assert match.points_for(2) == 7
        assert match.points_against(2) == 11
        assert match.won_by(1)
        assert not match.won_by(2)

    def test_opponent_of_stranger_raises(self):
        match = build_match(1, 1, 2, 11, 7, utc(2024, 3, 5))
        with pytest.raises(ValueError):
            match.opponent_of(3)


class TestLookups:
    def test_require_player_unknown(self):
        index = index_players([PlayerRecord(id=1, name="Alice")])

        assert require_player(index, 1).name == "Alice"
        with pytest.raises(UnknownPlayerError) as exc_info:
            require_player(index, 7)
        assert exc_info.value.player_id == 7

    def test_chronological_breaks_ties_by_id(self):
        same_time = utc(2024, 3, 5, 12)
        later = build_match(1, 1, 2, 11, 7, utc(2024, 3, 6))
        second = build_match(3, 1, 2, 11, 7, same_time)
        first = build_match(2, 1, 2, 11, 7, same_time)

        assert [m.id for m in chronological([later, second, first])] == [2, 3, 1]
