"""
Property-based tests for standings and champions.

Covers ordering invariants, determinism and champion idempotence.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, strategies as st, settings

from league.services.records import PlayerRecord, SeasonRecord, build_match
from league.services.standings import (
    apply_champions,
    calculate_season_standings,
    matches_by_season,
    pending_champions,
    rank_career,
    season_sort_key,
)
from league.services.statistics import build_all_player_stats

START = datetime(2024, 3, 1, tzinfo=timezone.utc)
PLAYERS = [PlayerRecord(i, f"Player {i}") for i in range(1, 7)]
SEASONS = [
    SeasonRecord(
        id=month,
        name=f"Season {month}",
        start_date=datetime(2024, month, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, month + 1, 1, tzinfo=timezone.utc) - timedelta(milliseconds=1),
    )
    for month in (1, 2, 3)
]

result_strategy = st.tuples(
    st.integers(min_value=1, max_value=6),
    st.integers(min_value=1, max_value=6),
    st.integers(min_value=0, max_value=20),
    st.integers(min_value=1, max_value=10),
    st.integers(min_value=0, max_value=60 * 24 * 27),
    st.sampled_from([1, 2, 3]),
).filter(lambda r: r[0] != r[1])


def build(results):
    matches = []
    for match_id, (one, two, base, margin, minutes, month) in enumerate(results, start=1):
        played_at = datetime(2024, month, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
        matches.append(build_match(match_id, one, two, base + margin, base, played_at, season_id=month))
    return matches


class TestStandingsProperties:
    @settings(max_examples=100)
    @given(results=st.lists(result_strategy, max_size=30))
    def test_sorted_and_complete(self, results):
        matches = build(results)
        standings = calculate_season_standings(matches, PLAYERS)

        participants = {m.player_one_id for m in matches} | {m.player_two_id for m in matches}
        assert {s.player.id for s in standings} == participants
        assert [season_sort_key(s) for s in standings] == sorted(season_sort_key(s) for s in standings)
        assert all(s.wins + s.losses == s.matches for s in standings)

    @settings(max_examples=100)
    @given(results=st.lists(result_strategy, max_size=30), data=st.data())
    def test_deterministic_for_any_input_order(self, results, data):
        matches = build(results)
        shuffled = data.draw(st.permutations(matches))

        assert calculate_season_standings(matches, PLAYERS) == calculate_season_standings(shuffled, PLAYERS)
        assert rank_career(build_all_player_stats(PLAYERS, matches, None)) == rank_career(
            build_all_player_stats(PLAYERS, shuffled, None)
        )


class TestChampionProperties:
    @settings(max_examples=100)
    @given(results=st.lists(result_strategy, max_size=30))
    def test_champion_assignment_idempotent(self, results):
        grouped = matches_by_season(build(results))
        now = datetime(2024, 3, 15, tzinfo=timezone.utc)

        first = pending_champions(SEASONS, grouped, PLAYERS, now)
        seasons = apply_champions(SEASONS, first)

        assert pending_champions(seasons, grouped, PLAYERS, now) == []
        # only elapsed seasons with matches get a champion
        assert {a.season_id for a in first} == {m for m in (1, 2) if m in grouped}
        for assignment in first:
            top = calculate_season_standings(grouped[assignment.season_id], PLAYERS)[0]
            assert top.player.id == assignment.champion_id
