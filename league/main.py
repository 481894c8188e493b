"""Command line entry point for the league tracker."""

import argparse
import asyncio
import logging
import pathlib
import sys
from typing import List, Optional

from league.config import settings
from league.database.session import close_db, init_db
from league.logger import setup_logging
from league.services.elo import format_rating_change
from league.services.league_service import (
    DuplicatePlayerError,
    LeagueService,
    MatchNotFoundError,
    PlayerValidationError,
    SeasonNotFoundError,
)
from league.services.records import MatchValidationError, UnknownPlayerError
from league.services.sparkline import sparkline_generator
from league.utils import parse_datetime

logger = logging.getLogger(__name__)

# Errors reported to the user without a traceback
USER_ERRORS = (
    MatchValidationError,
    UnknownPlayerError,
    MatchNotFoundError,
    SeasonNotFoundError,
    DuplicatePlayerError,
    PlayerValidationError,
)


def _timestamp(text: str):
    try:
        return parse_datetime(text, settings.tz)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timestamp: {text!r}") from None


def _percent(rate: float) -> str:
    return f"{rate * 100:.0f}%"


def _local(value) -> str:
    return value.astimezone(settings.tz).strftime("%Y-%m-%d %H:%M")


# ============================================================================
# Commands
# ============================================================================

async def cmd_add_player(service: LeagueService, args) -> List[str]:
    player = await service.create_player(args.name)
    return [f"Added {player.name} (#{player.id})"]


async def cmd_rename_player(service: LeagueService, args) -> List[str]:
    player = await service.find_player(args.player)
    renamed = await service.rename_player(player.id, args.name)
    return [f"Renamed {player.name} to {renamed.name}"]


async def cmd_remove_player(service: LeagueService, args) -> List[str]:
    player = await service.find_player(args.player)
    await service.delete_player(player.id)
    return [f"Removed {player.name} and their matches"]


async def cmd_add_match(service: LeagueService, args) -> List[str]:
    one = await service.find_player(args.player_one)
    two = await service.find_player(args.player_two)
    view = await service.record_match(
        one.id, two.id, args.points_one, args.points_two, played_at=args.played_at
    )
    return [
        f"Match #{view.match.id}: {view.player_one.name} {view.match.player_one_points}"
        f" - {view.match.player_two_points} {view.player_two.name}",
        f"{view.player_one.name} {format_rating_change(view.player_one_rating_delta)}, "
        f"{view.player_two.name} {format_rating_change(view.player_two_rating_delta)}",
    ]


async def cmd_leaderboard(service: LeagueService, args) -> List[str]:
    lines = []
    for rank, stats in enumerate(await service.leaderboard(), start=1):
        badges = f"  [{', '.join(stats.badge_names)}]" if stats.badges else ""
        trophies = f"  {stats.championships}x champion" if stats.championships else ""
        lines.append(
            f"{rank:>2}. {stats.player.name:<20} {stats.wins}-{stats.losses}"
            f"  {_percent(stats.win_rate):>4}  {stats.point_differential:+d}"
            f"  streak {stats.current_streak}{trophies}{badges}"
        )
        if stats.just_reached_streak_five:
            lines.append(f"    {stats.player.name} just won five in a row!")
    return lines or ["No players yet"]


async def cmd_seasons(service: LeagueService, args) -> List[str]:
    overview = await service.list_seasons(limit=args.limit)
    lines = []
    for summary in overview.seasons:
        marker = " (current)" if summary.is_current else ""
        champion = f", champion: {summary.champion.name}" if summary.champion else ""
        lines.append(f"{summary.season.name}{marker}: {summary.matches} matches{champion}")
        for rank, standing in enumerate(summary.standings, start=1):
            lines.append(
                f"  {rank:>2}. {standing.player.name:<20} {standing.rating:>5}"
                f"  {standing.wins}-{standing.losses}  {standing.point_differential:+d}"
            )
    return lines


async def cmd_matches(service: LeagueService, args) -> List[str]:
    player_id = (await service.find_player(args.player)).id if args.player else None
    lines = []
    for view in await service.list_matches(player_id=player_id, limit=args.limit):
        match = view.match
        lines.append(
            f"#{match.id:<4} {_local(match.played_at)}  "
            f"{view.player_one.name} {match.player_one_points} - "
            f"{match.player_two_points} {view.player_two.name}  "
            f"({format_rating_change(view.player_one_rating_delta)}/"
            f"{format_rating_change(view.player_two_rating_delta)})"
        )
    return lines or ["No matches yet"]


async def cmd_recommend(service: LeagueService, args) -> List[str]:
    report = await service.recommendations(limit=args.limit, include_unplayed=args.all)
    lines = [f"Recommendations for {report.season.name}" if report.season else "Recommendations"]
    for rec in report.recommendations:
        lines.append(
            f"{rec.score:>5.1f}  {rec.player_one.name} vs {rec.player_two.name}"
            f"  ({rec.player_one_wins}-{rec.player_two_wins})"
        )
        if rec.reasons:
            lines.append(f"       {'; '.join(rec.reasons)}")
    return lines


async def cmd_rivalries(service: LeagueService, args) -> List[str]:
    lines = []
    for rivalry in await service.rivalries(limit=args.limit):
        leader = f"{rivalry.leader.name} leads" if rivalry.leader else "level"
        lines.append(
            f"{rivalry.player_a.name} vs {rivalry.player_b.name}: "
            f"{rivalry.meetings} meetings, {rivalry.player_a_wins}-{rivalry.player_b_wins}, {leader}"
        )
    if args.player_a and args.player_b:
        a = await service.find_player(args.player_a)
        b = await service.find_player(args.player_b)
        summary, meetings = await service.head_to_head(a.id, b.id)
        if summary is None:
            lines.append(f"{a.name} and {b.name} have never played each other")
        else:
            lines.append(
                f"{a.name} {summary.player_a_wins} - {summary.player_b_wins} {b.name} "
                f"over {summary.matches} matches ({summary.player_a_point_differential:+d} points)"
            )
            for view in meetings:
                lines.append(
                    f"  {_local(view.match.played_at)}  {view.winner.name} won "
                    f"{max(view.match.player_one_points, view.match.player_two_points)}-"
                    f"{min(view.match.player_one_points, view.match.player_two_points)}"
                )
    return lines or ["No rivalries yet"]


async def cmd_sparkline(service: LeagueService, args) -> List[str]:
    player = await service.find_player(args.player)
    trajectory = await service.rating_trajectory(player.id, season_id=args.season)
    image = sparkline_generator.generate_with_labels(trajectory)
    if image is None:
        return [f"{player.name} has no matches this season for a sparkline"]
    output = pathlib.Path(args.output)
    output.write_bytes(image)
    return [f"Wrote {output} ({len(trajectory)} matches, now {trajectory[-1].rating_after})"]


COMMANDS = {
    "add-player": cmd_add_player,
    "rename-player": cmd_rename_player,
    "remove-player": cmd_remove_player,
    "add-match": cmd_add_match,
    "leaderboard": cmd_leaderboard,
    "seasons": cmd_seasons,
    "matches": cmd_matches,
    "recommend": cmd_recommend,
    "rivalries": cmd_rivalries,
    "sparkline": cmd_sparkline,
}


# ============================================================================
# Parser
# ============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(prog="league", description="Ping-pong league tracker")
    parser.add_argument("--database-url", help="Database URL (default: DATABASE_URL)")
    parser.add_argument("--verbose", action="store_true", help="Log to the console")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sub = subparsers.add_parser("add-player", help="Register a player")
    sub.add_argument("name")

    sub = subparsers.add_parser("rename-player", help="Rename a player")
    sub.add_argument("player", help="Player id or name")
    sub.add_argument("name", help="New name")

    sub = subparsers.add_parser("remove-player", help="Delete a player and their matches")
    sub.add_argument("player", help="Player id or name")

    sub = subparsers.add_parser("add-match", help="Record a match result")
    sub.add_argument("player_one", help="Player id or name")
    sub.add_argument("points_one", type=int)
    sub.add_argument("player_two", help="Player id or name")
    sub.add_argument("points_two", type=int)
    sub.add_argument("--played-at", type=_timestamp, help="ISO timestamp (default: now)")

    subparsers.add_parser("leaderboard", help="Career leaderboard")

    sub = subparsers.add_parser("seasons", help="Season standings and champions")
    sub.add_argument("--limit", type=int, default=None, help="Standings rows per season")

    sub = subparsers.add_parser("matches", help="Match history")
    sub.add_argument("--player", help="Only matches of this player")
    sub.add_argument("--limit", type=int, default=20)

    sub = subparsers.add_parser("recommend", help="Suggested pairings")
    sub.add_argument("--limit", type=int, default=None)
    sub.add_argument("--all", action="store_true", help="Include pairs that never met")

    sub = subparsers.add_parser("rivalries", help="Hottest rivalries and head-to-head")
    sub.add_argument("player_a", nargs="?", help="Show head-to-head for this player...")
    sub.add_argument("player_b", nargs="?", help="...against this one")
    sub.add_argument("--limit", type=int, default=6)

    sub = subparsers.add_parser("sparkline", help="Rating sparkline PNG")
    sub.add_argument("player", help="Player id or name")
    sub.add_argument("--season", type=int, help="Season id (default: current)")
    sub.add_argument("--output", default="sparkline.png")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Run one command; returns the process exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    setup_logging(console=args.verbose)
    await init_db(args.database_url)
    try:
        lines = await COMMANDS[args.command](LeagueService(), args)
    except USER_ERRORS as e:
        logger.warning(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await close_db()

    for line in lines:
        print(line)
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
