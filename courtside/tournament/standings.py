"""Group standings for round robin tournaments.

Standings are derived from completed matches every time they are needed and
are never written back to Firestore.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import cmp_to_key
from typing import Any, Optional

from courtside.core.constants import LOSS_POINTS, WIN_POINTS

from .models import Standing


def _initialize_standings(roster: Iterable[str]) -> dict[str, Standing]:
    """Create a zeroed row for every participant of the group."""
    return {
        team_id: {
            "teamId": team_id,
            "rank": 0,
            "matchesPlayed": 0,
            "wins": 0,
            "losses": 0,
            "gamesWon": 0,
            "gamesLost": 0,
            "gamesDifferential": 0,
            "points": 0,
        }
        for team_id in roster
    }


def _record_side(
    standing: Standing, games_for: int, games_against: int, won: bool
) -> None:
    standing["matchesPlayed"] += 1
    standing["gamesWon"] += games_for
    standing["gamesLost"] += games_against
    if won:
        standing["wins"] += 1
        standing["points"] += WIN_POINTS
    else:
        standing["losses"] += 1
        standing["points"] += LOSS_POINTS


def aggregate_group_matches(
    matches: Iterable[dict[str, Any]], roster: Iterable[str]
) -> dict[str, Standing]:
    """Iterate once through matches to build the raw standings map."""
    standings = _initialize_standings(roster)

    for match in matches:
        score = match.get("score")
        if not match.get("completed") or not score:
            continue

        p1 = match.get("participant1")
        p2 = match.get("participant2")
        p1_games = score.get("participant1Score") or 0
        p2_games = score.get("participant2Score") or 0
        winner = match.get("winner")

        if p1 in standings:
            _record_side(standings[p1], p1_games, p2_games, winner == p1)
        if p2 in standings:
            _record_side(standings[p2], p2_games, p1_games, winner == p2)

    for standing in standings.values():
        standing["gamesDifferential"] = standing["gamesWon"] - standing["gamesLost"]
    return standings


def head_to_head_winner(
    matches: Iterable[dict[str, Any]], team_a: str, team_b: str
) -> Optional[str]:
    """Return the winner of a completed match between two participants."""
    pair = {team_a, team_b}
    for match in matches:
        if not match.get("completed"):
            continue
        if {match.get("participant1"), match.get("participant2")} != pair:
            continue
        winner = match.get("winner")
        if winner in pair:
            return winner
    return None


def sort_standings(
    standings: list[Standing], matches: list[dict[str, Any]]
) -> list[Standing]:
    """Sort rows by the tie-breaking chain and assign ranks.

    Order: games won, match wins, head-to-head (two-way ties only), games
    differential, fewer matches played, participant id.
    """
    tie_sizes: dict[tuple[int, int], int] = {}
    for s in standings:
        key = (s["gamesWon"], s["wins"])
        tie_sizes[key] = tie_sizes.get(key, 0) + 1

    def compare(a: Standing, b: Standing) -> int:
        if a["gamesWon"] != b["gamesWon"]:
            return b["gamesWon"] - a["gamesWon"]
        if a["wins"] != b["wins"]:
            return b["wins"] - a["wins"]

        # Three or more rows sharing the same record skip head-to-head.
        if tie_sizes[(a["gamesWon"], a["wins"])] == 2:  # noqa: PLR2004
            winner = head_to_head_winner(matches, a["teamId"], b["teamId"])
            if winner == a["teamId"]:
                return -1
            if winner == b["teamId"]:
                return 1

        if a["gamesDifferential"] != b["gamesDifferential"]:
            return b["gamesDifferential"] - a["gamesDifferential"]
        if a["matchesPlayed"] != b["matchesPlayed"]:
            return a["matchesPlayed"] - b["matchesPlayed"]
        if a["teamId"] != b["teamId"]:
            return -1 if a["teamId"] < b["teamId"] else 1
        return 0

    ordered = sorted(standings, key=cmp_to_key(compare))
    for index, standing in enumerate(ordered):
        standing["rank"] = index + 1
    return ordered


def compute_standings(
    matches: Iterable[dict[str, Any]], roster: Iterable[str]
) -> list[Standing]:
    """Compute the ranked standings table of one group."""
    match_list = list(matches)
    raw_standings = aggregate_group_matches(match_list, roster)
    return sort_standings(list(raw_standings.values()), match_list)
