"""Data models for the match blueprint."""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from typing import Any, Optional, TypedDict

from courtside.core.constants import MAX_GAMES, MAX_POINTS, PLACEHOLDER
from courtside.core.types import FirestoreDocument
from courtside.errors import ValidationError

STATE_PENDING = "pending"
STATE_READY = "ready"
STATE_COMPLETED = "completed"

SCHEDULED_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

_TIMESTAMP_FIELDS = ("createdAt", "updatedAt", "completedAt", "scheduledDate")


class Score(TypedDict, total=False):
    """Games won by each side, plus the live point counters."""

    participant1Score: int
    participant2Score: int
    participant1Points: int
    participant2Points: int


class Match(FirestoreDocument, total=False):
    """A match document in Firestore."""

    tournamentId: str
    round: int
    bracketType: str
    participant1: str
    participant2: str
    winner: Optional[str]
    loser: Optional[str]
    score: Optional[Score]
    completed: bool
    completedAt: Any
    scheduledDate: Any
    scheduledTime: Optional[str]

    # UI and calculated fields
    state: str
    participant1Name: str
    participant2Name: str


def _check_count(value: Any, label: str, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer.")
    if value < 0 or value > maximum:
        raise ValidationError(f"{label} must be between 0 and {maximum}.")
    return value


def is_placeholder(participant: Optional[str]) -> bool:
    """Whether a slot still waits for an upstream result."""
    return not participant or participant == PLACEHOLDER


def match_state(data: dict[str, Any]) -> str:
    """Lifecycle state of a match document."""
    if data.get("completed"):
        return STATE_COMPLETED
    if is_placeholder(data.get("participant1")) or is_placeholder(
        data.get("participant2")
    ):
        return STATE_PENDING
    return STATE_READY


def new_match(
    tournament_id: str,
    round_number: int,
    bracket_type: str,
    participant1: str = PLACEHOLDER,
    participant2: str = PLACEHOLDER,
) -> dict[str, Any]:
    """Build the payload of a match that has not been played."""
    return {
        "tournamentId": tournament_id,
        "round": round_number,
        "bracketType": bracket_type,
        "participant1": participant1,
        "participant2": participant2,
        "winner": None,
        "loser": None,
        "score": None,
        "completed": False,
        "scheduledDate": None,
        "scheduledTime": None,
    }


def serialize_match(match_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Convert a match document into a JSON friendly dict."""
    result = dict(data)
    result["id"] = match_id
    result["state"] = match_state(data)
    for key in _TIMESTAMP_FIELDS:
        value = result.get(key)
        if value is None:
            continue
        # Unresolved server timestamps have no isoformat and are dropped.
        result[key] = value.isoformat() if hasattr(value, "isoformat") else None
    return result


@dataclass
class ResultSubmission:
    """Final result of a match as submitted by a scorer."""

    match_id: str
    winner_id: str
    loser_id: str
    score: Optional[Score] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ResultSubmission:
        """Build a submission from the submitMatchResult input."""
        score = payload.get("score")
        if score is not None and not isinstance(score, dict):
            raise ValidationError("Score must be an object.")
        return cls(
            match_id=payload.get("matchId") or "",
            winner_id=payload.get("winnerId") or "",
            loser_id=payload.get("loserId") or "",
            score=score,
        )

    def validate(self) -> None:
        """Validate the submission for obvious errors."""
        if not self.match_id:
            raise ValidationError("Match ID is required.")
        if not self.winner_id or not self.loser_id:
            raise ValidationError("Winner and loser IDs are required.")
        if self.winner_id == self.loser_id:
            raise ValidationError("Winner and loser must be different participants.")
        if self.score is not None:
            score: Score = {
                "participant1Score": _check_count(
                    self.score.get("participant1Score", 0),
                    "participant1Score",
                    MAX_GAMES,
                ),
                "participant2Score": _check_count(
                    self.score.get("participant2Score", 0),
                    "participant2Score",
                    MAX_GAMES,
                ),
            }
            self.score = score


@dataclass
class LiveScoreUpdate:
    """In-progress score of a match."""

    match_id: str
    score_a: int
    score_b: int
    points_a: int = 0
    points_b: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> LiveScoreUpdate:
        """Build an update from the updateLiveScore input."""
        return cls(
            match_id=payload.get("matchId") or "",
            score_a=payload.get("scoreA"),  # type: ignore[arg-type]
            score_b=payload.get("scoreB"),  # type: ignore[arg-type]
            points_a=payload.get("pointsA") or 0,
            points_b=payload.get("pointsB") or 0,
        )

    def validate(self) -> None:
        """Validate counter ranges."""
        if not self.match_id:
            raise ValidationError("Match ID is required.")
        _check_count(self.score_a, "scoreA", MAX_GAMES)
        _check_count(self.score_b, "scoreB", MAX_GAMES)
        _check_count(self.points_a, "pointsA", MAX_POINTS)
        _check_count(self.points_b, "pointsB", MAX_POINTS)

    def to_score(self) -> Score:
        return {
            "participant1Score": self.score_a,
            "participant2Score": self.score_b,
            "participant1Points": self.points_a,
            "participant2Points": self.points_b,
        }


@dataclass
class ScheduleUpdate:
    """Display-only scheduling fields of a match."""

    match_id: str
    scheduled_date: Optional[datetime.datetime] = None
    scheduled_time: Optional[str] = None

    @classmethod
    def from_payload(cls, match_id: str, payload: dict[str, Any]) -> ScheduleUpdate:
        """Parse the scheduledDate (YYYY-MM-DD) and scheduledTime inputs."""
        raw_date = payload.get("scheduledDate")
        scheduled_date = None
        if raw_date:
            try:
                scheduled_date = datetime.datetime.strptime(
                    raw_date[:10], "%Y-%m-%d"
                ).replace(tzinfo=datetime.timezone.utc)
            except (TypeError, ValueError) as e:
                raise ValidationError("scheduledDate must be YYYY-MM-DD.") from e
        return cls(
            match_id=match_id,
            scheduled_date=scheduled_date,
            scheduled_time=payload.get("scheduledTime") or None,
        )

    def validate(self) -> None:
        if self.scheduled_time and not SCHEDULED_TIME_PATTERN.match(
            self.scheduled_time
        ):
            raise ValidationError("scheduledTime must use the HH:MM format.")
