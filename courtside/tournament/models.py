"""Data models for the tournament blueprint."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from courtside.core.constants import (
    BRACKET_TYPES,
    MAX_GROUP_SIZE,
    PARTITION_SIZE,
)
from courtside.core.types import FirestoreDocument
from courtside.errors import ValidationError


class Tournament(FirestoreDocument, total=False):
    """A tournament document in Firestore."""

    name: str
    mode: str
    status: str
    format: Optional[str]
    registrationType: str
    clubId: Optional[str]
    maxParticipants: int
    currentParticipants: int
    bracketingMethod: str
    seedingCompleted: bool
    groupA: list[str]
    groupB: list[str]
    winnersChampion: Optional[str]
    consolationChampion: Optional[str]


class BracketAssignment(FirestoreDocument, total=False):
    """Manual seed of one participant inside a bracket partition."""

    tournamentId: str
    participantId: str
    bracketType: str
    seed: int


class Standing(TypedDict):
    """One row of a group standings table. Derived, never stored."""

    teamId: str
    rank: int
    matchesPlayed: int
    wins: int
    losses: int
    gamesWon: int
    gamesLost: int
    gamesDifferential: int
    points: int


@dataclass
class GroupsSubmission:
    """Group A and Group B rosters of a round robin tournament."""

    tournament_id: str
    group_a: list[str] = field(default_factory=list)
    group_b: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, tournament_id: str, payload: dict[str, Any]) -> GroupsSubmission:
        return cls(
            tournament_id=tournament_id,
            group_a=list(payload.get("groupA") or []),
            group_b=list(payload.get("groupB") or []),
        )

    def validate(self) -> None:
        """Validate roster sizes and uniqueness."""
        for label, group in (("Group A", self.group_a), ("Group B", self.group_b)):
            if len(group) > MAX_GROUP_SIZE:
                raise ValidationError(
                    f"{label} can have at most {MAX_GROUP_SIZE} teams."
                )
            if not all(isinstance(p, str) and p for p in group):
                raise ValidationError(f"{label} contains an invalid participant ID.")
        everyone = self.group_a + self.group_b
        if len(everyone) != len(set(everyone)):
            raise ValidationError("A participant can only be in one group.")


@dataclass
class AssignmentSubmission:
    """Manual placement of a participant into a bracket partition."""

    tournament_id: str
    participant_id: str
    bracket_type: str
    seed: int

    @classmethod
    def from_payload(
        cls, tournament_id: str, payload: dict[str, Any]
    ) -> AssignmentSubmission:
        return cls(
            tournament_id=tournament_id,
            participant_id=payload.get("participantId") or "",
            bracket_type=payload.get("bracketType") or "",
            seed=payload.get("seed"),  # type: ignore[arg-type]
        )

    def validate(self) -> None:
        if not self.participant_id:
            raise ValidationError("Participant ID is required.")
        if self.bracket_type not in BRACKET_TYPES:
            raise ValidationError("Bracket type must be 'winners' or 'losers'.")
        if (
            isinstance(self.seed, bool)
            or not isinstance(self.seed, int)
            or not 1 <= self.seed <= PARTITION_SIZE
        ):
            raise ValidationError(f"Seed must be between 1 and {PARTITION_SIZE}.")
