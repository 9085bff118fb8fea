"""Base test case backed by an in-memory Firestore."""

from __future__ import annotations

import datetime
import unittest
from typing import Any, Optional

from mockfirestore import MockFirestore

from courtside.core.constants import (
    LOSERS,
    MATCHES_COLLECTION,
    ROUND_ROBIN_PLAYOFF,
    SINGLE_ELIMINATION_DOUBLE,
    STATUS_IN_PROGRESS,
    TOURNAMENTS_COLLECTION,
    WINNERS,
)
from courtside.core.locks import LockRegistry
from courtside.match.models import new_match
from courtside.tournament.generation import TournamentGenerator
from tests.mock_utils import MockBatch, MockFirestoreBuilder, patch_mockfirestore

patch_mockfirestore()

TOURNAMENT_ID = "t1"


class FirestoreTestCase(unittest.TestCase):
    """Gives each test a fresh mock database wired into the services."""

    def setUp(self) -> None:
        self.db = MockFirestore()
        self.batches: list[MockBatch] = []
        self.db.batch = self._new_batch
        self.locks = LockRegistry()
        for p in MockFirestoreBuilder.patch_firestore_modules(self.db):
            self.addCleanup(p.stop)
        self._clock = datetime.datetime(2024, 6, 1, 9, 0, tzinfo=datetime.timezone.utc)

    def _new_batch(self) -> MockBatch:
        batch = MockBatch(self.db)
        self.batches.append(batch)
        return batch

    def add_tournament(self, tournament_id: str = TOURNAMENT_ID, **fields: Any) -> str:
        data = {"name": "Summer Open", "mode": "doubles", "status": STATUS_IN_PROGRESS}
        data.update(fields)
        self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).set(data)
        return tournament_id

    def add_match(
        self,
        match_id: str,
        round_number: int,
        bracket_type: str,
        participant1: str,
        participant2: str,
        tournament_id: str = TOURNAMENT_ID,
        winner: Optional[str] = None,
        score: Optional[tuple[int, int]] = None,
    ) -> str:
        """Store a match; passing a winner stores it as completed."""
        data = new_match(tournament_id, round_number, bracket_type, participant1, participant2)
        if winner is not None:
            self._clock += datetime.timedelta(minutes=5)
            data.update({
                "winner": winner,
                "loser": participant2 if winner == participant1 else participant1,
                "completed": True,
                "completedAt": self._clock,
            })
        if score is not None:
            data["score"] = {"participant1Score": score[0], "participant2Score": score[1]}
        self.db.collection(MATCHES_COLLECTION).document(match_id).set(data)
        return match_id

    def complete_match(
        self, match_id: str, winner: str, score: Optional[tuple[int, int]] = None
    ) -> None:
        """Mark a stored match as played, bypassing the result checks."""
        data = self.get_match(match_id)
        self._clock += datetime.timedelta(minutes=5)
        changes: dict[str, Any] = {
            "winner": winner,
            "loser": data["participant2"] if winner == data["participant1"] else data["participant1"],
            "completed": True,
            "completedAt": self._clock,
        }
        if score is not None:
            changes["score"] = {"participant1Score": score[0], "participant2Score": score[1]}
        self.db.collection(MATCHES_COLLECTION).document(match_id).update(changes)

    def add_double_bracket(self, tournament_id: str = TOURNAMENT_ID) -> None:
        """Tournament with the eight participant bracket already generated.

        Match ids are w1a, w1b, w2, w3 for winners and l1a, l1b, l2, l3 for
        losers.
        """
        self.add_tournament(tournament_id, format=SINGLE_ELIMINATION_DOUBLE)
        payloads = TournamentGenerator.double_bracket(
            tournament_id, ["W1", "W2", "W3", "W4"], ["L1", "L2", "L3", "L4"]
        )
        ids = ["w1a", "w1b", "w2", "w3", "l1a", "l1b", "l2", "l3"]
        for match_id, payload in zip(ids, payloads):
            self.db.collection(MATCHES_COLLECTION).document(match_id).set(payload)

    def add_round_robin(
        self,
        group_a: list[str],
        group_b: list[str],
        tournament_id: str = TOURNAMENT_ID,
    ) -> None:
        self.add_tournament(
            tournament_id,
            format=ROUND_ROBIN_PLAYOFF,
            groupA=group_a,
            groupB=group_b,
        )
        self.add_match("final", 2, WINNERS, "TBD", "TBD", tournament_id=tournament_id)
        self.add_match("third", 2, LOSERS, "TBD", "TBD", tournament_id=tournament_id)

    def get_match(self, match_id: str) -> dict[str, Any]:
        return self.db.collection(MATCHES_COLLECTION).document(match_id).get().to_dict()

    def get_tournament(self, tournament_id: str = TOURNAMENT_ID) -> dict[str, Any]:
        return (
            self.db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get().to_dict()
        )

    def stored_matches(self, tournament_id: str = TOURNAMENT_ID) -> list[dict[str, Any]]:
        return [
            doc.to_dict()
            for doc in self.db.collection(MATCHES_COLLECTION).stream()
            if doc.exists and doc.to_dict().get("tournamentId") == tournament_id
        ]
