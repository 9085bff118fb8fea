"""Tests for TournamentService: generation, groups and manual seeding."""

from __future__ import annotations

import random
import unittest

from courtside.core.constants import (
    BRACKET_ASSIGNMENTS_COLLECTION,
    PLAYERS_COLLECTION,
    TEAMS_COLLECTION,
    WINNERS,
)
from courtside.errors import DuplicateResourceError, NotFoundError, ValidationError
from courtside.tournament.models import AssignmentSubmission, GroupsSubmission
from courtside.tournament.services import TournamentService
from tests.helpers import TOURNAMENT_ID, FirestoreTestCase

TEAM_IDS = [f"team{n}" for n in range(1, 9)]


class GenerateMatchesTestCase(FirestoreTestCase):
    """Tests for generateMatches."""

    def _register_teams(self) -> None:
        for team_id in TEAM_IDS:
            self.db.collection(TEAMS_COLLECTION).document(team_id).set(
                {"name": team_id.title(), "tournamentId": TOURNAMENT_ID}
            )

    def _generate(self):
        return TournamentService.generate_matches(
            TOURNAMENT_ID, db=self.db, locks=self.locks, rng=random.Random(42)
        )

    def test_generates_both_partitions(self) -> None:
        self.add_tournament(status="registration", currentParticipants=16)
        self._register_teams()

        created = self._generate()

        self.assertEqual(len(created), 8)
        self.assertEqual(len(self.stored_matches()), 8)
        round_one = [m for m in created if m["round"] == 1]
        seeded = [p for m in round_one for p in (m["participant1"], m["participant2"])]
        self.assertEqual(sorted(seeded), sorted(TEAM_IDS))
        winners = {
            p
            for m in round_one
            if m["bracketType"] == WINNERS
            for p in (m["participant1"], m["participant2"])
        }
        self.assertEqual(len(winners), 4)
        self.assertTrue(all(m["state"] == "pending" for m in created if m["round"] > 1))

        tournament = self.get_tournament()
        self.assertEqual(tournament["status"], "in-progress")
        self.assertEqual(tournament["format"], "single_elimination_double")

    def test_not_enough_participants_creates_nothing(self) -> None:
        self.add_tournament(status="registration", mode="singles", currentParticipants=7)
        for n in range(7):
            self.db.collection(PLAYERS_COLLECTION).document(f"p{n}").set(
                {"tournamentId": TOURNAMENT_ID}
            )

        with self.assertRaises(ValidationError) as ctx:
            self._generate()

        self.assertIn("8", ctx.exception.message)
        self.assertEqual(self.stored_matches(), [])
        self.assertEqual(self.get_tournament()["status"], "registration")

    def test_doubles_needs_sixteen_players(self) -> None:
        self.add_tournament(status="registration", currentParticipants=8)
        self._register_teams()

        with self.assertRaises(ValidationError):
            self._generate()
        self.assertEqual(self.stored_matches(), [])

    def test_only_during_registration(self) -> None:
        self.add_tournament(status="in-progress", currentParticipants=16)
        self._register_teams()

        with self.assertRaises(ValidationError):
            self._generate()

    def test_unknown_tournament(self) -> None:
        with self.assertRaises(NotFoundError):
            self._generate()


class ManualSeedingTestCase(FirestoreTestCase):
    """Tests for assignParticipantToBracket and the seeded generation."""

    def setUp(self) -> None:
        super().setUp()
        self.add_tournament(status="registration", bracketingMethod="manual")

    def _assign(self, participant_id: str, bracket_type: str, seed: int):
        submission = AssignmentSubmission(TOURNAMENT_ID, participant_id, bracket_type, seed)
        return TournamentService.assign_participant_to_bracket(submission, db=self.db)

    def _assign_all(self) -> None:
        for index, team_id in enumerate(TEAM_IDS):
            self._assign(team_id, "winners" if index < 4 else "losers", index % 4 + 1)

    def test_seeds_decide_the_first_round(self) -> None:
        self._assign_all()

        created = TournamentService.generate_matches_from_manual_seeding(
            TOURNAMENT_ID, db=self.db, locks=self.locks
        )

        round_one = {
            (m["bracketType"], m["participant1"], m["participant2"])
            for m in created
            if m["round"] == 1
        }
        self.assertEqual(
            round_one,
            {
                ("winners", "team1", "team4"),
                ("winners", "team2", "team3"),
                ("losers", "team5", "team8"),
                ("losers", "team6", "team7"),
            },
        )
        tournament = self.get_tournament()
        self.assertTrue(tournament["seedingCompleted"])
        self.assertEqual(tournament["format"], "single_elimination_double")

    def test_seed_taken_by_another_participant(self) -> None:
        self._assign("team1", "winners", 1)

        with self.assertRaises(DuplicateResourceError):
            self._assign("team2", "winners", 1)

    def test_reassigning_moves_the_participant(self) -> None:
        self._assign("team1", "winners", 1)
        result = self._assign("team1", "losers", 2)

        self.assertEqual(result["id"], f"{TOURNAMENT_ID}_team1")
        docs = list(self.db.collection(BRACKET_ASSIGNMENTS_COLLECTION).stream())
        self.assertEqual(len([d for d in docs if d.exists]), 1)
        self.assertEqual(docs[0].to_dict()["bracketType"], "losers")

    def test_invalid_seed(self) -> None:
        with self.assertRaises(ValidationError):
            self._assign("team1", "winners", 5)
        with self.assertRaises(ValidationError):
            self._assign("team1", "final", 1)

    def test_incomplete_seeding(self) -> None:
        self._assign_all()
        self.db.collection(BRACKET_ASSIGNMENTS_COLLECTION).document(
            f"{TOURNAMENT_ID}_team8"
        ).delete()

        with self.assertRaises(ValidationError):
            TournamentService.generate_matches_from_manual_seeding(
                TOURNAMENT_ID, db=self.db, locks=self.locks
            )
        self.assertEqual(self.stored_matches(), [])

    def test_random_tournaments_reject_manual_seeding(self) -> None:
        self.add_tournament(status="registration", bracketingMethod="random")

        with self.assertRaises(ValidationError):
            self._assign("team1", "winners", 1)
        with self.assertRaises(ValidationError):
            TournamentService.generate_matches_from_manual_seeding(
                TOURNAMENT_ID, db=self.db, locks=self.locks
            )


class RoundRobinGenerationTestCase(FirestoreTestCase):
    """Tests for generateRoundRobinMatches and the group queries."""

    def _set_groups(self, group_a, group_b):
        return TournamentService.set_groups(
            GroupsSubmission(TOURNAMENT_ID, group_a, group_b), db=self.db
        )

    def _generate(self):
        return TournamentService.generate_round_robin_matches(
            TOURNAMENT_ID, db=self.db, locks=self.locks
        )

    def test_groups_round_trip(self) -> None:
        self.add_tournament()
        self._set_groups(["A1", "A2"], ["B1", "B2"])

        groups = TournamentService.get_groups(TOURNAMENT_ID, db=self.db)

        self.assertEqual(groups["groupA"], ["A1", "A2"])
        self.assertEqual(groups["groupB"], ["B1", "B2"])

    def test_participant_in_both_groups(self) -> None:
        self.add_tournament()
        with self.assertRaises(ValidationError):
            self._set_groups(["A1", "A2"], ["A2", "B1"])

    def test_groups_of_unknown_tournament(self) -> None:
        with self.assertRaises(NotFoundError):
            self._set_groups(["A1"], ["B1"])

    def test_generation_replaces_existing_matches(self) -> None:
        self.add_tournament(winnersChampion="old")
        self._set_groups(["A1", "A2", "A3"], ["B1", "B2", "B3"])
        self.add_match("stale", 1, WINNERS, "X", "Y", winner="X")

        created = self._generate()

        self.assertEqual(len(created), 8)
        stored = self.stored_matches()
        self.assertEqual(len(stored), 8)
        self.assertNotIn("X", {m["participant1"] for m in stored})
        tournament = self.get_tournament()
        self.assertEqual(tournament["format"], "round_robin_playoff")
        self.assertEqual(tournament["status"], "in-progress")
        self.assertTrue(tournament["seedingCompleted"])
        self.assertIsNone(tournament["winnersChampion"])

    def test_groups_must_be_equal(self) -> None:
        self.add_tournament(groupA=["A1", "A2", "A3"], groupB=["B1", "B2"])
        with self.assertRaises(ValidationError) as ctx:
            self._generate()
        self.assertIn("same number", ctx.exception.message)

    def test_groups_need_two_teams(self) -> None:
        self.add_tournament(groupA=["A1"], groupB=["B1"])
        with self.assertRaises(ValidationError):
            self._generate()

    def test_groups_required(self) -> None:
        self.add_tournament()
        with self.assertRaises(ValidationError):
            self._generate()

    def test_completed_tournament(self) -> None:
        self.add_tournament(status="completed", groupA=["A1", "A2"], groupB=["B1", "B2"])
        with self.assertRaises(ValidationError):
            self._generate()

    def test_group_standings(self) -> None:
        self.add_tournament(groupA=["A1", "A2"], groupB=["B1", "B2"])
        self.add_match("ga", 1, WINNERS, "A1", "A2", winner="A2", score=(2, 6))

        standings = TournamentService.group_standings(TOURNAMENT_ID, db=self.db)

        self.assertEqual([s["teamId"] for s in standings["groupA"]], ["A2", "A1"])
        self.assertEqual(standings["groupA"][0]["points"], 2)
        self.assertEqual([s["teamId"] for s in standings["groupB"]], ["B1", "B2"])
        self.assertEqual(standings["groupB"][0]["matchesPlayed"], 0)


if __name__ == "__main__":
    unittest.main()
