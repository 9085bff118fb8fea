"""Service layer for tournament business logic."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from courtside.core.constants import (
    BRACKET_ASSIGNMENTS_COLLECTION,
    BRACKET_SIZE,
    BRACKETING_MANUAL,
    DOUBLES,
    FIRESTORE_BATCH_LIMIT,
    GROUP_STAGE_ROUND,
    LOSERS,
    MATCHES_COLLECTION,
    MAX_GROUP_SIZE,
    MIN_GROUP_SIZE,
    PLAYERS_COLLECTION,
    ROUND_ROBIN_PLAYOFF,
    SINGLE_ELIMINATION_DOUBLE,
    SINGLES,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_REGISTRATION,
    TEAMS_COLLECTION,
    TOURNAMENTS_COLLECTION,
    WINNERS,
)
from courtside.core.locks import LockRegistry, get_lock_registry
from courtside.errors import DuplicateResourceError, NotFoundError, ValidationError
from courtside.match.models import serialize_match

from .generation import TournamentGenerator
from .models import AssignmentSubmission, GroupsSubmission
from .standings import compute_standings

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference

logger = logging.getLogger(__name__)


class TournamentService:
    """Handles business logic and data access for tournaments."""

    @staticmethod
    def get_tournament(tournament_id: str, db: Client | None = None) -> dict[str, Any]:
        """Fetch a tournament or raise NotFoundError."""
        if db is None:
            db = firestore.client()
        if not tournament_id:
            raise NotFoundError("Tournament not found.")
        doc = cast(
            "DocumentSnapshot",
            db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get(),
        )
        if not doc.exists:
            raise NotFoundError("Tournament not found.")
        data = doc.to_dict() or {}
        data["id"] = doc.id
        return data

    @staticmethod
    def get_groups(tournament_id: str, db: Client | None = None) -> dict[str, Any]:
        """Return the Group A and Group B rosters."""
        data = TournamentService.get_tournament(tournament_id, db=db)
        return {
            "tournamentId": tournament_id,
            "groupA": data.get("groupA") or [],
            "groupB": data.get("groupB") or [],
        }

    @staticmethod
    def set_groups(
        submission: GroupsSubmission, db: Client | None = None
    ) -> dict[str, Any]:
        """Store the round robin group rosters."""
        if db is None:
            db = firestore.client()
        submission.validate()
        TournamentService.get_tournament(submission.tournament_id, db=db)
        db.collection(TOURNAMENTS_COLLECTION).document(submission.tournament_id).update({
            "groupA": submission.group_a,
            "groupB": submission.group_b,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        return {
            "tournamentId": submission.tournament_id,
            "groupA": submission.group_a,
            "groupB": submission.group_b,
        }

    @staticmethod
    def group_standings(
        tournament_id: str, db: Client | None = None
    ) -> dict[str, list[dict[str, Any]]]:
        """Current standings of both groups, including unfinished ones."""
        if db is None:
            db = firestore.client()
        data = TournamentService.get_tournament(tournament_id, db=db)
        group_stage = [
            doc.to_dict() or {}
            for doc in db.collection(MATCHES_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .where(filter=firestore.FieldFilter("round", "==", GROUP_STAGE_ROUND))
            .stream()
        ]
        result: dict[str, list[dict[str, Any]]] = {}
        for key, bracket_type in (("groupA", WINNERS), ("groupB", LOSERS)):
            matches = [m for m in group_stage if m.get("bracketType") == bracket_type]
            result[key] = [dict(s) for s in compute_standings(matches, data.get(key) or [])]
        return result

    @staticmethod
    def assign_participant_to_bracket(
        submission: AssignmentSubmission, db: Client | None = None
    ) -> dict[str, Any]:
        """Create or move the manual seed of one participant."""
        if db is None:
            db = firestore.client()
        submission.validate()
        data = TournamentService.get_tournament(submission.tournament_id, db=db)
        if data.get("status") != STATUS_REGISTRATION:
            raise ValidationError("Can only assign participants during registration.")
        if data.get("bracketingMethod") != BRACKETING_MANUAL:
            raise ValidationError("This tournament is set to random bracketing.")

        taken = (
            db.collection(BRACKET_ASSIGNMENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", submission.tournament_id))
            .where(filter=firestore.FieldFilter("bracketType", "==", submission.bracket_type))
            .where(filter=firestore.FieldFilter("seed", "==", submission.seed))
            .stream()
        )
        for doc in taken:
            if (doc.to_dict() or {}).get("participantId") != submission.participant_id:
                raise DuplicateResourceError(
                    f"Seed {submission.seed} of the {submission.bracket_type} bracket is already assigned."
                )

        assignment_id = f"{submission.tournament_id}_{submission.participant_id}"
        payload = {
            "tournamentId": submission.tournament_id,
            "participantId": submission.participant_id,
            "bracketType": submission.bracket_type,
            "seed": submission.seed,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        db.collection(BRACKET_ASSIGNMENTS_COLLECTION).document(assignment_id).set(payload)
        return {
            "id": assignment_id,
            "tournamentId": submission.tournament_id,
            "participantId": submission.participant_id,
            "bracketType": submission.bracket_type,
            "seed": submission.seed,
        }

    @staticmethod
    def _registered_participants(
        db: Client, tournament_id: str, mode: Optional[str]
    ) -> list[str]:
        """Players (singles) or teams (doubles) registered for a tournament."""
        collection = TEAMS_COLLECTION if mode == DOUBLES else PLAYERS_COLLECTION
        docs = (
            db.collection(collection)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .stream()
        )
        return sorted(doc.id for doc in docs)

    @staticmethod
    def _replace_matches(
        db: Client,
        tournament_id: str,
        payloads: list[dict[str, Any]],
        tournament_updates: dict[str, Any],
        delete_existing: bool = False,
    ) -> list[dict[str, Any]]:
        """Write a freshly generated bracket in batches."""
        matches_ref = db.collection(MATCHES_COLLECTION)
        operations: list[tuple[str, DocumentReference, dict[str, Any] | None]] = []

        if delete_existing:
            existing = matches_ref.where(
                filter=firestore.FieldFilter("tournamentId", "==", tournament_id)
            ).stream()
            operations.extend(("delete", matches_ref.document(doc.id), None) for doc in existing)

        created = []
        for payload in payloads:
            ref = matches_ref.document()
            operations.append((
                "set",
                ref,
                {**payload, "createdAt": firestore.SERVER_TIMESTAMP, "updatedAt": firestore.SERVER_TIMESTAMP},
            ))
            created.append(serialize_match(ref.id, payload))

        operations.append((
            "update",
            db.collection(TOURNAMENTS_COLLECTION).document(tournament_id),
            {**tournament_updates, "updatedAt": firestore.SERVER_TIMESTAMP},
        ))

        for start in range(0, len(operations), FIRESTORE_BATCH_LIMIT):
            batch = db.batch()
            for op, ref, data in operations[start : start + FIRESTORE_BATCH_LIMIT]:
                if op == "delete":
                    batch.delete(ref)
                elif op == "set":
                    batch.set(ref, data)
                else:
                    batch.update(ref, data)
            batch.commit()
        return created

    @staticmethod
    def generate_matches(
        tournament_id: str,
        db: Client | None = None,
        locks: LockRegistry | None = None,
        rng: Optional[random.Random] = None,
    ) -> list[dict[str, Any]]:
        """Randomly seed the eight-participant double bracket."""
        if db is None:
            db = firestore.client()
        with get_lock_registry(locks).for_tournament(tournament_id):
            data = TournamentService.get_tournament(tournament_id, db=db)
            if data.get("status") != STATUS_REGISTRATION:
                raise ValidationError("Cannot generate matches for this tournament.")

            mode = data.get("mode", SINGLES)
            expected = BRACKET_SIZE if mode == SINGLES else BRACKET_SIZE * 2
            if (data.get("currentParticipants") or 0) < expected:
                raise ValidationError(f"Need {expected} participants to start tournament.")

            participants = TournamentService._registered_participants(db, tournament_id, mode)
            winners_seeds, losers_seeds = TournamentGenerator.split_randomly(participants, rng=rng)
            payloads = TournamentGenerator.double_bracket(tournament_id, winners_seeds, losers_seeds)

            created = TournamentService._replace_matches(db, tournament_id, payloads, {
                "status": STATUS_IN_PROGRESS,
                "format": SINGLE_ELIMINATION_DOUBLE,
            })
        logger.info("Generated %s bracket matches for %s.", len(created), tournament_id)
        return created

    @staticmethod
    def generate_matches_from_manual_seeding(
        tournament_id: str,
        db: Client | None = None,
        locks: LockRegistry | None = None,
    ) -> list[dict[str, Any]]:
        """Build the double bracket from the organiser's seed assignments."""
        if db is None:
            db = firestore.client()
        with get_lock_registry(locks).for_tournament(tournament_id):
            data = TournamentService.get_tournament(tournament_id, db=db)
            if data.get("status") != STATUS_REGISTRATION:
                raise ValidationError("Cannot generate matches for this tournament.")
            if data.get("bracketingMethod") != BRACKETING_MANUAL:
                raise ValidationError(
                    "This tournament is set to random bracketing. Use generateMatches instead."
                )

            assignments = [
                doc.to_dict() or {}
                for doc in db.collection(BRACKET_ASSIGNMENTS_COLLECTION)
                .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
                .stream()
            ]
            if len(assignments) != BRACKET_SIZE:
                raise ValidationError(
                    f"Need {BRACKET_SIZE} participants assigned but found {len(assignments)}."
                )

            seeds: dict[str, list[str]] = {}
            for bracket_type, label in ((WINNERS, "winners"), (LOSERS, "consolation")):
                in_bracket = sorted(
                    (a for a in assignments if a.get("bracketType") == bracket_type),
                    key=lambda a: a.get("seed", 0),
                )
                if len(in_bracket) != BRACKET_SIZE // 2:
                    raise ValidationError(
                        f"Need {BRACKET_SIZE // 2} participants in {label} bracket but found {len(in_bracket)}."
                    )
                seeds[bracket_type] = [a["participantId"] for a in in_bracket]

            payloads = TournamentGenerator.double_bracket(tournament_id, seeds[WINNERS], seeds[LOSERS])
            created = TournamentService._replace_matches(db, tournament_id, payloads, {
                "status": STATUS_IN_PROGRESS,
                "seedingCompleted": True,
                "format": SINGLE_ELIMINATION_DOUBLE,
            })
        logger.info("Generated %s seeded bracket matches for %s.", len(created), tournament_id)
        return created

    @staticmethod
    def generate_round_robin_matches(
        tournament_id: str,
        db: Client | None = None,
        locks: LockRegistry | None = None,
    ) -> list[dict[str, Any]]:
        """Replace every match of the tournament with a fresh group stage.

        This is destructive: existing matches and their results are deleted.
        """
        if db is None:
            db = firestore.client()
        with get_lock_registry(locks).for_tournament(tournament_id):
            data = TournamentService.get_tournament(tournament_id, db=db)
            if data.get("status") == STATUS_COMPLETED:
                raise ValidationError("Cannot generate matches for a completed tournament.")

            group_a = [str(p) for p in data.get("groupA") or []]
            group_b = [str(p) for p in data.get("groupB") or []]
            if not group_a or not group_b:
                raise ValidationError("Groups must be assigned before generating matches.")
            if len(group_a) < MIN_GROUP_SIZE or len(group_b) < MIN_GROUP_SIZE:
                raise ValidationError(
                    f"Each group must have at least {MIN_GROUP_SIZE} teams. Group A has "
                    f"{len(group_a)} teams, Group B has {len(group_b)} teams."
                )
            if len(group_a) > MAX_GROUP_SIZE or len(group_b) > MAX_GROUP_SIZE:
                raise ValidationError(f"Each group can have at most {MAX_GROUP_SIZE} teams.")
            if len(group_a) != len(group_b):
                raise ValidationError(
                    f"Both groups must have the same number of teams. Group A has "
                    f"{len(group_a)} teams, Group B has {len(group_b)} teams."
                )

            payloads = TournamentGenerator.round_robin(tournament_id, group_a, group_b)
            created = TournamentService._replace_matches(
                db,
                tournament_id,
                payloads,
                {
                    "status": STATUS_IN_PROGRESS,
                    "seedingCompleted": True,
                    "format": ROUND_ROBIN_PLAYOFF,
                    "winnersChampion": None,
                    "consolationChampion": None,
                },
                delete_existing=True,
            )
        logger.info("Generated %s round robin matches for %s.", len(created), tournament_id)
        return created
