"""Bracket advancement after match results.

Every pass re-derives the downstream slots from the tournament's current
match set, so running it again without new results changes nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore

from courtside.core.constants import (
    BRACKET_TYPES,
    DIRECT_FINAL_GROUP_SIZE,
    FINAL_ROUND,
    GROUP_STAGE_ROUND,
    LOSERS,
    MATCHES_COLLECTION,
    PLAYOFF_ROUND,
    ROUND_ROBIN_PLAYOFF,
    SINGLE_ELIMINATION_DOUBLE,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    TOURNAMENTS_COLLECTION,
    WINNERS,
)
from courtside.core.locks import LockRegistry, get_lock_registry
from courtside.errors import NotFoundError, ValidationError
from courtside.match.models import is_placeholder, new_match, serialize_match

from .standings import compute_standings

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

CHAMPION_FIELDS = {WINNERS: "winnersChampion", LOSERS: "consolationChampion"}


def _completion_key(entry: tuple[str, dict[str, Any]]) -> tuple[float, str]:
    """Order completed matches by the time their result was recorded."""
    match_id, data = entry
    completed_at = data.get("completedAt")
    if hasattr(completed_at, "timestamp"):
        return (completed_at.timestamp(), match_id)
    return (float("inf"), match_id)


class BracketWrites:
    """In-memory view of a tournament's matches plus the writes of one pass.

    Slots filled earlier in a pass are visible to later steps of the same
    pass, and nothing reaches Firestore until ``commit``.
    """

    def __init__(
        self, db: Client, tournament_id: str, matches: list[tuple[str, dict[str, Any]]]
    ) -> None:
        self.db = db
        self.tournament_id = tournament_id
        self.matches = matches
        self.updates: dict[str, dict[str, Any]] = {}
        self.created: list[str] = []
        self.tournament_updates: dict[str, Any] = {}

    def find(self, round_number: int, bracket_type: str) -> list[tuple[str, dict[str, Any]]]:
        """Matches of one round and partition, ordered by document id."""
        return sorted(
            (
                (mid, data)
                for mid, data in self.matches
                if data.get("round") == round_number
                and data.get("bracketType") == bracket_type
            ),
            key=lambda entry: entry[0],
        )

    def find_one(
        self, round_number: int, bracket_type: str
    ) -> Optional[tuple[str, dict[str, Any]]]:
        found = self.find(round_number, bracket_type)
        return found[0] if found else None

    def completed(self, round_number: int, bracket_type: str) -> list[tuple[str, dict[str, Any]]]:
        """Completed matches of a round and partition, oldest result first."""
        return sorted(
            (e for e in self.find(round_number, bracket_type) if e[1].get("completed")),
            key=_completion_key,
        )

    def update(self, match_id: str, data: dict[str, Any], changes: dict[str, Any]) -> None:
        data.update(changes)
        if match_id in self.created:
            return
        self.updates.setdefault(match_id, {}).update(changes)

    def fill_first_open_slot(
        self, match_id: str, data: dict[str, Any], participant: str
    ) -> Optional[str]:
        """Put a participant into the first placeholder slot of a match.

        Returns the slot name, or None when both slots are already taken.
        """
        for slot in ("participant1", "participant2"):
            if is_placeholder(data.get(slot)):
                self.update(match_id, data, {slot: participant})
                return slot
        return None

    def create(
        self, round_number: int, bracket_type: str, participant1: str, participant2: str
    ) -> str:
        ref = self.db.collection(MATCHES_COLLECTION).document()
        data = new_match(
            self.tournament_id, round_number, bracket_type, participant1, participant2
        )
        self.matches.append((ref.id, data))
        self.created.append(ref.id)
        return ref.id

    @property
    def dirty(self) -> bool:
        return bool(self.updates or self.created or self.tournament_updates)

    def commit(self) -> None:
        """Write every change of the pass in a single batch."""
        if not self.dirty:
            return
        now = firestore.SERVER_TIMESTAMP
        matches_ref = self.db.collection(MATCHES_COLLECTION)
        batch = self.db.batch()
        data_by_id = dict(self.matches)
        for match_id in self.created:
            payload = dict(data_by_id[match_id])
            payload["createdAt"] = now
            payload["updatedAt"] = now
            batch.set(matches_ref.document(match_id), payload)
        for match_id, changes in self.updates.items():
            batch.update(matches_ref.document(match_id), {**changes, "updatedAt": now})
        if self.tournament_updates:
            batch.update(
                self.db.collection(TOURNAMENTS_COLLECTION).document(self.tournament_id),
                {**self.tournament_updates, "updatedAt": now},
            )
        batch.commit()


class AdvancementService:
    """Moves winners and group placers into their downstream slots."""

    @staticmethod
    def _get_tournament(db: Client, tournament_id: str) -> dict[str, Any]:
        doc = cast("DocumentSnapshot", db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get())
        if not doc.exists:
            raise NotFoundError("Tournament not found.")
        return doc.to_dict() or {}

    @staticmethod
    def _load_matches(db: Client, tournament_id: str) -> list[tuple[str, dict[str, Any]]]:
        docs = (
            db.collection(MATCHES_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .stream()
        )
        return [(doc.id, doc.to_dict() or {}) for doc in docs]

    @staticmethod
    def advance(
        tournament_id: str,
        db: Client | None = None,
        locks: LockRegistry | None = None,
    ) -> None:
        """Run one advancement pass for a tournament.

        A tournament that is not ready to advance is left untouched; that is
        the normal state after most results and is not an error.
        """
        if db is None:
            db = firestore.client()
        with get_lock_registry(locks).for_tournament(tournament_id):
            tournament = AdvancementService._get_tournament(db, tournament_id)
            shape = tournament.get("format")
            writes = BracketWrites(
                db, tournament_id, AdvancementService._load_matches(db, tournament_id)
            )

            if shape == SINGLE_ELIMINATION_DOUBLE:
                AdvancementService._advance_bracket(writes)
                finals = {
                    bracket_type: AdvancementService._deciding_match(writes, bracket_type)
                    for bracket_type in BRACKET_TYPES
                }
            elif shape == ROUND_ROBIN_PLAYOFF:
                group_size = len(tournament.get("groupA") or [])
                if group_size == DIRECT_FINAL_GROUP_SIZE:
                    AdvancementService._advance_group_winners_direct(writes)
                else:
                    AdvancementService._advance_playoffs_from_standings(
                        writes, tournament
                    )
                finals = {
                    bracket_type: writes.find_one(PLAYOFF_ROUND, bracket_type)
                    for bracket_type in BRACKET_TYPES
                }
            else:
                logger.info(
                    "Tournament %s has no generated bracket; nothing to advance.",
                    tournament_id,
                )
                return

            AdvancementService._record_champions(writes, tournament, finals)
            writes.commit()

    @staticmethod
    def _advance_bracket(writes: BracketWrites) -> None:
        """Single elimination: each winner takes the next open slot of its ladder.

        The winners and losers partitions are separate ladders; a participant
        knocked out of one never enters the other.
        """
        for bracket_type in BRACKET_TYPES:
            for round_number in range(1, FINAL_ROUND):
                next_matches = writes.find(round_number + 1, bracket_type)
                if not next_matches:
                    continue
                for _, match in writes.completed(round_number, bracket_type):
                    winner = match.get("winner")
                    if is_placeholder(winner):
                        continue
                    if any(
                        winner in (n.get("participant1"), n.get("participant2"))
                        for _, n in next_matches
                    ):
                        continue
                    for next_id, next_match in next_matches:
                        slot = writes.fill_first_open_slot(next_id, next_match, winner)
                        if slot:
                            logger.info(
                                "Advanced %s to round %s %s match %s (%s).",
                                winner, round_number + 1, bracket_type, next_id, slot,
                            )
                            break
                    else:
                        logger.warning(
                            "No open slot in round %s %s for %s.",
                            round_number + 1, bracket_type, winner,
                        )

    @staticmethod
    def _advance_group_winners_direct(writes: BracketWrites) -> None:
        """Two teams per group: the group match decides the playoff slots.

        Its winner goes to the final and its loser to the 3rd place match.
        """
        final = writes.find_one(PLAYOFF_ROUND, WINNERS)
        third_place = writes.find_one(PLAYOFF_ROUND, LOSERS)
        group_results = sorted(
            writes.completed(GROUP_STAGE_ROUND, WINNERS)
            + writes.completed(GROUP_STAGE_ROUND, LOSERS),
            key=_completion_key,
        )

        for _, match in group_results:
            for playoff, participant in (
                (final, match.get("winner")),
                (third_place, match.get("loser")),
            ):
                if playoff is None or is_placeholder(participant):
                    continue
                playoff_id, playoff_data = playoff
                if participant in (
                    playoff_data.get("participant1"),
                    playoff_data.get("participant2"),
                ):
                    continue
                slot = writes.fill_first_open_slot(playoff_id, playoff_data, participant)
                if slot:
                    logger.info("Placed %s in playoff match %s (%s).", participant, playoff_id, slot)

    @staticmethod
    def _advance_playoffs_from_standings(
        writes: BracketWrites, tournament: dict[str, Any]
    ) -> bool:
        """Seed the final and 3rd place match from the group standings.

        Returns False when the group stage is not finished yet.
        """
        group_a = [str(p) for p in tournament.get("groupA") or []]
        group_b = [str(p) for p in tournament.get("groupB") or []]
        if not group_a or not group_b:
            return False

        group_a_matches = writes.find(GROUP_STAGE_ROUND, WINNERS)
        group_b_matches = writes.find(GROUP_STAGE_ROUND, LOSERS)
        if not group_a_matches or not group_b_matches:
            logger.info("Group stage of %s has not been generated.", writes.tournament_id)
            return False
        if not all(m.get("completed") for _, m in group_a_matches + group_b_matches):
            logger.info("Not all group matches of %s are completed yet.", writes.tournament_id)
            return False

        standings_a = compute_standings([m for _, m in group_a_matches], group_a)
        standings_b = compute_standings([m for _, m in group_b_matches], group_b)
        logger.info(
            "Group standings for %s: A=%s B=%s",
            writes.tournament_id,
            [s["teamId"] for s in standings_a],
            [s["teamId"] for s in standings_b],
        )

        for place, bracket_type, label in ((0, WINNERS, "Final"), (1, LOSERS, "3rd place match")):
            if len(standings_a) <= place or len(standings_b) <= place:
                continue
            participant1 = standings_a[place]["teamId"]
            participant2 = standings_b[place]["teamId"]

            existing = writes.find_one(PLAYOFF_ROUND, bracket_type)
            if existing is None:
                match_id = writes.create(PLAYOFF_ROUND, bracket_type, participant1, participant2)
                logger.info("Created %s %s: %s vs %s", label, match_id, participant1, participant2)
                continue

            match_id, match = existing
            if (match.get("participant1"), match.get("participant2")) == (participant1, participant2):
                continue
            if match.get("completed"):
                logger.warning(
                    "%s %s is already completed; standings no longer match its participants.",
                    label, match_id,
                )
                continue
            writes.update(match_id, match, {"participant1": participant1, "participant2": participant2})
            logger.info("Updated %s %s: %s vs %s", label, match_id, participant1, participant2)
        return True

    @staticmethod
    def _deciding_match(
        writes: BracketWrites, bracket_type: str
    ) -> Optional[tuple[str, dict[str, Any]]]:
        """The last match of a partition that can actually be played.

        A round fed by a single match can only ever receive one participant.
        In the eight participant bracket that is the round 3 match, so the
        round 2 match decides the partition unless both round 3 slots were
        filled some other way.
        """
        for round_number in range(FINAL_ROUND, 0, -1):
            entry = writes.find_one(round_number, bracket_type)
            if entry is None:
                continue
            match = entry[1]
            playable = not is_placeholder(match.get("participant1")) and not is_placeholder(
                match.get("participant2")
            )
            feeders = len(writes.find(round_number - 1, bracket_type))
            if playable or match.get("completed") or feeders != 1:
                return entry
        return None

    @staticmethod
    def _record_champions(
        writes: BracketWrites,
        tournament: dict[str, Any],
        finals: dict[str, Optional[tuple[str, dict[str, Any]]]],
    ) -> None:
        """Keep the champion fields and status in line with the finals."""
        finals_done = True
        for bracket_type, field_name in CHAMPION_FIELDS.items():
            final = finals.get(bracket_type)
            champion = None
            if final is not None and final[1].get("completed"):
                champion = final[1].get("winner")
            else:
                finals_done = False
            if tournament.get(field_name) != champion:
                writes.tournament_updates[field_name] = champion

        status = tournament.get("status")
        if finals_done and status != STATUS_COMPLETED:
            writes.tournament_updates["status"] = STATUS_COMPLETED
        elif not finals_done and status == STATUS_COMPLETED:
            writes.tournament_updates["status"] = STATUS_IN_PROGRESS

    @staticmethod
    def recalculate_playoff_matches(
        tournament_id: str,
        db: Client | None = None,
        locks: LockRegistry | None = None,
    ) -> list[dict[str, Any]]:
        """Re-derive the final and 3rd place match from the group standings.

        Used to repair a bracket after a group result was corrected. Returns
        the playoff matches, final first.
        """
        if db is None:
            db = firestore.client()
        with get_lock_registry(locks).for_tournament(tournament_id):
            tournament = AdvancementService._get_tournament(db, tournament_id)
            if not tournament.get("groupA") or not tournament.get("groupB"):
                raise ValidationError("Groups must be assigned before recalculating playoffs.")

            writes = BracketWrites(
                db, tournament_id, AdvancementService._load_matches(db, tournament_id)
            )
            AdvancementService._advance_playoffs_from_standings(writes, tournament)
            writes.commit()

            playoffs = [
                serialize_match(mid, data)
                for bracket_type in BRACKET_TYPES
                for mid, data in writes.find(PLAYOFF_ROUND, bracket_type)
            ]
        return playoffs
