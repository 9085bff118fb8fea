"""Service layer for the match lifecycle and bracket queries."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, Optional, cast

from firebase_admin import firestore
from flask import current_app, has_app_context

from courtside.core.constants import (
    BRACKET_TYPES,
    MATCHES_COLLECTION,
    PLACEHOLDER,
    PLAYERS_COLLECTION,
    SINGLES,
    TEAMS_COLLECTION,
    TOURNAMENTS_COLLECTION,
)
from courtside.core.locks import LockRegistry, get_lock_registry
from courtside.errors import NotFoundError, ValidationError
from courtside.tournament import advancement

from .models import (
    LiveScoreUpdate,
    ResultSubmission,
    ScheduleUpdate,
    is_placeholder,
    serialize_match,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference

logger = logging.getLogger(__name__)


def _player_display_name(data: dict[str, Any]) -> str:
    name = f"{data.get('firstName') or ''} {data.get('lastName') or ''}".strip()
    return name or PLACEHOLDER


class MatchService:
    """Service class for match-related operations."""

    @staticmethod
    def _get_match(
        db: Client, match_id: str
    ) -> tuple[DocumentReference, dict[str, Any]]:
        """Fetch a match document or raise NotFoundError."""
        if not match_id:
            raise NotFoundError("Match not found.")
        ref = db.collection(MATCHES_COLLECTION).document(match_id)
        doc = cast("DocumentSnapshot", ref.get())
        if not doc.exists:
            raise NotFoundError("Match not found.")
        return ref, doc.to_dict() or {}

    @staticmethod
    def _get_tournament(db: Client, tournament_id: str) -> Optional[dict[str, Any]]:
        if not tournament_id:
            return None
        doc = cast(
            "DocumentSnapshot",
            db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get(),
        )
        return (doc.to_dict() or {}) if doc.exists else None

    @staticmethod
    def _resolve_participant_names(
        db: Client, tournament: Optional[dict[str, Any]], matches: list[dict[str, Any]]
    ) -> None:
        """Add participant1Name/participant2Name for display."""
        ids = {
            m[slot]
            for m in matches
            for slot in ("participant1", "participant2")
            if not is_placeholder(m.get(slot))
        }
        names: dict[str, str] = {}
        if ids:
            singles = bool(tournament) and tournament.get("mode") == SINGLES
            collection = PLAYERS_COLLECTION if singles else TEAMS_COLLECTION
            refs = [db.collection(collection).document(pid) for pid in sorted(ids)]
            for doc in db.get_all(refs):
                if not doc.exists:
                    continue
                data = doc.to_dict() or {}
                if singles:
                    names[doc.id] = _player_display_name(data)
                else:
                    names[doc.id] = data.get("name") or PLACEHOLDER

        for m in matches:
            m["participant1Name"] = names.get(m.get("participant1"), PLACEHOLDER)
            m["participant2Name"] = names.get(m.get("participant2"), PLACEHOLDER)

    @staticmethod
    def list_matches(
        tournament_id: str, db: Client | None = None
    ) -> list[dict[str, Any]]:
        """Fetch all matches of a tournament, ordered by round and partition."""
        if db is None:
            db = firestore.client()
        docs = (
            db.collection(MATCHES_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .stream()
        )
        matches = [serialize_match(doc.id, doc.to_dict() or {}) for doc in docs]
        matches.sort(key=lambda m: (m.get("round", 0), m.get("bracketType", ""), m["id"]))
        MatchService._resolve_participant_names(
            db, MatchService._get_tournament(db, tournament_id), matches
        )
        return matches

    @staticmethod
    def get_bracket(tournament_id: str, db: Client | None = None) -> dict[str, Any]:
        """Return the tournament with its two ladders."""
        if db is None:
            db = firestore.client()
        tournament = MatchService._get_tournament(db, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament not found.")
        tournament["id"] = tournament_id

        matches = MatchService.list_matches(tournament_id, db=db)
        bracket: dict[str, Any] = {"tournament": tournament}
        for bracket_type in BRACKET_TYPES:
            bracket[bracket_type] = [
                m for m in matches if m.get("bracketType") == bracket_type
            ]
        return bracket

    @staticmethod
    def submit_result(
        submission: ResultSubmission,
        db: Client | None = None,
        locks: LockRegistry | None = None,
    ) -> dict[str, Any]:
        """Complete a match and advance the bracket."""
        if db is None:
            db = firestore.client()
        submission.validate()

        _, data = MatchService._get_match(db, submission.match_id)
        tournament_id = data.get("tournamentId") or ""

        with get_lock_registry(locks).for_tournament(tournament_id):
            # Re-read under the lock; another result may have landed meanwhile.
            ref, data = MatchService._get_match(db, submission.match_id)
            if data.get("completed"):
                raise ValidationError("Match already completed.")

            participants = {data.get("participant1"), data.get("participant2")}
            if any(is_placeholder(p) for p in participants):
                raise ValidationError("Match participants are not determined yet.")
            if {submission.winner_id, submission.loser_id} != participants:
                raise ValidationError("Invalid winner or loser ID.")

            updates: dict[str, Any] = {
                "winner": submission.winner_id,
                "loser": submission.loser_id,
                "completed": True,
                "completedAt": datetime.datetime.now(datetime.timezone.utc),
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
            if submission.score is not None:
                updates["score"] = dict(submission.score)
            ref.update(updates)
            logger.info(
                "Match %s completed: %s beat %s.",
                submission.match_id, submission.winner_id, submission.loser_id,
            )

            if MatchService._get_tournament(db, tournament_id) is not None:
                advancement.AdvancementService.advance(tournament_id, db=db, locks=locks)

            _, data = MatchService._get_match(db, submission.match_id)
        return serialize_match(submission.match_id, data)

    @staticmethod
    def update_live_score(
        update: LiveScoreUpdate, db: Client | None = None
    ) -> dict[str, Any]:
        """Overwrite the in-progress score of a match."""
        if db is None:
            db = firestore.client()
        update.validate()
        ref, data = MatchService._get_match(db, update.match_id)
        if data.get("completed"):
            raise ValidationError("Cannot update score for completed match.")

        score = update.to_score()
        ref.update({"score": score, "updatedAt": firestore.SERVER_TIMESTAMP})
        data["score"] = score
        return serialize_match(update.match_id, data)

    @staticmethod
    def update_schedule(
        update: ScheduleUpdate, db: Client | None = None
    ) -> dict[str, Any]:
        """Set or clear the display schedule of a match."""
        if db is None:
            db = firestore.client()
        update.validate()
        ref, data = MatchService._get_match(db, update.match_id)
        changes = {
            "scheduledDate": update.scheduled_date,
            "scheduledTime": update.scheduled_time,
        }
        ref.update({**changes, "updatedAt": firestore.SERVER_TIMESTAMP})
        data.update(changes)
        return serialize_match(update.match_id, data)

    @staticmethod
    def delete_match(match_id: str, db: Client | None = None) -> bool:
        """Delete a match that has not been played."""
        if db is None:
            db = firestore.client()
        ref, data = MatchService._get_match(db, match_id)
        if data.get("completed"):
            raise ValidationError("Cannot delete a completed match.")
        ref.delete()
        logger.info("Match %s deleted.", match_id)
        return True

    @staticmethod
    def _downstream_matches(
        db: Client, match: dict[str, Any]
    ) -> list[tuple[str, dict[str, Any], list[str]]]:
        """Next-round matches holding this match's winner or loser.

        Each entry lists the slots that hold one of them.
        """
        involved = {match.get("winner"), match.get("loser")} - {None, PLACEHOLDER}
        docs = (
            db.collection(MATCHES_COLLECTION)
            .where(filter=firestore.FieldFilter("tournamentId", "==", match.get("tournamentId")))
            .where(filter=firestore.FieldFilter("round", "==", (match.get("round") or 0) + 1))
            .stream()
        )
        downstream = []
        for doc in docs:
            data = doc.to_dict() or {}
            slots = [
                slot
                for slot in ("participant1", "participant2")
                if data.get(slot) in involved
            ]
            if slots:
                downstream.append((doc.id, data, slots))
        return downstream

    @staticmethod
    def reset_match(
        match_id: str,
        db: Client | None = None,
        locks: LockRegistry | None = None,
        cascade: Optional[bool] = None,
    ) -> dict[str, Any]:
        """Return a match to its unplayed state for an administrative correction.

        Downstream slots that already hold this match's winner are left alone
        unless ``cascade`` (or RESET_CASCADE_DOWNSTREAM) is enabled.
        """
        if db is None:
            db = firestore.client()
        if cascade is None:
            cascade = has_app_context() and bool(
                current_app.config.get("RESET_CASCADE_DOWNSTREAM")
            )

        _, data = MatchService._get_match(db, match_id)
        tournament_id = data.get("tournamentId") or ""

        with get_lock_registry(locks).for_tournament(tournament_id):
            ref, data = MatchService._get_match(db, match_id)
            batch = db.batch()

            if cascade and data.get("completed"):
                for down_id, down, slots in MatchService._downstream_matches(db, data):
                    if down.get("completed"):
                        raise ValidationError(
                            "A later match with this result has already been completed."
                        )
                    batch.update(
                        db.collection(MATCHES_COLLECTION).document(down_id),
                        {
                            **{slot: PLACEHOLDER for slot in slots},
                            "updatedAt": firestore.SERVER_TIMESTAMP,
                        },
                    )
                    logger.info("Cleared %s of match %s.", ", ".join(slots), down_id)

            changes = {
                "completed": False,
                "winner": None,
                "loser": None,
                "score": None,
                "completedAt": None,
            }
            batch.update(ref, {**changes, "updatedAt": firestore.SERVER_TIMESTAMP})
            batch.commit()
            data.update(changes)
            logger.info("Match %s reset.", match_id)

            if MatchService._get_tournament(db, tournament_id) is not None:
                advancement.AdvancementService.advance(tournament_id, db=db, locks=locks)
        return serialize_match(match_id, data)

