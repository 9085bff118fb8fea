"""Routes for the tournament blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from courtside.auth.decorators import login_required

from . import bp
from .advancement import AdvancementService
from .models import AssignmentSubmission, GroupsSubmission
from .services import TournamentService


def _payload() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


@bp.route("/<string:tournament_id>/groups", methods=["GET"])
@login_required
def tournament_groups(tournament_id: str) -> Any:
    """Group A and Group B rosters."""
    return jsonify(TournamentService.get_groups(tournament_id))


@bp.route("/<string:tournament_id>/groups", methods=["POST"])
@login_required(admin_required=True)
def set_tournament_groups(tournament_id: str) -> Any:
    """Store the Group A and Group B rosters."""
    submission = GroupsSubmission.from_payload(tournament_id, _payload())
    return jsonify(TournamentService.set_groups(submission))


@bp.route("/<string:tournament_id>/standings", methods=["GET"])
@login_required
def group_standings(tournament_id: str) -> Any:
    """Live standings of both round robin groups."""
    return jsonify(TournamentService.group_standings(tournament_id))


@bp.route("/<string:tournament_id>/bracket-assignments", methods=["POST"])
@login_required(admin_required=True)
def assign_participant_to_bracket(tournament_id: str) -> Any:
    """Place a participant at a manual seed in one bracket partition."""
    submission = AssignmentSubmission.from_payload(tournament_id, _payload())
    return jsonify(TournamentService.assign_participant_to_bracket(submission))


@bp.route("/<string:tournament_id>/generateMatches", methods=["POST"])
@login_required(admin_required=True)
def generate_matches(tournament_id: str) -> Any:
    """Randomly seed the double bracket."""
    matches = TournamentService.generate_matches(tournament_id)
    current_app.logger.info(f"Bracket generated for tournament {tournament_id}")
    return jsonify(matches), 201


@bp.route("/<string:tournament_id>/generateMatchesFromManualSeeding", methods=["POST"])
@login_required(admin_required=True)
def generate_matches_from_manual_seeding(tournament_id: str) -> Any:
    """Build the double bracket from manual seeds."""
    matches = TournamentService.generate_matches_from_manual_seeding(tournament_id)
    current_app.logger.info(f"Seeded bracket generated for tournament {tournament_id}")
    return jsonify(matches), 201


@bp.route("/<string:tournament_id>/generateRoundRobinMatches", methods=["POST"])
@login_required(admin_required=True)
def generate_round_robin_matches(tournament_id: str) -> Any:
    """Regenerate the group stage. Deletes every existing match."""
    matches = TournamentService.generate_round_robin_matches(tournament_id)
    current_app.logger.info(f"Round robin generated for tournament {tournament_id}")
    return jsonify(matches), 201


@bp.route("/<string:tournament_id>/recalculatePlayoffMatches", methods=["POST"])
@login_required(admin_required=True)
def recalculate_playoff_matches(tournament_id: str) -> Any:
    """Re-derive the final and 3rd place match from the group standings."""
    current_app.logger.info(f"Recalculating playoffs for tournament {tournament_id}")
    return jsonify(AdvancementService.recalculate_playoff_matches(tournament_id))
