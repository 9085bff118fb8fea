"""Routes for the match blueprint."""

from __future__ import annotations

from typing import Any

from flask import jsonify, request

from courtside.auth.decorators import login_required

from . import bp
from .models import LiveScoreUpdate, ResultSubmission, ScheduleUpdate
from .services import MatchService


def _payload() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


@bp.route("/tournament/<string:tournament_id>", methods=["GET"])
def list_matches(tournament_id: str) -> Any:
    """All matches of a tournament with participant names."""
    return jsonify(MatchService.list_matches(tournament_id))


@bp.route("/tournament/<string:tournament_id>/bracket", methods=["GET"])
def view_bracket(tournament_id: str) -> Any:
    """The winners and losers ladders of a tournament."""
    return jsonify(MatchService.get_bracket(tournament_id))


@bp.route("/submitMatchResult", methods=["POST"])
@login_required
def submit_match_result() -> Any:
    """Record the final result and advance the bracket."""
    submission = ResultSubmission.from_payload(_payload())
    return jsonify(MatchService.submit_result(submission))


@bp.route("/updateLiveScore", methods=["POST"])
@login_required
def update_live_score() -> Any:
    """Update the score of a match in progress."""
    update = LiveScoreUpdate.from_payload(_payload())
    return jsonify(MatchService.update_live_score(update))


@bp.route("/<string:match_id>/schedule", methods=["POST"])
@login_required(admin_required=True)
def update_match_schedule(match_id: str) -> Any:
    update = ScheduleUpdate.from_payload(match_id, _payload())
    return jsonify(MatchService.update_schedule(update))


@bp.route("/<string:match_id>", methods=["DELETE"])
@login_required(admin_required=True)
def delete_match(match_id: str) -> Any:
    """Delete an unplayed match."""
    return jsonify({"deleted": MatchService.delete_match(match_id)})


@bp.route("/<string:match_id>/reset", methods=["POST"])
@login_required(admin_required=True)
def reset_match(match_id: str) -> Any:
    """Return a match to its unplayed state."""
    return jsonify(MatchService.reset_match(match_id))
