"""Tournament blueprint."""

from flask import Blueprint

bp = Blueprint("tournament", __name__, url_prefix="/tournaments")

from . import routes  # noqa: E402, F401
from .advancement import AdvancementService  # noqa: E402
from .models import Standing, Tournament  # noqa: E402
from .services import TournamentService  # noqa: E402
from .standings import compute_standings  # noqa: E402

__all__ = [
    "AdvancementService",
    "Standing",
    "Tournament",
    "TournamentService",
    "compute_standings",
    "routes",
]
