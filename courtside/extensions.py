"""Flask extensions for the application."""
from flask_wtf.csrf import CSRFProtect

from .core.locks import TournamentLocks

csrf = CSRFProtect()
tournament_locks = TournamentLocks()
