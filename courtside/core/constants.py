"""Global constants for the courtside application."""

# Collection names
USERS_COLLECTION = "users"
PLAYERS_COLLECTION = "players"
TEAMS_COLLECTION = "teams"
TOURNAMENTS_COLLECTION = "tournaments"
MATCHES_COLLECTION = "matches"
BRACKET_ASSIGNMENTS_COLLECTION = "bracket_assignments"

FIRESTORE_BATCH_LIMIT = 400

# Slot value for a participant that is not yet determined
PLACEHOLDER = "TBD"

# Bracket partitions. In round robin tournaments "winners" holds Group A
# and "losers" holds Group B during round 1.
WINNERS = "winners"
LOSERS = "losers"
BRACKET_TYPES = (WINNERS, LOSERS)

# Tournament shapes
SINGLE_ELIMINATION_DOUBLE = "single_elimination_double"
ROUND_ROBIN_PLAYOFF = "round_robin_playoff"

# Tournament status values
STATUS_REGISTRATION = "registration"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"

SINGLES = "singles"
DOUBLES = "doubles"

BRACKETING_MANUAL = "manual"

# Bracket shape: 8 participants, 4 per partition
BRACKET_SIZE = 8
PARTITION_SIZE = 4
FINAL_ROUND = 3

# Round robin shape
GROUP_STAGE_ROUND = 1
PLAYOFF_ROUND = 2
MIN_GROUP_SIZE = 2
MAX_GROUP_SIZE = 4
DIRECT_FINAL_GROUP_SIZE = 2

# Score limits
MAX_GAMES = 10
MAX_POINTS = 40

# Standings points
WIN_POINTS = 2
LOSS_POINTS = 1
