"""Global constants for the rallybox application."""

# Firestore collection names
COMPETITIONS_COLLECTION = "competitions"
PARTICIPANTS_COLLECTION = "participants"
BOXES_COLLECTION = "boxes"
ROUNDS_COLLECTION = "rounds"
MATCHES_COLLECTION = "matches"
BRACKET_SLOTS_COLLECTION = "bracket_slots"

# Competition modes
MODE_TOURNAMENT = "tournament"
MODE_LEAGUE = "league"
COMPETITION_MODES = (MODE_TOURNAMENT, MODE_LEAGUE)

# Competition lifecycle
STATUS_SETUP = "setup"
STATUS_OPEN = "open"
STATUS_REGULAR_IN_PROGRESS = "regular_in_progress"
STATUS_REGULAR_COMPLETE = "regular_complete"
STATUS_PLAYOFFS_IN_PROGRESS = "playoffs_in_progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

# Round stages and lifecycle
STAGE_REGULAR = "regular"
STAGE_PLAYOFF = "playoff"

ROUND_SCHEDULED = "scheduled"
ROUND_IN_PROGRESS = "in_progress"
ROUND_COMPLETE = "complete"

# Match lifecycle
MATCH_SCHEDULED = "scheduled"
MATCH_IN_PROGRESS = "in_progress"
MATCH_COMPLETED = "completed"
MATCH_WALKOVER = "walkover"
MATCH_CANCELLED = "cancelled"
OPEN_MATCH_STATUSES = frozenset({MATCH_SCHEDULED, MATCH_IN_PROGRESS})
# Statuses that count towards standings
COUNTED_MATCH_STATUSES = frozenset({MATCH_COMPLETED, MATCH_WALKOVER})
RESOLVED_MATCH_STATUSES = frozenset(
    {MATCH_COMPLETED, MATCH_WALKOVER, MATCH_CANCELLED}
)

# Withdrawal policies
WITHDRAWAL_CANCEL = "cancel"
WITHDRAWAL_WALKOVER = "walkover"

# Playoff qualification scope
PLAYOFF_SCOPE_BOX = "box"
PLAYOFF_SCOPE_OVERALL = "overall"

# Promotion directions
PROMOTED = "promoted"
RELEGATED = "relegated"

# Defaults
DEFAULT_MIN_PARTICIPANTS = 2
DEFAULT_MAX_PARTICIPANTS = 32
DEFAULT_BOX_SIZE = 4
DEFAULT_LEAGUE_PLAYOFF_QUALIFIERS = 2
DEFAULT_TOURNAMENT_PLAYOFF_QUALIFIERS = 4
DEFAULT_PROMOTION_COUNT = 2
DEFAULT_STORE_TIMEOUT_SECONDS = 10.0
DEFAULT_FIRESTORE_MAX_ATTEMPTS = 5

MIN_POOL_SIZE = 2
BYE = "BYE"
FIRESTORE_WRITE_LIMIT = 500

# Key of the competition store in app.extensions
STORE_EXTENSION = "competition_store"
