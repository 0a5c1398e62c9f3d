"""Game rules and constants for the Mafia session engine."""

from enum import Enum


class Role(str, Enum):
    """Secret roles handed out at game start."""

    MAFIA = "mafia"
    DOCTOR = "doctor"
    POLICE = "police"
    CITIZEN = "citizen"


class Phase(str, Enum):
    """Phase stored on the shared game state row."""

    LOBBY = "lobby"
    NIGHT = "night"
    RESULT = "result"
    DAY = "day"
    ENDED = "ended"


class PlayerStatus(str, Enum):
    ALIVE = "alive"
    DEAD = "dead"
    SPECTATOR = "spectator"


class RoomStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"


class ActionType(str, Enum):
    """Night action types, one per empowered role."""

    KILL = "kill"
    SAVE = "save"
    INSPECT = "inspect"


class MessageCategory(str, Enum):
    GLOBAL = "global"
    ROLE = "role"
    INSPECT = "inspect"
    PHASE = "phase"
    SYSTEM = "system"


class Faction(str, Enum):
    """Winning side."""

    CITIZENS = "citizens"
    MAFIA = "mafia"


# Room size limits
MIN_PLAYERS = 10
MAX_PLAYERS = 20

# Each special role gets this share of the table, never fewer than MIN_SPECIAL_ROLE
SPECIAL_ROLE_FRACTION = 0.2
MIN_SPECIAL_ROLE = 2

# When specials overflow the table they are trimmed in this order (cycling)
REDUCE_ORDER = (Role.POLICE, Role.DOCTOR, Role.MAFIA)

# Default phase lengths in seconds
NIGHT_SECONDS = 15
DAY_SECONDS = 30
RESULT_SECONDS = 0

# A deadline this close to "now" counts as expired (clock skew between clients)
DEADLINE_GRACE_SECONDS = 0.5

# Night action owned by each role; citizens have none
ACTION_FOR_ROLE = {
    Role.MAFIA: ActionType.KILL,
    Role.DOCTOR: ActionType.SAVE,
    Role.POLICE: ActionType.INSPECT,
}

# Phases that carry a deadline and resolve when it passes
TIMED_PHASES = (Phase.NIGHT, Phase.RESULT, Phase.DAY)

SYSTEM_AUTHOR = "System"

ROOM_CODE_LENGTH = 6

# Display names: ASCII letters and spaces, at least two characters after trimming
PLAYER_NAME_PATTERN = r"^[A-Za-z\s]{2,}$"
MAX_PLAYER_NAME_LENGTH = 32
