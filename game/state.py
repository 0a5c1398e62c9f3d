"""Typed rows and resolver outcomes for the Mafia session engine."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from game.rules import (
    ActionType,
    Faction,
    MessageCategory,
    Phase,
    PlayerStatus,
    Role,
    RoomStatus,
)


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SessionContext:
    """Who is calling: passed explicitly to every operation."""

    room_id: str
    player_id: str | None = None
    account_id: str | None = None


@dataclass(frozen=True)
class Room:
    """A single game's shared namespace."""

    id: str
    code: str
    name: str
    capacity: int
    creator_id: str
    occupancy: int = 0
    status: RoomStatus = RoomStatus.WAITING
    creator_account_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Player:
    """A seated player. Role stays None until the game starts."""

    id: str
    room_id: str
    name: str
    seat: int
    role: Role | None = None
    status: PlayerStatus = PlayerStatus.ALIVE
    account_id: str | None = None

    @property
    def alive(self) -> bool:
        return self.status == PlayerStatus.ALIVE


@dataclass(frozen=True)
class GameState:
    """The one orchestration row per room."""

    room_id: str
    phase: Phase = Phase.LOBBY
    round_number: int = 0
    phase_ends_at: datetime | None = None
    winner: Faction | None = None
    updated_at: datetime = field(default_factory=utcnow)

    def seconds_remaining(self, now: datetime) -> float | None:
        """Seconds until the deadline (never negative), or None when not time-boxed."""
        if self.phase_ends_at is None:
            return None
        return max(0.0, (self.phase_ends_at - now).total_seconds())


@dataclass(frozen=True)
class Action:
    """One secret night move."""

    room_id: str
    round_number: int
    actor_id: str
    action_type: ActionType
    target_id: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Vote:
    """One public day vote."""

    room_id: str
    round_number: int
    voter_id: str
    target_id: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Message:
    """Chat line, inspection result or announcement. Append-only."""

    room_id: str
    author_label: str
    body: str
    category: MessageCategory
    author_id: str | None = None
    id: str = field(default_factory=new_id)
    sequence: int = 0
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class RoleDistribution:
    mafia: int
    doctor: int
    police: int
    citizens: int

    @property
    def total(self) -> int:
        return self.mafia + self.doctor + self.police + self.citizens


@dataclass(frozen=True)
class InspectResult:
    inspector_id: str
    target_id: str
    target_name: str
    is_mafia: bool


@dataclass(frozen=True)
class NightOutcome:
    """What a night resolves to, before anything is written."""

    kill_candidate_id: str | None = None
    saved_ids: frozenset = frozenset()
    victim_id: str | None = None
    inspections: tuple[InspectResult, ...] = ()
    kill_tally: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class DayOutcome:
    eliminated_id: str | None = None
    tally: dict[str, int] = field(default_factory=dict)

    @property
    def tied(self) -> bool:
        return self.eliminated_id is None and bool(self.tally)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one client's attempt to move the phase forward."""

    advanced: bool
    from_phase: Phase
    to_phase: Phase | None = None
    round_number: int = 0
    reason: str = ""
