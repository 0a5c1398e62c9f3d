"""Session orchestration engine for Mafia."""

from game.controller import PhaseController
from game.engine import evaluate_winner, resolve_day, resolve_night, strict_plurality
from game.errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    InvalidRequestError,
    MafiaError,
    NotFoundError,
    StoreError,
)
from game.lobby import create_room, find_room, join_room, leave_room
from game.roles import assign_roles, role_distribution
from game.rules import ActionType, Faction, MessageCategory, Phase, PlayerStatus, Role, RoomStatus
from game.state import GameState, Message, Player, Room, SessionContext, TransitionResult
from game.store import MemoryStore

__all__ = [
    "PhaseController",
    "MemoryStore",
    "create_room",
    "find_room",
    "join_room",
    "leave_room",
    "assign_roles",
    "role_distribution",
    "resolve_night",
    "resolve_day",
    "evaluate_winner",
    "strict_plurality",
    "MafiaError",
    "NotFoundError",
    "AuthorizationError",
    "InvalidRequestError",
    "DuplicateSubmissionError",
    "StoreError",
    "ActionType",
    "Faction",
    "MessageCategory",
    "Phase",
    "PlayerStatus",
    "Role",
    "RoomStatus",
    "GameState",
    "Message",
    "Player",
    "Room",
    "SessionContext",
    "TransitionResult",
]
