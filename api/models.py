"""Pydantic request/response models for the API."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from game.lobby import DEFAULT_ROOM_NAME
from game.rules import (
    MAX_PLAYER_NAME_LENGTH,
    MAX_PLAYERS,
    MIN_PLAYERS,
    ActionType,
    MessageCategory,
)
from game.state import GameState, Message, Player, Room, TransitionResult

MAX_ROOM_NAME_LENGTH = 64
MAX_BODY_LENGTH = 2000


class RoomCreateRequest(BaseModel):
    """Body for POST /rooms."""

    creator_name: str = Field(..., min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    capacity: int = Field(default=MIN_PLAYERS, ge=MIN_PLAYERS, le=MAX_PLAYERS)
    name: str = Field(default=DEFAULT_ROOM_NAME, max_length=MAX_ROOM_NAME_LENGTH)
    account_id: str | None = Field(default=None, description="Optional signed-in account of the creator")


class JoinRequest(BaseModel):
    """Body for POST /rooms/{id}/join."""

    name: str = Field(..., min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    account_id: str | None = None


class PlayerRequest(BaseModel):
    """Body naming the calling player (leave, start, tick)."""

    player_id: str


class ActionRequest(BaseModel):
    """Body for POST /rooms/{id}/actions. action_type defaults to the caller's role action."""

    player_id: str
    round_number: int = Field(..., ge=1)
    target_id: str
    action_type: ActionType | None = None


class VoteRequest(BaseModel):
    player_id: str
    round_number: int = Field(..., ge=1)
    target_id: str


class MessageRequest(BaseModel):
    """Body for POST /rooms/{id}/messages. category defaults to role chat at night, global otherwise."""

    player_id: str
    body: str = Field(..., max_length=MAX_BODY_LENGTH)
    category: MessageCategory | None = None

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("body must not be empty")
        return v


class RoomPublic(BaseModel):
    id: str
    code: str
    name: str
    capacity: int
    occupancy: int
    status: str
    creator_id: str


class PlayerPublic(BaseModel):
    """Player as shown to one viewer: role is None unless the viewer may see it."""

    id: str
    name: str
    seat: int
    status: str
    role: str | None = None


class GameStatePublic(BaseModel):
    phase: str
    round_number: int
    phase_ends_at: datetime | None = None
    seconds_remaining: float | None = Field(default=None, description="Seconds left on the server clock")
    winner: str | None = Field(default=None, description="citizens or mafia once ended")


class RoomResponse(BaseModel):
    """Public room view for GET /rooms/{id}."""

    room: RoomPublic
    game_state: GameStatePublic
    players: list[PlayerPublic]


class JoinResponse(BaseModel):
    room: RoomPublic
    player: PlayerPublic


class ActionPublic(BaseModel):
    id: str
    round_number: int
    action_type: str
    target_id: str


class VotePublic(BaseModel):
    id: str
    round_number: int
    voter_id: str
    target_id: str


class MessagePublic(BaseModel):
    id: str
    sequence: int
    author: str
    author_id: str | None = None
    body: str
    category: str
    created_at: datetime


class TransitionPublic(BaseModel):
    """Outcome of POST /rooms/{id}/tick."""

    advanced: bool
    from_phase: str
    to_phase: str | None = None
    round_number: int
    reason: str


def room_to_public(room: Room) -> RoomPublic:
    return RoomPublic(
        id=room.id,
        code=room.code,
        name=room.name,
        capacity=room.capacity,
        occupancy=room.occupancy,
        status=room.status.value,
        creator_id=room.creator_id,
    )


def player_to_public(player: Player) -> PlayerPublic:
    return PlayerPublic(
        id=player.id,
        name=player.name,
        seat=player.seat,
        status=player.status.value,
        role=player.role.value if player.role else None,
    )


def game_state_to_public(state: GameState, now: datetime) -> GameStatePublic:
    return GameStatePublic(
        phase=state.phase.value,
        round_number=state.round_number,
        phase_ends_at=state.phase_ends_at,
        seconds_remaining=state.seconds_remaining(now),
        winner=state.winner.value if state.winner else None,
    )


def message_to_public(message: Message) -> MessagePublic:
    return MessagePublic(
        id=message.id,
        sequence=message.sequence,
        author=message.author_label,
        author_id=message.author_id,
        body=message.body,
        category=message.category.value,
        created_at=message.created_at,
    )


def transition_to_public(result: TransitionResult) -> TransitionPublic:
    return TransitionPublic(
        advanced=result.advanced,
        from_phase=result.from_phase.value,
        to_phase=result.to_phase.value if result.to_phase else None,
        round_number=result.round_number,
        reason=result.reason,
    )
