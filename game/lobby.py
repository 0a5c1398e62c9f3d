"""Room bootstrap: create, look up, join and leave rooms."""

import logging
import random
import re
import string

from game.errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    InvalidRequestError,
    NotFoundError,
    StoreError,
)
from game.rules import (
    MAX_PLAYER_NAME_LENGTH,
    MAX_PLAYERS,
    MIN_PLAYERS,
    PLAYER_NAME_PATTERN,
    ROOM_CODE_LENGTH,
    PlayerStatus,
    RoomStatus,
)
from game.state import GameState, Player, Room, SessionContext, new_id
from game.store import MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_ROOM_NAME = "Mafia Night"

# Compare-and-set retries when many players join at once
MAX_CLAIM_ATTEMPTS = 20
MAX_CODE_ATTEMPTS = 10

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_NAME_RE = re.compile(PLAYER_NAME_PATTERN)


def validate_player_name(name: str) -> str:
    """Return the trimmed name or raise InvalidRequestError."""
    trimmed = (name or "").strip()
    if not _NAME_RE.match(trimmed) or len(trimmed) > MAX_PLAYER_NAME_LENGTH:
        raise InvalidRequestError(
            "Name must be 2 to %d letters or spaces" % MAX_PLAYER_NAME_LENGTH
        )
    return trimmed


def generate_room_code(rng: random.Random | None = None) -> str:
    return "".join((rng or random).choices(_CODE_ALPHABET, k=ROOM_CODE_LENGTH))


def create_room(
    store: MemoryStore,
    creator_name: str,
    capacity: int,
    name: str = DEFAULT_ROOM_NAME,
    account_id: str | None = None,
    rng: random.Random | None = None,
) -> tuple[Room, Player]:
    """
    Create a room in the lobby phase with its creator seated at 0.
    Returns (room, creator player).
    """
    if not MIN_PLAYERS <= capacity <= MAX_PLAYERS:
        raise InvalidRequestError(f"Capacity must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    creator_name = validate_player_name(creator_name)
    room_name = (name or "").strip() or DEFAULT_ROOM_NAME

    creator_id = new_id()
    room = None
    for _ in range(MAX_CODE_ATTEMPTS):
        candidate = Room(
            id=new_id(),
            code=generate_room_code(rng),
            name=room_name,
            capacity=capacity,
            creator_id=creator_id,
            occupancy=1,
            creator_account_id=account_id,
        )
        try:
            room = store.insert_room(candidate)
            break
        except DuplicateSubmissionError:
            continue
    if room is None:
        raise StoreError("Could not allocate a unique room code")

    store.insert_game_state(GameState(room_id=room.id))
    creator = store.insert_player(
        Player(id=creator_id, room_id=room.id, name=creator_name, seat=0, account_id=account_id)
    )
    logger.info("Room %s (%s) created by %s, capacity %d", room.id, room.code, creator_name, capacity)
    return room, creator


def find_room(store: MemoryStore, code: str) -> Room:
    """Look a room up by join code, case-insensitively."""
    room = store.find_room_by_code(code or "")
    if room is None:
        raise NotFoundError("Room not found")
    return room


def _claim_seat(store: MemoryStore, room_id: str) -> Room:
    """Bump occupancy by one with compare-and-set; raises when the room is full."""
    for _ in range(MAX_CLAIM_ATTEMPTS):
        room = store.get_room(room_id)
        if room is None:
            raise NotFoundError("Room not found")
        if room.occupancy >= room.capacity:
            raise InvalidRequestError("This room has reached maximum capacity")
        claimed = store.update_room(
            room_id, expected={"occupancy": room.occupancy}, occupancy=room.occupancy + 1
        )
        if claimed is not None:
            return claimed
    raise StoreError("Could not claim a seat; too much contention")


def _release_seat(store: MemoryStore, room_id: str) -> None:
    for _ in range(MAX_CLAIM_ATTEMPTS):
        room = store.get_room(room_id)
        if room is None or room.occupancy <= 0:
            return
        if store.update_room(room_id, expected={"occupancy": room.occupancy}, occupancy=room.occupancy - 1):
            return
    raise StoreError("Could not release a seat; too much contention")


def _name_taken(players: list[Player], name: str) -> bool:
    return any(p.name.casefold() == name.casefold() for p in players)


def _free_seat(players: list[Player]) -> int:
    taken = {p.seat for p in players}
    seat = 0
    while seat in taken:
        seat += 1
    return seat


def join_room(
    store: MemoryStore,
    room_id: str,
    name: str,
    account_id: str | None = None,
) -> Player:
    """
    Seat a new player. Joining a room whose game already started seats a spectator.
    An account already seated in the room joins as an unlinked guest.
    A player is seated alive only if the room is still waiting at the moment of insert.
    """
    name = validate_player_name(name)
    room = store.get_room(room_id)
    if room is None:
        raise NotFoundError("Room not found")

    players = store.list_players(room_id)
    if _name_taken(players, name):
        raise InvalidRequestError(f"The name {name!r} is already taken in this room")
    if account_id and any(p.account_id == account_id for p in players):
        logger.info("Account %s already seated in room %s; joining as guest", account_id, room_id)
        account_id = None

    _claim_seat(store, room_id)

    for _ in range(MAX_CLAIM_ATTEMPTS):
        # Conditional on the room status read here; a start in between forces a retry
        room = store.get_room(room_id)
        status = PlayerStatus.ALIVE if room.status == RoomStatus.WAITING else PlayerStatus.SPECTATOR
        players = store.list_players(room_id)
        if _name_taken(players, name):
            _release_seat(store, room_id)
            raise InvalidRequestError(f"The name {name!r} is already taken in this room")
        try:
            player = store.insert_player(
                Player(
                    id=new_id(),
                    room_id=room_id,
                    name=name,
                    seat=_free_seat(players),
                    status=status,
                    account_id=account_id,
                ),
                room_status=room.status,
            )
        except DuplicateSubmissionError:
            continue
        if player is None:
            logger.debug("Room %s changed status while %s was joining; retrying", room_id, name)
            continue
        logger.info("Player %s (%s) joined room %s at seat %d", player.id, name, room_id, player.seat)
        return player

    _release_seat(store, room_id)
    raise StoreError("Could not pick a seat; too much contention")


def leave_room(store: MemoryStore, ctx: SessionContext) -> Player:
    """Voluntarily leave a room that is still in the lobby. The creator cannot leave."""
    room = store.get_room(ctx.room_id)
    if room is None:
        raise NotFoundError("Room not found")
    player = store.get_player(ctx.player_id) if ctx.player_id else None
    if player is None or player.room_id != room.id:
        raise NotFoundError("Player not found in this room")
    if room.status != RoomStatus.WAITING:
        raise AuthorizationError("You cannot leave a game in progress")
    if player.id == room.creator_id:
        raise AuthorizationError("The room creator cannot leave the room")

    if store.delete_player(player.id, room_status=RoomStatus.WAITING) is None:
        raise AuthorizationError("You cannot leave a game in progress")
    _release_seat(store, room.id)
    logger.info("Player %s (%s) left room %s", player.id, player.name, room.id)
    return player
