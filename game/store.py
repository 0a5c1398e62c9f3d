"""In-memory shared store: typed tables, conditional updates and a change feed.

Stands in for the durable relational store every client talks to. Each public
method is one atomic round trip. Rows are immutable; updates swap in a new row.
``update_room`` and ``update_game_state`` take an equality precondition and
return None when no row matched, which is the compare-and-set the phase
controller relies on.
"""

import itertools
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable

from game.errors import DuplicateSubmissionError
from game.rules import Phase, RoomStatus
from game.state import Action, GameState, Message, Player, Room, Vote, utcnow

logger = logging.getLogger(__name__)


class Table(str, Enum):
    ROOMS = "rooms"
    PLAYERS = "players"
    GAME_STATES = "game_states"
    ACTIONS = "actions"
    VOTES = "votes"
    MESSAGES = "messages"


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """One row change delivered to feed subscribers."""

    table: Table
    kind: ChangeKind
    room_id: str
    row: Any


Subscriber = Callable[[ChangeEvent], None]


def _matches(row: Any, expected: dict[str, Any]) -> bool:
    return all(getattr(row, k) == v for k, v in expected.items())


class MemoryStore:
    """Thread-safe in-memory store. One lock serialises every operation."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rooms: dict[str, Room] = {}
        self._players: dict[str, Player] = {}
        self._game_states: dict[str, GameState] = {}
        self._actions: list[Action] = []
        self._votes: list[Vote] = []
        self._messages: list[Message] = []
        self._sequence = itertools.count(1)
        self._subscribers: dict[tuple[Table, str], list[Subscriber]] = defaultdict(list)

    # ── Change feed ──────────────────────────────────────────────────────────

    def subscribe(self, table: Table, room_id: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback for changes to table rows of room_id. Returns an unsubscribe function."""
        key = (table, room_id)
        with self._lock:
            self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers.get(key, []):
                    self._subscribers[key].remove(callback)

        return unsubscribe

    def _publish(self, events: list[ChangeEvent]) -> None:
        """Deliver events outside the lock so callbacks may read the store."""
        for event in events:
            with self._lock:
                callbacks = list(self._subscribers.get((event.table, event.room_id), []))
            for cb in callbacks:
                try:
                    cb(event)
                except Exception as e:
                    logger.warning("Change feed subscriber failed on %s %s: %s", event.table.value, event.kind.value, e)

    # ── Rooms ────────────────────────────────────────────────────────────────

    def insert_room(self, room: Room) -> Room:
        with self._lock:
            if room.id in self._rooms:
                raise DuplicateSubmissionError(f"room {room.id} already exists")
            if any(r.code == room.code for r in self._rooms.values()):
                raise DuplicateSubmissionError(f"room code {room.code} already in use")
            self._rooms[room.id] = room
        self._publish([ChangeEvent(Table.ROOMS, ChangeKind.INSERT, room.id, room)])
        return room

    def get_room(self, room_id: str) -> Room | None:
        with self._lock:
            return self._rooms.get(room_id)

    def find_room_by_code(self, code: str) -> Room | None:
        wanted = code.strip().upper()
        with self._lock:
            for room in self._rooms.values():
                if room.code == wanted:
                    return room
        return None

    def update_room(
        self,
        room_id: str,
        expected: dict[str, Any] | None = None,
        **changes: Any,
    ) -> Room | None:
        """UPDATE rooms SET changes WHERE id = room_id AND expected. None when zero rows matched."""
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None or not _matches(room, expected or {}):
                return None
            room = replace(room, **changes)
            self._rooms[room_id] = room
        self._publish([ChangeEvent(Table.ROOMS, ChangeKind.UPDATE, room_id, room)])
        return room

    # ── Players ──────────────────────────────────────────────────────────────

    def _room_in(self, room_id: str, room_status: RoomStatus | None) -> bool:
        if room_status is None:
            return True
        room = self._rooms.get(room_id)
        return room is not None and room.status == room_status

    def insert_player(self, player: Player, room_status: RoomStatus | None = None) -> Player | None:
        """
        Insert a player; seat and case-insensitive name are unique per room.
        With room_status, insert only while the room still has that status; None otherwise.
        """
        with self._lock:
            if not self._room_in(player.room_id, room_status):
                return None
            for other in self._players.values():
                if other.room_id != player.room_id:
                    continue
                if other.seat == player.seat:
                    raise DuplicateSubmissionError(f"seat {player.seat} is taken")
                if other.name.casefold() == player.name.casefold():
                    raise DuplicateSubmissionError(f"name {player.name!r} is taken")
            self._players[player.id] = player
        self._publish([ChangeEvent(Table.PLAYERS, ChangeKind.INSERT, player.room_id, player)])
        return player

    def get_player(self, player_id: str) -> Player | None:
        with self._lock:
            return self._players.get(player_id)

    def list_players(self, room_id: str) -> list[Player]:
        """Players of room_id ordered by seat."""
        with self._lock:
            players = [p for p in self._players.values() if p.room_id == room_id]
        return sorted(players, key=lambda p: p.seat)

    def update_player(self, player_id: str, **changes: Any) -> Player | None:
        with self._lock:
            player = self._players.get(player_id)
            if player is None:
                return None
            player = replace(player, **changes)
            self._players[player_id] = player
        self._publish([ChangeEvent(Table.PLAYERS, ChangeKind.UPDATE, player.room_id, player)])
        return player

    def delete_player(self, player_id: str, room_status: RoomStatus | None = None) -> Player | None:
        """Delete a player. With room_status, only while their room still has that status."""
        with self._lock:
            player = self._players.get(player_id)
            if player is None or not self._room_in(player.room_id, room_status):
                return None
            del self._players[player_id]
        if player is not None:
            self._publish([ChangeEvent(Table.PLAYERS, ChangeKind.DELETE, player.room_id, player)])
        return player

    # ── Game state ───────────────────────────────────────────────────────────

    def insert_game_state(self, state: GameState) -> GameState:
        with self._lock:
            if state.room_id in self._game_states:
                raise DuplicateSubmissionError(f"game state for room {state.room_id} already exists")
            self._game_states[state.room_id] = state
        self._publish([ChangeEvent(Table.GAME_STATES, ChangeKind.INSERT, state.room_id, state)])
        return state

    def get_game_state(self, room_id: str) -> GameState | None:
        with self._lock:
            return self._game_states.get(room_id)

    def update_game_state(
        self,
        room_id: str,
        expected_phase: Phase,
        expected_round: int | None = None,
        **changes: Any,
    ) -> GameState | None:
        """
        UPDATE game_states SET changes
        WHERE room_id = room_id AND phase = expected_phase [AND round_number = expected_round].
        Returns the new row, or None when another writer already moved the phase or round.
        """
        with self._lock:
            state = self._game_states.get(room_id)
            if state is None or state.phase != expected_phase:
                return None
            if expected_round is not None and state.round_number != expected_round:
                return None
            state = replace(state, updated_at=utcnow(), **changes)
            self._game_states[room_id] = state
        self._publish([ChangeEvent(Table.GAME_STATES, ChangeKind.UPDATE, room_id, state)])
        return state

    # ── Actions ──────────────────────────────────────────────────────────────

    def insert_action(self, action: Action) -> Action:
        """Insert a night action; (room, round, actor) is unique."""
        with self._lock:
            for a in self._actions:
                if (a.room_id, a.round_number, a.actor_id) == (action.room_id, action.round_number, action.actor_id):
                    raise DuplicateSubmissionError(
                        f"player {action.actor_id} already acted in round {action.round_number}"
                    )
            self._actions.append(action)
        self._publish([ChangeEvent(Table.ACTIONS, ChangeKind.INSERT, action.room_id, action)])
        return action

    def list_actions(self, room_id: str, round_number: int) -> list[Action]:
        with self._lock:
            return [a for a in self._actions if a.room_id == room_id and a.round_number == round_number]

    def find_action(self, room_id: str, round_number: int, actor_id: str) -> Action | None:
        with self._lock:
            for a in self._actions:
                if (a.room_id, a.round_number, a.actor_id) == (room_id, round_number, actor_id):
                    return a
        return None

    # ── Votes ────────────────────────────────────────────────────────────────

    def replace_vote(self, vote: Vote) -> Vote:
        """Delete the voter's current vote for the round, then insert vote, in one step."""
        with self._lock:
            removed = [
                v for v in self._votes
                if (v.room_id, v.round_number, v.voter_id) == (vote.room_id, vote.round_number, vote.voter_id)
            ]
            self._votes = [v for v in self._votes if v not in removed]
            self._votes.append(vote)
        events = [ChangeEvent(Table.VOTES, ChangeKind.DELETE, vote.room_id, v) for v in removed]
        events.append(ChangeEvent(Table.VOTES, ChangeKind.INSERT, vote.room_id, vote))
        self._publish(events)
        return vote

    def list_votes(self, room_id: str, round_number: int) -> list[Vote]:
        with self._lock:
            return [v for v in self._votes if v.room_id == room_id and v.round_number == round_number]

    def delete_votes(self, room_id: str, round_number: int) -> int:
        """Delete every vote of the round. Returns how many rows went."""
        with self._lock:
            removed = [v for v in self._votes if v.room_id == room_id and v.round_number == round_number]
            self._votes = [v for v in self._votes if v not in removed]
        self._publish([ChangeEvent(Table.VOTES, ChangeKind.DELETE, room_id, v) for v in removed])
        return len(removed)

    # ── Messages ─────────────────────────────────────────────────────────────

    def insert_message(self, message: Message) -> Message:
        with self._lock:
            message = replace(message, sequence=next(self._sequence))
            self._messages.append(message)
        self._publish([ChangeEvent(Table.MESSAGES, ChangeKind.INSERT, message.room_id, message)])
        return message

    def list_messages(self, room_id: str, limit: int | None = None) -> list[Message]:
        """Messages of room_id oldest first; with limit, only the newest `limit`."""
        with self._lock:
            messages = [m for m in self._messages if m.room_id == room_id]
        messages.sort(key=lambda m: m.sequence)
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages
