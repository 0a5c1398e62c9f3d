"""Client actor: one connected player's local view of a room.

Each client keeps its own copy of the game state row, refreshed from the
store's change feed, and counts down to the shared deadline on its own. When
the countdown hits zero it tries to resolve the phase. Nothing coordinates
clients; the controller's conditional update decides which attempt lands.
"""

import logging
import math
from datetime import datetime
from typing import Callable

from game.controller import PhaseController
from game.errors import StoreError
from game.rules import TIMED_PHASES
from game.state import GameState, Player, SessionContext, TransitionResult
from game.store import ChangeEvent, Table

logger = logging.getLogger(__name__)


class SessionClient:
    """Follows one room through the change feed and fires resolver attempts when the timer expires."""

    def __init__(
        self,
        controller: PhaseController,
        ctx: SessionContext,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.controller = controller
        self.ctx = ctx
        self.clock = clock or controller.clock
        self.game_state: GameState | None = None
        self.players: list[Player] = []
        self.updates_seen = 0
        self._unsubscribers: list[Callable[[], None]] = []

    def connect(self) -> "SessionClient":
        """Load a snapshot and start following the room's game state and roster."""
        self.refresh()
        store = self.controller.store
        self._unsubscribers = [
            store.subscribe(Table.GAME_STATES, self.ctx.room_id, self._on_change),
            store.subscribe(Table.PLAYERS, self.ctx.room_id, self._on_change),
        ]
        return self

    def disconnect(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def __enter__(self) -> "SessionClient":
        return self.connect()

    def __exit__(self, *exc) -> None:
        self.disconnect()

    def _on_change(self, event: ChangeEvent) -> None:
        self.updates_seen += 1
        if event.table == Table.GAME_STATES:
            self.game_state = event.row
        else:
            self._refresh_roster()

    def _refresh_roster(self) -> None:
        try:
            self.players = self.controller.roster(self.ctx)
        except StoreError as e:
            logger.warning("Roster refresh failed for room %s: %s", self.ctx.room_id, e)

    def refresh(self) -> None:
        """Re-read the authoritative state. A store failure keeps the old snapshot."""
        try:
            self.game_state = self.controller.game_state(self.ctx.room_id)
        except StoreError as e:
            logger.warning("State refresh failed for room %s: %s", self.ctx.room_id, e)
            return
        self._refresh_roster()

    def remaining_seconds(self) -> int | None:
        """Whole seconds left on the local copy of the deadline, or None if the phase is not timed."""
        if self.game_state is None:
            return None
        left = self.game_state.seconds_remaining(self.clock())
        if left is None:
            return None
        return math.ceil(left)

    def poll(self) -> TransitionResult | None:
        """
        Timer tick. Returns None while time remains (or on a store failure), otherwise the
        result of this client's resolver attempt.
        """
        if self.game_state is None or self.game_state.phase not in TIMED_PHASES:
            return None
        remaining = self.remaining_seconds()
        if remaining is None or remaining > 0:
            return None
        try:
            result = self.controller.advance_if_due(self.ctx.room_id)
        except StoreError as e:
            logger.warning("Resolution attempt failed for room %s, retrying next tick: %s", self.ctx.room_id, e)
            return None
        if not result.advanced:
            logger.debug("Client %s did not advance room %s: %s", self.ctx.player_id, self.ctx.room_id, result.reason)
            self.refresh()
        return result
