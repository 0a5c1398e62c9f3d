"""Phase controller: the session state machine shared by every client.

There is no central server. Any client whose timer reaches zero calls
``advance_if_due``; the resolver re-reads the game state row, writes its side
effects, then moves the phase with a conditional update on the expected prior
phase. Exactly one racing client's update matches; the others get a
``TransitionResult`` with ``advanced=False`` and stop.
"""

import logging
import random
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from game.config import PhaseTimings
from game.engine import eliminate, evaluate_winner, resolve_day, resolve_night
from game.errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    InvalidRequestError,
    NotFoundError,
    StoreError,
)
from game.ledger import ActionLedger, VoteLedger
from game.roles import assign_roles
from game.rules import (
    ACTION_FOR_ROLE,
    DEADLINE_GRACE_SECONDS,
    MAX_PLAYERS,
    MIN_PLAYERS,
    SYSTEM_AUTHOR,
    ActionType,
    Faction,
    MessageCategory,
    Phase,
    PlayerStatus,
    RoomStatus,
)
from game.state import (
    Action,
    GameState,
    Message,
    Player,
    Room,
    SessionContext,
    TransitionResult,
    Vote,
    utcnow,
)
from game.store import MemoryStore
from game.visibility import default_category, filter_messages, send_denial, visible_role

logger = logging.getLogger(__name__)

REASON_ADVANCED = "advanced"
REASON_GAME_OVER = "game_over"
REASON_RACE_LOST = "race_lost"
REASON_PHASE_CHANGED = "phase_changed"
REASON_NOT_DUE = "not_due"
REASON_NOT_TIMED = "not_timed"

MAX_MESSAGE_LENGTH = 500
DEFAULT_MESSAGE_LIMIT = 100

WIN_ANNOUNCEMENTS = {
    Faction.CITIZENS: "Game Over — Citizens win!",
    Faction.MAFIA: "Game Over — Mafia win!",
}


class PhaseController:
    """Runs every game operation against the shared store on behalf of one caller."""

    def __init__(
        self,
        store: MemoryStore,
        timings: PhaseTimings | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.timings = timings or PhaseTimings()
        self.clock = clock
        self.rng = rng or random.Random()
        self.actions = ActionLedger(store)
        self.votes = VoteLedger(store)

    # ── Lookups ──────────────────────────────────────────────────────────────

    def _room(self, room_id: str) -> Room:
        room = self.store.get_room(room_id)
        if room is None:
            raise NotFoundError("Room not found")
        return room

    def game_state(self, room_id: str) -> GameState:
        """Authoritative game state row for room_id."""
        state = self.store.get_game_state(room_id)
        if state is None:
            raise NotFoundError("Game state not found")
        return state

    def _player(self, ctx: SessionContext) -> Player:
        player = self.store.get_player(ctx.player_id) if ctx.player_id else None
        if player is None or player.room_id != ctx.room_id:
            raise NotFoundError("Player not found in this room")
        return player

    def _viewer(self, ctx: SessionContext) -> Player | None:
        """The calling player, or None for someone watching without a seat."""
        if not ctx.player_id:
            return None
        return self._player(ctx)

    def _deadline(self, seconds: float) -> datetime:
        return self.clock() + timedelta(seconds=seconds)

    def _announce(
        self,
        room_id: str,
        body: str,
        category: MessageCategory = MessageCategory.SYSTEM,
        author_id: str | None = None,
    ) -> Message:
        return self.store.insert_message(
            Message(room_id=room_id, author_label=SYSTEM_AUTHOR, body=body, category=category, author_id=author_id)
        )

    # ── Game start ───────────────────────────────────────────────────────────

    def start_game(self, ctx: SessionContext) -> GameState:
        """
        Creator-only. Claims the room (waiting -> in_progress) so a second start loses,
        assigns roles, then opens night 1.
        """
        room = self._room(ctx.room_id)
        caller = self._player(ctx)
        if caller.id != room.creator_id:
            raise AuthorizationError("Only the room creator can start the game")
        state = self.game_state(room.id)
        if state.phase != Phase.LOBBY:
            raise AuthorizationError("The game has already started")
        players = self.store.list_players(room.id)
        if len(players) < MIN_PLAYERS:
            raise InvalidRequestError(f"Need at least {MIN_PLAYERS} players to start")

        if self.store.update_room(room.id, expected={"status": RoomStatus.WAITING}, status=RoomStatus.IN_PROGRESS) is None:
            raise AuthorizationError("The game has already started")

        try:
            # Joins and leaves are closed once the room is claimed; this list is final
            players = [p for p in self.store.list_players(room.id) if p.status == PlayerStatus.ALIVE]
            if not MIN_PLAYERS <= len(players) <= MAX_PLAYERS:
                self.store.update_room(room.id, status=RoomStatus.WAITING)
                raise InvalidRequestError(f"Need between {MIN_PLAYERS} and {MAX_PLAYERS} players to start")
            for player_id, role in assign_roles(players, self.rng).items():
                self.store.update_player(player_id, role=role)
            started = self.store.update_game_state(
                room.id,
                Phase.LOBBY,
                expected_round=0,
                phase=Phase.NIGHT,
                round_number=1,
                phase_ends_at=self._deadline(self.timings.night_seconds),
            )
        except StoreError:
            self.store.update_room(room.id, status=RoomStatus.WAITING)
            raise

        if started is None:
            logger.warning("Room %s left the lobby while roles were being assigned", room.id)
            return self.game_state(room.id)

        self._announce(room.id, f"phase:{Phase.NIGHT.value}", MessageCategory.PHASE)
        logger.info("Game started in room %s with %d players", room.id, len(players))
        return started

    # ── Ledger submissions ───────────────────────────────────────────────────

    def submit_action(
        self,
        ctx: SessionContext,
        round_number: int,
        target_id: str,
        action_type: ActionType | None = None,
    ) -> Action:
        """Record the caller's night action. The action type follows from the caller's role."""
        state = self.game_state(ctx.room_id)
        if state.phase != Phase.NIGHT:
            raise AuthorizationError("Night actions are only allowed during the night")
        if round_number != state.round_number:
            raise InvalidRequestError(f"Round {round_number} is not the current round")
        actor = self._player(ctx)
        if not actor.alive:
            raise AuthorizationError("You are eliminated and cannot perform night actions.")
        owned = ACTION_FOR_ROLE.get(actor.role)
        if owned is None:
            raise AuthorizationError("Your role has no night action")
        if action_type is not None and action_type != owned:
            raise AuthorizationError(f"A {actor.role.value} cannot {action_type.value}")
        target = self._target(ctx.room_id, target_id)
        if target.id == actor.id:
            raise InvalidRequestError("You cannot target yourself")
        if self.actions.submitted(ctx.room_id, round_number, actor.id):
            raise DuplicateSubmissionError("You already submitted your action this round")
        return self.actions.record(ctx.room_id, round_number, actor.id, owned, target.id)

    def submit_vote(self, ctx: SessionContext, round_number: int, target_id: str) -> Vote:
        """Cast or replace the caller's vote for this day."""
        state = self.game_state(ctx.room_id)
        if state.phase != Phase.DAY:
            raise AuthorizationError("Voting is only allowed during the day")
        if round_number != state.round_number:
            raise InvalidRequestError(f"Round {round_number} is not the current round")
        voter = self._player(ctx)
        if not voter.alive:
            raise AuthorizationError("Eliminated players cannot vote.")
        target = self._target(ctx.room_id, target_id)
        if target.id == voter.id:
            raise InvalidRequestError("You cannot vote for yourself")
        return self.votes.cast(ctx.room_id, round_number, voter.id, target.id)

    def _target(self, room_id: str, target_id: str) -> Player:
        target = self.store.get_player(target_id)
        if target is None or target.room_id != room_id or not target.alive:
            raise InvalidRequestError("Target must be an alive player in this room")
        return target

    # ── Chat ─────────────────────────────────────────────────────────────────

    def send_message(
        self,
        ctx: SessionContext,
        body: str,
        category: MessageCategory | None = None,
    ) -> Message:
        """Post a chat line; defaults to role chat at night and global chat otherwise."""
        state = self.game_state(ctx.room_id)
        sender = self._viewer(ctx)
        category = category or default_category(state.phase)
        denial = send_denial(sender, category, state.phase)
        if denial:
            raise AuthorizationError(denial)
        text = (body or "").strip()
        if not text:
            raise InvalidRequestError("Message must not be empty")
        return self.store.insert_message(
            Message(
                room_id=ctx.room_id,
                author_label=sender.name,
                body=text[:MAX_MESSAGE_LENGTH],
                category=category,
                author_id=sender.id,
            )
        )

    def read_messages(self, ctx: SessionContext, limit: int = DEFAULT_MESSAGE_LIMIT) -> list[Message]:
        """Messages the caller may see right now, oldest first, at most `limit`."""
        state = self.game_state(ctx.room_id)
        visible = filter_messages(self._viewer(ctx), self.store.list_messages(ctx.room_id), state.phase)
        return visible[-limit:] if limit > 0 else []

    # ── Read-only queries ────────────────────────────────────────────────────

    def roster(self, ctx: SessionContext) -> list[Player]:
        """Players by seat with roles the caller may not see blanked out."""
        state = self.game_state(ctx.room_id)
        viewer = self._viewer(ctx)
        return [
            replace(p, role=visible_role(viewer, p, state.phase))
            for p in self.store.list_players(ctx.room_id)
        ]

    def winner(self, room_id: str) -> Faction | None:
        return self.game_state(room_id).winner

    # ── Deadline-triggered transitions ───────────────────────────────────────

    def advance_if_due(self, room_id: str) -> TransitionResult:
        """Run whichever resolver the current phase needs. Safe to call from any number of clients."""
        state = self.game_state(room_id)
        if state.phase == Phase.NIGHT:
            return self.resolve_night(room_id)
        if state.phase == Phase.RESULT:
            return self.finish_result(room_id)
        if state.phase == Phase.DAY:
            return self.resolve_day(room_id)
        return TransitionResult(False, state.phase, round_number=state.round_number, reason=REASON_NOT_TIMED)

    def _abort_reason(self, state: GameState, expected: Phase) -> str | None:
        """Why a resolver for `expected` must not run against this freshly read state."""
        if state.phase != expected:
            return REASON_PHASE_CHANGED
        if state.phase_ends_at is not None:
            if state.phase_ends_at > self.clock() + timedelta(seconds=DEADLINE_GRACE_SECONDS):
                return REASON_NOT_DUE
        return None

    def _fresh(self, room_id: str, expected: Phase) -> tuple[GameState, TransitionResult | None]:
        state = self.game_state(room_id)
        reason = self._abort_reason(state, expected)
        if reason is None:
            return state, None
        logger.debug("Skipping %s resolution in room %s: %s", expected.value, room_id, reason)
        return state, TransitionResult(False, expected, round_number=state.round_number, reason=reason)

    def resolve_night(self, room_id: str) -> TransitionResult:
        """Kill tally, save filter, elimination, win check, inspect results, then night -> day."""
        state, aborted = self._fresh(room_id, Phase.NIGHT)
        if aborted:
            return aborted
        round_number = state.round_number
        players = self.store.list_players(room_id)
        outcome = resolve_night(self.actions.for_round(room_id, round_number), players)

        if outcome.victim_id:
            victim = next(p for p in players if p.id == outcome.victim_id)
            self.store.update_player(victim.id, status=PlayerStatus.DEAD)
            self._announce(room_id, f"{victim.name} was eliminated during the night.")
            players = eliminate(players, victim.id)
        else:
            self._announce(room_id, "The night passed quietly. No one was eliminated.")

        ended = self._end_if_won(state, players)
        if ended:
            return ended

        for result in outcome.inspections:
            verdict = "YES" if result.is_mafia else "NO"
            self._announce(
                room_id,
                f"{verdict} ({result.target_name})",
                MessageCategory.INSPECT,
                author_id=result.inspector_id,
            )

        if self.timings.result_seconds > 0:
            return self._advance(state, Phase.RESULT, self.timings.result_seconds, round_number)
        return self._advance(state, Phase.DAY, self.timings.day_seconds, round_number)

    def finish_result(self, room_id: str) -> TransitionResult:
        """Close the result pause: result -> day."""
        state, aborted = self._fresh(room_id, Phase.RESULT)
        if aborted:
            return aborted
        return self._advance(state, Phase.DAY, self.timings.day_seconds, state.round_number)

    def resolve_day(self, room_id: str) -> TransitionResult:
        """Vote tally, elimination, vote clearing, win check, then day -> night of the next round."""
        state, aborted = self._fresh(room_id, Phase.DAY)
        if aborted:
            return aborted
        round_number = state.round_number
        players = self.store.list_players(room_id)
        outcome = resolve_day(self.votes.for_round(room_id, round_number), players)

        if outcome.eliminated_id:
            voted_out = next(p for p in players if p.id == outcome.eliminated_id)
            self.store.update_player(voted_out.id, status=PlayerStatus.DEAD)
            self._announce(room_id, f"{voted_out.name} was voted out.")
            players = eliminate(players, voted_out.id)
        else:
            if outcome.tied:
                logger.info("Room %s: day %d vote tied %s; nobody eliminated", room_id, round_number, outcome.tally)
            self._announce(room_id, "No player received majority votes. No elimination.")

        self.votes.clear(room_id, round_number)

        ended = self._end_if_won(state, players)
        if ended:
            return ended
        return self._advance(state, Phase.NIGHT, self.timings.night_seconds, round_number + 1)

    def _advance(
        self,
        state: GameState,
        to_phase: Phase,
        seconds: float,
        round_number: int,
    ) -> TransitionResult:
        """
        The conditional phase write, guarded on the phase and round the resolver read.
        Zero matched rows means another client got there first.
        """
        from_phase = state.phase
        room_id = state.room_id
        moved = self.store.update_game_state(
            room_id,
            from_phase,
            expected_round=state.round_number,
            phase=to_phase,
            round_number=round_number,
            phase_ends_at=self._deadline(seconds),
        )
        if moved is None:
            logger.debug(
                "Room %s already left %s round %d; another client advanced it",
                room_id,
                from_phase.value,
                state.round_number,
            )
            return TransitionResult(False, from_phase, round_number=state.round_number, reason=REASON_RACE_LOST)
        self._announce(room_id, f"phase:{to_phase.value}", MessageCategory.PHASE)
        logger.info("Room %s: %s -> %s (round %d)", room_id, from_phase.value, to_phase.value, round_number)
        return TransitionResult(True, from_phase, to_phase, round_number, REASON_ADVANCED)

    def _end_if_won(self, state: GameState, players: list[Player]) -> TransitionResult | None:
        """End the game if a faction has won. None when play continues."""
        winner = evaluate_winner(players)
        if winner is None:
            return None
        ended = self.store.update_game_state(
            state.room_id,
            state.phase,
            expected_round=state.round_number,
            phase=Phase.ENDED,
            phase_ends_at=None,
            winner=winner,
        )
        if ended is None:
            logger.debug("Room %s already ended or advanced by another client", state.room_id)
            return TransitionResult(False, state.phase, round_number=state.round_number, reason=REASON_RACE_LOST)
        self._announce(state.room_id, WIN_ANNOUNCEMENTS[winner])
        logger.info("Room %s: game over, %s win", state.room_id, winner.value)
        return TransitionResult(True, state.phase, Phase.ENDED, state.round_number, REASON_GAME_OVER)
