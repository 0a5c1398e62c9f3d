"""Action and vote ledgers: round-scoped, one row per player per round."""

from game.rules import ActionType
from game.state import Action, Vote
from game.store import MemoryStore


class ActionLedger:
    """One secret action per living empowered player per round. A second submission is rejected."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    def record(
        self,
        room_id: str,
        round_number: int,
        actor_id: str,
        action_type: ActionType,
        target_id: str,
    ) -> Action:
        """Store the action; raises DuplicateSubmissionError if actor already acted this round."""
        return self._store.insert_action(
            Action(
                room_id=room_id,
                round_number=round_number,
                actor_id=actor_id,
                action_type=action_type,
                target_id=target_id,
            )
        )

    def for_round(self, room_id: str, round_number: int) -> list[Action]:
        return self._store.list_actions(room_id, round_number)

    def submitted(self, room_id: str, round_number: int, actor_id: str) -> Action | None:
        return self._store.find_action(room_id, round_number, actor_id)


class VoteLedger:
    """One current vote per living player per round; voting again replaces the old vote."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    def cast(self, room_id: str, round_number: int, voter_id: str, target_id: str) -> Vote:
        return self._store.replace_vote(
            Vote(room_id=room_id, round_number=round_number, voter_id=voter_id, target_id=target_id)
        )

    def for_round(self, room_id: str, round_number: int) -> list[Vote]:
        return self._store.list_votes(room_id, round_number)

    def current_vote(self, room_id: str, round_number: int, voter_id: str) -> Vote | None:
        for v in self.for_round(room_id, round_number):
            if v.voter_id == voter_id:
                return v
        return None

    def clear(self, room_id: str, round_number: int) -> int:
        return self._store.delete_votes(room_id, round_number)
