"""Store constraints, conditional updates, change feed and ledgers."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from game.errors import DuplicateSubmissionError
from game.ledger import ActionLedger, VoteLedger
from game.rules import ActionType, MessageCategory, Phase, RoomStatus
from game.state import Action, GameState, Message, Player, Room, Vote
from game.store import ChangeKind, MemoryStore, Table


def _room(store: MemoryStore, room_id: str = "r1", code: str = "ABC123") -> Room:
    return store.insert_room(Room(id=room_id, code=code, name="Test", capacity=10, creator_id="p0", occupancy=1))


def _msg(room_id: str, body: str) -> Message:
    return Message(room_id=room_id, author_label="System", body=body, category=MessageCategory.SYSTEM)


def test_update_game_state_is_compare_and_set(store):
    store.insert_game_state(GameState(room_id="r1"))
    moved = store.update_game_state("r1", Phase.LOBBY, phase=Phase.NIGHT, round_number=1)
    assert moved is not None
    assert moved.phase == Phase.NIGHT
    assert store.update_game_state("r1", Phase.LOBBY, phase=Phase.NIGHT, round_number=2) is None
    assert store.get_game_state("r1").round_number == 1


def test_update_game_state_unknown_room(store):
    assert store.update_game_state("nope", Phase.LOBBY, phase=Phase.NIGHT) is None


def test_racing_conditional_updates_have_one_winner(store):
    store.insert_game_state(GameState(room_id="r1", phase=Phase.NIGHT, round_number=1))
    workers = 16
    barrier = threading.Barrier(workers)

    def attempt(_):
        barrier.wait()
        return store.update_game_state("r1", Phase.NIGHT, phase=Phase.DAY)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))
    assert sum(1 for r in results if r is not None) == 1
    assert store.get_game_state("r1").phase == Phase.DAY


def test_update_room_with_precondition(store):
    _room(store)
    assert store.update_room("r1", expected={"occupancy": 1}, occupancy=2).occupancy == 2
    assert store.update_room("r1", expected={"occupancy": 1}, occupancy=3) is None
    assert store.get_room("r1").occupancy == 2


def test_room_code_unique_and_case_insensitive_lookup(store):
    _room(store)
    with pytest.raises(DuplicateSubmissionError):
        _room(store, room_id="r2")
    assert store.find_room_by_code("  abc123 ").id == "r1"
    assert store.find_room_by_code("ZZZ999") is None


def test_player_seat_and_name_unique_per_room(store):
    store.insert_player(Player(id="p0", room_id="r1", name="Alice", seat=0))
    with pytest.raises(DuplicateSubmissionError):
        store.insert_player(Player(id="p1", room_id="r1", name="Bob", seat=0))
    with pytest.raises(DuplicateSubmissionError):
        store.insert_player(Player(id="p2", room_id="r1", name="alice", seat=1))
    # Other rooms are independent
    store.insert_player(Player(id="p3", room_id="r2", name="Alice", seat=0))


def test_list_players_ordered_by_seat(store):
    store.insert_player(Player(id="p2", room_id="r1", name="Carol", seat=2))
    store.insert_player(Player(id="p0", room_id="r1", name="Alice", seat=0))
    store.insert_player(Player(id="p1", room_id="r1", name="Bob", seat=1))
    assert [p.id for p in store.list_players("r1")] == ["p0", "p1", "p2"]


def test_action_unique_per_actor_and_round(store):
    store.insert_action(Action(room_id="r1", round_number=1, actor_id="p1", action_type=ActionType.KILL, target_id="p3"))
    with pytest.raises(DuplicateSubmissionError):
        store.insert_action(
            Action(room_id="r1", round_number=1, actor_id="p1", action_type=ActionType.KILL, target_id="p4")
        )
    store.insert_action(Action(room_id="r1", round_number=2, actor_id="p1", action_type=ActionType.KILL, target_id="p4"))
    assert len(store.list_actions("r1", 1)) == 1


def test_replace_vote_keeps_one_per_voter(store):
    store.replace_vote(Vote(room_id="r1", round_number=1, voter_id="p1", target_id="p3"))
    store.replace_vote(Vote(room_id="r1", round_number=1, voter_id="p1", target_id="p4"))
    store.replace_vote(Vote(room_id="r1", round_number=1, voter_id="p2", target_id="p4"))
    votes = store.list_votes("r1", 1)
    assert len(votes) == 2
    assert {v.target_id for v in votes} == {"p4"}


def test_delete_votes_counts_rows(store):
    store.replace_vote(Vote(room_id="r1", round_number=1, voter_id="p1", target_id="p3"))
    store.replace_vote(Vote(room_id="r1", round_number=1, voter_id="p2", target_id="p3"))
    store.replace_vote(Vote(room_id="r1", round_number=2, voter_id="p2", target_id="p3"))
    assert store.delete_votes("r1", 1) == 2
    assert store.list_votes("r1", 1) == []
    assert len(store.list_votes("r1", 2)) == 1


def test_messages_ordered_and_limited(store):
    for i in range(5):
        store.insert_message(_msg("r1", f"m{i}"))
    store.insert_message(_msg("r2", "other"))
    messages = store.list_messages("r1")
    assert [m.body for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
    assert messages[0].sequence < messages[-1].sequence
    assert [m.body for m in store.list_messages("r1", limit=2)] == ["m3", "m4"]
    assert store.list_messages("r1", limit=0) == []


def test_change_feed_scoped_to_room_and_table(store):
    events = []
    unsubscribe = store.subscribe(Table.MESSAGES, "r1", events.append)
    store.insert_message(_msg("r1", "hello"))
    store.insert_message(_msg("r2", "elsewhere"))
    store.insert_game_state(GameState(room_id="r1"))
    assert len(events) == 1
    assert events[0].kind == ChangeKind.INSERT
    assert events[0].row.body == "hello"

    unsubscribe()
    store.insert_message(_msg("r1", "after"))
    assert len(events) == 1


def test_change_feed_reports_updates_and_deletes(store):
    events = []
    store.subscribe(Table.PLAYERS, "r1", events.append)
    store.insert_player(Player(id="p0", room_id="r1", name="Alice", seat=0))
    store.update_player("p0", name="Alicia")
    store.delete_player("p0")
    assert [e.kind for e in events] == [ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE]
    assert events[1].row.name == "Alicia"


def test_failing_subscriber_does_not_break_writes(store):
    def broken(event):
        raise RuntimeError("boom")

    seen = []
    store.subscribe(Table.MESSAGES, "r1", broken)
    store.subscribe(Table.MESSAGES, "r1", seen.append)
    message = store.insert_message(_msg("r1", "still stored"))
    assert store.list_messages("r1") == [message]
    assert len(seen) == 1


def test_action_ledger(store):
    ledger = ActionLedger(store)
    action = ledger.record("r1", 1, "p1", ActionType.SAVE, "p3")
    assert ledger.submitted("r1", 1, "p1") == action
    assert ledger.submitted("r1", 2, "p1") is None
    with pytest.raises(DuplicateSubmissionError):
        ledger.record("r1", 1, "p1", ActionType.SAVE, "p4")
    assert ledger.for_round("r1", 1) == [action]


def test_vote_ledger(store):
    ledger = VoteLedger(store)
    ledger.cast("r1", 1, "p1", "p3")
    ledger.cast("r1", 1, "p1", "p5")
    assert ledger.current_vote("r1", 1, "p1").target_id == "p5"
    assert ledger.current_vote("r1", 1, "p2") is None
    assert len(ledger.for_round("r1", 1)) == 1
    assert ledger.clear("r1", 1) == 1
    assert ledger.for_round("r1", 1) == []


def test_update_game_state_checks_round(store):
    store.insert_game_state(GameState(room_id="r1", phase=Phase.NIGHT, round_number=2))
    assert store.update_game_state("r1", Phase.NIGHT, expected_round=1, phase=Phase.DAY) is None
    moved = store.update_game_state("r1", Phase.NIGHT, expected_round=2, phase=Phase.DAY)
    assert moved.phase == Phase.DAY
    assert moved.round_number == 2


def test_player_insert_and_delete_conditional_on_room_status(store):
    _room(store)
    waiting = Player(id="p1", room_id="r1", name="Bob", seat=1)
    assert store.insert_player(waiting, room_status=RoomStatus.IN_PROGRESS) is None
    assert store.insert_player(waiting, room_status=RoomStatus.WAITING) == waiting

    store.update_room("r1", status=RoomStatus.IN_PROGRESS)
    assert store.delete_player("p1", room_status=RoomStatus.WAITING) is None
    assert store.get_player("p1") == waiting
