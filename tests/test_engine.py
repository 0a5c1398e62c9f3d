"""Unit tests for the pure resolvers and win evaluator."""

from dataclasses import replace

from game.engine import (
    alive_counts,
    eliminate,
    evaluate_winner,
    resolve_day,
    resolve_night,
    strict_plurality,
)
from game.rules import ActionType, Faction, PlayerStatus, Role
from game.state import Action, Player, Vote

NAMES = ["Alice", "Bob", "Carol", "Dave", "Eve", "Frank", "Grace", "Henry"]


def _players(roles: list[Role]) -> list[Player]:
    return [Player(id=f"p{i}", room_id="r1", name=NAMES[i], seat=i, role=role) for i, role in enumerate(roles)]


def _simple_table() -> list[Player]:
    """p0, p1 mafia; p2 doctor; p3 police; p4, p5 citizens."""
    return _players([Role.MAFIA, Role.MAFIA, Role.DOCTOR, Role.POLICE, Role.CITIZEN, Role.CITIZEN])


def _act(actor: str, action_type: ActionType, target: str, round_number: int = 1) -> Action:
    return Action(room_id="r1", round_number=round_number, actor_id=actor, action_type=action_type, target_id=target)


def _vote(voter: str, target: str) -> Vote:
    return Vote(room_id="r1", round_number=1, voter_id=voter, target_id=target)


def _kill_player(players: list[Player], player_id: str) -> list[Player]:
    return [replace(p, status=PlayerStatus.DEAD) if p.id == player_id else p for p in players]


def test_strict_plurality():
    assert strict_plurality(["a", "a", "b"]) == ("a", {"a": 2, "b": 1})
    assert strict_plurality(["a", "b"]) == (None, {"a": 1, "b": 1})
    assert strict_plurality([]) == (None, {})


def test_night_kill_by_plurality():
    outcome = resolve_night(
        [_act("p0", ActionType.KILL, "p4"), _act("p1", ActionType.KILL, "p4")],
        _simple_table(),
    )
    assert outcome.kill_candidate_id == "p4"
    assert outcome.victim_id == "p4"
    assert outcome.kill_tally == {"p4": 2}


def test_night_doctor_save_cancels_kill():
    outcome = resolve_night(
        [
            _act("p0", ActionType.KILL, "p4"),
            _act("p1", ActionType.KILL, "p4"),
            _act("p2", ActionType.SAVE, "p4"),
        ],
        _simple_table(),
    )
    assert outcome.kill_candidate_id == "p4"
    assert "p4" in outcome.saved_ids
    assert outcome.victim_id is None


def test_night_save_on_other_player_does_not_block():
    outcome = resolve_night(
        [_act("p0", ActionType.KILL, "p4"), _act("p2", ActionType.SAVE, "p5")],
        _simple_table(),
    )
    assert outcome.victim_id == "p4"


def test_night_kill_tie_kills_nobody():
    outcome = resolve_night(
        [_act("p0", ActionType.KILL, "p4"), _act("p1", ActionType.KILL, "p5")],
        _simple_table(),
    )
    assert outcome.kill_candidate_id is None
    assert outcome.victim_id is None


def test_night_no_actions():
    outcome = resolve_night([], _simple_table())
    assert outcome.victim_id is None
    assert outcome.inspections == ()


def test_night_inspect_reports_mafia():
    outcome = resolve_night(
        [_act("p3", ActionType.INSPECT, "p0"), _act("p0", ActionType.KILL, "p5")],
        _simple_table(),
    )
    assert len(outcome.inspections) == 1
    result = outcome.inspections[0]
    assert result.inspector_id == "p3"
    assert result.target_name == "Alice"
    assert result.is_mafia


def test_night_inspect_reports_not_mafia():
    outcome = resolve_night([_act("p3", ActionType.INSPECT, "p4")], _simple_table())
    assert not outcome.inspections[0].is_mafia


def test_night_ignores_dead_actor():
    players = _kill_player(_simple_table(), "p1")
    outcome = resolve_night(
        [_act("p0", ActionType.KILL, "p4"), _act("p1", ActionType.KILL, "p5")],
        players,
    )
    assert outcome.victim_id == "p4"


def test_night_ignores_action_not_owned_by_role():
    outcome = resolve_night(
        [_act("p4", ActionType.KILL, "p5"), _act("p0", ActionType.KILL, "p3")],
        _simple_table(),
    )
    assert outcome.victim_id == "p3"
    assert outcome.kill_tally == {"p3": 1}


def test_night_ignores_dead_target():
    players = _kill_player(_simple_table(), "p5")
    outcome = resolve_night([_act("p0", ActionType.KILL, "p5")], players)
    assert outcome.victim_id is None


def test_night_first_action_per_actor_counts():
    outcome = resolve_night(
        [
            _act("p0", ActionType.KILL, "p4"),
            _act("p0", ActionType.KILL, "p5"),
            _act("p1", ActionType.KILL, "p4"),
        ],
        _simple_table(),
    )
    assert outcome.victim_id == "p4"
    assert outcome.kill_tally == {"p4": 2}


def test_day_plurality_eliminates():
    outcome = resolve_day([_vote("p2", "p0"), _vote("p3", "p0"), _vote("p4", "p5")], _simple_table())
    assert outcome.eliminated_id == "p0"
    assert outcome.tally == {"p0": 2, "p5": 1}
    assert not outcome.tied


def test_day_tie_eliminates_nobody():
    outcome = resolve_day([_vote("p2", "p0"), _vote("p3", "p5")], _simple_table())
    assert outcome.eliminated_id is None
    assert outcome.tied


def test_day_no_votes():
    outcome = resolve_day([], _simple_table())
    assert outcome.eliminated_id is None
    assert not outcome.tied


def test_day_latest_vote_per_voter_counts():
    outcome = resolve_day(
        [_vote("p2", "p5"), _vote("p2", "p0"), _vote("p3", "p0")],
        _simple_table(),
    )
    assert outcome.tally == {"p0": 2}


def test_day_ignores_dead_voters():
    players = _kill_player(_simple_table(), "p4")
    outcome = resolve_day(
        [_vote("p2", "p0"), _vote("p4", "p5"), _vote("p3", "p5"), _vote("p0", "p5")],
        players,
    )
    assert outcome.eliminated_id == "p5"
    assert outcome.tally == {"p0": 1, "p5": 2}


def test_eliminate_returns_new_roster():
    players = _simple_table()
    after = eliminate(players, "p4")
    assert players[4].alive
    assert not after[4].alive
    assert eliminate(players, None) == players


def test_win_citizens_when_no_mafia_alive():
    players = _players([Role.MAFIA, Role.CITIZEN, Role.DOCTOR])
    assert evaluate_winner(_kill_player(players, "p0")) == Faction.CITIZENS


def test_win_boundaries():
    assert evaluate_winner(_players([Role.MAFIA, Role.CITIZEN])) == Faction.MAFIA
    assert evaluate_winner(_players([Role.MAFIA, Role.CITIZEN, Role.CITIZEN])) is None
    assert evaluate_winner(_players([Role.MAFIA, Role.MAFIA, Role.POLICE, Role.DOCTOR])) == Faction.MAFIA


def test_win_ignores_spectators_and_dead():
    players = _players([Role.MAFIA, Role.CITIZEN, Role.CITIZEN, Role.CITIZEN])
    players.append(Player(id="s1", room_id="r1", name="Henry", seat=4, status=PlayerStatus.SPECTATOR))
    assert alive_counts(players) == (1, 3)
    players = _kill_player(players, "p3")
    assert evaluate_winner(players) is None
    assert evaluate_winner(_kill_player(players, "p2")) == Faction.MAFIA
