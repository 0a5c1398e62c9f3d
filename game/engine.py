"""Game engine: pure resolvers for night, day and victory. No store access."""

import logging
from collections import Counter
from dataclasses import replace
from typing import Iterable

from game.rules import ACTION_FOR_ROLE, ActionType, Faction, PlayerStatus, Role
from game.state import (
    Action,
    DayOutcome,
    InspectResult,
    NightOutcome,
    Player,
    Vote,
)

logger = logging.getLogger(__name__)


def strict_plurality(targets: Iterable[str]) -> tuple[str | None, dict[str, int]]:
    """
    Return (winner, tally). The winner is the single target with the highest count;
    a tie at the top, or no targets at all, gives None.
    """
    tally = Counter(targets)
    if not tally:
        return None, {}
    top = max(tally.values())
    leaders = [tid for tid, c in tally.items() if c == top]
    return (leaders[0] if len(leaders) == 1 else None), dict(tally)


def _first_per_actor(actions: Iterable[Action]) -> list[Action]:
    """First-seen action per actor is canonical; later duplicates are dropped."""
    seen: set[str] = set()
    canonical: list[Action] = []
    for a in actions:
        if a.actor_id in seen:
            logger.warning(
                "Ignoring duplicate %s action by %s in round %d", a.action_type.value, a.actor_id, a.round_number
            )
            continue
        seen.add(a.actor_id)
        canonical.append(a)
    return canonical


def _last_per_voter(votes: Iterable[Vote]) -> list[Vote]:
    """Last-seen vote per voter is the current one."""
    latest: dict[str, Vote] = {}
    for v in votes:
        latest[v.voter_id] = v
    return list(latest.values())


def resolve_night(actions: list[Action], players: list[Player]) -> NightOutcome:
    """
    Resolve one night: mafia kill by strict plurality (tie -> nobody), any doctor save
    cancels it, and every inspect reports whether its target is mafia.
    Actions from dead actors, from roles that do not own that action, or on dead
    targets are ignored.
    """
    by_id = {p.id: p for p in players}

    valid: list[Action] = []
    for a in _first_per_actor(actions):
        actor = by_id.get(a.actor_id)
        target = by_id.get(a.target_id)
        if not actor or not actor.alive or ACTION_FOR_ROLE.get(actor.role) != a.action_type:
            continue
        if not target or not target.alive:
            continue
        valid.append(a)

    kill_candidate, kill_tally = strict_plurality(
        a.target_id for a in valid if a.action_type == ActionType.KILL
    )
    saved = frozenset(a.target_id for a in valid if a.action_type == ActionType.SAVE)
    victim = kill_candidate if kill_candidate and kill_candidate not in saved else None

    inspections = tuple(
        InspectResult(
            inspector_id=a.actor_id,
            target_id=a.target_id,
            target_name=by_id[a.target_id].name,
            is_mafia=by_id[a.target_id].role == Role.MAFIA,
        )
        for a in valid
        if a.action_type == ActionType.INSPECT
    )

    return NightOutcome(
        kill_candidate_id=kill_candidate,
        saved_ids=saved,
        victim_id=victim,
        inspections=inspections,
        kill_tally=kill_tally,
    )


def resolve_day(votes: list[Vote], players: list[Player]) -> DayOutcome:
    """
    Resolve one day vote: the strict-plurality target is eliminated; a tie or no votes
    eliminates nobody. Votes by or for players who are not alive are ignored.
    """
    alive_ids = {p.id for p in players if p.alive}
    counted = [
        v.target_id
        for v in _last_per_voter(votes)
        if v.voter_id in alive_ids and v.target_id in alive_ids
    ]
    eliminated, tally = strict_plurality(counted)
    return DayOutcome(eliminated_id=eliminated, tally=tally)


def eliminate(players: list[Player], player_id: str | None) -> list[Player]:
    """Return a new roster with player_id marked dead."""
    if not player_id:
        return list(players)
    return [replace(p, status=PlayerStatus.DEAD) if p.id == player_id else p for p in players]


def alive_counts(players: list[Player]) -> tuple[int, int]:
    """(mafia alive, everyone else alive). Spectators and unassigned players are not counted."""
    alive = [p for p in players if p.alive and p.role is not None]
    mafia_alive = sum(1 for p in alive if p.role == Role.MAFIA)
    return mafia_alive, len(alive) - mafia_alive


def evaluate_winner(players: list[Player]) -> Faction | None:
    """Citizens win with no mafia left; mafia win once they match everyone else."""
    mafia_alive, others_alive = alive_counts(players)
    if mafia_alive == 0:
        return Faction.CITIZENS
    if mafia_alive >= others_alive:
        return Faction.MAFIA
    return None
