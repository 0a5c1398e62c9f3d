"""Role distribution and assignment."""

import itertools
import math
import random

from game.rules import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    MIN_SPECIAL_ROLE,
    REDUCE_ORDER,
    SPECIAL_ROLE_FRACTION,
    Role,
)
from game.state import Player, RoleDistribution


def role_distribution(n: int, fraction: float = SPECIAL_ROLE_FRACTION) -> RoleDistribution:
    """
    Role counts for a table of n players (clamped to the room size limits).
    Mafia, doctor and police each get max(2, floor(fraction * n)); citizens take the rest.
    If the specials overflow the table they are trimmed police, doctor, mafia (cycling),
    never below 2 each.
    """
    players = max(MIN_PLAYERS, min(MAX_PLAYERS, int(n)))
    share = max(MIN_SPECIAL_ROLE, math.floor(players * fraction))
    counts = {Role.MAFIA: share, Role.DOCTOR: share, Role.POLICE: share}

    excess = sum(counts.values()) - players
    if excess > 0:
        for role in itertools.cycle(REDUCE_ORDER):
            if excess <= 0 or all(c <= MIN_SPECIAL_ROLE for c in counts.values()):
                break
            if counts[role] > MIN_SPECIAL_ROLE:
                counts[role] -= 1
                excess -= 1

    return RoleDistribution(
        mafia=counts[Role.MAFIA],
        doctor=counts[Role.DOCTOR],
        police=counts[Role.POLICE],
        citizens=players - sum(counts.values()),
    )


def build_role_pool(dist: RoleDistribution) -> list[Role]:
    """Flatten a distribution into the role multiset."""
    return (
        [Role.MAFIA] * dist.mafia
        + [Role.DOCTOR] * dist.doctor
        + [Role.POLICE] * dist.police
        + [Role.CITIZEN] * max(0, dist.citizens)
    )


def assign_roles(
    players: list[Player],
    rng: random.Random | None = None,
) -> dict[str, Role]:
    """
    Shuffle the role multiset for this table and hand one role to each player in seat order.
    Returns {player_id: role}; does not write anything.
    """
    if not MIN_PLAYERS <= len(players) <= MAX_PLAYERS:
        raise ValueError(f"need between {MIN_PLAYERS} and {MAX_PLAYERS} players, got {len(players)}")

    pool = build_role_pool(role_distribution(len(players)))
    (rng or random.Random()).shuffle(pool)
    seated = sorted(players, key=lambda p: p.seat)
    return {p.id: role for p, role in zip(seated, pool)}
