"""Helpers that run many session clients against one room at the same moment."""

import threading
from concurrent.futures import ThreadPoolExecutor

from clients.session_client import SessionClient
from game.controller import PhaseController
from game.state import SessionContext, TransitionResult


def connect_clients(controller: PhaseController, room_id: str, player_ids: list[str]) -> list[SessionClient]:
    """One connected client per player id."""
    return [SessionClient(controller, SessionContext(room_id=room_id, player_id=pid)).connect() for pid in player_ids]


def race(clients: list[SessionClient]) -> list[TransitionResult | None]:
    """Release every client's poll at once on its own thread and collect the results in order."""
    if not clients:
        return []
    barrier = threading.Barrier(len(clients))

    def attempt(client: SessionClient) -> TransitionResult | None:
        barrier.wait()
        return client.poll()

    with ThreadPoolExecutor(max_workers=len(clients)) as pool:
        return list(pool.map(attempt, clients))


def advanced_count(results: list[TransitionResult | None]) -> int:
    return sum(1 for r in results if r is not None and r.advanced)
