"""Process-wide shared store and phase controller used by the API."""

import random
from datetime import datetime
from typing import Callable

from game.config import PhaseTimings, load_timings
from game.controller import PhaseController
from game.state import utcnow
from game.store import MemoryStore

_store = MemoryStore()
_controller = PhaseController(_store, load_timings())


def get_store() -> MemoryStore:
    return _store


def get_controller() -> PhaseController:
    return _controller


def reset(
    timings: PhaseTimings | None = None,
    clock: Callable[[], datetime] = utcnow,
    rng: random.Random | None = None,
) -> PhaseController:
    """Drop every room and start over with a fresh store. Used by tests and local resets."""
    global _store, _controller
    _store = MemoryStore()
    _controller = PhaseController(_store, timings or load_timings(), clock=clock, rng=rng)
    return _controller
