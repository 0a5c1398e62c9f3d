"""Shared fixtures: a controllable clock, a fresh store and a controller."""

import random

import pytest

from game.config import PhaseTimings
from game.controller import PhaseController
from game.store import MemoryStore
from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def controller(store, clock) -> PhaseController:
    return PhaseController(store, PhaseTimings(), clock=clock, rng=random.Random(7))
