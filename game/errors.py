"""Exceptions raised by the session engine.

Race losses on a conditional phase update are not errors; they come back as
``TransitionResult(advanced=False)``.
"""


class MafiaError(Exception):
    """Base class for all engine errors."""


class NotFoundError(MafiaError):
    """Room, join code or player does not exist."""


class AuthorizationError(MafiaError):
    """Caller has the wrong role, phase, status or is not the room creator."""


class InvalidRequestError(MafiaError):
    """Request is malformed or conflicts with room limits."""


class DuplicateSubmissionError(MafiaError):
    """A uniqueness constraint rejected the row (one action per actor per round, seats, names)."""


class StoreError(MafiaError):
    """Transient failure talking to the shared store; retry on the next tick."""
