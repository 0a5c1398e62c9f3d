"""Clients: per-player session actors that observe a room and drive its deadlines."""

from clients.session_client import SessionClient
from clients.simulation import advanced_count, connect_clients, race

__all__ = [
    "SessionClient",
    "connect_clients",
    "race",
    "advanced_count",
]
