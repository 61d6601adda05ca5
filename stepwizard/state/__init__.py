"""Wizard progress state, persistence, and storage backends."""

from .machine import StepStateMachine
from .persistence import PersistedState, StatePersistence, StoragePersistence, parse_persisted_state
from .session import FlowSession
from .storage import InMemoryStorage, SessionStateStorage, Storage

__all__ = [
    "FlowSession",
    "InMemoryStorage",
    "PersistedState",
    "SessionStateStorage",
    "StatePersistence",
    "StepStateMachine",
    "Storage",
    "StoragePersistence",
    "parse_persisted_state",
]
