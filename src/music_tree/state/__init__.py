"""Reactive state store for the music tree."""

from .history import ChangeRecord, StateHistory
from .schema import build_initial_state, default_validators
from .store import StateStore
from .utils import MISSING, deep_clone, deep_equal

__all__ = [
    "StateStore",
    "StateHistory",
    "ChangeRecord",
    "MISSING",
    "build_initial_state",
    "default_validators",
    "deep_clone",
    "deep_equal",
]
