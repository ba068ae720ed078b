"""Shared application state."""

from .preferences import LanguagePreferences
from .store import AppState, Listener, StateStore

__all__ = ["AppState", "Listener", "StateStore", "LanguagePreferences"]
