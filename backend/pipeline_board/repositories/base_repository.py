"""
Store interfaces the board engine calls.

Persistence is owned elsewhere; implementations only have to honour these
methods and raise `StoreError` subclasses on failure. Calls are blocking and
are run in worker threads by the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..domain.opportunity import Opportunity
from ..domain.view import CustomViewSpec, View


class OpportunityStore(ABC):
    """Authoritative opportunity records."""

    @abstractmethod
    def list(self) -> list[Opportunity]:
        """List all opportunities visible to the board."""
        pass

    @abstractmethod
    def update(self, id: str, fields: dict[str, Any]) -> Opportunity:
        """Apply a partial-field update and return the stored record."""
        pass


class ViewStore(ABC):
    """Persisted custom views. Built-in views are never stored."""

    @abstractmethod
    def list(self) -> list[View]:
        """List custom views with their persisted columns."""
        pass

    @abstractmethod
    def activate_custom(self, id: str) -> View:
        """Mark `id` active and every sibling inactive, as one change."""
        pass

    @abstractmethod
    def deactivate_all_custom(self) -> None:
        """Clear the active flag on every custom view."""
        pass

    @abstractmethod
    def create_custom(self, spec: CustomViewSpec) -> View:
        """Create a custom view (new views start active)."""
        pass


class PreferenceStore(ABC):
    """Client-local key/value preferences; never a source of truth."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str | None) -> None:
        """Store `value`; None removes the key."""
        pass
