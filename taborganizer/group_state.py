"""Authoritative category -> member tabs mapping."""
from typing import Any, Dict, List, Optional
import logging
import time

from pydantic import ValidationError

from .models import TabDescriptor

logger = logging.getLogger(__name__)


class GroupState:
    """Ordered member lists keyed by category.

    A tab id is in at most one list, and a category never maps to an empty
    list. Every method is synchronous so each mutation is one uninterrupted
    span on the event loop.
    """

    def __init__(self):
        self._groups: Dict[str, List[TabDescriptor]] = {}

    def __len__(self) -> int:
        return sum(len(tabs) for tabs in self._groups.values())

    def __contains__(self, tab_id: object) -> bool:
        return self.find(tab_id) is not None

    @property
    def categories(self) -> List[str]:
        return list(self._groups)

    def find(self, tab_id: Any) -> Optional[str]:
        for category, tabs in self._groups.items():
            if any(t.id == tab_id for t in tabs):
                return category
        return None

    def members(self, category: str) -> List[TabDescriptor]:
        return [t.model_copy() for t in self._groups.get(category, [])]

    def place(self, descriptor: TabDescriptor, category: str) -> Optional[str]:
        """Insert or replace descriptor under category.

        Returns the category the tab was moved out of, if any. A tab that
        stays in its category keeps its position (join order).
        """
        previous = None
        for other, tabs in list(self._groups.items()):
            if other == category:
                continue
            remaining = [t for t in tabs if t.id != descriptor.id]
            if len(remaining) != len(tabs):
                previous = other
                if remaining:
                    self._groups[other] = remaining
                else:
                    del self._groups[other]

        tabs = self._groups.setdefault(category, [])
        stored = descriptor.model_copy()
        for i, existing in enumerate(tabs):
            if existing.id == descriptor.id:
                tabs[i] = stored
                break
        else:
            tabs.append(stored)
        return previous

    def remove(self, tab_id: Any) -> Optional[str]:
        """Remove the first entry for tab_id; drop its list if now empty."""
        for category, tabs in self._groups.items():
            for i, existing in enumerate(tabs):
                if existing.id == tab_id:
                    del tabs[i]
                    if not tabs:
                        del self._groups[category]
                    return category
        return None

    def touch(self, tab_id: Any, when: Optional[float] = None) -> bool:
        for tabs in self._groups.values():
            for existing in tabs:
                if existing.id == tab_id:
                    existing.last_accessed = when if when is not None else time.time()
                    return True
        return False

    def unused(self, older_than: float) -> List[TabDescriptor]:
        return [
            t.model_copy()
            for tabs in self._groups.values()
            for t in tabs
            if t.last_accessed < older_than
        ]

    def snapshot(self) -> Dict[str, List[TabDescriptor]]:
        return {category: [t.model_copy() for t in tabs] for category, tabs in self._groups.items()}

    def to_payload(self) -> Dict[str, List[Dict[str, Any]]]:
        return {category: [t.model_dump() for t in tabs] for category, tabs in self._groups.items()}

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "GroupState":
        """Rebuild from a persisted snapshot, re-establishing the invariants."""
        state = cls()
        for category, tabs in (payload or {}).items():
            for raw in tabs or []:
                try:
                    descriptor = TabDescriptor.model_validate(raw)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed tab in '{category}': {e}")
                    continue
                if descriptor.id in state:
                    logger.warning(f"Tab {descriptor.id} stored under several categories; keeping the first")
                    continue
                state.place(descriptor, category)
        return state
