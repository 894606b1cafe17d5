"""Collaborators outside the core: native tab-grouping surface and page content source."""
from typing import Any, Dict, List, Optional, Protocol
import itertools

from .models import PageAnalysis


class GroupingSurface(Protocol):
    """The browser's native tab groups. Eventually consistent, never authoritative."""

    async def query_groups(self) -> List[Dict[str, Any]]:
        ...

    async def create_group(self, tab_ids: List[int]) -> int:
        ...

    async def update_group(self, group_id: int, title: Optional[str] = None, color: Optional[str] = None) -> None:
        ...

    async def add_to_group(self, group_id: int, tab_ids: List[int]) -> None:
        ...


class ContentSource(Protocol):
    """Content extraction for a live tab."""

    async def get_page_analysis(self, tab_id: int) -> PageAnalysis:
        ...


class InMemoryGroupingSurface:
    """Grouping surface kept in process; used when no browser bridge is attached."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.groups: Dict[int, Dict[str, Any]] = {}

    def _detach(self, tab_ids: List[int]) -> None:
        for group in self.groups.values():
            group["tab_ids"] = [t for t in group["tab_ids"] if t not in tab_ids]
        # The browser drops groups that lose their last tab.
        for group_id in [g for g, data in self.groups.items() if not data["tab_ids"]]:
            del self.groups[group_id]

    async def query_groups(self) -> List[Dict[str, Any]]:
        return [{"id": gid, "title": g["title"], "color": g["color"]} for gid, g in self.groups.items()]

    async def create_group(self, tab_ids: List[int]) -> int:
        self._detach(tab_ids)
        group_id = next(self._ids)
        self.groups[group_id] = {"title": "", "color": "grey", "tab_ids": list(tab_ids)}
        return group_id

    async def update_group(self, group_id: int, title: Optional[str] = None, color: Optional[str] = None) -> None:
        group = self.groups.get(group_id)
        if group is None:
            raise KeyError(f"No group with id {group_id}")
        if title is not None:
            group["title"] = title
        if color is not None:
            group["color"] = color

    async def add_to_group(self, group_id: int, tab_ids: List[int]) -> None:
        group = self.groups.get(group_id)
        if group is None:
            raise KeyError(f"No group with id {group_id}")
        self._detach(tab_ids)
        # Re-adding a group's only tab must not lose the group.
        self.groups[group_id] = group
        group["tab_ids"].extend(tab_ids)

    def tabs_in(self, title: str) -> List[int]:
        for group in self.groups.values():
            if group["title"] == title:
                return list(group["tab_ids"])
        return []
