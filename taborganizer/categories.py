"""Category registry: the fixed category set plus user-defined entries."""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from .models import CategoryDefinition

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "general"

BUILTIN_CATEGORIES: List[CategoryDefinition] = [
    CategoryDefinition(name="social", color="red", builtin=True,
                       description="Social media platforms and networking sites"),
    CategoryDefinition(name="ai-tools", color="purple", builtin=True,
                       description="AI assistants, machine learning tools, and AI platforms"),
    CategoryDefinition(name="development", color="blue", builtin=True,
                       description="Programming, coding, development tools, and technical documentation"),
    CategoryDefinition(name="work-productivity", color="green", builtin=True,
                       description="Office applications, project management, business tools"),
    CategoryDefinition(name="entertainment", color="orange", builtin=True,
                       description="Video streaming, gaming, music, and entertainment content"),
    CategoryDefinition(name="shopping", color="cyan", builtin=True,
                       description="E-commerce, online stores, product browsing"),
    CategoryDefinition(name="news-information", color="grey", builtin=True,
                       description="News sites, blogs, informational content"),
    CategoryDefinition(name="education-research", color="pink", builtin=True,
                       description="Educational content, research papers, learning platforms"),
    CategoryDefinition(name="finance", color="yellow", builtin=True,
                       description="Banking, investment, cryptocurrency, financial services"),
    CategoryDefinition(name="health-wellness", color="green", builtin=True,
                       description="Health information, fitness, medical resources"),
    CategoryDefinition(name=DEFAULT_CATEGORY, color="grey", builtin=True,
                       description="Uncategorized or general purpose content"),
]

# Colors the native grouping surface accepts.
GROUP_COLORS = ("grey", "blue", "red", "yellow", "green", "pink", "purple", "cyan", "orange")

_NON_CATEGORY_CHARS = re.compile(r"[^a-z-]")
_BUILTIN_BY_NAME = {c.name: c for c in BUILTIN_CATEGORIES}


class CategoryRegistry:
    """Known categories in declared order. Built-ins first, user entries after."""

    def __init__(self, user_categories: Optional[Iterable[CategoryDefinition]] = None):
        self._categories: Dict[str, CategoryDefinition] = {c.name: c for c in BUILTIN_CATEGORIES}
        for definition in user_categories or []:
            self._add(definition)

    def _add(self, definition: CategoryDefinition) -> CategoryDefinition:
        name = normalize_name(definition.name)
        if not name:
            raise ValueError(f"Invalid category name: {definition.name!r}")
        if name in self._categories and self._categories[name].builtin:
            # User overrides may recolor or describe a built-in, never drop it.
            merged = self._categories[name].model_copy(update={
                "color": definition.color or self._categories[name].color,
                "description": definition.description or self._categories[name].description,
                "keywords": list(definition.keywords),
            })
            self._categories[name] = merged
            return merged
        stored = definition.model_copy(update={"name": name, "builtin": False})
        if stored.color not in GROUP_COLORS:
            stored = stored.model_copy(update={"color": "grey"})
        self._categories[name] = stored
        return stored

    def names(self) -> List[str]:
        return list(self._categories)

    def get(self, name: str) -> Optional[CategoryDefinition]:
        return self._categories.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._categories

    def color_for(self, name: str) -> str:
        definition = self._categories.get(name)
        return definition.color if definition else "grey"

    def definitions(self) -> List[CategoryDefinition]:
        return list(self._categories.values())

    def user_keywords(self) -> List[tuple]:
        """(category, keywords) pairs for user entries that carry keywords."""
        return [(c.name, c.keywords) for c in self._categories.values() if c.keywords]

    def coerce(self, text: Optional[str]) -> Optional[str]:
        """Map arbitrary model output to a known category name, or None.

        Exact match first, then substring containment in either direction,
        in declared order. Text with no letters left never matches.
        """
        candidate = _NON_CATEGORY_CHARS.sub("", (text or "").strip().lower())
        if not candidate.strip("-"):
            return None
        if candidate in self._categories:
            return candidate
        for name in self._categories:
            if name in candidate or candidate in name:
                return name
        return None

    def add_user_category(
        self,
        name: str,
        color: str = "grey",
        description: str = "",
        keywords: Optional[List[str]] = None,
    ) -> CategoryDefinition:
        definition = self._add(CategoryDefinition(
            name=name,
            color=color,
            description=description,
            keywords=[k.lower() for k in keywords or [] if k],
        ))
        logger.info(f"Registered category '{definition.name}' ({definition.color})")
        return definition

    def remove_user_category(self, name: str) -> bool:
        definition = self._categories.get(name)
        if definition is None or definition.builtin:
            return False
        del self._categories[name]
        return True

    def user_payload(self) -> Dict[str, Any]:
        """User entries and overrides in the persisted ``userCategories`` layout."""
        return {
            c.name: c.model_dump(exclude={"name", "builtin"})
            for c in self._categories.values()
            if not c.builtin or c != _BUILTIN_BY_NAME[c.name]
        }

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "CategoryRegistry":
        registry = cls()
        for name, data in (payload or {}).items():
            try:
                registry._add(CategoryDefinition(name=name, **(data or {})))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping stored category {name!r}: {e}")
        return registry


def normalize_name(name: str) -> str:
    return _NON_CATEGORY_CHARS.sub("", re.sub(r"\s+", "-", (name or "").strip().lower()))
