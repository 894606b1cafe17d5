"""Data models shared by the cache, classifiers and reconciler."""
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .utils.text_utils import clean_text
from .config import MAX_EXTRACTED_CONTENT_CHARS

SOURCE_EXACT = "exact"
SOURCE_DOMAIN = "domain"
SOURCE_REMOTE = "remote"
SOURCE_CLASSIFIER = "classifier"
SOURCE_HEURISTIC = "heuristic"


class TabDescriptor(BaseModel):
    """A browser tab as known to the organizer."""
    id: int
    url: str = ""
    title: str = ""
    extracted_content: Optional[str] = Field(default=None, description="Visible text from page (<=2000 chars)")
    favicon_ref: Optional[str] = None
    last_accessed: float = Field(default_factory=time.time)

    @field_validator("url", "title", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("extracted_content", mode="before")
    @classmethod
    def coerce_content(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return clean_text(str(v), MAX_EXTRACTED_CONTENT_CHARS)


class CategoryDefinition(BaseModel):
    name: str
    color: str = "grey"
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    builtin: bool = False


class CacheEntry(BaseModel):
    """One cached categorization. Every tier keeps its own copy."""
    category: str
    timestamp: float = Field(default_factory=time.time)
    source_confidence: float = 1.0

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp


class CategoryResult(BaseModel):
    """Outcome of resolving one tab."""
    category: str
    source: str
    confidence: float = 0.0
    cacheable: bool = False


class PageAnalysis(BaseModel):
    """What the content extraction collaborator reports for a tab."""
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v: Any) -> str:
        return clean_text("" if v is None else str(v), MAX_EXTRACTED_CONTENT_CHARS)
