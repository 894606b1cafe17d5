from unittest.mock import AsyncMock

import pytest
from langchain_core.messages import AIMessage

from taborganizer.agents.categorization_resolver import CategorizationResolver
from taborganizer.agents.heuristic_classifier import HeuristicClassifier
from taborganizer.agents.tab_classifier_agent import TabClassifierAgent
from taborganizer.cache.tiered_cache import TieredCache
from taborganizer.categories import CategoryRegistry
from taborganizer.database.db import make_session_factory
from taborganizer.database.snapshot_store import SnapshotStore
from taborganizer.models import TabDescriptor
from taborganizer.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_tab(tab_id=1, url="https://github.com/org/repo", title="org/repo", content="", **kwargs):
    return TabDescriptor(id=tab_id, url=url, title=title, extracted_content=content, **kwargs)


def mock_llm(category="development", confidence=0.9):
    llm = AsyncMock()
    llm.ainvoke.return_value = AIMessage(content=f'{{"category": "{category}", "confidence": {confidence}}}')
    return llm


@pytest.fixture
def registry():
    return CategoryRegistry()


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(make_session_factory(f"sqlite:///{tmp_path / 'snapshots.db'}"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def offline_resolver(registry):
    """Resolver with no credential configured: cache, then heuristic."""
    classifier = TabClassifierAgent(registry, RateLimiter(), credential_check=lambda: False)
    return CategorizationResolver(TieredCache(), classifier, HeuristicClassifier(registry))
