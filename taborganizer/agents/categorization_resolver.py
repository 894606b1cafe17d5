"""CategorizationResolver: cache, then remote classifier, then heuristic."""
from typing import Optional
import asyncio
import logging

from ..cache.tiered_cache import TieredCache
from ..config import CONTENT_EXTRACTION_TIMEOUT_SECONDS
from ..errors import ClassificationError
from ..models import CategoryResult, TabDescriptor
from ..surfaces import ContentSource
from .heuristic_classifier import HeuristicClassifier
from .tab_classifier_agent import TabClassifierAgent

logger = logging.getLogger(__name__)


class CategorizationResolver:
    """Resolves one tab to a category. Never raises.

    Terminal outcomes, in order of preference:

    1. tiered cache hit
    2. no credential configured -> heuristic
    3. rate limiter denies -> heuristic
    4. remote classification succeeds -> cached and returned
    5. remote classification fails -> heuristic, not cached

    Concurrent requests for the same fingerprint are not deduplicated; both
    may reach the remote classifier and both write the same cache entry.
    """

    def __init__(
        self,
        cache: TieredCache,
        classifier: TabClassifierAgent,
        heuristic: HeuristicClassifier,
        content_source: Optional[ContentSource] = None,
        content_timeout: float = CONTENT_EXTRACTION_TIMEOUT_SECONDS,
    ):
        self.cache = cache
        self.classifier = classifier
        self.heuristic = heuristic
        self.content_source = content_source
        self.content_timeout = content_timeout

    async def _with_content(self, descriptor: TabDescriptor) -> TabDescriptor:
        if descriptor.extracted_content is not None or self.content_source is None:
            return descriptor
        try:
            analysis = await asyncio.wait_for(
                self.content_source.get_page_analysis(descriptor.id),
                timeout=self.content_timeout,
            )
            content = analysis.content
        except asyncio.TimeoutError:
            logger.info(f"Content extraction timed out for tab {descriptor.id}")
            content = ""
        except Exception as e:
            logger.info(f"Content extraction not available for tab {descriptor.id}: {e}")
            content = ""
        return descriptor.model_copy(update={"extracted_content": content})

    def _fallback(self, descriptor: TabDescriptor, reason: str) -> CategoryResult:
        result = self.heuristic.classify(descriptor)
        logger.info(f"Using fallback categorization for {descriptor.url} ({reason}): {result.category}")
        return result

    async def resolve(self, descriptor: TabDescriptor) -> CategoryResult:
        descriptor = await self._with_content(descriptor)

        cached = await self.cache.lookup(descriptor)
        if cached is not None:
            return cached

        if not self.classifier.available:
            return self._fallback(descriptor, "no API key")

        try:
            result = await self.classifier.classify(descriptor)
        except ClassificationError as e:
            return self._fallback(descriptor, f"{type(e).__name__}: {e}")

        if result.cacheable:
            await self.cache.store(descriptor, result.category, result.confidence)
        return result

    async def resolve_category(self, descriptor: TabDescriptor) -> str:
        return (await self.resolve(descriptor)).category
