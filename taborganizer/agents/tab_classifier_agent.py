"""TabClassifierAgent: asks the configured chat model for a tab's category."""
from typing import Any, Callable, Optional
import json
import logging

from langchain_core.messages import SystemMessage, HumanMessage

from ..categories import CategoryRegistry
from ..config import CONTENT_EXCERPT_CHARS, get_llm, has_credential
from ..errors import ClassificationError, ClassifierUnavailable, InvalidResponse, RateLimited, RemoteError
from ..models import CategoryResult, SOURCE_CLASSIFIER, TabDescriptor
from ..rate_limiter import RateLimiter
from ..utils.text_utils import excerpt

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8


class TabClassifierAgent:
    """Remote classifier client.

    Every failure is raised as a ClassificationError subclass and never
    retried here; the resolver decides what to fall back to.
    """

    def __init__(
        self,
        registry: CategoryRegistry,
        rate_limiter: RateLimiter,
        llm: Any = None,
        llm_factory: Callable[[], Any] = get_llm,
        credential_check: Callable[[], bool] = has_credential,
        excerpt_chars: int = CONTENT_EXCERPT_CHARS,
    ):
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.excerpt_chars = excerpt_chars
        self._llm = llm
        self._llm_factory = llm_factory
        self._credential_check = credential_check

    @property
    def available(self) -> bool:
        """True when a credential is configured (or a model was injected)."""
        return self._llm is not None or self._credential_check()

    def _get_llm(self) -> Any:
        if self._llm is None:
            try:
                self._llm = self._llm_factory()
            except ClassifierUnavailable:
                raise
            except ValueError as e:
                raise ClassifierUnavailable(str(e)) from e
            except ImportError as e:
                raise ClassifierUnavailable(f"Provider package missing: {e}") from e
            except Exception as e:
                raise RemoteError(f"Could not build the chat model client: {e}") from e
        return self._llm

    def build_prompt(self, descriptor: TabDescriptor) -> tuple:
        names = self.registry.names()
        definitions = "\n".join(f"- {c.name}: {c.description}" for c in self.registry.definitions())

        system_prompt = f"""You are a browser tab classifier. Classify the given website into ONE of these categories: {', '.join(names)}.

Categories:
{definitions}

Instructions:
1. Consider the URL domain, page title, and content
2. Be specific about well-known platforms (e.g., youtube.com = entertainment, github.com = development)
3. If uncertain, use "general"

Return ONLY a JSON object with:
- "category": one of the categories
- "confidence": float between 0 and 1

Return valid JSON only, no markdown."""

        user_prompt = f"""URL: {descriptor.url}
Title: {descriptor.title}
Content preview: {excerpt(descriptor.extracted_content or "", self.excerpt_chars)}

Classify this tab."""
        return system_prompt, user_prompt

    def parse_response(self, content: str) -> tuple:
        """Return (category, confidence) from raw model output.

        Accepts the requested JSON object, a fenced JSON block, or a bare
        category name.
        """
        json_str = (content or "").strip()
        if "```json" in json_str:
            json_str = json_str.split("```json")[1].split("```")[0].strip()
        elif "```" in json_str:
            json_str = json_str.split("```")[1].split("```")[0].strip()

        raw_category: Optional[str] = json_str
        confidence = DEFAULT_CONFIDENCE
        try:
            result = json.loads(json_str)
        except ValueError:
            result = None
        if isinstance(result, dict):
            raw_category = str(result.get("category", ""))
            try:
                confidence = min(max(float(result.get("confidence", DEFAULT_CONFIDENCE)), 0.0), 1.0)
            except (TypeError, ValueError):
                confidence = DEFAULT_CONFIDENCE
        elif isinstance(result, str):
            raw_category = result

        category = self.registry.coerce(raw_category)
        if category is None:
            raise InvalidResponse(f"Unrecognized category in response: {content[:100]!r}")
        return category, confidence

    async def classify(self, descriptor: TabDescriptor) -> CategoryResult:
        if not self.available:
            raise ClassifierUnavailable("No API key configured for the remote classifier")
        llm = self._get_llm()
        if not self.rate_limiter.try_acquire():
            raise RateLimited("Remote classifier rate limit reached")

        # The slot is reserved up front and handed back if the call does not succeed.
        try:
            category, confidence = await self._request(llm, descriptor)
        except ClassificationError:
            self.rate_limiter.release()
            raise
        logger.info(f"Tab '{descriptor.title[:40]}' classified remotely as {category} ({confidence:.2f})")
        return CategoryResult(category=category, source=SOURCE_CLASSIFIER, confidence=confidence, cacheable=True)

    async def _request(self, llm: Any, descriptor: TabDescriptor) -> tuple:
        system_prompt, user_prompt = self.build_prompt(descriptor)
        try:
            response = await llm.ainvoke([SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)])
        except Exception as e:
            raise RemoteError(f"Classification request failed: {e}") from e

        content = response.content if hasattr(response, "content") else str(response)
        if not isinstance(content, str):
            content = " ".join(str(part.get("text", part)) if isinstance(part, dict) else str(part) for part in content)
        return self.parse_response(content)

    async def test_credentials(self) -> dict:
        """Classify a known page to check the configured key works."""
        sample = TabDescriptor(
            id=-1,
            url="https://github.com",
            title="GitHub",
            extracted_content="GitHub is a development platform",
        )
        try:
            result = await self.classify(sample)
            return {"success": True, "category": result.category}
        except ClassificationError as e:
            return {"success": False, "error": str(e)}
