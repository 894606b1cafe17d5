"""HeuristicClassifier: deterministic fallback when the remote path is not usable."""
from typing import Dict, List, Optional, Tuple
import logging

from ..categories import DEFAULT_CATEGORY, CategoryRegistry
from ..models import CategoryResult, SOURCE_HEURISTIC, TabDescriptor
from ..utils.fingerprint import extract_domain

logger = logging.getLogger(__name__)

HEURISTIC_CONFIDENCE = 0.3

DOMAIN_CATEGORIES: Dict[str, str] = {
    # Social Media
    "facebook.com": "social",
    "instagram.com": "social",
    "twitter.com": "social",
    "x.com": "social",
    "linkedin.com": "social",
    "tiktok.com": "social",
    "snapchat.com": "social",
    "reddit.com": "social",
    "pinterest.com": "social",
    "discord.com": "social",
    "telegram.org": "social",
    "whatsapp.com": "social",
    # AI Tools
    "openai.com": "ai-tools",
    "chatgpt.com": "ai-tools",
    "claude.ai": "ai-tools",
    "anthropic.com": "ai-tools",
    "bard.google.com": "ai-tools",
    "gemini.google.com": "ai-tools",
    "copilot.microsoft.com": "ai-tools",
    "midjourney.com": "ai-tools",
    "huggingface.co": "ai-tools",
    # Development
    "github.com": "development",
    "gitlab.com": "development",
    "stackoverflow.com": "development",
    "codepen.io": "development",
    "replit.com": "development",
    "codesandbox.io": "development",
    "npmjs.com": "development",
    "pypi.org": "development",
    "developer.mozilla.org": "development",
    # Entertainment
    "youtube.com": "entertainment",
    "netflix.com": "entertainment",
    "spotify.com": "entertainment",
    "twitch.tv": "entertainment",
    "hulu.com": "entertainment",
    "disney.com": "entertainment",
    "primevideo.com": "entertainment",
    "steampowered.com": "entertainment",
    # Shopping
    "amazon.com": "shopping",
    "ebay.com": "shopping",
    "etsy.com": "shopping",
    "shopify.com": "shopping",
    "walmart.com": "shopping",
    "target.com": "shopping",
    "alibaba.com": "shopping",
    # Work/Productivity
    "mail.google.com": "work-productivity",
    "gmail.com": "work-productivity",
    "outlook.com": "work-productivity",
    "slack.com": "work-productivity",
    "teams.microsoft.com": "work-productivity",
    "zoom.us": "work-productivity",
    "notion.so": "work-productivity",
    "trello.com": "work-productivity",
    "asana.com": "work-productivity",
    # Finance
    "coinbase.com": "finance",
    "binance.com": "finance",
    "robinhood.com": "finance",
    "paypal.com": "finance",
    "stripe.com": "finance",
    # News
    "cnn.com": "news-information",
    "bbc.com": "news-information",
    "reuters.com": "news-information",
    "nytimes.com": "news-information",
    "theguardian.com": "news-information",
    "wikipedia.org": "news-information",
}

# Declared priority order: the first category with a matching keyword wins.
KEYWORD_CATEGORIES: List[Tuple[str, List[str]]] = [
    ("social", ["social", "chat", "message", "friend", "follow", "like", "share"]),
    ("shopping", ["shop", "buy", "cart", "price", "product", "store", "order"]),
    ("entertainment", ["video", "music", "game", "movie", "stream", "watch"]),
    ("development", ["code", "programming", "developer", "api", "documentation"]),
    ("work-productivity", ["email", "meeting", "calendar", "document", "office"]),
    ("finance", ["bank", "crypto", "trading", "investment", "money"]),
    ("news-information", ["news", "article", "blog", "information", "wiki"]),
    ("education-research", ["learn", "course", "tutorial", "education", "study"]),
]


class HeuristicClassifier:
    """Domain table, then keyword table, then "general".

    Pure: no I/O and no state beyond the tables, so it is always safe to
    fall back to.
    """

    def __init__(self, registry: Optional[CategoryRegistry] = None):
        self.registry = registry

    def _domain_match(self, url: str) -> Optional[str]:
        host = extract_domain(url)
        labels = host.split(".")
        # a.b.example.com -> a.b.example.com, b.example.com, example.com
        for i in range(len(labels) - 1):
            category = DOMAIN_CATEGORIES.get(".".join(labels[i:]))
            if category:
                return category
        return None

    def _keyword_tables(self) -> List[Tuple[str, List[str]]]:
        tables = list(KEYWORD_CATEGORIES)
        if self.registry is not None:
            builtin = {name for name, _ in tables}
            tables.extend((name, kws) for name, kws in self.registry.user_keywords() if name not in builtin)
        return tables

    def categorize(self, url: str, title: str) -> str:
        category = self._domain_match(url)
        if category:
            return category

        text = f"{url} {title}".lower()
        for category, keywords in self._keyword_tables():
            if any(keyword in text for keyword in keywords):
                return category

        return DEFAULT_CATEGORY

    def classify(self, descriptor: TabDescriptor) -> CategoryResult:
        category = self.categorize(descriptor.url, descriptor.title)
        return CategoryResult(
            category=category,
            source=SOURCE_HEURISTIC,
            confidence=HEURISTIC_CONFIDENCE,
            cacheable=False,
        )
