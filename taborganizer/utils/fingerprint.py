"""Cache keys derived from a classification request.

Two keys are produced for every page:

* the exact key, ``<domain>_<digest>``, where the digest is a CRC-32 of the
  url, title and a content prefix rendered in base 36. It is deliberately
  not a cryptographic hash; a collision only costs a wrong cache hit.
* the domain key, ``<domain>_<path shape>``, which buckets structurally
  similar pages on one site into the same slot.

Both functions are total: malformed URLs map to the ``unknown`` domain.
"""
import zlib
from typing import Optional
from urllib.parse import urlparse

from ..config import FINGERPRINT_CONTENT_CHARS

UNKNOWN_DOMAIN = "unknown"
UNKNOWN_DOMAIN_KEY = f"{UNKNOWN_DOMAIN}_general"

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

# Ordered: the first matching marker wins.
PATH_BUCKETS = (
    (("/watch",), "video"),
    (("/post", "/status"), "social"),
    (("/docs", "/documentation"), "docs"),
    (("/blog",), "blog"),
    (("/shop", "/product"), "shopping"),
)


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def extract_domain(url: str) -> str:
    """Host name without a leading ``www.``; ``unknown`` if the URL has none."""
    try:
        host = urlparse(url or "").hostname
    except ValueError:
        return UNKNOWN_DOMAIN
    if not host:
        return UNKNOWN_DOMAIN
    if host.startswith("www."):
        host = host[4:]
    return host or UNKNOWN_DOMAIN


def path_pattern(url: str) -> str:
    """Coarse shape of the URL path: home, video, social, docs, blog, shopping or its first segment."""
    try:
        parsed = urlparse(url or "")
    except ValueError:
        return "general"
    if not parsed.hostname:
        return "general"
    path = parsed.path
    if path in ("", "/"):
        return "home"
    for markers, bucket in PATH_BUCKETS:
        if any(marker in path for marker in markers):
            return bucket
    segments = [s for s in path.split("/") if s]
    return segments[0] if segments else "general"


def exact_key(url: str, title: str, content: Optional[str] = None) -> str:
    prefix = (content or "")[:FINGERPRINT_CONTENT_CHARS]
    digest = zlib.crc32(f"{url or ''}|{title or ''}|{prefix}".encode("utf-8"))
    return f"{extract_domain(url)}_{_base36(digest)}"


def domain_key(url: str) -> str:
    return f"{extract_domain(url)}_{path_pattern(url)}"
