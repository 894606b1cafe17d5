"""Optional remote durable store for categorizations.

Speaks a PostgREST-style HTTPS data API: one row per cache key with the
serialized entry in ``result``. Everything here is best-effort; callers
turn :class:`PersistenceError` into log lines.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

import httpx
from pydantic import ValidationError

from ..config import (
    REMOTE_STORE_KEY,
    REMOTE_STORE_TABLE,
    REMOTE_STORE_TIMEOUT_SECONDS,
    REMOTE_STORE_URL,
)
from ..errors import PersistenceError
from ..models import CacheEntry

logger = logging.getLogger(__name__)


class RemoteStore:
    """Key-based get and upsert over HTTPS."""

    def __init__(
        self,
        base_url: Optional[str] = REMOTE_STORE_URL,
        api_key: Optional[str] = REMOTE_STORE_KEY,
        table: str = REMOTE_STORE_TABLE,
        timeout: float = REMOTE_STORE_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.table = table
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key or "",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def get(self, key: str) -> Optional[CacheEntry]:
        if not self.configured:
            return None
        try:
            response = await self._get_client().get(
                self.endpoint,
                params={"cache_key": f"eq.{key}", "select": "result", "limit": "1"},
                headers=self._headers(),
            )
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"Remote store read failed for {key}: {e}") from e

        if not rows:
            return None
        try:
            return CacheEntry.model_validate(rows[0].get("result") or {})
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            raise PersistenceError(f"Remote store returned a malformed row for {key}: {e}") from e

    async def put(self, key: str, entry: CacheEntry, domain: str = "") -> None:
        if not self.configured:
            return
        body: Dict[str, Any] = {
            "cache_key": key,
            "result": entry.model_dump(),
            "domain": domain,
            "category": entry.category,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = await self._get_client().post(
                self.endpoint,
                json=body,
                headers=self._headers({"Prefer": "resolution=merge-duplicates,return=minimal"}),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistenceError(f"Remote store write failed for {key}: {e}") from e

    async def count(self) -> Optional[int]:
        """Row count via the Content-Range header; None when unknown."""
        if not self.configured:
            return None
        try:
            response = await self._get_client().head(
                self.endpoint,
                params={"select": "cache_key"},
                headers=self._headers({"Prefer": "count=exact"}),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistenceError(f"Remote store count failed: {e}") from e
        content_range = response.headers.get("content-range", "")
        total = content_range.rpartition("/")[2]
        return int(total) if total.isdigit() else None

    async def ping(self) -> Dict[str, Any]:
        """Connection test used by the diagnostics endpoint."""
        if not self.configured:
            return {"success": False, "error": "Configuration not available"}
        try:
            response = await self._get_client().head(f"{self.base_url}/rest/v1/", headers=self._headers())
        except httpx.HTTPError as e:
            return {"success": False, "error": str(e)}
        if response.is_success:
            return {"success": True}
        return {"success": False, "error": f"Connection failed: {response.status_code}"}

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
