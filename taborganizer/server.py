"""Tab organizer command surface - FastAPI backend."""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Dict, Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from . import __version__
from .config import MODEL_PROVIDER, UNUSED_TAB_DAYS, has_credential
from .categories import GROUP_COLORS
from .models import TabDescriptor
from .organizer import TabOrganizer

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("taborganizer.server")


# =========================
# Pydantic Models
# =========================
class TabInput(BaseModel):
    """Input model for tab data."""
    id: int
    title: str = ""
    url: str = ""
    text: Optional[str] = Field(default=None, description="Visible text from page (<=2000 chars)")
    favicon: Optional[str] = None

    @field_validator("title", "url", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str:
        return "" if v is None else str(v)

    def to_descriptor(self) -> TabDescriptor:
        return TabDescriptor(
            id=self.id,
            url=self.url,
            title=self.title,
            extracted_content=self.text,
            favicon_ref=self.favicon,
        )


class AssignRequest(BaseModel):
    tab: TabInput
    category: Optional[str] = Field(default=None, description="Resolved when omitted")


class TabUpdatedEvent(BaseModel):
    tab: TabInput
    status: Optional[str] = None


class OrganizeRequest(BaseModel):
    tabs: List[TabInput] = Field(default_factory=list)


class CustomGroupRequest(BaseModel):
    name: str
    tab_ids: List[int] = Field(default_factory=list)
    color: str = "grey"

    @field_validator("color")
    @classmethod
    def known_color(cls, v: str) -> str:
        if v not in GROUP_COLORS:
            raise ValueError(f"color must be one of {', '.join(GROUP_COLORS)}")
        return v


class CategoryRequest(BaseModel):
    name: str
    color: str = "grey"
    description: str = ""
    keywords: List[str] = Field(default_factory=list)


def _tab_dict(descriptor: TabDescriptor) -> Dict[str, Any]:
    return descriptor.model_dump()


def _state_dict(state: Dict[str, List[TabDescriptor]]) -> Dict[str, List[Dict[str, Any]]]:
    return {category: [_tab_dict(t) for t in tabs] for category, tabs in state.items()}


# =========================
# FastAPI App
# =========================
def create_app(organizer: Optional[TabOrganizer] = None) -> FastAPI:
    """Build the app around one organizer (the configured one when not given)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.organizer = organizer or TabOrganizer.from_config()
        logger.info("Tab organizer ready (provider: %s)", MODEL_PROVIDER)
        try:
            yield
        finally:
            await app.state.organizer.close()

    app = FastAPI(
        title="Tab Organizer",
        description="Categorizes browser tabs and keeps native tab groups in sync",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["chrome-extension://*", "http://localhost", "http://127.0.0.1", "http://localhost:8000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_organizer(request: Request) -> TabOrganizer:
        return request.app.state.organizer

    # =========================
    # API Routes
    # All handlers are async so they run on the event loop, never in a worker thread.
    # =========================
    @app.get("/health")
    async def health() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"ok": True, "status": "running", "provider": MODEL_PROVIDER}

    @app.get("/config")
    async def config(request: Request) -> Dict[str, Any]:
        """Runtime configuration diagnostics."""
        organizer = get_organizer(request)
        return {
            "provider": MODEL_PROVIDER,
            "credential_present": has_credential(),
            "classifier_available": organizer.classifier.available,
            "remote_store": await organizer.cache.remote_store.ping(),
        }

    @app.post("/resolve")
    async def resolve(payload: TabInput, request: Request) -> Dict[str, Any]:
        result = await get_organizer(request).resolve_detailed(payload.to_descriptor())
        return result.model_dump()

    @app.get("/groups")
    async def get_groups(request: Request) -> Dict[str, Any]:
        return {"ok": True, "groups": _state_dict(get_organizer(request).get_state())}

    @app.post("/groups/assign")
    async def assign(payload: AssignRequest, request: Request) -> Dict[str, Any]:
        organizer = get_organizer(request)
        descriptor = payload.tab.to_descriptor()
        category = payload.category or await organizer.resolve(descriptor)
        assigned = await organizer.assign(descriptor, category)
        return {"ok": assigned, "category": category}

    @app.get("/groups/unused")
    async def unused(request: Request, days: float = UNUSED_TAB_DAYS) -> Dict[str, Any]:
        tabs = get_organizer(request).unused_tabs(days)
        return {"ok": True, "tabs": [_tab_dict(t) for t in tabs], "count": len(tabs)}

    @app.post("/groups/custom")
    async def custom_group(payload: CustomGroupRequest, request: Request) -> Dict[str, Any]:
        try:
            result = await get_organizer(request).create_custom_group(payload.name, payload.tab_ids, payload.color)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"ok": True, **result}

    @app.post("/groups/resync")
    async def resync(request: Request) -> Dict[str, Any]:
        return {"ok": True, **(await get_organizer(request).resync())}

    @app.delete("/tabs/{tab_id}")
    async def remove_tab(tab_id: int, request: Request) -> Dict[str, Any]:
        category = get_organizer(request).on_tab_removed(tab_id)
        return {"ok": True, "removed_from": category}

    @app.post("/tabs/{tab_id}/activate")
    async def activate_tab(tab_id: int, request: Request) -> Dict[str, Any]:
        return {"ok": get_organizer(request).on_tab_activated(tab_id)}

    @app.post("/events/tab-created")
    async def tab_created(payload: TabInput, request: Request) -> Dict[str, Any]:
        task = get_organizer(request).on_tab_created(payload.to_descriptor())
        return {"ok": True, "scheduled": task is not None}

    @app.post("/events/tab-updated")
    async def tab_updated(payload: TabUpdatedEvent, request: Request) -> Dict[str, Any]:
        category = await get_organizer(request).on_tab_updated(
            payload.tab.id, payload.tab.to_descriptor(), payload.status
        )
        return {"ok": True, "category": category}

    @app.post("/organize")
    async def organize(payload: OrganizeRequest, request: Request) -> Dict[str, Any]:
        grouped = await get_organizer(request).organize_all(t.to_descriptor() for t in payload.tabs)
        return {"ok": True, "grouped": {str(k): v for k, v in grouped.items()}}

    @app.get("/cache/stats")
    async def cache_stats(request: Request) -> Dict[str, Any]:
        return await get_organizer(request).get_cache_stats()

    @app.post("/cache/clear")
    async def clear_cache(request: Request) -> Dict[str, Any]:
        get_organizer(request).clear_cache()
        return {"ok": True}

    @app.get("/categories")
    async def list_categories(request: Request) -> Dict[str, Any]:
        return {"ok": True, "categories": [c.model_dump() for c in get_organizer(request).categories()]}

    @app.post("/categories")
    async def add_category(payload: CategoryRequest, request: Request) -> Dict[str, Any]:
        try:
            definition = get_organizer(request).add_category(
                payload.name, payload.color, payload.description, payload.keywords
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"ok": True, "category": definition.model_dump()}

    @app.delete("/categories/{name}")
    async def delete_category(name: str, request: Request) -> Dict[str, Any]:
        return {"ok": get_organizer(request).remove_category(name)}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
