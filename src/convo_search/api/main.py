import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from convo_search.api.state import _services
from convo_search.cli import _build_service
from convo_search.config import settings
from convo_search.core.cancellation import CancellationToken, SearchCancelledError
from convo_search.core.models import (
    ParsedQuery,
    RelatedConversation,
    SearchRequest,
    SearchResponse,
    SearchSuggestion,
)
from convo_search.services.search import SearchService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown events for the API."""
    print("\n[Startup] Loading conversation store...")

    try:
        _services["search"] = _build_service()
        print("[Startup] API is ready to accept concurrent requests.")
    except Exception as e:
        print(f"[Startup] Failed to initialize search service: {e}")
        raise

    yield

    print("\n[Shutdown] Cleaning up resources...")
    _services.clear()


app = FastAPI(
    title="convo-search API",
    description="Async API for intent-aware relevance search over stored conversations.",
    version="0.1.0",
    lifespan=lifespan,
)


class ParseRequest(BaseModel):
    """Schema for a query parsing request."""

    query: str = Field(..., description="The free-text query to parse.")
    context: dict[str, Any] = Field(default_factory=dict, description="Optional caller hints.")


class TimedSearchRequest(SearchRequest):
    """Search request with an optional server-side deadline."""

    timeout_ms: int | None = Field(None, ge=1, description="Abort the search after N ms.")


class SuggestionRequest(BaseModel):
    query: str = Field(..., description="The query to build suggestions for.")


class SuggestionResponse(BaseModel):
    query: str
    suggestions: list[SearchSuggestion]


class RelatedResponse(BaseModel):
    conversation_id: str
    conversations: list[RelatedConversation]


def _get_service() -> SearchService:
    service = _services.get("search")
    if not service:
        raise HTTPException(status_code=503, detail="Search service is not initialized.")
    return service


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    if not _services:
        raise HTTPException(status_code=503, detail="Search service initializing or failed")

    return {"status": "healthy", "store_type": settings.store_type, "data_path": settings.data_path}


@app.post("/parse", response_model=ParsedQuery)
async def parse_query(request: ParseRequest) -> ParsedQuery:
    """Returns the structured interpretation of a query."""
    service = _get_service()
    return service.parser.parse(request.query, request.context)


@app.post("/search", response_model=SearchResponse)
async def search(request: TimedSearchRequest) -> SearchResponse:
    """Ranks stored turns asynchronously against the query."""
    service = _get_service()
    token = (
        CancellationToken.with_timeout(request.timeout_ms / 1000)
        if request.timeout_ms is not None
        else None
    )

    try:
        return await asyncio.to_thread(service.execute_query, request, token)
    except SearchCancelledError as e:
        raise HTTPException(status_code=504, detail=str(e)) from e
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Search execution failed: {e}") from e


@app.post("/suggestions", response_model=SuggestionResponse)
async def suggestions(request: SuggestionRequest) -> SuggestionResponse:
    service = _get_service()
    return SuggestionResponse(query=request.query, suggestions=service.suggest(request.query))


@app.get("/conversations/{conversation_id}/related", response_model=RelatedResponse)
async def related_conversations(
    conversation_id: str, limit: int = Query(5, ge=1, le=100)
) -> RelatedResponse:
    """Finds conversations similar to the given one."""
    service = _get_service()
    if not service.store.get_conversation(conversation_id):
        raise HTTPException(status_code=404, detail=f"Conversation '{conversation_id}' not found")

    try:
        results = await asyncio.to_thread(service.related_conversations, conversation_id, limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Related search failed: {e}") from e
    return RelatedResponse(conversation_id=conversation_id, conversations=results)
