"""
ChronoGraph FastAPI Application

A REST API server for the ChronoGraph temporal knowledge-graph engine.
Provides endpoints for graph mutations, status review, event history and
point-in-time snapshots.

The acting user is taken from the X-User-Id header; X-Session-Id optionally
tags mutations with a coaching session.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import Body, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from chronograph import __version__
from chronograph.config import Config
from chronograph.core.factory import GraphStoreFactory
from chronograph.models.event import CUSTOM_EVENT_TYPES
from chronograph.models.node import NodeStatus
from chronograph.services.engine import TemporalGraphEngine
from chronograph.services.snapshot import RECONSTRUCTORS
from chronograph.utils.exceptions import (
    AuthorizationError,
    ChronoGraphError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from chronograph.utils.logger import get_logger, setup_logging
from chronograph.utils.timestamps import utc_now
from chronograph.utils.validation import require_user_id

# Global engine instance
engine: TemporalGraphEngine | None = None
logger = get_logger(__name__)


# Pydantic models for API
class StatusRequest(BaseModel):
    """Request model for a status change."""

    status: NodeStatus
    reason: str | None = None


class ProgressRequest(BaseModel):
    """Request model for goal progress."""

    progress: float = Field(..., description="Progress between 0 and 1")


class EmbeddingRequest(BaseModel):
    """Request model for storing an externally generated embedding."""

    embedding: list[float]
    model: str | None = None


class RecordEventRequest(BaseModel):
    """Request model for recording a custom event."""

    event_type: str
    new_state: dict[str, Any] = Field(default_factory=dict)
    node_id: str | None = None
    edge_id: str | None = None
    previous_state: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    engine_initialized: bool
    graph_store: str
    snapshot_mode: str


# Error status codes, most specific first
ERROR_STATUS: list[tuple[type[ChronoGraphError], int]] = [
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (TransientStoreError, 503),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global engine

    # Load configuration from environment or use defaults
    config = Config.from_env()

    # Initialize logging with config
    setup_logging(config.logging)

    logger.info("Starting ChronoGraph server")
    logger.info(
        f"Configuration: Store={config.store.backend} ({config.store.db_path}), "
        f"Snapshot mode={config.snapshot.mode}"
    )

    logger.info("Creating graph store")
    graph_store = GraphStoreFactory.create(config)

    engine = TemporalGraphEngine(graph_store=graph_store, config=config)
    await engine.initialize()
    logger.info("ChronoGraph engine initialized")

    yield

    # Cleanup
    logger.info("Shutting down ChronoGraph server")
    await engine.close()
    engine = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="ChronoGraph API",
    description="Temporal knowledge graph with event history and point-in-time snapshots",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChronoGraphError)
async def chronograph_error_handler(request: Request, exc: ChronoGraphError):
    """Map engine errors to HTTP status codes."""
    status_code = 500
    for error_cls, code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            status_code = code
            break

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} rejected: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {"error": type(exc).__name__, "detail": exc.message, "context": exc.context}
        ),
    )


def get_engine() -> TemporalGraphEngine:
    if not engine:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy" if engine else "initializing",
        engine_initialized=engine is not None,
        graph_store=engine.config.store.backend if engine else "unknown",
        snapshot_mode=engine.config.snapshot.mode if engine else "unknown",
    )


# Node endpoints
@app.post("/nodes", status_code=201)
async def create_node(
    payload: dict[str, Any] = Body(...),
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """
    Create a node.

    Body: node_type, label, and optional description, properties and status
    (defaults to draft_verbal). Properties are validated against the schema
    for the node type.
    """
    node = await get_engine().graph.create_node(
        require_user_id(x_user_id), payload, session_id=x_session_id
    )
    return node.model_dump(mode="json")


@app.get("/nodes")
async def list_nodes(
    node_type: str | None = Query(default=None),
    include_deleted: bool = Query(default=False),
    x_user_id: str | None = Header(default=None),
):
    """List the user's nodes, oldest first."""
    nodes = await get_engine().graph.list_nodes(
        require_user_id(x_user_id), node_type=node_type, include_deleted=include_deleted
    )
    return [node.model_dump(mode="json") for node in nodes]


@app.get("/nodes/{node_id}")
async def get_node(node_id: str, x_user_id: str | None = Header(default=None)):
    """Retrieve a live node by ID."""
    node = await get_engine().graph.get_node(require_user_id(x_user_id), node_id)
    return node.model_dump(mode="json")


@app.patch("/nodes/{node_id}")
async def update_node(
    node_id: str,
    payload: dict[str, Any] = Body(...),
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """
    Update node_type, label, description or properties.

    Status changes are rejected here; use PUT /nodes/{node_id}/status.
    """
    node = await get_engine().graph.update_node(
        require_user_id(x_user_id), node_id, payload, session_id=x_session_id
    )
    return node.model_dump(mode="json")


@app.delete("/nodes/{node_id}")
async def delete_node(
    node_id: str,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """
    Soft-delete a node.

    The node stays in the store and in snapshots before the deletion time.
    """
    node = await get_engine().graph.delete_node(
        require_user_id(x_user_id), node_id, session_id=x_session_id
    )
    return {"id": node.id, "deleted": True, "deleted_at": node.deleted_at.isoformat()}


@app.put("/nodes/{node_id}/status")
async def update_node_status(
    node_id: str,
    request: StatusRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """Move a node between draft_verbal and curated."""
    node = await get_engine().status.update_node_status(
        require_user_id(x_user_id),
        node_id,
        request.status,
        session_id=x_session_id,
        reason=request.reason,
    )
    return node.model_dump(mode="json")


@app.put("/nodes/{node_id}/progress")
async def update_progress(
    node_id: str,
    request: ProgressRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """Set a goal's progress."""
    node = await get_engine().graph.update_progress(
        require_user_id(x_user_id), node_id, request.progress, session_id=x_session_id
    )
    return node.model_dump(mode="json")


@app.put("/nodes/{node_id}/embedding")
async def set_embedding(
    node_id: str,
    request: EmbeddingRequest,
    x_user_id: str | None = Header(default=None),
):
    """Store an embedding generated by an external provider."""
    node = await get_engine().graph.set_embedding(
        require_user_id(x_user_id), node_id, request.embedding, model=request.model
    )
    return {"id": node.id, "dimensions": len(node.embedding or [])}


@app.get("/nodes/{node_id}/evolution")
async def get_node_evolution(node_id: str, x_user_id: str | None = Header(default=None)):
    """
    Show how a node changed over time.

    Each entry carries the event and the field-level changes it made.
    """
    entries = await get_engine().event_log.get_node_evolution(
        require_user_id(x_user_id), node_id
    )
    return [entry.model_dump(mode="json") for entry in entries]


# Edge endpoints
@app.post("/edges", status_code=201)
async def create_edge(
    payload: dict[str, Any] = Body(...),
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """Create an edge between two live nodes owned by the user."""
    edge = await get_engine().graph.create_edge(
        require_user_id(x_user_id), payload, session_id=x_session_id
    )
    return edge.model_dump(mode="json")


@app.patch("/edges/{edge_id}")
async def update_edge(
    edge_id: str,
    payload: dict[str, Any] = Body(...),
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """Update an edge's type, label, weight or properties."""
    edge = await get_engine().graph.update_edge(
        require_user_id(x_user_id), edge_id, payload, session_id=x_session_id
    )
    return edge.model_dump(mode="json")


@app.delete("/edges/{edge_id}")
async def delete_edge(
    edge_id: str,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """Invalidate an edge."""
    edge = await get_engine().graph.delete_edge(
        require_user_id(x_user_id), edge_id, session_id=x_session_id
    )
    return {"id": edge.id, "deleted": True, "valid_to": edge.valid_to.isoformat()}


# Timeline endpoints
@app.get("/sessions")
async def list_sessions(x_user_id: str | None = Header(default=None)):
    """List the user's coaching sessions, oldest first."""
    sessions = await get_engine().list_sessions(require_user_id(x_user_id))
    return [session.model_dump(mode="json") for session in sessions]


@app.get("/events")
async def get_timeline(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    limit: int = Query(default=100),
    x_user_id: str | None = Header(default=None),
):
    """List the user's events, newest first."""
    events = await get_engine().event_log.get_timeline(
        require_user_id(x_user_id), start_date=start, end_date=end, limit=limit
    )
    return [event.model_dump(mode="json") for event in events]


@app.post("/events", status_code=201)
async def record_event(
    request: RecordEventRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
):
    """
    Record a custom event.

    Only progress_changed and embedding_generated may be recorded directly;
    structural and status events come from the mutation endpoints.
    """
    allowed = sorted(event_type.value for event_type in CUSTOM_EVENT_TYPES)
    if request.event_type not in allowed:
        raise ValidationError(
            f"Event type {request.event_type} cannot be recorded directly",
            context={"allowed": allowed},
        )

    event_id = await get_engine().event_log.record_event(
        require_user_id(x_user_id),
        request.event_type,
        request.new_state,
        node_id=request.node_id,
        edge_id=request.edge_id,
        session_id=x_session_id,
        previous_state=request.previous_state,
        metadata=request.metadata,
    )
    return {"id": event_id}


@app.get("/snapshot")
async def get_snapshot(
    at: datetime | None = Query(default=None),
    mode: str | None = Query(default=None),
    x_user_id: str | None = Header(default=None),
):
    """
    Reconstruct the user's graph at a point in time (default: now).

    mode: current_state (default) or event_replay.
    """
    if mode is not None and mode not in RECONSTRUCTORS:
        raise ValidationError(
            f"Unknown snapshot mode: {mode}", context={"supported": sorted(RECONSTRUCTORS)}
        )
    snapshot = await get_engine().get_snapshot(
        require_user_id(x_user_id), at or utc_now(), mode=mode
    )
    return snapshot.model_dump(mode="json")


# Statistics endpoint
@app.get("/stats")
async def get_stats(x_user_id: str | None = Header(default=None)):
    """
    Get system statistics.

    Scoped to the user when X-User-Id is given.
    """
    return await get_engine().get_statistics(x_user_id or None)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "ChronoGraph API",
        "version": __version__,
        "description": "Temporal knowledge graph with event history and point-in-time snapshots",
        "docs": "/docs",
        "health": "/health",
    }
