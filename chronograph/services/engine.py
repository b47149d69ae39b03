"""
Temporal Graph Engine - Integrates all components.

Brings together:
- Graph Store (current state + event log persistence)
- Event Log, Graph Service and Status Lifecycle (mutations)
- Snapshot Reconstructors (point-in-time views)
- Timeline Controllers (playback)
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from chronograph.config import Config
from chronograph.core.graph_store.base import GraphStore
from chronograph.models.event import GraphEvent
from chronograph.models.node import Session
from chronograph.models.snapshot import GraphSnapshot
from chronograph.models.timeline import TimeRange
from chronograph.services.event_log import EventLog
from chronograph.services.graph_service import GraphService
from chronograph.services.snapshot import SnapshotReconstructor, create_reconstructor
from chronograph.services.status_lifecycle import StatusLifecycle
from chronograph.services.timeline import Scheduler, TimelineController
from chronograph.utils.logger import get_logger
from chronograph.utils.timestamps import utc_now
from chronograph.utils.validation import require_user_id

logger = get_logger(__name__)


class TemporalGraphEngine:
    """
    Unified engine over one graph store.

    Features:
    - Node/edge mutations, each written atomically with its event
    - Draft/curated status lifecycle
    - Event timeline and per-node evolution
    - Snapshots at any past instant (current-state or event-replay)
    - Timeline controllers for playback
    """

    def __init__(
        self,
        graph_store: GraphStore,
        config: Config | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize Temporal Graph Engine.

        Args:
            graph_store: Store holding nodes, edges and events
            config: Configuration object
            clock: Source of mutation timestamps
        """
        self.config = config or Config()
        self.graph_store = graph_store
        self.clock = clock

        self.event_log = EventLog(graph_store, clock=clock)
        self.graph = GraphService(graph_store, self.event_log, clock=clock)
        self.status = StatusLifecycle(self.graph)

        self._reconstructors: dict[str, SnapshotReconstructor] = {}
        self.reconstructor = self.get_reconstructor()

    async def initialize(self) -> None:
        """Initialize the store."""
        logger.info("Initializing Temporal Graph Engine")
        await self.graph_store.initialize()
        logger.info(f"Temporal Graph Engine ready (snapshot mode: {self.config.snapshot.mode})")

    def get_reconstructor(self, mode: str | None = None) -> SnapshotReconstructor:
        """
        Get the reconstructor for a snapshot mode (default: configured mode).

        Raises:
            ConfigurationError: If the mode is unknown
        """
        mode = mode or self.config.snapshot.mode
        if mode not in self._reconstructors:
            self._reconstructors[mode] = create_reconstructor(
                self.graph_store, self.config.snapshot, mode=mode
            )
        return self._reconstructors[mode]

    # ═══════════════════════════════════════════════════════════
    # TIMELINE DATA SOURCE
    # ═══════════════════════════════════════════════════════════

    async def get_snapshot(
        self, user_id: str, timestamp: datetime, mode: str | None = None
    ) -> GraphSnapshot:
        """Reconstruct a user's graph at `timestamp`."""
        return await self.get_reconstructor(mode).get_snapshot(user_id, timestamp)

    async def list_sessions(self, user_id: str) -> list[Session]:
        return await self.graph.list_sessions(user_id)

    async def get_events_between(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[GraphEvent]:
        return await self.event_log.get_events_between(user_id, start, end, limit=limit)

    def create_timeline(
        self,
        user_id: str,
        time_range: TimeRange | None = None,
        scheduler: Scheduler | None = None,
    ) -> TimelineController:
        """
        Create a playback controller for one viewer.

        Each call returns an independent controller with its own throttle
        and scheduling state.
        """
        require_user_id(user_id)
        return TimelineController(
            self,
            user_id,
            config=self.config.timeline,
            scheduler=scheduler,
            time_range=time_range,
            clock=self.clock,
        )

    # ═══════════════════════════════════════════════════════════
    # STATISTICS & LIFECYCLE
    # ═══════════════════════════════════════════════════════════

    async def get_statistics(self, user_id: str | None = None) -> dict[str, Any]:
        """
        Get engine statistics, optionally for one user.

        Returns:
            Statistics dictionary
        """
        live_nodes = await self.graph_store.count_nodes(user_id)
        all_nodes = await self.graph_store.count_nodes(user_id, include_deleted=True)
        valid_edges = await self.graph_store.count_edges(user_id)
        all_edges = await self.graph_store.count_edges(user_id, include_invalid=True)
        events = await self.graph_store.count_events(user_id)

        return {
            "nodes": {
                "live": live_nodes,
                "deleted": all_nodes - live_nodes,
                "total": all_nodes,
            },
            "edges": {
                "valid": valid_edges,
                "invalidated": all_edges - valid_edges,
                "total": all_edges,
            },
            "events": {"total": events},
        }

    async def close(self) -> None:
        """Close the store."""
        logger.info("Shutting down Temporal Graph Engine")
        await self.graph_store.close()
        logger.info("Temporal Graph Engine shutdown complete")
