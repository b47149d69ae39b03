"""
Services for ChronoGraph.

High-level business logic services:
- TemporalGraphEngine: Unified interface over all components
- EventLog: Append-only event recording and history queries
- GraphService: Node/edge mutations paired with events
- StatusLifecycle: draft_verbal <-> curated transitions
- SnapshotReconstructor: Point-in-time graph views
- TimelineController: Throttled playback over history
"""

from chronograph.services.engine import TemporalGraphEngine
from chronograph.services.event_log import EventLog
from chronograph.services.graph_service import GraphService
from chronograph.services.snapshot import (
    CurrentStateReconstructor,
    EventReplayReconstructor,
    SnapshotReconstructor,
    create_reconstructor,
)
from chronograph.services.status_lifecycle import StatusLifecycle
from chronograph.services.timeline import (
    AsyncioScheduler,
    Scheduler,
    SnapshotThrottle,
    TimelineController,
)

__all__ = [
    "TemporalGraphEngine",
    "EventLog",
    "GraphService",
    "StatusLifecycle",
    "SnapshotReconstructor",
    "CurrentStateReconstructor",
    "EventReplayReconstructor",
    "create_reconstructor",
    "Scheduler",
    "AsyncioScheduler",
    "SnapshotThrottle",
    "TimelineController",
]
