"""
Tests for EventLog.

Tests cover event validation, standalone recording, timeline queries and
node evolution.
"""

from datetime import timedelta

import pytest

from chronograph.models import EventOrigin, EventType
from chronograph.utils.exceptions import AuthorizationError, NotFoundError, ValidationError

USER = "user-1"
OTHER_USER = "user-2"


@pytest.mark.unit
@pytest.mark.asyncio
class TestBuildEvent:
    """Tests for event construction without I/O."""

    async def test_unknown_event_type(self, event_log):
        with pytest.raises(ValidationError):
            event_log.build_event(USER, "node_teleported", {}, node_id="node_a")

    async def test_entity_event_needs_an_id(self, event_log):
        with pytest.raises(ValidationError):
            event_log.build_event(USER, EventType.NODE_UPDATED, {"label": "x"})

    async def test_session_event_needs_no_entity(self, event_log):
        event = event_log.build_event(USER, "session_ended", {}, session_id="sess-1")

        assert event.event_type == EventType.SESSION_ENDED
        assert event.node_id is None and event.edge_id is None

    async def test_uses_clock(self, event_log, clock):
        event = event_log.build_event(USER, "progress_changed", {}, node_id="node_a")
        assert event.created_at == clock.now


@pytest.mark.integration
@pytest.mark.asyncio
class TestRecordEvent:
    """Tests for standalone event recording."""

    async def test_record_event(self, graph, event_log, store):
        goal = await graph.create_goal_node(USER, "Run a 5K")

        event_id = await event_log.record_event(
            USER,
            "progress_changed",
            {"properties": {"progress": 0.5}},
            node_id=goal.id,
            metadata={"source": "coach"},
        )

        event = await store.get_event(event_id)
        assert event.event_type == EventType.PROGRESS_CHANGED
        assert event.metadata == {"source": "coach"}
        assert event.origin == EventOrigin.RECORDED
        assert await store.count_events(USER) == 2

    async def test_record_event_appends_one_row(self, graph, event_log, store):
        goal = await graph.create_goal_node(USER, "Run a 5K")
        before = await store.count_events(USER)

        await event_log.record_event(USER, "status_changed", {}, node_id=goal.id)

        assert await store.count_events(USER) == before + 1

    async def test_missing_node(self, event_log, store):
        with pytest.raises(NotFoundError):
            await event_log.record_event(USER, "progress_changed", {}, node_id="node_missing")
        assert await store.count_events() == 0

    async def test_foreign_node(self, graph, event_log):
        goal = await graph.create_goal_node(OTHER_USER, "Their goal")

        with pytest.raises(AuthorizationError):
            await event_log.record_event(USER, "progress_changed", {}, node_id=goal.id)

    async def test_missing_edge(self, event_log):
        with pytest.raises(NotFoundError):
            await event_log.record_event(USER, "edge_updated", {}, edge_id="edge_missing")

    async def test_empty_user(self, event_log):
        with pytest.raises(ValidationError):
            await event_log.record_event("", "session_started", {})


@pytest.mark.integration
@pytest.mark.asyncio
class TestTimelineQueries:
    """Tests for get_timeline and friends."""

    async def test_timeline_newest_first(self, graph, event_log, clock):
        first = await graph.create_goal_node(USER, "First")
        clock.advance(minutes=1)
        second = await graph.create_goal_node(USER, "Second")

        events = await event_log.get_timeline(USER)

        assert [e.node_id for e in events] == [second.id, first.id]

    async def test_timeline_bounds_and_limit(self, graph, event_log, clock):
        start = clock.now
        for i in range(5):
            await graph.create_goal_node(USER, f"Goal {i}")
            clock.advance(hours=1)

        window = await event_log.get_timeline(
            USER, start_date=start + timedelta(hours=1), end_date=start + timedelta(hours=3)
        )
        limited = await event_log.get_timeline(USER, limit=2)

        assert len(window) == 3
        assert len(limited) == 2
        assert limited[0].new_state["label"] == "Goal 4"

    async def test_timeline_is_per_user(self, graph, event_log):
        await graph.create_goal_node(OTHER_USER, "Not mine")
        assert await event_log.get_timeline(USER) == []

    async def test_timeline_rejects_bad_input(self, event_log, clock):
        with pytest.raises(ValidationError):
            await event_log.get_timeline(USER, limit=0)
        with pytest.raises(ValidationError):
            await event_log.get_timeline(
                USER, start_date=clock.now, end_date=clock.now - timedelta(days=1)
            )

    async def test_events_between_oldest_first(self, graph, event_log, clock):
        start = clock.now
        await graph.create_goal_node(USER, "A")
        clock.advance(minutes=10)
        await graph.create_goal_node(USER, "B")

        events = await event_log.get_events_between(USER, start, clock.now)

        assert [e.new_state["label"] for e in events] == ["A", "B"]

    async def test_session_events(self, graph, event_log):
        goal = await graph.create_goal_node(USER, "Run a 5K", session_id="sess-1")
        await graph.update_node(USER, goal.id, {"label": "Run a 10K"}, session_id="sess-1")
        await graph.create_goal_node(USER, "Unrelated")

        events = await event_log.get_session_events(USER, "sess-1")

        assert [e.event_type for e in events] == [EventType.NODE_CREATED, EventType.NODE_UPDATED]


@pytest.mark.integration
@pytest.mark.asyncio
class TestNodeEvolution:
    """Tests for get_node_evolution."""

    async def test_evolution_lists_changes(self, graph, event_log, clock):
        goal = await graph.create_goal_node(USER, "Run a 5K")
        clock.advance(days=1)
        await graph.update_node(USER, goal.id, {"label": "Run a 10K"}, session_id="sess-2")

        evolution = await event_log.get_node_evolution(USER, goal.id)

        assert [entry.event_type for entry in evolution] == [
            EventType.NODE_CREATED,
            EventType.NODE_UPDATED,
        ]
        update = evolution[1]
        assert update.session_id == "sess-2"
        assert update.event_timestamp == clock.now
        assert set(update.changes) == {"label"}
        assert update.changes["label"].old == "Run a 5K"
        assert update.changes["label"].new == "Run a 10K"

    async def test_evolution_includes_deleted_nodes(self, graph, event_log):
        goal = await graph.create_goal_node(USER, "Run a 5K")
        await graph.delete_node(USER, goal.id)

        evolution = await event_log.get_node_evolution(USER, goal.id)

        assert evolution[-1].event_type == EventType.NODE_DELETED
        assert "deleted_at" in evolution[-1].changes

    async def test_evolution_hides_foreign_nodes(self, graph, event_log):
        goal = await graph.create_goal_node(OTHER_USER, "Their goal")

        with pytest.raises(NotFoundError):
            await event_log.get_node_evolution(USER, goal.id)

    async def test_evolution_missing_node(self, event_log):
        with pytest.raises(NotFoundError):
            await event_log.get_node_evolution(USER, "node_missing")
