"""
Tests for the SQLite graph store.

Covers schema setup, atomic writes, append-only enforcement and error
translation.
"""

import asyncio
import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from chronograph.core.graph_store.sqlite_store import SQLiteGraphStore
from chronograph.models import Edge, EdgeType, EventType, GraphEvent, Node, NodeType
from chronograph.utils.exceptions import GraphStoreError, TransientStoreError

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def make_node(node_id: str = "node_a", user_id: str = "user-1", at: datetime = T0) -> Node:
    return Node(
        id=node_id,
        user_id=user_id,
        node_type=NodeType.GOAL,
        label=f"Goal {node_id}",
        created_at=at,
        updated_at=at,
        first_mentioned_at=at,
        last_discussed_at=at,
    )


def make_event(event_id: str, node_id: str | None = "node_a", at: datetime = T0) -> GraphEvent:
    return GraphEvent(
        id=event_id,
        user_id="user-1",
        event_type=EventType.NODE_CREATED,
        node_id=node_id,
        new_state={"id": node_id},
        created_at=at,
    )


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLiteStoreWrites:
    """Tests for the single write entry point."""

    async def test_write_node_and_event(self, store):
        """Test a node and its event land together."""
        node = make_node()
        await store.write(nodes=[node], events=[make_event("evt_1")])

        fetched = await store.get_node("node_a")
        assert fetched == node
        assert await store.count_events("user-1") == 1

    async def test_upsert_replaces_mutable_fields(self, store):
        """Test writing an existing id updates it in place."""
        node = make_node()
        await store.write(nodes=[node])
        renamed = node.model_copy(update={"label": "Renamed", "updated_at": T0 + timedelta(hours=1)})
        await store.write(nodes=[renamed])

        fetched = await store.get_node("node_a")
        assert fetched.label == "Renamed"
        assert fetched.created_at == T0
        assert await store.count_nodes("user-1") == 1

    async def test_write_is_atomic(self, store):
        """Test a failing event insert rolls back the state rows written before it."""
        await store.write(nodes=[make_node()], events=[make_event("evt_1")])

        with pytest.raises(GraphStoreError):
            # Duplicate event id violates the unique constraint after the node upsert
            await store.write(nodes=[make_node("node_b")], events=[make_event("evt_1", "node_b")])

        assert await store.get_node("node_b") is None
        assert await store.count_events("user-1") == 1

    async def test_store_usable_after_rollback(self, store):
        with pytest.raises(GraphStoreError):
            await store.write(events=[make_event("evt_x", node_id="node_missing")])

        await store.write(nodes=[make_node()], events=[make_event("evt_2")])
        assert await store.count_events() == 1

    async def test_read_waits_for_failing_write(self, store):
        """Test a read issued mid-transaction never returns rows that roll back."""
        inserting = asyncio.Event()
        release = asyncio.Event()

        async def failing_insert(event):
            inserting.set()
            await release.wait()
            raise sqlite3.IntegrityError("UNIQUE constraint failed: graph_events.id")

        store._insert_event = failing_insert
        write = asyncio.create_task(
            store.write(nodes=[make_node("node_b")], events=[make_event("evt_1", "node_b")])
        )
        await inserting.wait()
        read = asyncio.create_task(store.list_nodes("user-1"))
        await asyncio.sleep(0)
        release.set()

        with pytest.raises(GraphStoreError):
            await write
        assert await read == []
        assert await store.get_node("node_b") is None

    async def test_embedding_round_trip(self, store):
        node = make_node().model_copy(update={"embedding": [0.5, -1.25, 3.0]})
        await store.write(nodes=[node])

        fetched = await store.get_node("node_a")
        assert fetched.embedding == [0.5, -1.25, 3.0]


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLiteStoreAppendOnly:
    """Tests for history protection enforced by the schema."""

    async def test_events_cannot_be_updated(self, store):
        await store.write(nodes=[make_node()], events=[make_event("evt_1")])

        with pytest.raises(sqlite3.DatabaseError):
            await store.connection.execute(
                "UPDATE graph_events SET new_state = '{}' WHERE id = ?", ("evt_1",)
            )

        event = await store.get_event("evt_1")
        assert event.new_state == {"id": "node_a"}

    async def test_events_cannot_be_deleted(self, store):
        await store.write(nodes=[make_node()], events=[make_event("evt_1")])

        with pytest.raises(sqlite3.DatabaseError):
            await store.connection.execute("DELETE FROM graph_events")

        assert await store.count_events() == 1

    async def test_nodes_cannot_be_hard_deleted(self, store):
        await store.write(nodes=[make_node()])

        with pytest.raises(sqlite3.DatabaseError):
            await store.connection.execute("DELETE FROM nodes WHERE id = 'node_a'")

        assert await store.get_node("node_a") is not None


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLiteStoreReads:
    """Tests for filtered reads and ordering."""

    async def test_list_nodes_filters(self, store):
        active = make_node("node_a")
        deleted = make_node("node_b", at=T0 + timedelta(minutes=1)).model_copy(
            update={"deleted_at": T0 + timedelta(hours=2)}
        )
        foreign = make_node("node_c", user_id="user-2")
        await store.write(nodes=[active, deleted, foreign])

        all_nodes = await store.list_nodes("user-1")
        live_nodes = await store.list_nodes("user-1", include_deleted=False)

        assert [n.id for n in all_nodes] == ["node_a", "node_b"]
        assert [n.id for n in live_nodes] == ["node_a"]
        assert await store.count_nodes("user-1") == 1
        assert await store.count_nodes("user-1", include_deleted=True) == 2

    async def test_list_edges_by_node(self, store):
        nodes = [make_node("node_a"), make_node("node_b"), make_node("node_c")]
        edges = [
            Edge(
                id="edge_ab",
                user_id="user-1",
                edge_type=EdgeType.RELATES_TO,
                source_node_id="node_a",
                target_node_id="node_b",
                created_at=T0,
            ),
            Edge(
                id="edge_bc",
                user_id="user-1",
                edge_type=EdgeType.RELATES_TO,
                source_node_id="node_b",
                target_node_id="node_c",
                created_at=T0,
                valid_to=T0 + timedelta(hours=1),
            ),
        ]
        await store.write(nodes=nodes, edges=edges)

        touching_c = await store.list_edges("user-1", node_id="node_c")
        valid_touching_b = await store.list_edges("user-1", include_invalid=False, node_id="node_b")

        assert [e.id for e in touching_c] == ["edge_bc"]
        assert [e.id for e in valid_touching_b] == ["edge_ab"]
        assert await store.count_edges("user-1") == 1

    async def test_list_events_bounds_inclusive(self, store):
        await store.write(nodes=[make_node()])
        await store.write(
            events=[
                make_event(f"evt_{i}", at=T0 + timedelta(minutes=i)) for i in range(5)
            ]
        )

        window = await store.list_events(
            "user-1", start=T0 + timedelta(minutes=1), end=T0 + timedelta(minutes=3)
        )
        newest = await store.list_events("user-1", limit=2, newest_first=True)

        assert [e.id for e in window] == ["evt_1", "evt_2", "evt_3"]
        assert [e.id for e in newest] == ["evt_4", "evt_3"]

    async def test_same_timestamp_keeps_insert_order(self, store):
        await store.write(nodes=[make_node()])
        await store.write(events=[make_event("evt_b"), make_event("evt_a")])

        events = await store.list_events_for("user-1", node_id="node_a")

        assert [e.id for e in events] == ["evt_b", "evt_a"]

    async def test_missing_entities(self, store):
        assert await store.get_node("node_missing") is None
        assert await store.get_edge("edge_missing") is None
        assert await store.get_event("evt_missing") is None
        assert await store.get_nodes([]) == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestSQLiteStoreErrors:
    """Tests for sqlite error translation."""

    async def test_locked_database_is_transient(self, store):
        async def locked(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        store.connection.execute = locked

        with pytest.raises(TransientStoreError) as exc_info:
            await store.list_nodes("user-1")

        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    async def test_other_operational_errors_are_permanent(self, store):
        async def broken(*args, **kwargs):
            raise sqlite3.OperationalError("no such table: nodes")

        store.connection.execute = broken

        with pytest.raises(GraphStoreError):
            await store.get_node("node_a")

    async def test_in_memory_store(self):
        memory_store = SQLiteGraphStore(db_path=":memory:")
        await memory_store.initialize()
        try:
            await memory_store.write(nodes=[make_node()])
            assert await memory_store.count_nodes() == 1
        finally:
            await memory_store.close()
