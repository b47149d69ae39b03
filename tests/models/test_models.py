"""
Tests for data models.

Tests cover:
1. Node creation and typed properties
2. Edge validation
3. Event immutability and state diffs
4. Timeline range validation
"""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from chronograph.models import (
    Edge,
    EdgeType,
    EventType,
    GoalProperties,
    GraphEvent,
    Node,
    NodeCreate,
    NodeStatus,
    NodeType,
    NodeUpdate,
    Session,
    SkillLevel,
    TimeRange,
    diff_states,
    validate_properties,
)

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def make_node(**overrides) -> Node:
    data = {
        "id": "node_abc",
        "user_id": "user-1",
        "node_type": NodeType.GOAL,
        "label": "Run a 5K",
        "created_at": T0,
        "updated_at": T0,
        "first_mentioned_at": T0,
        "last_discussed_at": T0,
    }
    data.update(overrides)
    return Node(**data)


class TestNodeModel:
    """Tests for Node model."""

    def test_defaults(self):
        node = make_node()

        assert node.status == NodeStatus.DRAFT_VERBAL
        assert node.properties == {}
        assert node.embedding is None
        assert node.is_deleted is False

    def test_soft_deleted(self):
        node = make_node(deleted_at=T0 + timedelta(hours=1))
        assert node.is_deleted is True

    def test_to_state_is_json_safe_and_excludes_embedding(self):
        node = make_node(embedding=[0.1, 0.2])
        state = node.to_state()

        assert "embedding" not in state
        assert state["status"] == "draft_verbal"
        assert state["created_at"].startswith("2025-03-01T09:00:00")
        assert Node.model_validate(state).label == "Run a 5K"

    def test_typed_properties(self):
        node = make_node(properties={"category": "fitness", "progress": 0.25})
        props = node.typed_properties()

        assert isinstance(props, GoalProperties)
        assert props.category == "fitness"
        assert props.progress == 0.25


class TestNodeInputModels:
    """Tests for create/update input models."""

    def test_create_strips_label(self):
        payload = NodeCreate(node_type="skill", label="  Public speaking ")
        assert payload.label == "Public speaking"
        assert payload.status == NodeStatus.DRAFT_VERBAL

    def test_create_rejects_blank_label(self):
        with pytest.raises(PydanticValidationError):
            NodeCreate(node_type="goal", label="   ")

    def test_create_rejects_unknown_type(self):
        with pytest.raises(PydanticValidationError):
            NodeCreate(node_type="planet", label="Mars")

    def test_update_forbids_status(self):
        with pytest.raises(PydanticValidationError):
            NodeUpdate.model_validate({"status": "curated"})


class TestPropertySchemas:
    """Tests for per-type property validation."""

    def test_goal_progress_bounds(self):
        with pytest.raises(PydanticValidationError):
            validate_properties(NodeType.GOAL, {"progress": 1.5})

    def test_skill_level_normalized(self):
        props = validate_properties(NodeType.SKILL, {"level": "advanced"})
        assert props == {"level": SkillLevel.ADVANCED.value}

    def test_unknown_keys_kept(self):
        props = validate_properties(NodeType.INSIGHT, {"source": "session", "mood": "calm"})
        assert props == {"source": "session", "mood": "calm"}

    def test_unset_fields_dropped(self):
        assert validate_properties(NodeType.EMOTION, {}) == {}


class TestEdgeModel:
    def test_negative_weight_rejected(self):
        with pytest.raises(PydanticValidationError):
            Edge(
                id="edge_1",
                user_id="user-1",
                edge_type=EdgeType.WORKS_ON,
                source_node_id="node_a",
                target_node_id="node_b",
                weight=-1,
            )

    def test_validity(self):
        edge = Edge(
            id="edge_1",
            user_id="user-1",
            edge_type=EdgeType.RELATES_TO,
            source_node_id="node_a",
            target_node_id="node_b",
        )
        assert edge.is_valid
        assert edge.weight == 1.0
        assert not edge.model_copy(update={"valid_to": T0}).is_valid


class TestEventModel:
    """Tests for GraphEvent and diffs."""

    def test_event_is_frozen(self):
        event = GraphEvent(
            id="evt_1",
            user_id="user-1",
            event_type=EventType.NODE_CREATED,
            node_id="node_a",
            new_state={"label": "x"},
        )
        with pytest.raises(PydanticValidationError):
            event.new_state = {}

    def test_diff_states_reports_changes(self):
        previous = {"label": "Run a 5K", "status": "draft_verbal", "updated_at": "a"}
        new = {"label": "Run a 10K", "status": "draft_verbal", "updated_at": "b"}

        changes = diff_states(previous, new)

        assert list(changes) == ["label"]
        assert changes["label"].old == "Run a 5K"
        assert changes["label"].new == "Run a 10K"

    def test_diff_from_nothing(self):
        changes = diff_states(None, {"label": "New"})
        assert changes["label"].old is None
        assert changes["label"].new == "New"


class TestTimelineModels:
    def test_time_range_order(self):
        with pytest.raises(PydanticValidationError):
            TimeRange(start=T0, end=T0 - timedelta(seconds=1))

    def test_zero_length_range_allowed(self):
        assert TimeRange(start=T0, end=T0).start == T0

    def test_session_from_node(self):
        node = make_node(node_type=NodeType.SESSION, label="Morning check-in")
        session = Session.from_node(node)

        assert session.id == node.id
        assert session.created_at == T0

    def test_session_from_wrong_type(self):
        with pytest.raises(ValueError):
            Session.from_node(make_node())
