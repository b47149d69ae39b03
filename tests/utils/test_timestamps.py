"""Tests for timestamp helpers and input validation helpers."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from chronograph.models.node import NodeCreate
from chronograph.utils.exceptions import ValidationError
from chronograph.utils.timestamps import ensure_utc, from_db, hours_between, to_db
from chronograph.utils.validation import parse_input, require_user_id


class TestTimestamps:
    def test_naive_is_read_as_utc(self):
        naive = datetime(2025, 1, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def test_offset_is_converted(self):
        plus_two = datetime(2025, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(plus_two) == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def test_db_round_trip_keeps_microseconds(self):
        value = datetime(2025, 1, 1, 12, 0, 0, 123456, tzinfo=UTC)
        assert from_db(to_db(value)) == value

    def test_db_strings_sort_chronologically(self):
        earlier = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)
        later = earlier + timedelta(microseconds=1)
        assert to_db(earlier) < to_db(later)

    def test_none_passes_through(self):
        assert to_db(None) is None
        assert from_db(None) is None

    def test_hours_between(self):
        start = datetime(2025, 1, 1, tzinfo=UTC)
        assert hours_between(start, start + timedelta(hours=36)) == 36.0


class TestValidationHelpers:
    def test_parse_input_from_dict(self):
        payload = parse_input(NodeCreate, {"node_type": "goal", "label": "  Run  "})
        assert payload.label == "Run"

    def test_parse_input_reports_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_input(NodeCreate, {"node_type": "planet"})

        errors = exc_info.value.context["errors"]
        assert any(error.startswith("node_type") for error in errors)
        assert any(error.startswith("label") for error in errors)

    def test_parse_input_rejects_none(self):
        with pytest.raises(ValidationError):
            parse_input(NodeCreate, None)

    @pytest.mark.parametrize("user_id", ["", "   ", None])
    def test_require_user_id(self, user_id):
        with pytest.raises(ValidationError):
            require_user_id(user_id)
