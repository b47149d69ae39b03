"""Utility modules for ChronoGraph."""

from chronograph.utils.exceptions import (
    AuthorizationError,
    ChronoGraphError,
    ConfigurationError,
    GraphStoreError,
    NotFoundError,
    StoreError,
    TransientStoreError,
    ValidationError,
)
from chronograph.utils.id_generator import (
    generate_edge_id,
    generate_event_id,
    generate_node_id,
)
from chronograph.utils.logger import get_logger, setup_logging
from chronograph.utils.timestamps import ensure_utc, from_db, hours_between, to_db, utc_now
from chronograph.utils.validation import format_errors, parse_input, require_user_id

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_node_id",
    "generate_edge_id",
    "generate_event_id",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "to_db",
    "from_db",
    "hours_between",
    # Validation
    "parse_input",
    "format_errors",
    "require_user_id",
    # Exceptions
    "ChronoGraphError",
    "StoreError",
    "GraphStoreError",
    "TransientStoreError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "ConfigurationError",
]
