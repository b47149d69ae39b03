"""
Factory for creating graph store backends.
"""

from chronograph.config import Config
from chronograph.core.graph_store.base import GraphStore
from chronograph.core.graph_store.sqlite_store import SQLiteGraphStore
from chronograph.utils.exceptions import ConfigurationError


class GraphStoreFactory:
    """Factory for creating graph store backends from configuration."""

    @staticmethod
    def create(config: Config) -> GraphStore:
        """
        Create graph store from configuration.

        Args:
            config: Main configuration object

        Returns:
            Graph store instance

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.store.backend == "sqlite":
            return SQLiteGraphStore(db_path=config.store.db_path)
        else:
            raise ConfigurationError(
                f"Unsupported graph backend: {config.store.backend}",
                context={"backend": config.store.backend},
            )
