"""Cache store for the last-known hub configuration."""

import json
import logging

from harmonyctl.core.config import ALL_DATA_KEYS, KEY_HUB_CACHE, ConfigManager
from harmonyctl.core.errors import CacheOperationError
from harmonyctl.models.cached_data import CachedData

logger = logging.getLogger(__name__)


class CacheStore:
    """Persists CachedData snapshots under ``harmony_hub_cache``.

    ``clear()`` removes the hub cache, the session and the general cache
    namespace together.
    """

    def __init__(self, config: ConfigManager) -> None:
        """Initialize the store.

        Args:
            config: Backing key/value store.
        """
        self._config = config

    def save_hub_data(self, data: CachedData) -> None:
        """Persist a snapshot, replacing the previous one.

        Raises:
            CacheOperationError: If the snapshot cannot be written.
        """
        try:
            payload = json.dumps(data.to_dict())
        except (TypeError, ValueError) as e:
            raise CacheOperationError(f"Failed to serialize hub data: {e}") from e

        self._config.set_item(KEY_HUB_CACHE, payload)
        self._config.sync()
        if not self._config.is_healthy():
            raise CacheOperationError("Failed to write hub data to settings")
        logger.info("Cached hub data for %s", data.hub.display_name)

    def load_hub_data(self, max_age: float | None = None) -> CachedData | None:
        """Load the stored snapshot.

        Args:
            max_age: Maximum snapshot age in seconds; None disables the check.

        Returns:
            The snapshot, or None if absent, unreadable, or too old.
        """
        raw = self._config.get_item(KEY_HUB_CACHE)
        if not raw:
            logger.debug("No cached hub data found")
            return None

        try:
            data = CachedData.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable hub cache: %s", e)
            return None

        if max_age is not None and data.age_seconds() > max_age:
            logger.info("Cached hub data for %s is stale", data.hub.display_name)
            return None
        return data

    def clear(self) -> None:
        """Delete every persisted cache and session key.

        Raises:
            CacheOperationError: If the store reports a write failure.
        """
        self._config.remove_items(ALL_DATA_KEYS)
        if not self._config.is_healthy():
            raise CacheOperationError("Failed to clear cached data")
        logger.info("Cache cleared")
