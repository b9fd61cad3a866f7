"""Configuration manager using QSettings for persistent storage."""

import logging
from collections.abc import Iterable

from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)

# Persisted data keys (JSON strings)
KEY_HUB_CACHE = "harmony_hub_cache"
KEY_SESSION = "harmony_session"
KEY_DATA_CACHE = "harmony_cache"
ALL_DATA_KEYS = (KEY_HUB_CACHE, KEY_SESSION, KEY_DATA_CACHE)

# Preferences
_KEY_DEFAULT_VIEW = "preferences/default_view"
_KEY_COMMAND_HOLD_TIME = "preferences/command_hold_time"
_KEY_CACHE_DURATION = "preferences/cache_duration"
_KEY_NETWORK_TIMEOUT = "preferences/network_timeout"
_KEY_DEBUG_LOGGING = "preferences/debug_logging"
_KEY_AUTO_RETRY = "preferences/auto_retry"
_KEY_MAX_RETRIES = "preferences/max_retries"
_KEY_LAST_HUB = "last_hub_id"

_VIEWS = ("activities", "devices")


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    Besides typed preferences, it exposes a small key/value API used by
    the session and cache stores. Each ``set_item``/``remove_item`` is a
    single-key write.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\HarmonyCTL\\HarmonyCTL
    - macOS: ~/Library/Preferences/com.HarmonyCTL.HarmonyCTL.plist
    - Linux: ~/.config/HarmonyCTL/HarmonyCTL.conf

    Example:
        config = ConfigManager()
        hold_ms = config.get_command_hold_time()
        config.set_item("harmony_session", "{...}")
    """

    def __init__(self, organization: str = "HarmonyCTL", application: str = "HarmonyCTL") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    # -- Key/value store -------------------------------------------------------

    def get_item(self, key: str) -> str | None:
        """Return the stored string for ``key``, or None if absent."""
        value = self._settings.value(key, None)
        if value is None:
            return None
        return str(value)

    def set_item(self, key: str, value: str) -> None:
        """Store a string value under ``key``."""
        self._settings.setValue(key, value)

    def remove_item(self, key: str) -> None:
        """Delete ``key`` (no-op if absent)."""
        self._settings.remove(key)

    def remove_items(self, keys: Iterable[str]) -> None:
        """Delete several keys and flush them together."""
        for key in keys:
            self._settings.remove(key)
        self.sync()

    def has_item(self, key: str) -> bool:
        """Return True if ``key`` is stored."""
        return self._settings.contains(key)

    def is_healthy(self) -> bool:
        """Return True if the backing store reports no access/format error."""
        return self._settings.status() == QSettings.Status.NoError

    # -- Preferences -----------------------------------------------------------

    def get_default_view(self) -> str:
        """Return the default view.

        Returns:
            One of "activities", "devices". Default "activities".
        """
        value = self._settings.value(_KEY_DEFAULT_VIEW, "activities", str)
        return str(value) if value in _VIEWS else "activities"

    def set_default_view(self, view: str) -> None:
        """Set the default view.

        Args:
            view: One of "activities", "devices".
        """
        self._settings.setValue(_KEY_DEFAULT_VIEW, view if view in _VIEWS else "activities")

    def get_command_hold_time(self) -> int:
        """Return the press/release hold time in milliseconds.

        Returns:
            Hold time in ms (default 100).
        """
        value = self._settings.value(_KEY_COMMAND_HOLD_TIME, 100, int)
        return max(10, min(5000, int(value)))  # type: ignore[arg-type]

    def set_command_hold_time(self, ms: int) -> None:
        """Set the press/release hold time.

        Args:
            ms: Hold time in milliseconds (10-5000).
        """
        self._settings.setValue(_KEY_COMMAND_HOLD_TIME, max(10, min(5000, ms)))

    def get_cache_duration(self) -> int:
        """Return how long cached hub data stays usable, in seconds.

        Returns:
            Duration in seconds (default 3600).
        """
        value = self._settings.value(_KEY_CACHE_DURATION, 3600, int)
        return max(0, min(86400, int(value)))  # type: ignore[arg-type]

    def set_cache_duration(self, seconds: int) -> None:
        """Set the cache duration.

        Args:
            seconds: Duration in seconds (0-86400).
        """
        self._settings.setValue(_KEY_CACHE_DURATION, max(0, min(86400, seconds)))

    def get_network_timeout(self) -> int:
        """Return the hub request timeout in milliseconds.

        Returns:
            Timeout in ms (default 5000).
        """
        value = self._settings.value(_KEY_NETWORK_TIMEOUT, 5000, int)
        return max(1000, min(60000, int(value)))  # type: ignore[arg-type]

    def set_network_timeout(self, ms: int) -> None:
        """Set the hub request timeout.

        Args:
            ms: Timeout in milliseconds (1000-60000).
        """
        self._settings.setValue(_KEY_NETWORK_TIMEOUT, max(1000, min(60000, ms)))

    def get_debug_logging(self) -> bool:
        """Return whether debug logging is enabled (default False)."""
        return bool(self._settings.value(_KEY_DEBUG_LOGGING, False, bool))

    def set_debug_logging(self, enabled: bool) -> None:
        """Enable or disable debug logging."""
        self._settings.setValue(_KEY_DEBUG_LOGGING, enabled)

    def get_auto_retry(self) -> bool:
        """Return whether failed commands are retried (default True)."""
        return bool(self._settings.value(_KEY_AUTO_RETRY, True, bool))

    def set_auto_retry(self, enabled: bool) -> None:
        """Enable or disable command retries."""
        self._settings.setValue(_KEY_AUTO_RETRY, enabled)

    def get_max_retries(self) -> int:
        """Return how often a failed command is retried.

        Returns:
            Retry count (default 3).
        """
        value = self._settings.value(_KEY_MAX_RETRIES, 3, int)
        return max(1, min(4, int(value)))  # type: ignore[arg-type]

    def set_max_retries(self, retries: int) -> None:
        """Set how often a failed command is retried.

        Args:
            retries: Retry count (1-4).
        """
        self._settings.setValue(_KEY_MAX_RETRIES, max(1, min(4, retries)))

    def get_max_attempts(self) -> int:
        """Return the first try plus retries, honoring auto_retry."""
        return 1 + self.get_max_retries() if self.get_auto_retry() else 1

    def get_last_hub_id(self) -> str | None:
        """Get the last connected hub ID.

        Returns:
            Hub ID string, or None if no last hub.
        """
        value = self._settings.value(_KEY_LAST_HUB, None, str)
        return str(value) if value else None

    def set_last_hub_id(self, hub_id: str) -> None:
        """Set the last connected hub ID.

        Args:
            hub_id: Hub ID to save.
        """
        self._settings.setValue(_KEY_LAST_HUB, hub_id)

    # -- General settings ------------------------------------------------------

    def clear(self) -> None:
        """Clear all settings (useful for testing or reset)."""
        self._settings.clear()

    def sync(self) -> None:
        """Force settings to be written to disk."""
        self._settings.sync()
