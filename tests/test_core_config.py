"""Tests for ConfigManager using QSettings."""

import pytest

from harmonyctl.core.config import ALL_DATA_KEYS, KEY_SESSION, ConfigManager


class TestKeyValueStore:
    """Test the raw key/value API used by the stores."""

    def test_set_get_remove(self, config: ConfigManager) -> None:
        """Test a value can be stored, read and removed."""
        assert config.get_item(KEY_SESSION) is None
        config.set_item(KEY_SESSION, '{"token": "t"}')
        assert config.has_item(KEY_SESSION)
        assert config.get_item(KEY_SESSION) == '{"token": "t"}'

        config.remove_item(KEY_SESSION)
        assert not config.has_item(KEY_SESSION)

    def test_remove_items(self, config: ConfigManager) -> None:
        """Test several keys are removed together."""
        for key in ALL_DATA_KEYS:
            config.set_item(key, "x")
        config.remove_items(ALL_DATA_KEYS)
        assert not any(config.has_item(key) for key in ALL_DATA_KEYS)
        assert config.is_healthy()

    def test_remove_missing_is_noop(self, config: ConfigManager) -> None:
        """Test removing an absent key does nothing."""
        config.remove_item("never-set")
        assert config.get_item("never-set") is None


class TestPreferences:
    """Test typed preference getters and setters."""

    def test_defaults(self, config: ConfigManager) -> None:
        """Test defaults match the documented values."""
        assert config.get_default_view() == "activities"
        assert config.get_command_hold_time() == 100
        assert config.get_cache_duration() == 3600
        assert config.get_network_timeout() == 5000
        assert config.get_debug_logging() is False
        assert config.get_auto_retry() is True
        assert config.get_max_retries() == 3
        assert config.get_last_hub_id() is None

    def test_default_view(self, config: ConfigManager) -> None:
        """Test only known views are stored."""
        config.set_default_view("devices")
        assert config.get_default_view() == "devices"
        config.set_default_view("tiles")
        assert config.get_default_view() == "activities"

    @pytest.mark.parametrize(
        ("value", "expected"), [(1, 10), (250, 250), (99999, 5000)]
    )
    def test_hold_time_clamped(self, config: ConfigManager, value: int, expected: int) -> None:
        """Test hold time is clamped to 10-5000 ms."""
        config.set_command_hold_time(value)
        assert config.get_command_hold_time() == expected

    def test_cache_duration_clamped(self, config: ConfigManager) -> None:
        """Test cache duration is clamped to 0-86400 s."""
        config.set_cache_duration(-5)
        assert config.get_cache_duration() == 0
        config.set_cache_duration(100000)
        assert config.get_cache_duration() == 86400

    def test_network_timeout_clamped(self, config: ConfigManager) -> None:
        """Test network timeout is clamped to 1000-60000 ms."""
        config.set_network_timeout(10)
        assert config.get_network_timeout() == 1000
        config.set_network_timeout(120000)
        assert config.get_network_timeout() == 60000

    def test_max_retries_clamped(self, config: ConfigManager) -> None:
        """Test max retries is clamped to 1-4."""
        config.set_max_retries(0)
        assert config.get_max_retries() == 1
        config.set_max_retries(9)
        assert config.get_max_retries() == 4

    def test_attempts_include_first_try(self, config: ConfigManager) -> None:
        """Test attempts are the first try plus the retries."""
        assert config.get_max_attempts() == 4
        config.set_max_retries(4)
        assert config.get_max_attempts() == 5

    def test_auto_retry_off_means_one_attempt(self, config: ConfigManager) -> None:
        """Test disabling retries leaves a single attempt."""
        config.set_auto_retry(False)
        assert config.get_max_attempts() == 1

    def test_flags(self, config: ConfigManager) -> None:
        """Test boolean preferences persist."""
        config.set_debug_logging(True)
        assert config.get_debug_logging() is True

    def test_last_hub(self, config: ConfigManager) -> None:
        """Test the last hub id persists."""
        config.set_last_hub_id("hub-uuid-1")
        assert config.get_last_hub_id() == "hub-uuid-1"

    def test_clear(self, config: ConfigManager) -> None:
        """Test clear drops preferences and data."""
        config.set_max_retries(2)
        config.set_item(KEY_SESSION, "x")
        config.clear()
        assert config.get_max_retries() == 3
        assert config.get_item(KEY_SESSION) is None
