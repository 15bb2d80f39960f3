"""Unit tests for preference stores."""

from __future__ import annotations

from recovery.storage import InMemoryPreferences, RedisPreferences


class _FakeRedis:
    """Minimal sync Redis stub."""

    def __init__(self) -> None:
        self.values: dict[str, str | bytes] = {}

    def get(self, key: str) -> str | bytes | None:
        """Return stored value for key."""
        return self.values.get(key)

    def set(self, key: str, value: str) -> bool:
        """Store value."""
        self.values[key] = value
        return True


def test_in_memory_preferences_round_trip() -> None:
    """Missing keys are absent; stored integers come back unchanged."""
    store = InMemoryPreferences()
    assert store.get_long("last_no_code_time") is None
    store.put_long("last_no_code_time", 1_700_000_000_000)
    assert store.get_long("last_no_code_time") == 1_700_000_000_000


def test_redis_preferences_prefix_keys_and_store_decimal_strings() -> None:
    """Values are namespaced and kept as decimal strings."""
    redis_client = _FakeRedis()
    store = RedisPreferences(redis_client, prefix="otp_pref:")  # type: ignore[arg-type]

    store.put_long("last_no_code_time", 42)

    assert redis_client.values == {"otp_pref:last_no_code_time": "42"}
    assert store.get_long("last_no_code_time") == 42
    assert store.get_long("other") is None


def test_redis_preferences_decode_bytes_and_ignore_garbage() -> None:
    """Byte values are decoded; unparsable values read as absent."""
    redis_client = _FakeRedis()
    redis_client.values["recovery:a"] = b"17"
    redis_client.values["recovery:b"] = "not-a-number"
    store = RedisPreferences(redis_client)  # type: ignore[arg-type]

    assert store.get_long("a") == 17
    assert store.get_long("b") is None
