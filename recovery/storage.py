"""Key-value preference stores for persisted recovery state."""

from __future__ import annotations

from typing import Protocol

from redis import Redis


class PreferenceStore(Protocol):
    """Contract for synchronous integer preference storage."""

    def get_long(self, key: str) -> int | None:
        """Return the stored integer or None when absent."""

    def put_long(self, key: str, value: int) -> None:
        """Store an integer under key."""


class InMemoryPreferences:
    """Process-local store, lost on restart."""

    def __init__(self, values: dict[str, int] | None = None) -> None:
        self._values: dict[str, int] = dict(values or {})

    def get_long(self, key: str) -> int | None:
        return self._values.get(key)

    def put_long(self, key: str, value: int) -> None:
        self._values[key] = int(value)


class RedisPreferences:
    """Redis-backed store; values are kept as decimal strings."""

    def __init__(self, redis_client: Redis, prefix: str = "recovery:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def get_long(self, key: str) -> int | None:
        """Read an integer, treating unparsable values as absent."""
        raw_value = self._redis.get(self._key(key))
        if raw_value is None:
            return None
        if isinstance(raw_value, bytes):
            raw_value = raw_value.decode("utf-8")
        try:
            return int(raw_value)
        except ValueError:
            return None

    def put_long(self, key: str, value: int) -> None:
        self._redis.set(self._key(key), str(int(value)))

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"
