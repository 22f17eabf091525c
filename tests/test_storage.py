"""
Unit tests for secret storage backends.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from locksmith import (
    ConfigurationError,
    FileSecretStore,
    MemorySecretStore,
    RedisSecretStore,
    SecretNotFoundError,
    StoreError,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeRedis:
    """Just enough of the redis-py client for RedisSecretStore."""

    def __init__(self):
        self.values = {}
        self.zsets = {}
        self.down = False

    def _check(self):
        if self.down:
            raise ConnectionError("redis unavailable")

    def set(self, key, value):
        self._check()
        self.values[key] = value.encode() if isinstance(value, str) else value

    def get(self, key):
        self._check()
        return self.values.get(key)

    def zadd(self, key, mapping):
        self._check()
        self.zsets.setdefault(key, {}).update(mapping)

    def zrevrange(self, key, start, end):
        self._check()
        members = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1], reverse=True)
        ids = [m.encode() for m, _ in members]
        return ids[start:] if end == -1 else ids[start : end + 1]


@pytest.fixture(params=["memory", "file", "redis"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemorySecretStore()
    if request.param == "file":
        return FileSecretStore(str(tmp_path / "secrets.json"))
    return RedisSecretStore(FakeRedis())


class TestStoreContract:
    """Behaviour every bundled store shares."""

    def test_empty_store(self, any_store):
        assert any_store.get_all() == []
        with pytest.raises(SecretNotFoundError):
            any_store.get_latest()

    def test_store_and_get(self, any_store):
        any_store.store("aaaaaaaaaaaa", b"a" * 32, T0)
        secret = any_store.get("aaaaaaaaaaaa")
        assert secret.value == b"a" * 32
        assert secret.created_at == T0
        assert secret.active is False

    def test_get_missing(self, any_store):
        with pytest.raises(SecretNotFoundError):
            any_store.get("missing")

    def test_latest_is_newest_by_created_at(self, any_store):
        any_store.store("newer0000000", b"n" * 32, T0 + timedelta(hours=1))
        any_store.store("older0000000", b"o" * 32, T0)
        assert any_store.get_latest().id == "newer0000000"

    def test_get_all_returns_every_version(self, any_store):
        for i in range(3):
            any_store.store(f"id{i:010d}", bytes([i]) * 32, T0 + timedelta(minutes=i))
        assert {s.id for s in any_store.get_all()} == {f"id{i:010d}" for i in range(3)}

    def test_store_is_idempotent(self, any_store):
        any_store.store("aaaaaaaaaaaa", b"a" * 32, T0)
        any_store.store("aaaaaaaaaaaa", b"a" * 32, T0)
        assert len(any_store.get_all()) == 1


class TestFileSecretStore:
    """Tests specific to FileSecretStore."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "secrets.json"
        FileSecretStore(str(path)).store("aaaaaaaaaaaa", b"a" * 32, T0)
        assert FileSecretStore(str(path)).get_latest().value == b"a" * 32

    def test_record_layout(self, tmp_path):
        path = tmp_path / "secrets.json"
        FileSecretStore(str(path)).store("aaaaaaaaaaaa", b"a" * 32, T0)
        data = json.loads(path.read_text())
        assert data["secrets"][0]["id"] == "aaaaaaaaaaaa"
        assert data["secrets"][0]["created_at"] == T0.isoformat()
        assert set(data["secrets"][0]) == {"id", "value", "created_at"}

    def test_setup_requires_path(self):
        store = FileSecretStore()
        with pytest.raises(ConfigurationError):
            store.setup({})
        with pytest.raises(ConfigurationError):
            store.get_all()

    def test_setup_sets_path(self, tmp_path):
        store = FileSecretStore()
        store.setup({"path": str(tmp_path / "nested" / "s.json")})
        store.store("aaaaaaaaaaaa", b"a" * 32, T0)
        assert (tmp_path / "nested" / "s.json").exists()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("{not json")
        with pytest.raises(StoreError):
            FileSecretStore(str(path)).get_all()


class TestRedisSecretStore:
    """Tests specific to RedisSecretStore."""

    def test_connection_failure_is_store_error(self):
        client = FakeRedis()
        client.down = True
        store = RedisSecretStore(client)
        with pytest.raises(StoreError):
            store.store("aaaaaaaaaaaa", b"a" * 32, T0)
        with pytest.raises(StoreError):
            store.get_all()

    def test_key_prefix_from_setup(self):
        client = FakeRedis()
        store = RedisSecretStore(client)
        store.setup({"key_prefix": "app:jwt:"})
        store.store("aaaaaaaaaaaa", b"a" * 32, T0)
        assert "app:jwt:aaaaaaaaaaaa" in client.values
        assert "app:jwt:index" in client.zsets

    def test_setup_requires_client(self):
        with pytest.raises(ConfigurationError):
            RedisSecretStore(None).setup({})
