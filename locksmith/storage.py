"""
Locksmith Secret Storage.

Durable storage backends for secret records. The rotation engine only talks
to SecretStoreInterface; cloud secret managers plug in as further
implementations of the same interface.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from locksmith.errors import ConfigurationError, SecretNotFoundError, StoreError
from locksmith.keys import Secret

logger = logging.getLogger(__name__)


class SecretStoreInterface(ABC):
    """Abstract interface for secret storage backends."""

    @abstractmethod
    def setup(self, config: Dict[str, str]) -> None:
        """Configure the provider. Raises ConfigurationError."""
        pass

    @abstractmethod
    def store(self, secret_id: str, value: bytes, created_at: datetime) -> None:
        """Durably persist one secret record. Raises StoreError."""
        pass

    @abstractmethod
    def get(self, secret_id: str) -> Secret:
        """Get a secret by ID. Raises SecretNotFoundError."""
        pass

    @abstractmethod
    def get_latest(self) -> Secret:
        """Get the most recently created secret. Raises SecretNotFoundError."""
        pass

    @abstractmethod
    def get_all(self) -> List[Secret]:
        """List every retained secret. Raises StoreError."""
        pass


def _latest(secrets: List[Secret]) -> Secret:
    if not secrets:
        raise SecretNotFoundError("No secrets stored")
    return max(secrets, key=lambda s: s.created_at)


class MemorySecretStore(SecretStoreInterface):
    """
    In-memory secret store for testing and single-process deployments.

    Example:
        >>> store = MemorySecretStore()
        >>> store.store("a1b2c3d4e5f6", b"...", datetime.now(timezone.utc))
        >>> store.get_latest().id
        'a1b2c3d4e5f6'
    """

    def __init__(self):
        self._records: Dict[str, Secret] = {}
        self._lock = threading.Lock()

    def setup(self, config: Dict[str, str]) -> None:
        """Nothing to configure."""
        pass

    def store(self, secret_id: str, value: bytes, created_at: datetime) -> None:
        with self._lock:
            self._records[secret_id] = Secret(id=secret_id, value=bytes(value), created_at=created_at)
        logger.debug(f"Stored secret {secret_id} in memory")

    def get(self, secret_id: str) -> Secret:
        with self._lock:
            secret = self._records.get(secret_id)
        if secret is None:
            raise SecretNotFoundError(f"Secret {secret_id} not found")
        return secret

    def get_latest(self) -> Secret:
        return _latest(self.get_all())

    def get_all(self) -> List[Secret]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class FileSecretStore(SecretStoreInterface):
    """
    JSON file backed secret store.

    File format:
    {
        "secrets": [
            {"id": "a1b2c3d4e5f6", "value": "<base64>", "created_at": "2024-01-01T00:00:00+00:00"}
        ]
    }

    Writes go to a temporary file in the same directory which then replaces
    the original, so readers never see a half-written document.

    Example:
        >>> store = FileSecretStore("/var/lib/locksmith/secrets.json")
        >>> engine = RotationManager(policy, store, RandomSecretGenerator())
    """

    def __init__(self, path: Optional[str] = None):
        self._path: Optional[Path] = Path(path) if path else None
        self._lock = threading.Lock()

    def setup(self, config: Dict[str, str]) -> None:
        path = config.get("path")
        if not path:
            raise ConfigurationError("path is required for the file secret store")
        self._path = Path(path)

    @property
    def path(self) -> Path:
        if self._path is None:
            raise ConfigurationError("File secret store is not configured; call setup() first")
        return self._path

    def _read(self) -> List[Secret]:
        path = self.path
        if not path.exists():
            return []
        try:
            with open(path, "r") as f:
                data = json.load(f)
            return [Secret.from_record(item) for item in data.get("secrets", [])]
        except (OSError, ValueError, AttributeError) as e:
            raise StoreError(f"Failed to read secrets from {path}: {e}") from e

    def _write(self, secrets: List[Secret]) -> None:
        path = self.path
        payload = {"secrets": [s.to_record() for s in secrets]}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(payload, f, indent=2)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StoreError(f"Failed to write secrets to {path}: {e}") from e

    def store(self, secret_id: str, value: bytes, created_at: datetime) -> None:
        with self._lock:
            secrets = [s for s in self._read() if s.id != secret_id]
            secrets.append(Secret(id=secret_id, value=bytes(value), created_at=created_at))
            self._write(secrets)
        logger.info(f"Stored secret {secret_id} in {self.path}")

    def get(self, secret_id: str) -> Secret:
        with self._lock:
            secrets = self._read()
        for secret in secrets:
            if secret.id == secret_id:
                return secret
        raise SecretNotFoundError(f"Secret {secret_id} not found in {self.path}")

    def get_latest(self) -> Secret:
        return _latest(self.get_all())

    def get_all(self) -> List[Secret]:
        with self._lock:
            return self._read()


class RedisSecretStore(SecretStoreInterface):
    """
    Redis-backed secret store for deployments sharing one store.

    Each record lives under its own key; a sorted set scored by creation
    time indexes them.

    Example:
        >>> import redis
        >>> client = redis.Redis(host='localhost', port=6379)
        >>> store = RedisSecretStore(client)
    """

    def __init__(self, redis_client, key_prefix: str = "locksmith:secret:"):
        self._redis = redis_client
        self._prefix = key_prefix

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}index"

    def _key(self, secret_id: str) -> str:
        """Generate prefixed key."""
        return f"{self._prefix}{secret_id}"

    def setup(self, config: Dict[str, str]) -> None:
        if self._redis is None:
            raise ConfigurationError("A redis client is required for the redis secret store")
        prefix = config.get("key_prefix")
        if prefix:
            self._prefix = prefix

    def store(self, secret_id: str, value: bytes, created_at: datetime) -> None:
        record = Secret(id=secret_id, value=bytes(value), created_at=created_at).to_record()
        try:
            self._redis.set(self._key(secret_id), json.dumps(record))
            self._redis.zadd(self._index_key, {secret_id: created_at.timestamp()})
            logger.info(f"Stored secret {secret_id} in redis")
        except Exception as e:
            logger.error(f"Redis store error: {e}")
            raise StoreError(f"Failed to store secret {secret_id} in redis: {e}") from e

    def _load(self, secret_id: str) -> Optional[Secret]:
        data = self._redis.get(self._key(secret_id))
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return Secret.from_record(json.loads(data))

    def get(self, secret_id: str) -> Secret:
        try:
            secret = self._load(secret_id)
        except Exception as e:
            raise StoreError(f"Failed to read secret {secret_id} from redis: {e}") from e
        if secret is None:
            raise SecretNotFoundError(f"Secret {secret_id} not found in redis")
        return secret

    def get_latest(self) -> Secret:
        try:
            ids = self._redis.zrevrange(self._index_key, 0, 0)
        except Exception as e:
            raise StoreError(f"Failed to read redis index: {e}") from e
        if not ids:
            raise SecretNotFoundError("No secrets stored in redis")
        latest_id = ids[0].decode() if isinstance(ids[0], bytes) else ids[0]
        return self.get(latest_id)

    def get_all(self) -> List[Secret]:
        try:
            ids = self._redis.zrevrange(self._index_key, 0, -1)
            secrets = []
            for raw_id in ids:
                secret_id = raw_id.decode() if isinstance(raw_id, bytes) else raw_id
                secret = self._load(secret_id)
                if secret is not None:
                    secrets.append(secret)
                else:
                    logger.warning(f"Redis index references missing secret {secret_id}")
            return secrets
        except Exception as e:
            logger.error(f"Redis list error: {e}")
            raise StoreError(f"Failed to list secrets from redis: {e}") from e
