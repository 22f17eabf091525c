"""
Shared pytest fixtures for Locksmith tests.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from locksmith import (
    JWTManager,
    MemorySecretStore,
    RandomSecretGenerator,
    RotationManager,
    RotationPolicy,
)
from locksmith.notifiers import NotifierInterface


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self._now += timedelta(**kwargs)
            return self._now


class RecordingNotifier(NotifierInterface):
    """Collects rotation and error events for assertions."""

    def __init__(self):
        self.rotations = []
        self.errors = []
        self.rotated = threading.Event()

    def notify_rotation(self, secret):
        self.rotations.append(secret)
        self.rotated.set()

    def notify_error(self, error):
        self.errors.append(error)


class FailingStore(MemorySecretStore):
    """Memory store whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False
        self.fail_reads = False

    def store(self, secret_id, value, created_at):
        if self.fail_writes:
            raise TimeoutError("store write timed out")
        super().store(secret_id, value, created_at)

    def get_all(self):
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        return super().get_all()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> RotationPolicy:
    """24h rotation, 48h grace."""
    return RotationPolicy(rotation_interval=timedelta(hours=24), grace_period=timedelta(hours=48))


@pytest.fixture
def store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def generator() -> RandomSecretGenerator:
    return RandomSecretGenerator(64)


@pytest.fixture
def engine(policy, store, generator, notifier, clock):
    """An initialized rotation engine on a fake clock."""
    manager = RotationManager(policy, store, generator, notifier=notifier, clock=clock)
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def jwt_manager(engine) -> JWTManager:
    return JWTManager(engine)


@pytest.fixture
def sample_claims() -> dict:
    """Sample claim set for signing tests."""
    return {
        "sub": "user-42",
        "role": "admin",
        "scope": ["read", "write"],
    }
