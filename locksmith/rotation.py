"""
Locksmith Rotation Engine.

Owns the working set of secrets (one active, a list of previous ones),
rotates it on demand or on a schedule, and evicts retired secrets once
their grace period has passed.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional

from locksmith.errors import ConfigurationError, GenerationError, LocksmithError, StoreError
from locksmith.keys import RotationPolicy, Secret, SecretGenerator, new_secret
from locksmith.lock import ReadWriteLock
from locksmith.metrics import RotationMetrics
from locksmith.notifiers import NotifierInterface
from locksmith.storage import SecretStoreInterface

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ROTATING = "rotating"


class RotationManager:
    """
    Generic secret rotation engine.

    Rotation generates a secret, persists it, and only then promotes it to
    active under the write lock. The previous active secret moves to the
    front of the previous list, and previous secrets created longer ago
    than the grace period are dropped.

    Example:
        >>> engine = RotationManager(
        ...     RotationPolicy(timedelta(hours=24), timedelta(hours=48)),
        ...     store=MemorySecretStore(),
        ...     generator=RandomSecretGenerator(64),
        ...     notifier=LoggingNotifier(),
        ... )
        >>> engine.initialize()
        >>> secret = engine.rotate()
        >>> engine.start_auto_rotation()
    """

    def __init__(
        self,
        policy: RotationPolicy,
        store: SecretStoreInterface,
        generator: SecretGenerator,
        notifier: Optional[NotifierInterface] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[RotationMetrics] = None,
    ):
        """
        Args:
            policy: Rotation interval and grace period.
            store: Durable store that new secrets are written to.
            generator: Source of new secret values.
            notifier: Optional sink for rotation and error events.
            clock: Returns the current UTC time. Tests pass a fake clock.
            metrics: Optional metrics collector.
        """
        self.policy = policy
        self._store = store
        self._generator = generator
        self._notifier = notifier
        self._clock = clock or utc_now
        self._metrics = metrics

        self._lock = ReadWriteLock()
        self._rotation_mutex = threading.Lock()
        self._active: Optional[Secret] = None
        self._previous: List[Secret] = []
        self._state = EngineState.UNINITIALIZED

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="locksmith-notify")
        self._auto_stop = threading.Event()
        self._auto_thread: Optional[threading.Thread] = None
        self._auto_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Reconstruct the working set from the store.

        The newest stored secret by creation time becomes active and the rest
        become previous. With an empty or unreadable store, one rotation runs
        immediately to produce the first secret.

        Raises:
            GenerationError: If the initial secret could not be generated.
            StoreError: If the initial secret could not be persisted.
        """
        with self._rotation_mutex:
            if self._state != EngineState.UNINITIALIZED:
                logger.debug("Rotation engine already initialized")
                return

            try:
                stored = self._store.get_all()
            except Exception as e:
                logger.warning(f"Could not load secrets from store, generating a new one: {e}")
                stored = []

            if stored:
                ordered = sorted(stored, key=lambda s: s.created_at, reverse=True)
                with self._lock.write_locked():
                    self._active = replace(ordered[0], active=True)
                    self._previous = [replace(s, active=False) for s in ordered[1:]]
                    evicted = self._evict_expired()
                    self._state = EngineState.READY
                if self._metrics:
                    self._metrics.record_evictions(evicted)
                    self._metrics.set_previous_secrets(len(self._previous))
                logger.info(
                    f"Loaded {len(stored)} secrets from store; active secret {self._active.id}"
                )
                return

            try:
                secret = self._timed_generate_and_store()
            except LocksmithError as e:
                if self._metrics:
                    self._metrics.record_rotation(success=False)
                self._report_error(e)
                raise
            self._promote(secret)
            if self._metrics:
                self._metrics.record_rotation(success=True)
            logger.info(f"Generated initial secret {secret.id}")
            self._dispatch_rotation(secret)

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def _generate_and_store(self) -> Secret:
        try:
            value = self._generator.generate()
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Failed to generate secret value: {e}") from e
        secret = new_secret(value, created_at=self._clock(), active=True)
        try:
            self._store.store(secret.id, secret.value, secret.created_at)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to store new secret: {e}") from e
        return secret

    def _timed_generate_and_store(self) -> Secret:
        if self._metrics:
            with self._metrics.rotation_timer():
                return self._generate_and_store()
        return self._generate_and_store()

    def _promote(self, secret: Secret) -> None:
        with self._lock.write_locked():
            if self._active is not None:
                self._previous.insert(0, replace(self._active, active=False))
            self._active = secret
            evicted = self._evict_expired()
            self._state = EngineState.READY
        if self._metrics:
            self._metrics.record_evictions(evicted)
            self._metrics.set_previous_secrets(len(self._previous))

    def rotate(self) -> Secret:
        """
        Rotate to a freshly generated secret.

        Returns as soon as the new secret is active. The rotation event is
        delivered to the notifier in the background.

        Returns:
            The new active Secret.

        Raises:
            GenerationError: If the generator failed.
            StoreError: If the new secret could not be persisted. The working
                set is left exactly as it was.
        """
        with self._rotation_mutex:
            previous_state = self._state
            self._state = EngineState.ROTATING
            try:
                secret = self._timed_generate_and_store()
            except LocksmithError as e:
                self._state = previous_state
                logger.error(f"Secret rotation failed: {e}")
                if self._metrics:
                    self._metrics.record_rotation(success=False)
                self._report_error(e)
                raise

            self._promote(secret)

        logger.info(f"Rotated to secret {secret.id}")
        if self._metrics:
            self._metrics.record_rotation(success=True)
        self._dispatch_rotation(secret)
        return secret

    # ------------------------------------------------------------------
    # Grace period
    # ------------------------------------------------------------------

    def _cutoff(self) -> Optional[datetime]:
        if not self.policy.evicts:
            return None
        return self._clock() - self.policy.grace_period

    def _evict_expired(self) -> int:
        # Caller holds the write lock.
        cutoff = self._cutoff()
        if cutoff is None:
            return 0
        kept = [s for s in self._previous if s.created_at >= cutoff]
        evicted = len(self._previous) - len(kept)
        if evicted:
            logger.info(f"Evicted {evicted} secrets past their grace period")
        self._previous = kept
        return evicted

    def cleanup(self) -> int:
        """
        Drop previous secrets created before now minus the grace period.

        Returns:
            The number of secrets evicted.
        """
        with self._lock.write_locked():
            evicted = self._evict_expired()
            remaining = len(self._previous)
        if self._metrics:
            self._metrics.record_evictions(evicted)
            self._metrics.set_previous_secrets(remaining)
        return evicted

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def get_secrets(self) -> List[Secret]:
        """
        Snapshot of the working set: active first, then previous secrets in
        retirement order. Previous secrets already past their grace period
        are left out even if no cleanup pass has evicted them yet.
        """
        with self._lock.read_locked():
            active = self._active
            previous = list(self._previous)
        cutoff = self._cutoff()
        if cutoff is not None:
            previous = [s for s in previous if s.created_at >= cutoff]
        secrets = [active] if active is not None else []
        secrets.extend(previous)
        return secrets

    @property
    def active_secret(self) -> Optional[Secret]:
        with self._lock.read_locked():
            return self._active

    @property
    def state(self) -> EngineState:
        return self._state

    def now(self) -> datetime:
        """Current time according to the engine's clock."""
        return self._clock()

    # ------------------------------------------------------------------
    # Periodic rotation
    # ------------------------------------------------------------------

    def start_auto_rotation(self) -> None:
        """
        Rotate once per policy interval in a background thread.

        Raises:
            ConfigurationError: If the rotation interval is not positive.
        """
        if not self.policy.periodic:
            raise ConfigurationError("Rotation interval must be greater than zero")

        with self._auto_lock:
            if self._auto_thread is not None and self._auto_thread.is_alive():
                logger.debug("Automatic rotation already running")
                return
            self._auto_stop = threading.Event()
            self._auto_thread = threading.Thread(
                target=self._auto_rotate_loop,
                args=(self._auto_stop, self.policy.rotation_interval),
                name="locksmith-rotation",
                daemon=True,
            )
            self._auto_thread.start()
        logger.info(f"Started automatic rotation every {self.policy.rotation_interval}")

    def _auto_rotate_loop(self, stop: threading.Event, interval: timedelta) -> None:
        seconds = interval.total_seconds()
        while not stop.wait(seconds):
            try:
                self.rotate()
            except LocksmithError as e:
                # Already reported by rotate(); keep the schedule going.
                logger.error(f"Error during automatic rotation: {e}")

    def stop_auto_rotation(self) -> None:
        """Stop periodic rotation. Safe to call when not running."""
        with self._auto_lock:
            thread = self._auto_thread
            self._auto_stop.set()
            self._auto_thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
            logger.info("Stopped automatic rotation")

    @property
    def is_auto_rotating(self) -> bool:
        with self._auto_lock:
            return self._auto_thread is not None and self._auto_thread.is_alive()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _report_error(self, error: Exception) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify_error(error)
        except Exception as e:
            logger.error(f"Error notification failed: {e}")

    def _deliver_rotation(self, secret: Secret) -> None:
        try:
            self._notifier.notify_rotation(secret)
        except Exception as e:
            logger.error(f"Rotation notification for {secret.id} failed: {e}")

    def _dispatch_rotation(self, secret: Secret) -> None:
        if self._notifier is None:
            return
        try:
            self._executor.submit(self._deliver_rotation, secret)
        except RuntimeError as e:
            logger.warning(f"Notification executor closed, rotation {secret.id} not reported: {e}")

    def close(self) -> None:
        """Stop periodic rotation and wait for pending notifications."""
        self.stop_auto_rotation()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "RotationManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
