"""
Locksmith key material.

Defines the Secret record, the rotation policy, and the generator that
produces fresh HMAC key material.
"""

import base64
import hashlib
import hmac
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from locksmith.errors import ConfigurationError, GenerationError


MIN_SECRET_BYTES = 32
DEFAULT_SECRET_BYTES = 64
SECRET_ID_LENGTH = 12


def derive_secret_id(value: bytes) -> str:
    """
    Derive the short identifier used as a JWT key ID.

    The ID is the HMAC-SHA256 of the raw value under an empty key, hex
    encoded and truncated to 12 characters. It is deterministic, so a secret
    reloaded from storage keeps the ID it was issued with.

    Args:
        value: Raw secret bytes.

    Returns:
        A 12 character lowercase hex string.
    """
    digest = hmac.new(b"", value, hashlib.sha256).hexdigest()
    return digest[:SECRET_ID_LENGTH]


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class Secret:
    """
    A signing secret with its metadata.

    Attributes:
        id: Identifier derived from the value (the JWT ``kid``).
        value: Raw key material. Kept out of repr() so it never lands in logs.
        created_at: UTC timestamp set when the secret was generated.
        active: Whether this secret currently signs new tokens.
    """

    id: str
    value: bytes = field(repr=False)
    created_at: datetime
    active: bool = False

    def age(self, now: datetime) -> timedelta:
        """Time elapsed since the secret was generated."""
        return _as_utc(now) - _as_utc(self.created_at)

    def to_record(self, include_value: bool = True) -> Dict[str, Any]:
        """Convert to the persisted record layout."""
        record: Dict[str, Any] = {
            "id": self.id,
            "created_at": _as_utc(self.created_at).isoformat(),
        }
        if include_value:
            record["value"] = base64.b64encode(self.value).decode("ascii")
        return record

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Secret":
        """Create an inactive Secret from a persisted record."""
        try:
            value = base64.b64decode(data["value"])
            created_at = _as_utc(datetime.fromisoformat(data["created_at"]))
            secret_id = data.get("id") or derive_secret_id(value)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid secret record: {e}") from e
        return cls(id=secret_id, value=value, created_at=created_at, active=False)


@dataclass
class RotationPolicy:
    """
    Timing configuration for secret rotation.

    Attributes:
        rotation_interval: Time between automatic rotations. Zero or less
            disables periodic rotation.
        grace_period: How long a retired secret stays valid for validation,
            measured from its creation. Zero or less keeps retired secrets
            forever.
    """

    rotation_interval: timedelta = timedelta(hours=24)
    grace_period: timedelta = timedelta(hours=48)

    @classmethod
    def from_seconds(cls, rotation_interval: float, grace_period: float) -> "RotationPolicy":
        return cls(
            rotation_interval=timedelta(seconds=rotation_interval),
            grace_period=timedelta(seconds=grace_period),
        )

    @property
    def periodic(self) -> bool:
        return self.rotation_interval > timedelta(0)

    @property
    def evicts(self) -> bool:
        return self.grace_period > timedelta(0)


class SecretGenerator(ABC):
    """Abstract source of new secret values."""

    @abstractmethod
    def generate(self) -> bytes:
        """Return fresh key material."""
        pass


class RandomSecretGenerator(SecretGenerator):
    """
    Generates random secrets from the operating system's CSPRNG.

    Example:
        >>> generator = RandomSecretGenerator(64)
        >>> value = generator.generate()
        >>> len(value)
        64
    """

    def __init__(self, size_bytes: int = DEFAULT_SECRET_BYTES):
        """
        Args:
            size_bytes: Length of each generated secret.

        Raises:
            ConfigurationError: If size_bytes is below the 32-byte floor.
        """
        if size_bytes < MIN_SECRET_BYTES:
            raise ConfigurationError(
                f"Secret size must be at least {MIN_SECRET_BYTES} bytes, got {size_bytes}"
            )
        self.size_bytes = size_bytes

    def generate(self) -> bytes:
        try:
            return secrets.token_bytes(self.size_bytes)
        except (OSError, NotImplementedError) as e:
            raise GenerationError(f"Error generating random secret: {e}") from e


def new_secret(value: bytes, created_at: Optional[datetime] = None, active: bool = True) -> Secret:
    """Build a Secret for freshly generated material."""
    moment = created_at or datetime.now(timezone.utc)
    return Secret(
        id=derive_secret_id(value),
        value=value,
        created_at=_as_utc(moment),
        active=active,
    )
