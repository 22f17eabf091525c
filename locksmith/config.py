# locksmith/config.py
"""
Centralized configuration for Locksmith.

All configurable values are read from environment variables with sensible
defaults, so the same build can run with different rotation schedules in
dev, staging and production.

Usage:
    from locksmith.config import policy_from_env, STORE_PATH

    policy = policy_from_env()

Environment Variables:
    LOCKSMITH_ROTATION_INTERVAL: Time between rotations (default: 24h)
    LOCKSMITH_GRACE_PERIOD: How long retired secrets stay valid (default: 48h)
    LOCKSMITH_SECRET_BYTES: Generated secret length (default: 64)
    LOCKSMITH_ALGORITHM: HMAC algorithm for new tokens (default: HS256)
    LOCKSMITH_STORE_PATH: JSON file used by the CLI (default: locksmith-secrets.json)
    LOCKSMITH_WEBHOOK_URL: Optional webhook for rotation notifications
    SENTRY_DSN: Optional Sentry DSN for rotation notifications
    LOCKSMITH_LOG_LEVEL: Log level for the CLI (default: WARNING)
"""

import os
import re
from datetime import timedelta
from typing import Final, Mapping, Optional

from locksmith.errors import ConfigurationError
from locksmith.keys import RotationPolicy

_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)([smhd])")

# =============================================================================
# Rotation Policy
# =============================================================================

ROTATION_INTERVAL: Final[str] = os.getenv("LOCKSMITH_ROTATION_INTERVAL", "24h")

GRACE_PERIOD: Final[str] = os.getenv("LOCKSMITH_GRACE_PERIOD", "48h")

# =============================================================================
# Secrets & Tokens
# =============================================================================

SECRET_BYTES: Final[str] = os.getenv("LOCKSMITH_SECRET_BYTES", "64")

ALGORITHM: Final[str] = os.getenv("LOCKSMITH_ALGORITHM", "HS256")

# =============================================================================
# Storage, Notifications & Logging
# =============================================================================

STORE_PATH: Final[str] = os.getenv("LOCKSMITH_STORE_PATH", "locksmith-secrets.json")

WEBHOOK_URL: Final[str] = os.getenv("LOCKSMITH_WEBHOOK_URL", "")

SENTRY_DSN: Final[str] = os.getenv("SENTRY_DSN", "")

LOG_LEVEL: Final[str] = os.getenv("LOCKSMITH_LOG_LEVEL", "WARNING")


# =============================================================================
# Helper Functions
# =============================================================================


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as "48h", "1h30m", "15s", "2d" or "3600".

    A bare number is taken as seconds. A leading "-" yields a negative
    duration, which a RotationPolicy treats as disabled.

    Raises:
        ConfigurationError: If the string is not a duration.
    """
    text = str(value).strip().lower()
    if not text:
        raise ConfigurationError("Empty duration")

    sign = 1
    if text.startswith("-"):
        sign, text = -1, text[1:]

    try:
        return timedelta(seconds=sign * float(text))
    except (ValueError, OverflowError):
        pass

    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    seconds = sum(float(n) * _UNITS[u] for n, u in parts)
    return timedelta(seconds=sign * seconds)


def secret_bytes_from_env(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    raw = env.get("LOCKSMITH_SECRET_BYTES", SECRET_BYTES)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"LOCKSMITH_SECRET_BYTES must be an integer, got {raw!r}") from e


def policy_from_env(environ: Optional[Mapping[str, str]] = None) -> RotationPolicy:
    """Build a RotationPolicy from LOCKSMITH_ROTATION_INTERVAL and LOCKSMITH_GRACE_PERIOD."""
    env = os.environ if environ is None else environ
    return RotationPolicy(
        rotation_interval=parse_duration(env.get("LOCKSMITH_ROTATION_INTERVAL", ROTATION_INTERVAL)),
        grace_period=parse_duration(env.get("LOCKSMITH_GRACE_PERIOD", GRACE_PERIOD)),
    )


# =============================================================================
# Configuration Summary (for debugging)
# =============================================================================


def print_config() -> None:
    """Print current configuration (useful for debugging)."""
    print("Locksmith Configuration:")
    print(f"  ROTATION_INTERVAL: {ROTATION_INTERVAL}")
    print(f"  GRACE_PERIOD:      {GRACE_PERIOD}")
    print(f"  SECRET_BYTES:      {SECRET_BYTES}")
    print(f"  ALGORITHM:         {ALGORITHM}")
    print(f"  STORE_PATH:        {STORE_PATH}")
    print(f"  WEBHOOK_URL:       {'(set)' if WEBHOOK_URL else '(unset)'}")
    print(f"  SENTRY_DSN:        {'(set)' if SENTRY_DSN else '(unset)'}")
    print(f"  LOG_LEVEL:         {LOG_LEVEL}")


if __name__ == "__main__":
    print_config()
