"""
Locksmith - zero-downtime rotation of HMAC signing secrets.

This package rotates a symmetric signing secret on a schedule or on demand,
keeps retired secrets valid for a grace period, and signs/validates JWTs by
key ID against that rotating working set.
"""

__version__ = "1.0.0"

# Core rotation engine and JWT layer
from .keys import (
    Secret,
    RotationPolicy,
    SecretGenerator,
    RandomSecretGenerator,
    derive_secret_id,
)
from .rotation import RotationManager, EngineState
from .tokens import JWTManager

# Ports
from .storage import SecretStoreInterface, MemorySecretStore, FileSecretStore, RedisSecretStore
from .notifiers import (
    NotifierInterface,
    LoggingNotifier,
    CallbackNotifier,
    WebhookNotifier,
    SentryNotifier,
    MultiNotifier,
    notifiers_from_env,
)

# Metrics & configuration
from .metrics import RotationMetrics
from .config import policy_from_env, parse_duration

# Errors
from .errors import (
    LocksmithError,
    ConfigurationError,
    GenerationError,
    StoreError,
    SecretNotFoundError,
    TokenError,
    NoActiveSecretError,
    UnknownKeyError,
    SignatureInvalidError,
    MalformedTokenError,
    UnsupportedAlgorithmError,
    ExpiredTokenError,
)


__all__ = [
    "__version__",
    # Core
    "Secret",
    "RotationPolicy",
    "SecretGenerator",
    "RandomSecretGenerator",
    "derive_secret_id",
    "RotationManager",
    "EngineState",
    "JWTManager",
    # Storage
    "SecretStoreInterface",
    "MemorySecretStore",
    "FileSecretStore",
    "RedisSecretStore",
    # Notifications
    "NotifierInterface",
    "LoggingNotifier",
    "MultiNotifier",
    "WebhookNotifier",
    "SentryNotifier",
    "CallbackNotifier",
    "notifiers_from_env",
    # Metrics & config
    "RotationMetrics",
    "policy_from_env",
    "parse_duration",
    # Errors
    "LocksmithError",
    "ConfigurationError",
    "GenerationError",
    "StoreError",
    "SecretNotFoundError",
    "TokenError",
    "NoActiveSecretError",
    "UnknownKeyError",
    "SignatureInvalidError",
    "MalformedTokenError",
    "UnsupportedAlgorithmError",
    "ExpiredTokenError",
]
