"""
Locksmith JWT Manager - HMAC-signed JWTs on top of the rotation engine.

Tokens carry the signing secret's ID as ``kid`` so validation picks the
right secret directly, whether it is the active one or a previous one still
inside its grace period.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from jwcrypto import jwk, jws
from jwcrypto.common import JWException, base64url_decode, base64url_encode, json_encode

from locksmith.errors import (
    ConfigurationError,
    ExpiredTokenError,
    MalformedTokenError,
    NoActiveSecretError,
    SignatureInvalidError,
    TokenError,
    UnknownKeyError,
    UnsupportedAlgorithmError,
)
from locksmith.keys import DEFAULT_SECRET_BYTES, RandomSecretGenerator, RotationPolicy, Secret
from locksmith.metrics import RotationMetrics
from locksmith.notifiers import NotifierInterface
from locksmith.rotation import Clock, RotationManager
from locksmith.storage import SecretStoreInterface

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


def _check_algorithm(algorithm: str) -> None:
    if algorithm not in HMAC_ALGORITHMS:
        raise ConfigurationError(
            f"Unsupported signing algorithm {algorithm!r}; expected one of {', '.join(HMAC_ALGORITHMS)}"
        )


def _signing_key(secret: Secret) -> jwk.JWK:
    return jwk.JWK(kty="oct", k=base64url_encode(secret.value), kid=secret.id)


def decode_header(token: str) -> Dict[str, Any]:
    """
    Decode the protected header of a compact JWS without verifying it.

    Raises:
        MalformedTokenError: If the token is not three dot-separated
            segments or the header is not a JSON object.
    """
    if not isinstance(token, str):
        raise MalformedTokenError("Token must be a string")
    parts = token.split(".")
    if len(parts) != 3 or not all(parts):
        raise MalformedTokenError("Invalid token format: expected header.payload.signature")
    try:
        header = json.loads(base64url_decode(parts[0]))
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedTokenError(f"Invalid token header: {e}") from e
    if not isinstance(header, dict):
        raise MalformedTokenError("Token header must be a JSON object")
    return header


class JWTManager:
    """
    Signs and validates JWTs with rotating HMAC secrets.

    Example:
        >>> manager = JWTManager.create(
        ...     RotationPolicy(timedelta(hours=24), timedelta(hours=48)),
        ...     store=FileSecretStore("secrets.json"),
        ... )
        >>> token = manager.sign({"sub": "user-42"})
        >>> manager.validate(token)
        {'sub': 'user-42'}
    """

    def __init__(
        self,
        manager: RotationManager,
        algorithm: str = "HS256",
        default_expiry_seconds: Optional[int] = None,
        leeway_seconds: int = 0,
        metrics: Optional[RotationMetrics] = None,
    ):
        """
        Args:
            manager: The rotation engine supplying secrets.
            algorithm: HMAC algorithm used for new tokens.
            default_expiry_seconds: If set, tokens get iat/exp claims.
            leeway_seconds: Allowed clock drift when checking exp/nbf.
            metrics: Optional metrics collector.

        Raises:
            ConfigurationError: If algorithm is not an HMAC algorithm.
        """
        _check_algorithm(algorithm)
        self.manager = manager
        self.algorithm = algorithm
        self.default_expiry = default_expiry_seconds
        self.leeway = leeway_seconds
        self._metrics = metrics

    @classmethod
    def create(
        cls,
        policy: RotationPolicy,
        store: SecretStoreInterface,
        secret_size_bytes: int = DEFAULT_SECRET_BYTES,
        notifier: Optional[NotifierInterface] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[RotationMetrics] = None,
        **kwargs: Any,
    ) -> "JWTManager":
        """
        Build the generator and rotation engine, initialize it from the store,
        and wrap it in a JWTManager.

        The algorithm and secret size are checked before the store is touched.

        Raises:
            ConfigurationError: If the secret size is below 32 bytes or the
                algorithm is not an HMAC algorithm.
            GenerationError: If the initial secret could not be generated.
            StoreError: If the initial secret could not be persisted.
        """
        _check_algorithm(kwargs.get("algorithm", "HS256"))
        generator = RandomSecretGenerator(secret_size_bytes)
        engine = RotationManager(
            policy, store, generator, notifier=notifier, clock=clock, metrics=metrics
        )
        try:
            engine.initialize()
            return cls(engine, metrics=metrics, **kwargs)
        except Exception:
            engine.close()
            raise

    def sign(self, claims: Dict[str, Any], expiry_seconds: Optional[int] = None) -> str:
        """
        Sign claims with the active secret.

        Args:
            claims: Application-defined claim set.
            expiry_seconds: Optional override for the default expiry.

        Returns:
            A compact JWS string.

        Raises:
            NoActiveSecretError: If the engine has no active secret yet.
        """
        active = self.manager.active_secret
        if active is None:
            raise NoActiveSecretError("No active secret available to sign token")

        payload = dict(claims)
        exp = expiry_seconds if expiry_seconds is not None else self.default_expiry
        if exp is not None:
            now = int(self.manager.now().timestamp())
            payload.setdefault("iat", now)
            payload.setdefault("exp", now + exp)

        token = jws.JWS(json.dumps(payload, sort_keys=True, separators=(",", ":")))
        protected_header = {"alg": self.algorithm, "typ": "JWT", "kid": active.id}
        token.add_signature(_signing_key(active), None, json_encode(protected_header), None)

        if self._metrics:
            self._metrics.record_signature()
        return token.serialize(compact=True)

    def _find_secret(self, kid: str) -> Secret:
        for secret in self.manager.get_secrets():
            if secret.id == kid:
                return secret
        raise UnknownKeyError(f"Token validation failed: secret with kid '{kid}' not found")

    def _check_registered_claims(self, claims: Dict[str, Any]) -> None:
        now = self.manager.now().timestamp()
        exp = claims.get("exp")
        if exp is not None:
            if not isinstance(exp, (int, float)) or isinstance(exp, bool):
                raise MalformedTokenError("exp claim must be a number")
            if now > exp + self.leeway:
                raise ExpiredTokenError("Token has expired")
        nbf = claims.get("nbf")
        if nbf is not None:
            if not isinstance(nbf, (int, float)) or isinstance(nbf, bool):
                raise MalformedTokenError("nbf claim must be a number")
            if now < nbf - self.leeway:
                raise ExpiredTokenError("Token is not valid yet")

    def _validate(self, token: str) -> Dict[str, Any]:
        header = decode_header(token)

        alg = header.get("alg")
        if alg not in HMAC_ALGORITHMS:
            raise UnsupportedAlgorithmError(f"Unexpected signing method: {alg}")

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise MalformedTokenError("Token header has no kid")

        secret = self._find_secret(kid)

        verifier = jws.JWS()
        verifier.allowed_algs = [alg]
        try:
            verifier.deserialize(token)
        except JWException as e:
            raise MalformedTokenError(f"Invalid token: {e}") from e
        try:
            verifier.verify(_signing_key(secret))
        except jws.InvalidJWSSignature as e:
            raise SignatureInvalidError(f"Signature verification failed for kid '{kid}'") from e
        except JWException as e:
            raise MalformedTokenError(f"Invalid token: {e}") from e

        try:
            claims = json.loads(verifier.payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedTokenError(f"Token payload is not JSON: {e}") from e
        if not isinstance(claims, dict):
            raise MalformedTokenError("Token payload must be a JSON object")

        self._check_registered_claims(claims)
        return claims

    def validate(self, token: str) -> Dict[str, Any]:
        """
        Validate a token and return its claims.

        The ``kid`` header selects the secret: the active one or a previous
        one still inside its grace period.

        Raises:
            MalformedTokenError: Not a compact JWS, or no kid.
            UnsupportedAlgorithmError: Header alg is not HS256/HS384/HS512.
                Checked before any secret lookup.
            UnknownKeyError: No current secret has that kid, including
                secrets evicted after their grace period.
            SignatureInvalidError: The MAC does not verify.
            ExpiredTokenError: exp/nbf claims reject the current time.
        """
        try:
            claims = self._validate(token)
        except TokenError as e:
            if self._metrics:
                self._metrics.record_validation(type(e).__name__)
            logger.debug(f"Token rejected: {e}")
            raise
        if self._metrics:
            self._metrics.record_validation("success")
        return claims

    def rotate(self) -> Secret:
        """Rotate the underlying secret."""
        return self.manager.rotate()

    def get_key_ids(self) -> List[str]:
        """IDs of every secret currently accepted for validation."""
        return [s.id for s in self.manager.get_secrets()]

    def export_active_secret_hex(self) -> str:
        """Active secret value as hex, or an empty string if there is none."""
        active = self.manager.active_secret
        if active is None:
            return ""
        return active.value.hex()
