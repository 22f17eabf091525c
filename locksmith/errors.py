"""
Locksmith error taxonomy.

Every error raised by the engine, the stores and the token path derives from
LocksmithError so callers can catch the whole family at once.
"""


class LocksmithError(Exception):
    """Base class for all Locksmith errors."""


class ConfigurationError(LocksmithError):
    """Invalid policy, generator or provider setup. Never retried."""


class GenerationError(LocksmithError):
    """The random source could not supply entropy."""


class StoreError(LocksmithError):
    """Any failure of the durable secret store."""


class SecretNotFoundError(StoreError):
    """The store holds no secret matching the request."""


# Token path


class TokenError(LocksmithError):
    """Base class for signing and validation failures."""


class NoActiveSecretError(TokenError):
    """The engine has not produced an active secret yet."""


class UnknownKeyError(TokenError):
    """No secret in the working set matches the token's key ID."""


class SignatureInvalidError(TokenError):
    """The token's MAC does not verify with the matching secret."""


class MalformedTokenError(TokenError):
    """The token is not a well-formed compact JWS or lacks a key ID."""


class UnsupportedAlgorithmError(TokenError):
    """The token header names an algorithm other than an HMAC variant."""


class ExpiredTokenError(TokenError):
    """The token's exp/nbf claims put it outside its validity window."""
