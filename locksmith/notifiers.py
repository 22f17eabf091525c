"""
Locksmith Notifiers.

Sinks for rotation success and failure events. Delivery is best-effort:
a sink that fails logs the problem and never raises into the engine.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Callable, List, Mapping, Optional

import httpx

from locksmith.keys import Secret

logger = logging.getLogger(__name__)


class NotifierInterface(ABC):
    """Abstract interface for rotation event sinks."""

    @abstractmethod
    def notify_rotation(self, secret: Secret) -> None:
        """Report a successful rotation."""
        pass

    @abstractmethod
    def notify_error(self, error: Exception) -> None:
        """Report a failed rotation."""
        pass


class LoggingNotifier(NotifierInterface):
    """Writes rotation events to the log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def notify_rotation(self, secret: Secret) -> None:
        self._log.info(f"Secret rotated successfully: {secret.id}")

    def notify_error(self, error: Exception) -> None:
        self._log.error(f"Secret rotation failed: {error}")


class CallbackNotifier(NotifierInterface):
    """
    Forwards events to plain callables.

    Example:
        >>> notifier = CallbackNotifier(on_rotation=lambda s: print(s.id))
    """

    def __init__(
        self,
        on_rotation: Optional[Callable[[Secret], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._on_rotation = on_rotation
        self._on_error = on_error

    def notify_rotation(self, secret: Secret) -> None:
        if self._on_rotation:
            self._on_rotation(secret)

    def notify_error(self, error: Exception) -> None:
        if self._on_error:
            self._on_error(error)


class WebhookNotifier(NotifierInterface):
    """
    Posts rotation events to an incoming webhook.

    The body is ``{"text": "..."}``, which Slack and most chat webhooks
    accept as-is.

    Example:
        >>> notifier = WebhookNotifier("https://hooks.slack.com/services/T000/B000/XXX")
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        if not url:
            raise ValueError("WebhookNotifier requires a url")
        self.url = url
        self._timeout = timeout
        self._client = client

    def _post(self, text: str) -> bool:
        try:
            if self._client is not None:
                response = self._client.post(self.url, json={"text": text}, timeout=self._timeout)
            else:
                response = httpx.post(self.url, json={"text": text}, timeout=self._timeout)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Webhook notification to {self.url} failed: {e}")
            return False

    def notify_rotation(self, secret: Secret) -> None:
        self._post(f"JWT secret rotated successfully. New secret ID: `{secret.id}`")

    def notify_error(self, error: Exception) -> None:
        self._post(f"Error during secret rotation: ```{error}```")


class SentryNotifier(NotifierInterface):
    """
    Reports rotation events to Sentry.

    Rotations are sent with ``capture_message`` and failures with
    ``capture_exception``; each event is flushed before returning.
    Requires the ``sentry`` extra (``pip install locksmith-jwt[sentry]``).

    Example:
        >>> notifier = SentryNotifier("https://key@o0.ingest.sentry.io/0")
    """

    def __init__(
        self,
        dsn: str,
        environment: str = "production",
        release: Optional[str] = None,
        flush_timeout: float = 2.0,
    ):
        if not dsn:
            raise ValueError("SentryNotifier requires a dsn")
        import sentry_sdk

        sentry_sdk.init(dsn=dsn, environment=environment, release=release)
        self._sdk = sentry_sdk
        self._flush_timeout = flush_timeout

    def notify_rotation(self, secret: Secret) -> None:
        self._sdk.capture_message(f"JWT secret rotated successfully: {secret.id}")
        logger.debug("Rotation event sent to Sentry")
        self._sdk.flush(timeout=self._flush_timeout)

    def notify_error(self, error: Exception) -> None:
        self._sdk.capture_exception(error)
        logger.debug(f"Error event sent to Sentry: {error}")
        self._sdk.flush(timeout=self._flush_timeout)


class MultiNotifier(NotifierInterface):
    """
    Broadcasts events to several sinks.

    ``None`` entries are skipped, so an unconfigured sink can be passed
    straight through. One sink failing does not stop delivery to the rest.
    """

    def __init__(self, *notifiers: Optional[NotifierInterface]):
        self._notifiers: List[NotifierInterface] = [n for n in notifiers if n is not None]

    @property
    def notifiers(self) -> List[NotifierInterface]:
        return list(self._notifiers)

    def add(self, notifier: NotifierInterface) -> None:
        self._notifiers.append(notifier)

    def notify_rotation(self, secret: Secret) -> None:
        for notifier in self._notifiers:
            try:
                notifier.notify_rotation(secret)
            except Exception as e:
                logger.error(f"{type(notifier).__name__} failed to deliver rotation event: {e}")

    def notify_error(self, error: Exception) -> None:
        for notifier in self._notifiers:
            try:
                notifier.notify_error(error)
            except Exception as e:
                logger.error(f"{type(notifier).__name__} failed to deliver error event: {e}")

    def __len__(self) -> int:
        return len(self._notifiers)


def webhook_notifier_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[WebhookNotifier]:
    """Build a WebhookNotifier from LOCKSMITH_WEBHOOK_URL, or None if unset."""
    env = os.environ if environ is None else environ
    url = env.get("LOCKSMITH_WEBHOOK_URL", "")
    if not url:
        return None
    return WebhookNotifier(url)


def sentry_notifier_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[SentryNotifier]:
    """
    Build a SentryNotifier from SENTRY_DSN, or None if unset.

    A DSN that Sentry rejects, or a missing sentry_sdk, is logged and the
    sink is left out.
    """
    env = os.environ if environ is None else environ
    dsn = env.get("SENTRY_DSN", "").strip()
    if not dsn:
        return None
    try:
        return SentryNotifier(dsn, environment=env.get("SENTRY_ENVIRONMENT", "production"))
    except Exception as e:
        logger.warning(f"Failed to create Sentry notifier: {e}")
        return None


def notifiers_from_env(environ: Optional[Mapping[str, str]] = None) -> MultiNotifier:
    """Fan out to the log plus every sink configured in the environment."""
    return MultiNotifier(
        LoggingNotifier(),
        sentry_notifier_from_env(environ),
        webhook_notifier_from_env(environ),
    )
