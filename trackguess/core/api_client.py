"""Rate-limited Spotify Web API client.

Every outbound call goes through RateLimitedClient.call(). Failures are
classified from the Spotipy/requests exception instead of the message text:

    401            -> refresh the token once, resend once
    429            -> retry with exponential backoff
    5xx / network  -> retry with exponential backoff
    other 4xx      -> raise immediately
    bad payload    -> raise immediately
"""
import logging
import threading
from enum import Enum
from typing import Callable, Optional, TypeVar

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from trackguess.config import (
    MAX_RETRY_ATTEMPTS,
    RETRY_BASE_DELAY_SEC,
    SPOTIFY_REQUESTS_TIMEOUT_SEC,
)
from trackguess.core.errors import (
    FatalApiError,
    RateLimited,
    RefreshFailed,
    SessionClosed,
    Unavailable,
)
from trackguess.core.token_manager import TokenManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Payload mapping errors raised by request builders (missing keys, wrong types).
MALFORMED_PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)

# Network and body-decoding failures, retried like a 5xx.
TRANSIENT_REQUEST_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)


def configure_spotipy_logging() -> None:
    """Spotipy logs every HTTP error itself; we log our own classification instead."""
    for logger_name in ("spotipy", "spotipy.client", "spotipy.oauth2"):
        spotipy_logger = logging.getLogger(logger_name)
        spotipy_logger.setLevel(logging.CRITICAL)
        spotipy_logger.propagate = False


configure_spotipy_logging()


class Outcome(str, Enum):
    OK = "ok"
    AUTH_EXPIRED = "auth_expired"
    THROTTLED = "throttled"
    FATAL = "fatal"
    TRANSIENT = "transient"


def classify(error: Optional[BaseException]) -> Outcome:
    """Map a request failure (or None for success) to an Outcome."""
    if error is None:
        return Outcome.OK
    if isinstance(error, SpotifyException):
        status = error.http_status
        if status == 401:
            return Outcome.AUTH_EXPIRED
        if status == 429:
            return Outcome.THROTTLED
        if status is not None and status >= 500:
            return Outcome.TRANSIENT
        return Outcome.FATAL
    if isinstance(error, TRANSIENT_REQUEST_ERRORS):
        return Outcome.TRANSIENT
    return Outcome.FATAL


def default_spotify_factory(access_token: str) -> spotipy.Spotify:
    # Spotipy must not retry on its own; 429 is the only status it may turn
    # into a RetryError, so 5xx keep their real status code.
    return spotipy.Spotify(
        auth=access_token,
        requests_timeout=SPOTIFY_REQUESTS_TIMEOUT_SEC,
        retries=0,
        status_retries=0,
        status_forcelist=(429,),
    )


class RateLimitedClient:
    def __init__(
        self,
        tokens: TokenManager,
        spotify_factory: Callable[[str], spotipy.Spotify] = default_spotify_factory,
        max_attempts: int = MAX_RETRY_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY_SEC,
        sleep: Optional[Callable[[float], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._tokens = tokens
        self._spotify_factory = spotify_factory
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._cancel = cancel_event or threading.Event()
        self._sp: Optional[spotipy.Spotify] = None
        self._sp_token: Optional[str] = None
        self._sp_lock = threading.Lock()

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt `attempt` (zero-based) before the next one."""
        return self.base_delay * (2 ** attempt)

    def call(self, request_builder: Callable[[spotipy.Spotify], T]) -> T:
        """Run request_builder(sp) with the current token, retrying as classified."""
        attempt = 0
        refreshed = False
        while True:
            if self._cancel.is_set():
                raise SessionClosed("Session ended")
            sp = self._client_for(self._tokens.get_access_token())
            try:
                return request_builder(sp)
            except (SpotifyException, requests.exceptions.RequestException) as e:
                error = e
            except MALFORMED_PAYLOAD_ERRORS as e:
                raise FatalApiError(f"Malformed Spotify response: {e}") from e

            outcome = classify(error)
            if outcome is Outcome.AUTH_EXPIRED:
                if refreshed:
                    raise RefreshFailed("Spotify rejected the refreshed access token") from error
                logger.info("Spotify access token rejected, refreshing")
                self._tokens.refresh()
                refreshed = True
                continue

            if outcome in (Outcome.THROTTLED, Outcome.TRANSIENT):
                if attempt >= self.max_attempts:
                    logger.warning("Spotify %s after %d retries, giving up", outcome.value, attempt)
                    if outcome is Outcome.THROTTLED:
                        raise RateLimited(
                            "Spotify API rate limit exceeded. Please wait a moment and try again."
                        ) from error
                    raise Unavailable("Spotify is unavailable. Please try again later.") from error
                delay = self.delay_for(attempt)
                logger.warning(
                    "Spotify %s (attempt %d), retrying in %.2fs", outcome.value, attempt, delay
                )
                self._wait(delay)
                attempt += 1
                continue

            status = getattr(error, "http_status", None)
            msg = getattr(error, "msg", None) or str(error)
            raise FatalApiError(f"Spotify API error: {msg}", http_status=status) from error

    def cancel(self) -> None:
        """Abort any backoff wait; pending and later calls raise SessionClosed."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def close(self) -> None:
        self.cancel()
        with self._sp_lock:
            _close_session(self._sp)
            self._sp = None
            self._sp_token = None

    def _wait(self, delay: float) -> None:
        if self._sleep is not None:
            self._sleep(delay)
        else:
            self._cancel.wait(timeout=delay)
        if self._cancel.is_set():
            raise SessionClosed("Session ended during retry backoff")

    def _client_for(self, access_token: str) -> spotipy.Spotify:
        with self._sp_lock:
            if self._sp is None or self._sp_token != access_token:
                _close_session(self._sp)
                self._sp = self._spotify_factory(access_token)
                self._sp_token = access_token
            return self._sp


def _close_session(sp: Optional[spotipy.Spotify]) -> None:
    """Close the HTTP session Spotipy keeps on a private attribute, if any."""
    session = getattr(sp, "_session", None)
    close_fn = getattr(session, "close", None)
    if callable(close_fn):
        close_fn()
