"""Token exchange: the trusted intermediary that holds the Spotify client secret,
and an HTTP adapter for reaching such an intermediary from elsewhere."""
import logging
from typing import Optional, Protocol

import requests
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from trackguess.config import (
    SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET,
    SPOTIFY_REDIRECT_URI,
    SPOTIFY_REQUESTS_TIMEOUT_SEC,
    SPOTIFY_SCOPES,
)
from trackguess.core.errors import RefreshFailed
from trackguess.models.credential import TokenResponse

logger = logging.getLogger(__name__)


class TokenExchange(Protocol):
    """What a player session refreshes its access token through."""

    def refresh(self, refresh_token: str) -> TokenResponse:
        ...


class SpotifyTokenExchange:
    """Exchanges codes and refresh tokens with accounts.spotify.com via Spotipy.

    Nothing is cached on disk: each exchange uses an in-memory cache handler
    and the result is handed straight back to the caller.
    """

    def __init__(
        self,
        client_id: str = SPOTIFY_CLIENT_ID,
        client_secret: str = SPOTIFY_CLIENT_SECRET,
        scope: str = SPOTIFY_SCOPES,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def _oauth(self, redirect_uri: str) -> SpotifyOAuth:
        return SpotifyOAuth(
            client_id=self._client_id,
            client_secret=self._client_secret,
            redirect_uri=redirect_uri,
            scope=self._scope,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
            requests_timeout=SPOTIFY_REQUESTS_TIMEOUT_SEC,
        )

    def exchange_code(self, code: str, redirect_uri: str) -> TokenResponse:
        if not self.configured:
            raise RefreshFailed("Server configuration error")
        try:
            token_info = self._oauth(redirect_uri).get_access_token(
                code=code, as_dict=True, check_cache=False
            )
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            logger.warning("Spotify code exchange failed: %s", e)
            raise RefreshFailed("Failed to exchange authorization code for access token") from e
        return _token_response(token_info)

    def refresh(self, refresh_token: str) -> TokenResponse:
        if not self.configured:
            raise RefreshFailed("Server configuration error")
        try:
            token_info = self._oauth(SPOTIFY_REDIRECT_URI).refresh_access_token(refresh_token)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            logger.warning("Spotify token refresh failed: %s", e)
            raise RefreshFailed("Failed to refresh access token") from e
        return _token_response(token_info)


class HttpTokenExchange:
    """Refreshes through a remote intermediary: POST {base}/token/refresh."""

    def __init__(self, base_url: str, timeout: float = SPOTIFY_REQUESTS_TIMEOUT_SEC) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _post(self, path: str, body: dict, failure: str) -> TokenResponse:
        try:
            response = requests.post(f"{self._base_url}{path}", json=body, timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            raise RefreshFailed(failure) from e
        if not response.ok:
            raise RefreshFailed(_error_message(response) or failure)
        try:
            return TokenResponse.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise RefreshFailed(failure) from e

    def refresh(self, refresh_token: str) -> TokenResponse:
        return self._post(
            "/token/refresh",
            {"refresh_token": refresh_token},
            "Failed to refresh access token",
        )


def _token_response(token_info: Optional[dict]) -> TokenResponse:
    try:
        return TokenResponse.from_dict(token_info or {})
    except (KeyError, TypeError, ValueError) as e:
        raise RefreshFailed("Malformed token response") from e


def _error_message(response: requests.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        detail = data.get("detail")
        if isinstance(detail, dict):
            return detail.get("message") or detail.get("error")
        return data.get("error") or (detail if isinstance(detail, str) else None)
    return None
