"""Access-token lifecycle: read, refresh on demand, and sign out.

Expiry is not tracked with a timer. The rate-limited client calls refresh()
when Spotify rejects a token, since the advertised lifetime is not exact.
"""
import logging
import threading
import time

from trackguess.core.errors import CredentialMissing, RefreshFailed
from trackguess.core.storage import CredentialStore
from trackguess.core.token_exchange import TokenExchange

logger = logging.getLogger(__name__)


class TokenManager:
    def __init__(self, credentials: CredentialStore, exchange: TokenExchange) -> None:
        self._credentials = credentials
        self._exchange = exchange
        self._lock = threading.Lock()

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    def get_access_token(self) -> str:
        token = self._credentials.get_access_token()
        if not token:
            raise CredentialMissing("Access token not found. Please re-authenticate.")
        return token

    def refresh(self) -> str:
        """Exchange the stored refresh token for a new access token.

        On failure the stored credentials are left as they were and
        RefreshFailed is raised; the caller must send the player back
        through authentication.
        """
        with self._lock:
            refresh_token = self._credentials.get_refresh_token()
            if not refresh_token:
                raise RefreshFailed("Refresh token not found. Please re-authenticate.")
            response = self._exchange.refresh(refresh_token)
            if not response.access_token:
                raise RefreshFailed("Token endpoint returned no access token")
            self._credentials.save_token_response(response, now_ms=int(time.time() * 1000))
            logger.info(
                "Refreshed Spotify access token (new refresh token: %s)",
                "yes" if response.refresh_token else "no",
            )
            return response.access_token

    def sign_out(self) -> None:
        with self._lock:
            self._credentials.clear()
