"""Key/value storage ports and the credential store built on them.

The access token lives in session-scoped storage (one per player session, gone
when the session ends). The refresh token and the pending game id live in
longer-lived storage so a player can come back after the OAuth redirect.
"""
import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Protocol

from trackguess.models.credential import Credential, TokenResponse

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "spotify_access_token"
ACCESS_TOKEN_EXPIRES_KEY = "spotify_access_token_expires_at"
REFRESH_TOKEN_KEY = "spotify_refresh_token"
PENDING_GAME_ID_KEY = "pendingGameId"


class StorageBackend(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """Session-scoped storage: lives as long as the object."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Longer-lived storage backed by one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError):
            logger.warning("Unreadable storage file %s, treating as empty", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2))

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        """Remove key; the file itself is deleted once nothing is left in it."""
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
            if data:
                self._save(data)
            else:
                self._path.unlink(missing_ok=True)


class CredentialStore:
    """get/set/remove for tokens and the pending game id. No business logic."""

    def __init__(self, session_storage: StorageBackend, persistent_storage: StorageBackend) -> None:
        self._session = session_storage
        self._persistent = persistent_storage

    def get_access_token(self) -> Optional[str]:
        return self._session.get(ACCESS_TOKEN_KEY)

    def set_access_token(self, token: str, expires_at_epoch_ms: Optional[int] = None) -> None:
        self._session.set(ACCESS_TOKEN_KEY, token)
        if expires_at_epoch_ms is not None:
            self._session.set(ACCESS_TOKEN_EXPIRES_KEY, str(expires_at_epoch_ms))

    def remove_access_token(self) -> None:
        self._session.remove(ACCESS_TOKEN_KEY)
        self._session.remove(ACCESS_TOKEN_EXPIRES_KEY)

    def get_refresh_token(self) -> Optional[str]:
        return self._persistent.get(REFRESH_TOKEN_KEY)

    def set_refresh_token(self, token: str) -> None:
        self._persistent.set(REFRESH_TOKEN_KEY, token)

    def remove_refresh_token(self) -> None:
        self._persistent.remove(REFRESH_TOKEN_KEY)

    def get_pending_game_id(self) -> Optional[str]:
        return self._persistent.get(PENDING_GAME_ID_KEY)

    def set_pending_game_id(self, game_id: str) -> None:
        self._persistent.set(PENDING_GAME_ID_KEY, game_id)

    def remove_pending_game_id(self) -> None:
        self._persistent.remove(PENDING_GAME_ID_KEY)

    def get_credential(self) -> Optional[Credential]:
        """Return the full credential, or None unless both tokens are present."""
        access = self.get_access_token()
        refresh = self.get_refresh_token()
        if not access or not refresh:
            return None
        try:
            expires_at = int(self._session.get(ACCESS_TOKEN_EXPIRES_KEY) or 0)
        except ValueError:
            expires_at = 0
        return Credential(access_token=access, refresh_token=refresh, expires_at_epoch_ms=expires_at)

    def save_token_response(self, response: TokenResponse, now_ms: Optional[int] = None) -> None:
        """Store a token endpoint response; keep the old refresh token if none was issued."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        self.set_access_token(response.access_token, now_ms + response.expires_in * 1000)
        if response.refresh_token:
            self.set_refresh_token(response.refresh_token)

    def clear(self) -> None:
        self.remove_access_token()
        self.remove_refresh_token()
        self.remove_pending_game_id()
