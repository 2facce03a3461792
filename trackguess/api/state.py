"""Shared application state (injected into routes)."""
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List

from trackguess.config import (
    CREDENTIALS_DIR,
    ELIGIBILITY_YEARS,
    MAX_RETRY_ATTEMPTS,
    MINIMUM_QUESTIONS,
    RETRY_BASE_DELAY_SEC,
    SESSION_IDLE_TTL_SEC,
    SPOTIFY_REDIRECT_URI_ALLOWLIST,
    TOKEN_ENDPOINT,
)
from trackguess.core.answer_store import AnswerStore, JsonAnswerStore
from trackguess.core.api_client import RateLimitedClient, default_spotify_factory
from trackguess.core.errors import GameNotFound, StoreWriteFailed
from trackguess.core.question_cache import QuestionCache
from trackguess.core.rate_limit import RateLimiter
from trackguess.core.spotify_client import SpotifyTrackApi
from trackguess.core.storage import CredentialStore, JsonFileStorage, MemoryStorage
from trackguess.core.sync_engine import AnswerSyncEngine
from trackguess.core.token_exchange import HttpTokenExchange, SpotifyTokenExchange, TokenExchange
from trackguess.core.token_manager import TokenManager
from trackguess.models.credential import TokenResponse

logger = logging.getLogger(__name__)

GAME_NOT_FOUND = "This game code doesn't exist. Please check the code and try again."


@dataclass
class PlayerSession:
    """One player answering questions for one game (one browser tab)."""
    session_id: str
    game_id: str
    player_id: str
    tokens: TokenManager
    track_api: SpotifyTrackApi
    engine: AnswerSyncEngine
    last_access: float = 0.0

    def close(self) -> None:
        self.engine.close()
        self.tokens.sign_out()


class AppState:
    def __init__(
        self,
        store: AnswerStore | None = None,
        intermediary: SpotifyTokenExchange | None = None,
        token_exchange: TokenExchange | None = None,
        spotify_factory: Callable = default_spotify_factory,
        credentials_dir: Path = CREDENTIALS_DIR,
        minimum: int = MINIMUM_QUESTIONS,
        eligibility_years: int = ELIGIBILITY_YEARS,
        max_attempts: int = MAX_RETRY_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY_SEC,
        sleep: Callable[[float], None] | None = None,
        redirect_allowlist: List[str] | None = None,
        session_ttl_sec: float | None = SESSION_IDLE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store: AnswerStore = store or JsonAnswerStore(minimum=minimum)
        self.questions = QuestionCache(self.store.get_active_questions)
        # Holds the client secret; only the token routes use it directly.
        self.intermediary = intermediary or SpotifyTokenExchange()
        # What player sessions refresh through.
        if token_exchange is not None:
            self.token_exchange = token_exchange
        elif TOKEN_ENDPOINT:
            self.token_exchange = HttpTokenExchange(TOKEN_ENDPOINT)
        else:
            self.token_exchange = self.intermediary
        self.spotify_factory = spotify_factory
        self.credentials_dir = Path(credentials_dir)
        self.minimum = minimum
        self.eligibility_years = eligibility_years
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep
        self.redirect_allowlist = (
            SPOTIFY_REDIRECT_URI_ALLOWLIST if redirect_allowlist is None else redirect_allowlist
        )
        self.session_ttl_sec = session_ttl_sec
        self.clock = clock
        self.token_rate_limiter = RateLimiter()
        self._sessions: Dict[str, PlayerSession] = {}
        self._lock = threading.Lock()

    def create_session(
        self,
        game_id: str,
        access_token: str,
        refresh_token: str | None = None,
        expires_in: int = 3600,
    ) -> PlayerSession:
        """Store the player's tokens, resolve their Spotify id, join the game, and load their answers.

        Raises GameNotFound before anything is stored if the game does not exist.
        """
        self.evict_idle()
        if self.store.get_game(game_id) is None:
            raise GameNotFound(GAME_NOT_FOUND)
        session_id = uuid.uuid4().hex
        credentials = CredentialStore(
            MemoryStorage(), JsonFileStorage(self.credentials_dir / f"{session_id}.json")
        )
        credentials.set_pending_game_id(game_id)
        credentials.save_token_response(
            TokenResponse(access_token=access_token, expires_in=expires_in, refresh_token=refresh_token)
        )
        tokens = TokenManager(credentials, self.token_exchange)
        client = RateLimitedClient(
            tokens,
            spotify_factory=self.spotify_factory,
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            sleep=self.sleep,
        )
        track_api = SpotifyTrackApi(client)
        try:
            profile = track_api.current_user()
            joined = self.store.join_game(game_id, profile)
            if not joined.success:
                raise StoreWriteFailed(joined.error or "Failed to join game")
            player_id = f"{game_id}:{profile['id']}"
            engine = AnswerSyncEngine(
                self.store,
                player_id,
                minimum=self.minimum,
                eligibility_years=self.eligibility_years,
            )
            engine.on_close(client.close)
            engine.load(self.questions.get())
        except Exception:
            client.close()
            credentials.clear()
            raise
        credentials.remove_pending_game_id()

        session = PlayerSession(
            session_id=session_id,
            game_id=game_id,
            player_id=player_id,
            tokens=tokens,
            track_api=track_api,
            engine=engine,
            last_access=self.clock(),
        )
        with self._lock:
            self._sessions[session_id] = session
        logger.info("Started session %s for player %s", session_id, player_id)
        return session

    def get_session(self, session_id: str) -> PlayerSession | None:
        """The live session, marked as used now; None if unknown or evicted for idleness."""
        self.evict_idle()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_access = self.clock()
            return session

    def evict_idle(self) -> int:
        """Close sessions unused for longer than session_ttl_sec. Returns how many were closed."""
        if not self.session_ttl_sec:
            return 0
        now = self.clock()
        with self._lock:
            idle = [
                sid for sid, s in self._sessions.items()
                if now - s.last_access > self.session_ttl_sec
            ]
            expired = [self._sessions.pop(sid) for sid in idle]
        for session in expired:
            session.close()
            logger.info("Closed idle session %s", session.session_id)
        return len(expired)

    def close_session(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info("Closed session %s", session_id)
        return True

    def close_all(self) -> None:
        with self._lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            self.close_session(session_id)


_state = AppState()


def get_state() -> AppState:
    return _state
