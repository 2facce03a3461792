"""Core services: credentials, rate-limited Spotify client, answer sync, readiness."""
from trackguess.core.api_client import RateLimitedClient
from trackguess.core.readiness import readiness
from trackguess.core.sync_engine import AnswerSyncEngine
from trackguess.core.token_manager import TokenManager

__all__ = ["AnswerSyncEngine", "RateLimitedClient", "TokenManager", "readiness"]
