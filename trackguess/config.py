"""Configuration: env, Spotify credentials, game rules, retry and cache tuning."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Base paths (project root = parent of trackguess package)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from project root so SPOTIFY_CLIENT_ID etc. are set
load_dotenv(BASE_DIR / ".env")

DATA_DIR = Path(os.getenv("TRACKGUESS_DATA_DIR", str(BASE_DIR / "data")))
ANSWERS_PATH = DATA_DIR / "answers.json"
QUESTIONS_PATH = DATA_DIR / "questions.json"
GAMES_PATH = DATA_DIR / "games.json"
CREDENTIALS_DIR = DATA_DIR / "credentials"

# API
API_HOST = os.getenv("TRACKGUESS_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("TRACKGUESS_API_PORT", "8000"))

# Spotify OAuth. The client secret is only read by the token intermediary.
SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_REDIRECT_URI = os.getenv("SPOTIFY_REDIRECT_URI", "https://localhost:3000/callback")
SPOTIFY_REDIRECT_URI_ALLOWLIST = [
    uri.strip()
    for uri in os.getenv("SPOTIFY_REDIRECT_URI_ALLOWLIST", SPOTIFY_REDIRECT_URI).split(",")
    if uri.strip()
]
SPOTIFY_SCOPES = " ".join(
    [
        "user-top-read",
        "user-read-email",
        "user-read-private",
        "user-read-playback-state",
        "user-modify-playback-state",
        "playlist-modify-private",
        "user-library-read",
    ]
)
SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
# Empty: exchange tokens in-process. Otherwise base URL of a remote intermediary
# exposing POST {base}/token and POST {base}/token/refresh.
TOKEN_ENDPOINT = os.getenv("TRACKGUESS_TOKEN_ENDPOINT", "")

# Game rules
MINIMUM_QUESTIONS = int(os.getenv("TRACKGUESS_MINIMUM_QUESTIONS", "5"))
ELIGIBILITY_YEARS = int(os.getenv("TRACKGUESS_ELIGIBILITY_YEARS", "1"))

# Search
SPOTIFY_SEARCH_LIMIT = int(os.getenv("SPOTIFY_SEARCH_LIMIT", "20"))
MIN_SEARCH_LENGTH = 2

# Retry (third-party API): delay before retry k is base * 2**k
MAX_RETRY_ATTEMPTS = int(os.getenv("TRACKGUESS_MAX_RETRY_ATTEMPTS", "3"))
RETRY_BASE_DELAY_SEC = float(os.getenv("TRACKGUESS_RETRY_BASE_DELAY_SEC", "1.0"))
SPOTIFY_REQUESTS_TIMEOUT_SEC = 10

# Caching
QUESTIONS_CACHE_TTL_SEC = float(os.getenv("TRACKGUESS_QUESTIONS_CACHE_TTL_SEC", "3600"))

# Token endpoint abuse guard (per client IP)
TOKEN_RATE_LIMIT = int(os.getenv("TRACKGUESS_TOKEN_RATE_LIMIT", "5"))
TOKEN_RATE_WINDOW_SEC = float(os.getenv("TRACKGUESS_TOKEN_RATE_WINDOW_SEC", "60"))

# Player sessions idle longer than this are closed and their tokens removed
SESSION_IDLE_TTL_SEC = float(os.getenv("TRACKGUESS_SESSION_IDLE_TTL_SEC", "7200"))


def ensure_data_dir() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    CREDENTIALS_DIR.mkdir(parents=True, exist_ok=True)
