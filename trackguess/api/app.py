"""FastAPI app, CORS, and route registration."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configure logging in the worker process (uvicorn --reload spawns a fresh one)
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(name)s: %(message)s",
)

from trackguess.api.state import AppState, get_state
from trackguess.config import ensure_data_dir

# Import routes after state to avoid circular imports
from trackguess.api.routes import questions, sessions, spotify

__all__ = ["app", "AppState", "get_state"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_data_dir()
    logging.getLogger(__name__).info("trackguess API ready")

    yield

    # Cancels any retry backoff still waiting for a session
    get_state().close_all()


app = FastAPI(
    title="trackguess API",
    description="Spotify sign-in and answer sync for the music guessing game",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(spotify.router, prefix="/api/spotify", tags=["spotify"])
app.include_router(questions.router, prefix="/api/questions", tags=["questions"])
app.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])
