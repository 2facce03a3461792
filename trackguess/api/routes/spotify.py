"""Spotify OAuth: auth URL, and the token intermediary that holds the client secret."""
import logging
import urllib.parse
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from trackguess.api.state import GAME_NOT_FOUND, AppState, get_state
from trackguess.config import (
    SPOTIFY_AUTHORIZE_URL,
    SPOTIFY_CLIENT_ID,
    SPOTIFY_REDIRECT_URI,
    SPOTIFY_SCOPES,
)
from trackguess.core.errors import RefreshFailed
from trackguess.core.rate_limit import client_identifier
from trackguess.core.validation import (
    validate_game_code,
    validate_redirect_uri,
    validate_spotify_code,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class TokenBody(BaseModel):
    code: Optional[str] = None
    redirect_uri: Optional[str] = None


class RefreshBody(BaseModel):
    refresh_token: Optional[str] = None


def _check_rate_limit(request: Request, state: AppState) -> None:
    peer = request.client.host if request.client else None
    if not state.token_rate_limiter.allow(client_identifier(request.headers, peer)):
        raise HTTPException(status_code=429, detail="Too many requests. Please try again later.")


def _check_configured(state: AppState) -> None:
    if not state.intermediary.configured:
        logger.error("Spotify client id/secret not set")
        raise HTTPException(status_code=500, detail="Server configuration error")


@router.get("/auth-url")
def get_auth_url(game_id: str, state: AppState = Depends(get_state)):
    """Return the Spotify authorization URL with the game code as OAuth state."""
    result = validate_game_code(game_id)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    if state.store.get_game(result.value) is None:
        raise HTTPException(status_code=404, detail=GAME_NOT_FOUND)
    if not SPOTIFY_CLIENT_ID:
        return {"auth_url": None, "error": "SPOTIFY_CLIENT_ID not set"}
    params = {
        "client_id": SPOTIFY_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": SPOTIFY_REDIRECT_URI,
        "scope": SPOTIFY_SCOPES,
        "state": result.value,
    }
    return {"auth_url": f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"}


@router.post("/token")
def exchange_token(body: TokenBody, request: Request, state: AppState = Depends(get_state)):
    """Exchange an authorization code for access and refresh tokens."""
    _check_rate_limit(request, state)
    code = validate_spotify_code(body.code)
    if not code.valid:
        raise HTTPException(status_code=400, detail=code.error)
    redirect = validate_redirect_uri(body.redirect_uri)
    if not redirect.valid:
        raise HTTPException(status_code=400, detail=redirect.error)
    if state.redirect_allowlist and redirect.value not in state.redirect_allowlist:
        raise HTTPException(status_code=400, detail="Redirect URI is not allowed.")
    _check_configured(state)
    try:
        token = state.intermediary.exchange_code(code.value, redirect.value)
    except RefreshFailed as e:
        raise HTTPException(status_code=400, detail=e.message)
    return token.to_dict()


@router.post("/token/refresh")
def refresh_token(body: RefreshBody, request: Request, state: AppState = Depends(get_state)):
    """Exchange a refresh token for a new access token (and maybe a new refresh token)."""
    _check_rate_limit(request, state)
    if not body.refresh_token or not body.refresh_token.strip():
        raise HTTPException(status_code=400, detail="Invalid refresh token.")
    _check_configured(state)
    try:
        token = state.intermediary.refresh(body.refresh_token.strip())
    except RefreshFailed as e:
        raise HTTPException(status_code=400, detail=e.message)
    return token.to_dict()
