"""Player sessions: slots, track search, and answer changes."""
import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from trackguess.api.errors import http_error
from trackguess.api.state import AppState, PlayerSession, get_state
from trackguess.config import MIN_SEARCH_LENGTH
from trackguess.core.errors import TrackGuessError
from trackguess.core.spotify_client import extract_track_id
from trackguess.core.validation import validate_game_code
from trackguess.models.track import Track

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateSessionBody(BaseModel):
    game_id: str
    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None
    expires_in: int = 3600


class TrackBody(BaseModel):
    id: str = Field(min_length=1)
    title: str
    artists: List[str] = []
    album_name: str = ""
    release_date: str = ""
    external_url: str = ""
    album_image_url: Optional[str] = None
    preview_url: Optional[str] = None


class SelectTrackBody(BaseModel):
    """Either a track picked from search results, or a pasted Spotify link (manual entry)."""
    track: Optional[TrackBody] = None
    track_url: Optional[str] = None


class ChangeQuestionBody(BaseModel):
    question_id: str = Field(min_length=1)


def _session_view(session: PlayerSession) -> dict:
    engine = session.engine
    return {
        "session_id": session.session_id,
        "game_id": session.game_id,
        "player_id": session.player_id,
        "slots": [s.to_dict() for s in engine.slots],
        "readiness": engine.readiness().to_dict(),
    }


def _get_session(session_id: str, state: AppState) -> PlayerSession:
    session = state.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", status_code=201)
def create_session(body: CreateSessionBody, state: AppState = Depends(get_state)):
    """Start answering for a game with the tokens from the OAuth exchange."""
    game = validate_game_code(body.game_id)
    if not game.valid:
        raise HTTPException(status_code=400, detail=game.error)
    try:
        session = state.create_session(
            game.value, body.access_token, body.refresh_token, body.expires_in
        )
    except TrackGuessError as e:
        raise http_error(e)
    return _session_view(session)


@router.get("/{session_id}")
def get_session(session_id: str, state: AppState = Depends(get_state)):
    return _session_view(_get_session(session_id, state))


@router.delete("/{session_id}", status_code=204)
def close_session(session_id: str, state: AppState = Depends(get_state)):
    """End the session: cancel pending retries and forget the player's tokens."""
    if not state.close_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")


@router.get("/{session_id}/questions")
def available_questions(session_id: str, state: AppState = Depends(get_state)):
    """Active questions not yet assigned to one of this player's slots."""
    session = _get_session(session_id, state)
    return [asdict(q) for q in session.engine.available_questions(state.questions.get())]


@router.get("/{session_id}/search")
def search_tracks(session_id: str, q: str = "", state: AppState = Depends(get_state)):
    """Tracks matching q that were released within the eligibility window."""
    session = _get_session(session_id, state)
    if len(q.strip()) < MIN_SEARCH_LENGTH:
        return {"tracks": []}
    try:
        tracks = session.track_api.search_eligible(q, state.eligibility_years)
    except TrackGuessError as e:
        raise http_error(e)
    return {"tracks": [t.to_dict() for t in tracks]}


@router.post("/{session_id}/slots", status_code=201)
def add_slot(session_id: str, state: AppState = Depends(get_state)):
    session = _get_session(session_id, state)
    try:
        slot = session.engine.add_slot()
    except TrackGuessError as e:
        raise http_error(e)
    return {"slot": slot.to_dict(), "readiness": session.engine.last_readiness.to_dict()}


@router.put("/{session_id}/slots/{index}/question")
def change_question(
    session_id: str,
    index: int,
    body: ChangeQuestionBody,
    state: AppState = Depends(get_state),
):
    session = _get_session(session_id, state)
    try:
        slot = session.engine.change_question(index, body.question_id)
    except TrackGuessError as e:
        raise http_error(e)
    return {"slot": slot.to_dict(), "readiness": session.engine.last_readiness.to_dict()}


@router.delete("/{session_id}/slots/{index}/question")
def clear_question(session_id: str, index: int, state: AppState = Depends(get_state)):
    session = _get_session(session_id, state)
    try:
        slot = session.engine.clear_question(index)
    except TrackGuessError as e:
        raise http_error(e)
    return {"slot": slot.to_dict(), "readiness": session.engine.last_readiness.to_dict()}


@router.put("/{session_id}/slots/{index}/track")
def select_track(
    session_id: str,
    index: int,
    body: SelectTrackBody,
    state: AppState = Depends(get_state),
):
    """Save a track for the slot's question.

    Pasted links are looked up on Spotify and skip the release-date check.
    """
    session = _get_session(session_id, state)
    if body.track is None and not body.track_url:
        raise HTTPException(status_code=400, detail="Provide track or track_url")
    try:
        if body.track is not None:
            track = Track.from_dict(body.track.model_dump())
            manual = False
        else:
            track_id = extract_track_id(body.track_url)
            if track_id is None:
                raise HTTPException(
                    status_code=400,
                    detail="Invalid Spotify track URL. Paste a link like https://open.spotify.com/track/...",
                )
            track = session.track_api.get_track_by_id(track_id)
            manual = True
        slot = session.engine.select_track(index, track, eligibility_override=manual)
    except TrackGuessError as e:
        raise http_error(e)
    return {"slot": slot.to_dict(), "readiness": session.engine.last_readiness.to_dict()}


@router.delete("/{session_id}/slots/{index}")
def remove_slot(session_id: str, index: int, state: AppState = Depends(get_state)):
    session = _get_session(session_id, state)
    try:
        result = session.engine.remove_slot(index)
    except TrackGuessError as e:
        raise http_error(e)
    return {"slots": [s.to_dict() for s in session.engine.slots], "readiness": result.to_dict()}
