"""Active questions."""
from dataclasses import asdict

from fastapi import APIRouter, Depends

from trackguess.api.state import AppState, get_state

router = APIRouter()


@router.get("")
def list_questions(state: AppState = Depends(get_state)):
    """Active questions in display order (cached)."""
    return [asdict(q) for q in state.questions.get()]
