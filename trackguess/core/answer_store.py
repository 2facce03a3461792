"""Answer store: the durable owner of games, questions and player answers.

AnswerStore is the contract the sync engine depends on. JsonAnswerStore keeps
answers in one JSON file with at most one answer per (player_id, question_id);
saving an answer for an existing pair replaces it. Answers may only reference
active questions.
"""
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from trackguess.config import ANSWERS_PATH, GAMES_PATH, MINIMUM_QUESTIONS, QUESTIONS_PATH
from trackguess.models.answer import Answer, Question, StoreResult
from trackguess.models.game import Game, GamePlayer
from trackguess.models.track import Track

logger = logging.getLogger(__name__)

NO_ANSWER_TO_DELETE = "No answer found to delete. It may have already been deleted."
UNKNOWN_QUESTION = "This question does not exist or is no longer active."


class AnswerStore(Protocol):
    def get_game(self, game_id: str) -> Optional[Game]:
        ...

    def join_game(self, game_id: str, profile: dict) -> StoreResult:
        ...

    def get_active_questions(self) -> List[Question]:
        ...

    def get_player_answers(self, player_id: str) -> List[Answer]:
        ...

    def save_answer(self, player_id: str, question_id: str, track: Track) -> StoreResult:
        ...

    def delete_answer(self, player_id: str, question_id: str) -> StoreResult:
        ...

    def is_ready(self, player_id: str) -> bool:
        ...


def load_questions(path: Path) -> List[Question]:
    """Load all questions (active or not) from disk."""
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        logger.warning("Could not read questions from %s", path)
        return []
    out = []
    for item in data.get("questions", []):
        try:
            out.append(
                Question(
                    id=str(item["id"]),
                    text=item["text"],
                    display_order=int(item.get("display_order", 0)),
                    active=bool(item.get("active", True)),
                )
            )
        except (KeyError, TypeError, ValueError):
            continue
    return out


def _answer_from_dict(item: dict) -> Answer:
    return Answer(
        player_id=item["player_id"],
        question_id=item["question_id"],
        track_id=item["track_id"],
        track_name=item["track_name"],
        artist_name=item.get("artist_name", ""),
        album_name=item.get("album_name", ""),
        release_date=item.get("release_date", ""),
        external_url=item.get("external_url", ""),
        album_image_url=item.get("album_image_url"),
        preview_url=item.get("preview_url"),
        updated_at=item.get("updated_at", ""),
    )


def _game_from_dict(item: dict) -> Game:
    return Game(
        id=str(item["id"]).upper(),
        status=item.get("status", "waiting"),
        host_id=item.get("host_id", ""),
        created_at=item.get("created_at", ""),
    )


class JsonAnswerStore:
    def __init__(
        self,
        answers_path: Path = ANSWERS_PATH,
        questions_path: Path = QUESTIONS_PATH,
        games_path: Path = GAMES_PATH,
        minimum: int = MINIMUM_QUESTIONS,
    ) -> None:
        self._answers_path = Path(answers_path)
        self._questions_path = Path(questions_path)
        self._games_path = Path(games_path)
        self._minimum = minimum
        self._lock = threading.Lock()

    def _load_answers(self) -> Dict[Tuple[str, str], Answer]:
        """Raises OSError/ValueError if the file exists but cannot be read."""
        if not self._answers_path.exists():
            return {}
        data = json.loads(self._answers_path.read_text())
        out: Dict[Tuple[str, str], Answer] = {}
        for item in data.get("answers", []):
            try:
                answer = _answer_from_dict(item)
            except (KeyError, TypeError):
                continue
            out[(answer.player_id, answer.question_id)] = answer
        return out

    def _save_answers(self, answers: Dict[Tuple[str, str], Answer]) -> None:
        self._answers_path.parent.mkdir(parents=True, exist_ok=True)
        data = {"answers": [a.to_dict() for a in answers.values()]}
        self._answers_path.write_text(json.dumps(data, indent=2))

    def _load_games(self) -> dict:
        """{"games": [...], "players": [...]}; raises OSError/ValueError if unreadable."""
        if not self._games_path.exists():
            return {"games": [], "players": []}
        data = json.loads(self._games_path.read_text())
        data.setdefault("games", [])
        data.setdefault("players", [])
        return data

    def get_game(self, game_id: str) -> Optional[Game]:
        code = (game_id or "").strip().upper()
        with self._lock:
            try:
                data = self._load_games()
            except (OSError, ValueError) as e:
                logger.warning("Could not read games: %s", e)
                return None
        for item in data["games"]:
            try:
                game = _game_from_dict(item)
            except (KeyError, TypeError):
                continue
            if game.id == code:
                return game
        return None

    def join_game(self, game_id: str, profile: dict) -> StoreResult:
        """Register the Spotify user in the game. Joining again updates the profile."""
        game_id = (game_id or "").strip().upper()
        try:
            player = GamePlayer.from_profile(
                game_id, profile, joined_at=datetime.now(timezone.utc).isoformat()
            )
        except (KeyError, TypeError, AttributeError):
            return StoreResult(success=False, error="Spotify profile has no user id")
        with self._lock:
            try:
                data = self._load_games()
                if not any(str(g.get("id", "")).upper() == game_id for g in data["games"]):
                    return StoreResult(success=False, error="Game not found")
                players = [
                    p for p in data["players"]
                    if (p.get("game_id"), p.get("spotify_user_id")) != (game_id, player.spotify_user_id)
                ]
                players.append(player.to_dict())
                data["players"] = players
                self._games_path.parent.mkdir(parents=True, exist_ok=True)
                self._games_path.write_text(json.dumps(data, indent=2))
            except (OSError, ValueError) as e:
                logger.error("Joining game %s failed: %s", game_id, e)
                return StoreResult(success=False, error=str(e))
        logger.info("Player %s joined game %s", player.spotify_user_id, game_id)
        return StoreResult(success=True)

    def get_active_questions(self) -> List[Question]:
        """Active questions ordered by display_order."""
        questions = [q for q in load_questions(self._questions_path) if q.active]
        return sorted(questions, key=lambda q: q.display_order)

    def get_player_answers(self, player_id: str) -> List[Answer]:
        with self._lock:
            try:
                answers = self._load_answers()
            except (OSError, ValueError) as e:
                logger.warning("Could not read answers: %s", e)
                return []
        return [a for (pid, _), a in answers.items() if pid == player_id]

    def save_answer(self, player_id: str, question_id: str, track: Track) -> StoreResult:
        """Insert or replace the answer for (player_id, question_id).

        Fails for a question that is unknown or inactive.
        """
        if question_id not in {q.id for q in self.get_active_questions()}:
            return StoreResult(success=False, error=UNKNOWN_QUESTION)
        with self._lock:
            try:
                answers = self._load_answers()
                answers[(player_id, question_id)] = Answer.from_track(player_id, question_id, track)
                self._save_answers(answers)
            except (OSError, ValueError) as e:
                logger.error("Saving answer %s/%s failed: %s", player_id, question_id, e)
                return StoreResult(success=False, error=str(e))
        return StoreResult(success=True)

    def delete_answer(self, player_id: str, question_id: str) -> StoreResult:
        with self._lock:
            try:
                answers = self._load_answers()
                if (player_id, question_id) not in answers:
                    return StoreResult(success=False, error=NO_ANSWER_TO_DELETE)
                del answers[(player_id, question_id)]
                self._save_answers(answers)
            except (OSError, ValueError) as e:
                logger.error("Deleting answer %s/%s failed: %s", player_id, question_id, e)
                return StoreResult(success=False, error=str(e))
        return StoreResult(success=True)

    def is_ready(self, player_id: str) -> bool:
        return len(self.get_player_answers(player_id)) >= self._minimum

    def get_answer(self, player_id: str, question_id: str) -> Optional[Answer]:
        for answer in self.get_player_answers(player_id):
            if answer.question_id == question_id:
                return answer
        return None
