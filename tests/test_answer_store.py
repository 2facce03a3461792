import json

import pytest

from fakes import make_track

from trackguess.core.answer_store import (
    NO_ANSWER_TO_DELETE,
    UNKNOWN_QUESTION,
    JsonAnswerStore,
    load_questions,
)

PROFILE = {
    "id": "alice",
    "display_name": "Alice",
    "email": "alice@example.com",
    "images": [{"url": "https://i.scdn.co/image/alice"}],
}


def write_questions(path):
    path.write_text(
        json.dumps(
            {
                "questions": [
                    {"id": "Q2", "text": "Second?", "display_order": 2},
                    {"id": "Q1", "text": "First?", "display_order": 1},
                    {"id": "Q3", "text": "Retired?", "display_order": 3, "active": False},
                    {"text": "no id"},
                ]
            }
        )
    )
    return path


@pytest.fixture()
def games_path(tmp_path):
    path = tmp_path / "games.json"
    path.write_text(json.dumps({"games": [{"id": "GAME01", "status": "waiting"}, {"status": "no id"}]}))
    return path


@pytest.fixture()
def answer_store(tmp_path, games_path):
    questions = write_questions(tmp_path / "questions.json")
    return JsonAnswerStore(tmp_path / "answers.json", questions, games_path=games_path, minimum=2)


def test_active_questions_sorted(answer_store):
    assert [q.id for q in answer_store.get_active_questions()] == ["Q1", "Q2"]


def test_missing_questions_file(tmp_path):
    assert load_questions(tmp_path / "nope.json") == []


def test_save_and_read_back(answer_store):
    assert answer_store.save_answer("p1", "Q1", make_track("T1")).success
    answers = answer_store.get_player_answers("p1")
    assert len(answers) == 1
    assert answers[0].track_id == "T1"
    assert answers[0].artist_name == "Artist A, Artist B"
    assert answers[0].updated_at


def test_save_replaces_existing_pair(answer_store):
    answer_store.save_answer("p1", "Q1", make_track("T1"))
    answer_store.save_answer("p1", "Q1", make_track("T2"))
    answers = answer_store.get_player_answers("p1")
    assert [a.track_id for a in answers] == ["T2"]


def test_answers_are_per_player(answer_store):
    answer_store.save_answer("p1", "Q1", make_track("T1"))
    answer_store.save_answer("p2", "Q1", make_track("T9"))
    assert answer_store.get_answer("p1", "Q1").track_id == "T1"
    assert answer_store.get_answer("p2", "Q1").track_id == "T9"


def test_delete_missing_answer(answer_store):
    result = answer_store.delete_answer("p1", "Q1")
    assert not result.success
    assert result.error == NO_ANSWER_TO_DELETE


def test_delete_answer(answer_store):
    answer_store.save_answer("p1", "Q1", make_track("T1"))
    assert answer_store.delete_answer("p1", "Q1").success
    assert answer_store.get_answer("p1", "Q1") is None


def test_is_ready(answer_store):
    answer_store.save_answer("p1", "Q1", make_track("T1"))
    assert not answer_store.is_ready("p1")
    answer_store.save_answer("p1", "Q2", make_track("T2"))
    assert answer_store.is_ready("p1")


def test_unreadable_answers_file_fails_writes(tmp_path):
    answers = tmp_path / "answers.json"
    answers.write_text("{broken")
    store = JsonAnswerStore(answers, write_questions(tmp_path / "questions.json"))
    result = store.save_answer("p1", "Q1", make_track("T1"))
    assert not result.success
    assert result.error
    assert store.get_player_answers("p1") == []


@pytest.mark.parametrize("question_id", ["Q3", "NOT-A-QUESTION"])
def test_save_rejects_inactive_or_unknown_question(answer_store, question_id):
    result = answer_store.save_answer("p1", question_id, make_track("T1"))
    assert not result.success
    assert result.error == UNKNOWN_QUESTION
    assert answer_store.get_player_answers("p1") == []


def test_get_game_is_case_insensitive(answer_store):
    assert answer_store.get_game("game01").id == "GAME01"
    assert answer_store.get_game("NOPE99") is None


def test_missing_games_file_has_no_games(tmp_path):
    store = JsonAnswerStore(tmp_path / "answers.json", tmp_path / "questions.json", games_path=tmp_path / "none.json")
    assert store.get_game("GAME01") is None


def test_join_game_registers_player_once(answer_store, games_path):
    assert answer_store.join_game("GAME01", PROFILE).success
    assert answer_store.join_game("GAME01", dict(PROFILE, display_name="Alice B")).success
    players = json.loads(games_path.read_text())["players"]
    assert len(players) == 1
    assert players[0]["spotify_user_id"] == "alice"
    assert players[0]["display_name"] == "Alice B"
    assert players[0]["image_url"] == "https://i.scdn.co/image/alice"
    assert players[0]["joined_at"]


def test_join_unknown_game_fails(answer_store, games_path):
    result = answer_store.join_game("NOPE99", PROFILE)
    assert not result.success
    assert "players" not in json.loads(games_path.read_text())
