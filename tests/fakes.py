"""Fake collaborators: answer store, Spotipy client, token exchange."""
from collections import defaultdict, deque
from datetime import datetime, timezone

from spotipy.exceptions import SpotifyException

from trackguess.core.errors import RefreshFailed
from trackguess.models.answer import Answer, Question, StoreResult
from trackguess.models.credential import TokenResponse
from trackguess.models.game import Game, GamePlayer
from trackguess.models.track import Track

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
RECENT = "2026-03-01"
THIRTEEN_MONTHS_AGO = "2025-05-15"


def make_track(track_id: str, release_date: str = RECENT) -> Track:
    return Track(
        id=track_id,
        title=f"Song {track_id}",
        artists=("Artist A", "Artist B"),
        album_name=f"Album {track_id}",
        release_date=release_date,
        external_url=f"https://open.spotify.com/track/{track_id}",
    )


def spotify_payload(track_id: str, release_date: str = RECENT) -> dict:
    return {
        "id": track_id,
        "name": f"Song {track_id}",
        "artists": [{"name": "Artist A"}],
        "album": {
            "name": "Album",
            "images": [{"url": "https://i.scdn.co/image/abc"}],
            "release_date": release_date,
        },
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
        "preview_url": None,
    }


def spotify_error(status: int) -> SpotifyException:
    return SpotifyException(status, -1, f"HTTP {status}")


def default_questions(count: int = 8) -> list:
    return [Question(id=f"Q{i}", text=f"Question {i}?", display_order=i) for i in range(1, count + 1)]


class FakeStore:
    """In-memory answer store. fail_save/fail_delete map question id -> error message."""

    def __init__(self, questions=None, minimum: int = 5, games=("GAME01", "AB12CD")) -> None:
        self.questions = questions if questions is not None else default_questions()
        self.minimum = minimum
        self.games = {code: Game(id=code) for code in games}
        self.players = {}
        self.answers = {}
        self.fail_save = {}
        self.fail_delete = {}
        self.calls = []

    def get_game(self, game_id):
        return self.games.get(game_id)

    def join_game(self, game_id, profile):
        if game_id not in self.games:
            return StoreResult(success=False, error="Game not found")
        player = GamePlayer.from_profile(game_id, profile)
        self.players[(game_id, player.spotify_user_id)] = player
        return StoreResult(success=True)

    def get_active_questions(self):
        return sorted([q for q in self.questions if q.active], key=lambda q: q.display_order)

    def get_player_answers(self, player_id):
        return [a for (pid, _), a in self.answers.items() if pid == player_id]

    def save_answer(self, player_id, question_id, track):
        self.calls.append(("save", question_id, track.id))
        if question_id in self.fail_save:
            return StoreResult(success=False, error=self.fail_save[question_id])
        if question_id not in {q.id for q in self.get_active_questions()}:
            return StoreResult(success=False, error="This question does not exist or is no longer active.")
        self.answers[(player_id, question_id)] = Answer.from_track(player_id, question_id, track)
        return StoreResult(success=True)

    def delete_answer(self, player_id, question_id):
        self.calls.append(("delete", question_id))
        if question_id in self.fail_delete:
            return StoreResult(success=False, error=self.fail_delete[question_id])
        if self.answers.pop((player_id, question_id), None) is None:
            return StoreResult(success=False, error="No answer found to delete.")
        return StoreResult(success=True)

    def is_ready(self, player_id):
        return len(self.get_player_answers(player_id)) >= self.minimum

    def answer_for(self, player_id, question_id):
        return self.answers.get((player_id, question_id))


class SpotifyScript:
    """Queued outcomes per Spotipy method. An exception outcome is raised."""

    def __init__(self) -> None:
        self.queues = defaultdict(deque)
        self.defaults = {}
        self.calls = []
        self.tokens = []

    def queue(self, method: str, *outcomes) -> "SpotifyScript":
        self.queues[method].extend(outcomes)
        return self

    def default(self, method: str, outcome) -> "SpotifyScript":
        self.defaults[method] = outcome
        return self

    def next(self, method: str, token: str, *args):
        self.calls.append((method, token) + args)
        if self.queues[method]:
            outcome = self.queues[method].popleft()
        else:
            outcome = self.defaults[method]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def factory(self, access_token: str) -> "FakeSpotify":
        self.tokens.append(access_token)
        return FakeSpotify(self, access_token)

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c[0] == method)


class FakeSpotify:
    def __init__(self, script: SpotifyScript, token: str) -> None:
        self._script = script
        self.token = token

    def search(self, q, type="track", limit=20):
        return self._script.next("search", self.token, q)

    def track(self, track_id):
        return self._script.next("track", self.token, track_id)

    def current_user(self):
        return self._script.next("current_user", self.token)


class FakeExchange:
    """Token exchange returning new-token-1, new-token-2, ... or failing."""

    def __init__(self, fail: bool = False, rotate_refresh: bool = False) -> None:
        self.fail = fail
        self.rotate_refresh = rotate_refresh
        self.refresh_calls = []
        self.code_calls = []
        self.configured = True

    def refresh(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.fail:
            raise RefreshFailed("Failed to refresh access token")
        n = len(self.refresh_calls)
        return TokenResponse(
            access_token=f"new-token-{n}",
            expires_in=3600,
            refresh_token=f"new-refresh-{n}" if self.rotate_refresh else None,
        )

    def exchange_code(self, code, redirect_uri):
        self.code_calls.append((code, redirect_uri))
        if self.fail:
            raise RefreshFailed("Failed to exchange authorization code for access token")
        return TokenResponse(access_token="code-access", expires_in=3600, refresh_token="code-refresh")
