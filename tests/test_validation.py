import pytest

from trackguess.core.question_cache import QuestionCache
from trackguess.core.rate_limit import RateLimiter, client_identifier
from trackguess.core.spotify_client import extract_track_id
from trackguess.core.validation import (
    validate_game_code,
    validate_redirect_uri,
    validate_spotify_code,
)
from trackguess.models.answer import Question

TRACK_ID = "4uLU6hMCjMI75M1A2tKUQC"


class TestGameCode:
    def test_valid_code_is_upper_cased(self):
        result = validate_game_code(" ab12cd ")
        assert result.valid
        assert result.value == "AB12CD"

    @pytest.mark.parametrize("code", ["", None, "ABC", "ABCDEFG", "AB-12C"])
    def test_invalid_codes(self, code):
        result = validate_game_code(code)
        assert not result.valid
        assert result.error


class TestSpotifyCode:
    def test_valid(self):
        assert validate_spotify_code(" AQD123 ").value == "AQD123"

    def test_blank(self):
        assert validate_spotify_code("   ").error == "Authorization code cannot be empty"

    def test_too_long(self):
        assert not validate_spotify_code("x" * 1001).valid


class TestRedirectUri:
    def test_https_is_accepted(self):
        assert validate_redirect_uri("https://localhost:3000/callback").valid

    def test_http_is_rejected(self):
        result = validate_redirect_uri("http://localhost:3000/callback")
        assert not result.valid
        assert "HTTPS" in result.error

    def test_not_a_url(self):
        assert validate_redirect_uri("callback").error == "Invalid redirect URI format"


class TestExtractTrackId:
    @pytest.mark.parametrize(
        "value",
        [
            f"https://open.spotify.com/track/{TRACK_ID}",
            f"https://open.spotify.com/track/{TRACK_ID}?si=abcdef",
            f"https://open.spotify.com/intl-de/track/{TRACK_ID}",
            f"spotify:track:{TRACK_ID}",
            TRACK_ID,
        ],
    )
    def test_accepted_forms(self, value):
        assert extract_track_id(value) == TRACK_ID

    @pytest.mark.parametrize(
        "value",
        ["", "https://open.spotify.com/album/" + TRACK_ID, "https://example.com/track/abc", "short"],
    )
    def test_rejected_forms(self, value):
        assert extract_track_id(value) is None


class TestRateLimiter:
    def test_allows_limit_then_blocks(self):
        now = [0.0]
        limiter = RateLimiter(limit=5, window_sec=60, clock=lambda: now[0])
        assert all(limiter.allow("1.2.3.4") for _ in range(5))
        assert not limiter.allow("1.2.3.4")
        assert limiter.allow("5.6.7.8")

    def test_window_expiry_resets_count(self):
        now = [0.0]
        limiter = RateLimiter(limit=1, window_sec=60, clock=lambda: now[0])
        assert limiter.allow("a")
        assert not limiter.allow("a")
        now[0] = 61.0
        assert limiter.allow("a")

    def test_client_identifier_prefers_forwarded_for(self):
        headers = {"x-forwarded-for": "10.0.0.1, 10.0.0.2", "x-real-ip": "10.0.0.9"}
        assert client_identifier(headers, "127.0.0.1") == "10.0.0.1"
        assert client_identifier({"x-real-ip": "10.0.0.9"}, "127.0.0.1") == "10.0.0.9"
        assert client_identifier({}, "127.0.0.1") == "127.0.0.1"
        assert client_identifier({}) == "unknown"


class TestQuestionCache:
    def test_reloads_after_ttl(self):
        now = [0.0]
        loads = []

        def loader():
            loads.append(now[0])
            return [Question(id="Q1", text="?", display_order=1)]

        cache = QuestionCache(loader, ttl_sec=3600, clock=lambda: now[0])
        cache.get()
        cache.get()
        assert loads == [0.0]
        now[0] = 3601.0
        cache.get()
        assert loads == [0.0, 3601.0]

    def test_empty_result_is_not_cached(self):
        loads = []
        cache = QuestionCache(lambda: loads.append(1) or [], ttl_sec=3600)
        assert cache.get() == []
        assert cache.get() == []
        assert len(loads) == 2
        assert not cache.is_valid()

    def test_invalidate(self):
        cache = QuestionCache(lambda: [Question(id="Q1", text="?", display_order=1)])
        cache.get()
        assert cache.is_valid()
        cache.invalidate()
        assert not cache.is_valid()
