from unittest.mock import MagicMock

import pytest
import requests

from fakes import FakeExchange

from trackguess.core import token_exchange
from trackguess.core.errors import CredentialMissing, RefreshFailed
from trackguess.core.storage import CredentialStore, MemoryStorage
from trackguess.core.token_exchange import HttpTokenExchange, SpotifyTokenExchange
from trackguess.core.token_manager import TokenManager


def test_get_access_token(tokens):
    assert tokens.get_access_token() == "old-token"


def test_missing_access_token_raises(exchange):
    manager = TokenManager(CredentialStore(MemoryStorage(), MemoryStorage()), exchange)
    with pytest.raises(CredentialMissing):
        manager.get_access_token()


def test_refresh_stores_new_access_token(tokens, credentials, exchange):
    assert tokens.refresh() == "new-token-1"
    assert credentials.get_access_token() == "new-token-1"
    assert credentials.get_refresh_token() == "refresh-1"
    assert credentials.get_credential().expires_at_epoch_ms > 0


def test_refresh_without_refresh_token_raises(exchange):
    credentials = CredentialStore(MemoryStorage(), MemoryStorage())
    credentials.set_access_token("a")
    with pytest.raises(RefreshFailed, match="Refresh token not found"):
        TokenManager(credentials, exchange).refresh()
    assert exchange.refresh_calls == []


def test_failed_refresh_keeps_credentials(credentials):
    manager = TokenManager(credentials, FakeExchange(fail=True))
    with pytest.raises(RefreshFailed):
        manager.refresh()
    assert credentials.get_access_token() == "old-token"
    assert credentials.get_refresh_token() == "refresh-1"


def test_sign_out_clears_everything(tokens, credentials):
    credentials.set_pending_game_id("GAME01")
    tokens.sign_out()
    assert credentials.get_access_token() is None
    assert credentials.get_refresh_token() is None
    assert credentials.get_pending_game_id() is None


def response(status, payload):
    resp = MagicMock(spec=requests.Response)
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.json.return_value = payload
    return resp


class TestHttpTokenExchange:
    def test_refresh_posts_to_intermediary(self, monkeypatch):
        post = MagicMock(return_value=response(200, {"access_token": "fresh", "expires_in": 3600}))
        monkeypatch.setattr(token_exchange.requests, "post", post)
        result = HttpTokenExchange("https://game.example.com/api/spotify/").refresh("r1")
        assert result.access_token == "fresh"
        assert result.refresh_token is None
        url = post.call_args.args[0]
        assert url == "https://game.example.com/api/spotify/token/refresh"
        assert post.call_args.kwargs["json"] == {"refresh_token": "r1"}

    def test_error_detail_is_surfaced(self, monkeypatch):
        post = MagicMock(return_value=response(400, {"detail": "Failed to refresh access token"}))
        monkeypatch.setattr(token_exchange.requests, "post", post)
        with pytest.raises(RefreshFailed, match="Failed to refresh access token"):
            HttpTokenExchange("https://x").refresh("r1")

    def test_network_error_becomes_refresh_failed(self, monkeypatch):
        post = MagicMock(side_effect=requests.exceptions.ConnectionError("down"))
        monkeypatch.setattr(token_exchange.requests, "post", post)
        with pytest.raises(RefreshFailed):
            HttpTokenExchange("https://x").refresh("r1")

    def test_missing_access_token_in_body(self, monkeypatch):
        post = MagicMock(return_value=response(200, {"token_type": "Bearer"}))
        monkeypatch.setattr(token_exchange.requests, "post", post)
        with pytest.raises(RefreshFailed):
            HttpTokenExchange("https://x").refresh("r1")


class TestSpotifyTokenExchange:
    def test_unconfigured_exchange_refuses(self):
        exchange = SpotifyTokenExchange(client_id="", client_secret="")
        assert not exchange.configured
        with pytest.raises(RefreshFailed, match="Server configuration error"):
            exchange.refresh("r1")
        with pytest.raises(RefreshFailed, match="Server configuration error"):
            exchange.exchange_code("c", "https://x/cb")

    def test_refresh_uses_spotipy_oauth(self, monkeypatch):
        oauth = MagicMock()
        oauth.refresh_access_token.return_value = {
            "access_token": "fresh",
            "expires_in": 3600,
            "token_type": "Bearer",
            "scope": "user-read-private",
        }
        monkeypatch.setattr(token_exchange, "SpotifyOAuth", MagicMock(return_value=oauth))
        result = SpotifyTokenExchange("id", "secret").refresh("r1")
        oauth.refresh_access_token.assert_called_once_with("r1")
        assert result.access_token == "fresh"
        assert result.refresh_token is None

    def test_oauth_error_becomes_refresh_failed(self, monkeypatch):
        oauth = MagicMock()
        oauth.get_access_token.side_effect = token_exchange.SpotifyOauthError("invalid_grant")
        monkeypatch.setattr(token_exchange, "SpotifyOAuth", MagicMock(return_value=oauth))
        with pytest.raises(RefreshFailed, match="exchange authorization code"):
            SpotifyTokenExchange("id", "secret").exchange_code("bad", "https://x/cb")
