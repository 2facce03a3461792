import pytest

from fakes import NOW, FakeExchange, FakeStore, SpotifyScript

from trackguess.core.api_client import RateLimitedClient
from trackguess.core.storage import CredentialStore, MemoryStorage
from trackguess.core.sync_engine import AnswerSyncEngine
from trackguess.core.token_manager import TokenManager


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def engine(store):
    return AnswerSyncEngine(store, "GAME01:alice", minimum=5, eligibility_years=1, clock=lambda: NOW)


@pytest.fixture()
def credentials():
    creds = CredentialStore(MemoryStorage(), MemoryStorage())
    creds.set_access_token("old-token")
    creds.set_refresh_token("refresh-1")
    return creds


@pytest.fixture()
def exchange():
    return FakeExchange()


@pytest.fixture()
def tokens(credentials, exchange):
    return TokenManager(credentials, exchange)


@pytest.fixture()
def script():
    return SpotifyScript()


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def client(tokens, script, sleeps):
    return RateLimitedClient(
        tokens,
        spotify_factory=script.factory,
        max_attempts=3,
        base_delay=1.0,
        sleep=sleeps.append,
    )
