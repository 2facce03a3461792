"""Spotify track lookups (search, by id, current user), all through RateLimitedClient."""
import re
from datetime import datetime
from typing import List, Optional

from trackguess.config import ELIGIBILITY_YEARS, SPOTIFY_SEARCH_LIMIT
from trackguess.core.api_client import RateLimitedClient
from trackguess.core.eligibility import filter_eligible
from trackguess.models.track import Track

_OPEN_SPOTIFY_REGEX = re.compile(r"open\.spotify\.com/(?:intl-[a-z]{2}/)?track/([a-zA-Z0-9]+)")
_SPOTIFY_URI_REGEX = re.compile(r"spotify:track:([a-zA-Z0-9]+)")
_TRACK_ID_REGEX = re.compile(r"^[a-zA-Z0-9]{22}$")


def extract_track_id(url: str) -> Optional[str]:
    """Return the track id from an open.spotify.com URL, a spotify:track: URI, or a bare id."""
    if not url:
        return None
    match = _OPEN_SPOTIFY_REGEX.search(url)
    if match:
        return match.group(1)
    match = _SPOTIFY_URI_REGEX.search(url)
    if match:
        return match.group(1)
    if _TRACK_ID_REGEX.match(url.strip()):
        return url.strip()
    return None


class SpotifyTrackApi:
    def __init__(self, client: RateLimitedClient, search_limit: int = SPOTIFY_SEARCH_LIMIT) -> None:
        self._client = client
        self._search_limit = search_limit

    @property
    def client(self) -> RateLimitedClient:
        return self._client

    def search(self, query: str) -> List[Track]:
        """Search tracks by free text. Blank queries return [] without a request."""
        if not query or not query.strip():
            return []

        def _search(sp) -> List[Track]:
            data = sp.search(q=query, type="track", limit=self._search_limit)
            items = ((data or {}).get("tracks") or {}).get("items") or []
            # Spotify occasionally returns null entries in search results
            return [Track.from_spotify(item) for item in items if item]

        return self._client.call(_search)

    def search_eligible(
        self, query: str, years: int = ELIGIBILITY_YEARS, now: Optional[datetime] = None
    ) -> List[Track]:
        """Search, then keep only tracks released within the recency window."""
        return filter_eligible(self.search(query), years, now=now)

    def get_track_by_id(self, track_id: str) -> Track:
        """Fetch one track. Unknown ids raise FatalApiError (http_status 404 or 400)."""

        def _get(sp) -> Track:
            data = sp.track(track_id)
            if not data:
                raise ValueError(f"empty response for track {track_id}")
            return Track.from_spotify(data)

        return self._client.call(_get)

    def current_user(self) -> dict:
        """Profile of the signed-in player (id, display_name, ...)."""

        def _me(sp) -> dict:
            data = sp.current_user()
            if not data or not data.get("id"):
                raise ValueError("empty profile response")
            return data

        return self._client.call(_me)
