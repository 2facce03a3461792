"""Track metadata fetched from Spotify."""
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Track:
    """Immutable track value; two tracks are equal when their ids match."""
    id: str
    title: str = field(compare=False)
    artists: tuple = field(compare=False, default=())
    album_name: str = field(compare=False, default="")
    release_date: str = field(compare=False, default="")  # YYYY, YYYY-MM or YYYY-MM-DD
    external_url: str = field(compare=False, default="")
    album_image_url: Optional[str] = field(compare=False, default=None)
    preview_url: Optional[str] = field(compare=False, default=None)

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists)

    @classmethod
    def from_spotify(cls, payload: dict) -> "Track":
        """Map a Spotify track object. Raises KeyError, TypeError or AttributeError on a malformed payload."""
        album = payload.get("album") or {}
        images = album.get("images") or []
        return cls(
            id=payload["id"],
            title=payload["name"],
            artists=tuple(a.get("name", "") for a in payload.get("artists") or []),
            album_name=album.get("name") or "",
            release_date=album.get("release_date") or "",
            external_url=(payload.get("external_urls") or {}).get("spotify", ""),
            album_image_url=images[0]["url"] if images else None,
            preview_url=payload.get("preview_url") or None,
        )

    @classmethod
    def from_answer(cls, answer) -> "Track":
        """Rebuild a track from a stored Answer.

        The stored artist string is kept whole; names may themselves contain commas.
        """
        artists = (answer.artist_name,) if answer.artist_name else ()
        return cls(
            id=answer.track_id,
            title=answer.track_name,
            artists=artists,
            album_name=answer.album_name,
            release_date=answer.release_date,
            external_url=answer.external_url,
            album_image_url=answer.album_image_url,
            preview_url=answer.preview_url,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        return cls(
            id=data["id"],
            title=data["title"],
            artists=tuple(data.get("artists") or ()),
            album_name=data.get("album_name") or "",
            release_date=data.get("release_date") or "",
            external_url=data.get("external_url") or "",
            album_image_url=data.get("album_image_url"),
            preview_url=data.get("preview_url"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "artists": list(self.artists),
            "album_name": self.album_name,
            "release_date": self.release_date,
            "external_url": self.external_url,
            "album_image_url": self.album_image_url,
            "preview_url": self.preview_url,
        }
