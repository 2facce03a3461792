"""Questions and persisted answers."""
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from trackguess.models.track import Track


@dataclass
class Question:
    """A prompt the player answers with one track."""
    id: str
    text: str
    display_order: int
    active: bool = True


@dataclass
class Answer:
    """Stored projection of a filled slot; unique per (player_id, question_id)."""
    player_id: str
    question_id: str
    track_id: str
    track_name: str
    artist_name: str
    album_name: str
    release_date: str
    external_url: str
    album_image_url: Optional[str] = None
    preview_url: Optional[str] = None
    updated_at: str = ""

    @classmethod
    def from_track(cls, player_id: str, question_id: str, track: Track) -> "Answer":
        return cls(
            player_id=player_id,
            question_id=question_id,
            track_id=track.id,
            track_name=track.title,
            artist_name=track.artist_names,
            album_name=track.album_name,
            release_date=track.release_date,
            external_url=track.external_url,
            album_image_url=track.album_image_url,
            preview_url=track.preview_url,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StoreResult:
    """Outcome of a store write: success, or the store's error message."""
    success: bool
    error: Optional[str] = None
