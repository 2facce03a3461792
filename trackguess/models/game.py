"""Games players join and the players registered in them."""
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class Game:
    id: str
    status: str = "waiting"  # waiting, playing, finished
    host_id: str = ""
    created_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GamePlayer:
    """A Spotify user registered in a game; unique per (game_id, spotify_user_id)."""
    game_id: str
    spotify_user_id: str
    display_name: str = ""
    email: str = ""
    image_url: Optional[str] = None
    joined_at: str = ""

    @classmethod
    def from_profile(cls, game_id: str, profile: dict, joined_at: str = "") -> "GamePlayer":
        images = profile.get("images") or []
        return cls(
            game_id=game_id,
            spotify_user_id=profile["id"],
            display_name=profile.get("display_name") or "",
            email=profile.get("email") or "",
            image_url=images[0].get("url") if images and isinstance(images[0], dict) else None,
            joined_at=joined_at,
        )

    def to_dict(self) -> dict:
        return asdict(self)
