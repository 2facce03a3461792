"""OAuth credentials for the Spotify Web API."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class Credential:
    access_token: str
    refresh_token: str
    expires_at_epoch_ms: int


@dataclass
class TokenResponse:
    """Token endpoint payload. Refresh responses may omit refresh_token."""
    access_token: str
    expires_in: int = 3600
    token_type: str = "Bearer"
    scope: str = ""
    refresh_token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "TokenResponse":
        """Raises KeyError when access_token is missing."""
        return cls(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in") or 3600),
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope") or "",
            refresh_token=data.get("refresh_token") or None,
        )

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "token_type": self.token_type,
            "scope": self.scope,
        }
