"""Input validation for game codes, OAuth codes, and redirect URIs."""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

_GAME_CODE_REGEX = re.compile(r"^[A-Z0-9]+$")
GAME_CODE_LENGTH = 6
MAX_AUTH_CODE_LENGTH = 1000


@dataclass
class ValidationResult:
    valid: bool
    value: Optional[str] = None
    error: Optional[str] = None


def _invalid(error: str) -> ValidationResult:
    return ValidationResult(valid=False, value=None, error=error)


def validate_game_code(code: Optional[str]) -> ValidationResult:
    """6 characters, letters and digits; lower case is accepted and upper-cased."""
    if not code or not isinstance(code, str):
        return _invalid("Game code is required")
    trimmed = code.strip().upper()
    if len(trimmed) != GAME_CODE_LENGTH:
        return _invalid(f"Game code must be exactly {GAME_CODE_LENGTH} characters")
    if not _GAME_CODE_REGEX.match(trimmed):
        return _invalid("Game code must contain only uppercase letters and numbers")
    return ValidationResult(valid=True, value=trimmed)


def validate_spotify_code(code: Optional[str]) -> ValidationResult:
    if not code or not isinstance(code, str):
        return _invalid("Authorization code is required")
    trimmed = code.strip()
    if not trimmed:
        return _invalid("Authorization code cannot be empty")
    if len(trimmed) > MAX_AUTH_CODE_LENGTH:
        return _invalid("Invalid authorization code format")
    return ValidationResult(valid=True, value=trimmed)


def validate_redirect_uri(uri: Optional[str]) -> ValidationResult:
    """Spotify only accepts HTTPS redirect URIs."""
    if not uri or not isinstance(uri, str):
        return _invalid("Redirect URI is required")
    trimmed = uri.strip()
    if not trimmed:
        return _invalid("Redirect URI cannot be empty")
    try:
        parsed = urlparse(trimmed)
    except ValueError:
        return _invalid("Invalid redirect URI format")
    if not parsed.scheme or not parsed.netloc:
        return _invalid("Invalid redirect URI format")
    if parsed.scheme != "https":
        return _invalid("Redirect URI must use HTTPS protocol (HTTP is no longer supported)")
    return ValidationResult(valid=True, value=trimmed)
