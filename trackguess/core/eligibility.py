"""Recency window for track selection, based on partial-precision release dates."""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from trackguess.config import ELIGIBILITY_YEARS
from trackguess.models.track import Track


def parse_release_date(value: Optional[str]) -> Optional[datetime]:
    """Parse YYYY, YYYY-MM or YYYY-MM-DD as a UTC datetime (missing parts = 1).

    Returns None for blank or malformed values.
    """
    if not value or not value.strip():
        return None
    parts = value.strip().split("-")
    if len(parts) > 3:
        return None
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    year, month, day = (numbers + [1, 1])[:3]
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def eligibility_cutoff(now: datetime, years: int) -> datetime:
    """`now` moved back by whole years (Feb 29 falls back to Feb 28)."""
    try:
        return now.replace(year=now.year - years)
    except ValueError:
        return now.replace(year=now.year - years, day=28)


def is_track_eligible(
    track: Track, years: int = ELIGIBILITY_YEARS, now: Optional[datetime] = None
) -> bool:
    """True if the track was released on or after now - years. years <= 0 disables the check."""
    if years <= 0:
        return True
    released = parse_release_date(track.release_date)
    if released is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return released >= eligibility_cutoff(now, years)


def filter_eligible(
    tracks: Iterable[Track], years: int = ELIGIBILITY_YEARS, now: Optional[datetime] = None
) -> List[Track]:
    if years <= 0:
        return list(tracks)
    return [t for t in tracks if is_track_eligible(t, years, now=now)]
