import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.models.user import User
from app.models.meeting import Meeting

USER_ID_PREFIX = "USR"
USER_ID_SEQUENCE_WIDTH = 3
USER_ID_STEM_LENGTH = 6

MEETING_ID_PREFIX = "MTG"
MEETING_ID_SUFFIX_WIDTH = 4


def _clean_stem(value: Optional[str]) -> str:
    """
    Normalise the family name into a six-character uppercase stem.
    Non-alphanumeric characters are stripped and the result padded with X.
    """
    if not value:
        cleaned = ""
    else:
        cleaned = re.sub(r"[^A-Z0-9]", "", value.upper())
    if not cleaned:
        cleaned = "X" * USER_ID_STEM_LENGTH
    return (cleaned[:USER_ID_STEM_LENGTH]).ljust(USER_ID_STEM_LENGTH, "X")


def _clean_initial(value: Optional[str]) -> str:
    if not value:
        return "X"
    cleaned = re.sub(r"[^A-Z0-9]", "", value.upper())
    return cleaned[0] if cleaned else "X"


def split_display_name(name: Optional[str]) -> Tuple[str, str]:
    """Split a display name into (given, family); single words are treated as family."""
    parts = (name or "").split()
    if not parts:
        return "", ""
    if len(parts) == 1:
        return "", parts[0]
    return parts[0], parts[-1]


def build_user_id_prefix(name: Optional[str]) -> str:
    given, family = split_display_name(name)
    return f"{USER_ID_PREFIX}-{_clean_stem(family)}{_clean_initial(given)}"


def _next_sequence_for_prefix(db: Session, prefix: str) -> int:
    like_pattern = f"{prefix}-%"
    existing = (
        db.query(User.user_id)
        .filter(User.user_id.like(like_pattern))
        .order_by(User.user_id.desc())
        .limit(1)
        .scalar()
    )
    if not existing:
        return 1
    try:
        return int(existing.split("-")[-1]) + 1
    except (ValueError, IndexError):
        return 1


def generate_user_id(db: Session, name: Optional[str]) -> str:
    """
    Construct a unique `user_id` following the USR-LLLLLLF-NNN pattern.
    The sequence component increments per prefix to avoid collisions.
    """
    prefix = build_user_id_prefix(name)
    sequence = _next_sequence_for_prefix(db, prefix)
    return f"{prefix}-{sequence:0{USER_ID_SEQUENCE_WIDTH}d}"


def _format_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if number == 0:
        return "0"
    result = []
    while number:
        number, remainder = divmod(number, 36)
        result.append(digits[remainder])
    return "".join(reversed(result))


def _next_meeting_sequence(db: Session, date_prefix: str) -> int:
    like_pattern = f"{date_prefix}-%"
    latest: Optional[str] = (
        db.query(Meeting.meeting_id)
        .filter(Meeting.meeting_id.like(like_pattern))
        .order_by(Meeting.meeting_id.desc())
        .limit(1)
        .scalar()
    )
    if not latest:
        return 1
    try:
        return int(latest.split("-")[-1], 36) + 1
    except (ValueError, IndexError):
        return 1


def generate_meeting_id(db: Session, created_at: Optional[datetime] = None) -> str:
    """
    Construct a unique meeting identifier with the format MTGYYYYMMDD-XXXX
    where the suffix is a zero-padded base36 sequence scoped to the given day.
    """
    timestamp = (created_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    date_prefix = f"{MEETING_ID_PREFIX}{timestamp:%Y%m%d}"
    sequence = _next_meeting_sequence(db, date_prefix)
    suffix = _format_base36(sequence).upper().rjust(MEETING_ID_SUFFIX_WIDTH, "0")
    return f"{date_prefix}-{suffix}"
