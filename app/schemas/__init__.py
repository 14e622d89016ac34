from .chat import ChatEntry, SaveMessageRequest, TranscriptRead
from .meeting import (
    MeetingRead,
    MeetingStartRequest,
    ParticipantEntry,
    ParticipantRequest,
    ProfileSnapshot,
)
from .user import UserRead, UserRegister

__all__ = [
    "ChatEntry",
    "SaveMessageRequest",
    "TranscriptRead",
    "MeetingRead",
    "MeetingStartRequest",
    "ParticipantEntry",
    "ParticipantRequest",
    "ProfileSnapshot",
    "UserRead",
    "UserRegister",
]
