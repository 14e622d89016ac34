# Import models to make them accessible via app.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .user import User
from .meeting import Meeting, MeetingParticipant, MeetingStatus
from .transcript import ChatMessage, Transcript

__all__ = [
    "User",
    "Meeting",
    "MeetingParticipant",
    "MeetingStatus",
    "Transcript",
    "ChatMessage",
]
