"""
Data access layer providing managers for users, meetings and transcripts.
Each manager wraps an injected SQLAlchemy session.
"""

from .user_manager import UserManager
from .meeting_manager import MeetingManager
from .transcript_manager import TranscriptManager

__all__ = ["UserManager", "MeetingManager", "TranscriptManager"]
