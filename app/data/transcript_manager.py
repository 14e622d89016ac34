import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.meeting import Meeting
from ..models.transcript import ChatMessage, Transcript
from ..services.errors import StoreError

_module_logger = logging.getLogger(__name__)


class TranscriptManager:
    """Per-meeting chat transcript: append-only messages plus an optional summary."""

    def __init__(self, db: Session, logger=None):
        self.db = db
        self.logger = logger or _module_logger.info

    def get_transcript(self, meeting_id: str) -> Optional[Transcript]:
        if not meeting_id:
            return None
        return (
            self.db.query(Transcript)
            .filter(Transcript.meeting_id == meeting_id)
            .populate_existing()
            .one_or_none()
        )

    def get_messages(self, meeting_id: str) -> List[ChatMessage]:
        return (
            self.db.query(ChatMessage)
            .filter(ChatMessage.meeting_id == meeting_id)
            .order_by(ChatMessage.message_id)
            .all()
        )

    def get_transcripts_by_owner(self, owner_id: str) -> List[Transcript]:
        return (
            self.db.query(Transcript)
            .join(Meeting, Meeting.meeting_id == Transcript.meeting_id)
            .filter(Meeting.owner_id == owner_id)
            .order_by(Transcript.created_at, Transcript.meeting_id)
            .all()
        )

    def ensure_transcript(self, meeting_id: str) -> Transcript:
        """Return the meeting's transcript, creating an empty one on first use."""
        transcript = self.get_transcript(meeting_id)
        if transcript is not None:
            return transcript
        try:
            self.db.add(
                Transcript(
                    meeting_id=meeting_id,
                    summary=None,
                    created_at=datetime.now(timezone.utc),
                )
            )
            self.db.commit()
            self.logger(f"ensure_transcript: Created transcript for {meeting_id}")
        except IntegrityError:
            # Another request created it first.
            self.db.rollback()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger(f"ensure_transcript: Rolling back transaction due to error: {e}")
            raise StoreError(str(e)) from e
        return self.get_transcript(meeting_id)

    def append_message(
        self,
        meeting_id: str,
        name: str,
        message: str,
        timestamp: Optional[str] = None,
    ) -> ChatMessage:
        entry = ChatMessage(
            meeting_id=meeting_id,
            name=name,
            message=message,
            timestamp=timestamp,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger(f"append_message: Rolling back transaction due to error: {e}")
            raise StoreError(str(e)) from e
        return entry

    def set_summary(self, meeting_id: str, summary: str) -> Transcript:
        """Overwrite the transcript summary (last write wins)."""
        transcript = self.get_transcript(meeting_id)
        if transcript is None:
            raise StoreError(f"Transcript disappeared for meeting {meeting_id}")
        transcript.summary = summary
        transcript.summarized_at = datetime.now(timezone.utc)
        try:
            self.db.add(transcript)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger(f"set_summary: Rolling back transaction due to error: {e}")
            raise StoreError(str(e)) from e
        self.db.refresh(transcript)
        return transcript


def get_transcript_manager(db: Session = Depends(get_db)) -> TranscriptManager:
    """Dependency provider for TranscriptManager."""
    return TranscriptManager(db=db)
