import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.meeting import Meeting, MeetingParticipant, MeetingStatus
from ..models.user import User
from ..services.errors import StoreError
from ..utils.identifiers import generate_meeting_id

_module_logger = logging.getLogger(__name__)


class MeetingManager:
    """
    Presence tracker: meeting rows, lifecycle status and the active-participant set.

    Each participant is its own row keyed by (meeting_id, user_id), so joins and
    leaves are single INSERT/DELETE statements and a session-id refresh is a
    single-row UPDATE. The unique constraint is what keeps one entry per user;
    a losing concurrent insert surfaces as IntegrityError and is treated as
    "already present".
    """

    def __init__(self, db: Session, logger=None):
        self.db = db
        self.logger = logger or _module_logger.info

    def _commit(self, action: str, statement=None):
        """Run an optional bulk statement and commit it as one guarded unit."""
        try:
            result = statement() if statement is not None else None
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger(f"{action}: Rolling back transaction due to error: {e}")
            raise StoreError(str(e)) from e
        return result

    # ------------------------------------------------------------------ #
    # Meetings
    # ------------------------------------------------------------------ #

    def create_meeting(self, owner: User, description: Optional[str] = None) -> Meeting:
        """Create an active meeting whose only participant is the owner."""
        now = datetime.now(timezone.utc)
        try:
            meeting = Meeting(
                meeting_id=generate_meeting_id(self.db, now),
                owner_id=owner.user_id,
                description=description,
                status=MeetingStatus.ACTIVE.value,
                created_at=now,
                started_at=now,
                finished_at=None,
            )
            meeting.participants.append(
                MeetingParticipant(
                    user_id=owner.user_id,
                    socket_id=None,
                    profile=owner.profile_snapshot(),
                    position=1,
                )
            )
            self.db.add(meeting)
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger(f"Database error creating meeting: {e}")
            raise StoreError(str(e)) from e
        self._commit("create_meeting")
        self.db.refresh(meeting)
        self.logger(
            f"create_meeting: Meeting {meeting.meeting_id} created by {owner.user_id}"
        )
        return meeting

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        if not meeting_id:
            return None
        return (
            self.db.query(Meeting)
            .filter(Meeting.meeting_id == meeting_id)
            .populate_existing()
            .one_or_none()
        )

    def get_all_meetings(self) -> List[Meeting]:
        return self.db.query(Meeting).order_by(Meeting.created_at, Meeting.meeting_id).all()

    def get_meetings_by_owner(self, owner_id: str) -> List[Meeting]:
        return (
            self.db.query(Meeting)
            .filter(Meeting.owner_id == owner_id)
            .order_by(Meeting.created_at, Meeting.meeting_id)
            .all()
        )

    def update_meeting(self, meeting: Meeting, updated_data: Dict[str, Any]) -> Meeting:
        """Apply already-validated mutable fields to the meeting."""
        update_occurred = False
        for key, value in updated_data.items():
            if getattr(meeting, key) != value:
                setattr(meeting, key, value)
                update_occurred = True
        if update_occurred:
            self.db.add(meeting)
            self._commit("update_meeting")
            self.db.refresh(meeting)
            self.logger(f"update_meeting: Meeting {meeting.meeting_id} updated")
        return meeting

    def finish_meeting(self, meeting: Meeting) -> Meeting:
        """
        Mark the meeting finished and clear its active set in one commit.

        ``finished_at`` is only stamped the first time; finishing an already
        finished meeting leaves the original timestamp alone.
        """
        meeting.status = MeetingStatus.FINISHED.value
        if meeting.finished_at is None:
            meeting.finished_at = datetime.now(timezone.utc)
        self.db.add(meeting)
        self._commit(
            "finish_meeting",
            lambda: self.db.query(MeetingParticipant)
            .filter(MeetingParticipant.meeting_id == meeting.meeting_id)
            .delete(synchronize_session=False),
        )
        self.logger(f"finish_meeting: Meeting {meeting.meeting_id} finished")
        return meeting

    # ------------------------------------------------------------------ #
    # Active participants
    # ------------------------------------------------------------------ #

    def list_participants(self, meeting_id: str) -> List[MeetingParticipant]:
        return (
            self.db.query(MeetingParticipant)
            .filter(MeetingParticipant.meeting_id == meeting_id)
            .order_by(MeetingParticipant.position, MeetingParticipant.id)
            .populate_existing()
            .all()
        )

    def get_participant(
        self, meeting_id: str, user_id: str
    ) -> Optional[MeetingParticipant]:
        return (
            self.db.query(MeetingParticipant)
            .filter(
                MeetingParticipant.meeting_id == meeting_id,
                MeetingParticipant.user_id == user_id,
            )
            .one_or_none()
        )

    def _next_position(self, meeting_id: str) -> int:
        current = (
            self.db.query(func.max(MeetingParticipant.position))
            .filter(MeetingParticipant.meeting_id == meeting_id)
            .scalar()
        )
        return int(current or 0) + 1

    def add_participant(
        self,
        meeting_id: str,
        user_id: str,
        profile: Optional[Dict[str, Any]] = None,
        socket_id: Optional[str] = None,
    ) -> bool:
        """
        Insert a participant row. Returns False when the user was already present,
        either before the call or because a concurrent insert won the race.
        """
        if self.get_participant(meeting_id, user_id) is not None:
            return False
        participant = MeetingParticipant(
            meeting_id=meeting_id,
            user_id=user_id,
            socket_id=socket_id,
            profile=dict(profile or {}),
            position=self._next_position(meeting_id),
        )
        try:
            self.db.add(participant)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self.logger(
                f"add_participant: {user_id} already present in {meeting_id}; no-op"
            )
            return False
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger(f"add_participant: Rolling back transaction due to error: {e}")
            raise StoreError(str(e)) from e
        return True

    def remove_participant(self, meeting_id: str, user_id: str) -> int:
        """Delete the participant row, returning the number of rows removed (0 or 1)."""
        return self._commit(
            "remove_participant",
            lambda: self.db.query(MeetingParticipant)
            .filter(
                MeetingParticipant.meeting_id == meeting_id,
                MeetingParticipant.user_id == user_id,
            )
            .delete(synchronize_session=False),
        )

    def update_socket(self, meeting_id: str, user_id: str, socket_id: Optional[str]) -> int:
        """Overwrite the session id of an existing entry; returns rows touched."""
        return self._commit(
            "update_socket",
            lambda: self.db.query(MeetingParticipant)
            .filter(
                MeetingParticipant.meeting_id == meeting_id,
                MeetingParticipant.user_id == user_id,
            )
            .update({MeetingParticipant.socket_id: socket_id}, synchronize_session=False),
        )


def get_meeting_manager(db: Session = Depends(get_db)) -> MeetingManager:
    """Dependency provider for MeetingManager."""
    return MeetingManager(db=db)
