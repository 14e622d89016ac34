from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func  # For default timestamps

from ..database import Base


class MeetingStatus(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"


class Meeting(Base):
    __tablename__ = "meetings"

    meeting_id = Column(String(20), primary_key=True, index=True)
    # Owner is kept as a plain id; deleting a user leaves meetings untouched.
    owner_id = Column(String(20), nullable=False, index=True)
    description = Column(String, nullable=True)
    status = Column(String, default=MeetingStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    participants = relationship(
        "MeetingParticipant",
        back_populates="meeting",
        order_by="MeetingParticipant.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    transcript = relationship(
        "Transcript",
        back_populates="meeting",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status == MeetingStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"Meeting(meeting_id={self.meeting_id!r}, status={self.status!r})"


class MeetingParticipant(Base):
    """One row per user currently present in a meeting."""

    __tablename__ = "meeting_participants"
    __table_args__ = (
        UniqueConstraint("meeting_id", "user_id", name="uq_meeting_participants_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    meeting_id = Column(
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(20), nullable=False, index=True)
    socket_id = Column(String(128), nullable=True)
    profile = Column(JSON, default=dict, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    meeting = relationship("Meeting", back_populates="participants")

    def __repr__(self) -> str:
        return (
            f"MeetingParticipant(meeting_id={self.meeting_id!r}, "
            f"user_id={self.user_id!r}, socket_id={self.socket_id!r})"
        )
