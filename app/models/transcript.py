from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Transcript(Base):
    __tablename__ = "transcripts"

    meeting_id = Column(
        String(20),
        ForeignKey("meetings.meeting_id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    summarized_at = Column(DateTime(timezone=True), nullable=True)

    meeting = relationship("Meeting", back_populates="transcript")
    messages = relationship(
        "ChatMessage",
        back_populates="transcript",
        order_by="ChatMessage.message_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"Transcript(meeting_id={self.meeting_id!r})"


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    # Autoincrement id is the append order; client timestamps are informational.
    message_id = Column(Integer, primary_key=True, autoincrement=True)
    meeting_id = Column(
        String(20),
        ForeignKey("transcripts.meeting_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    transcript = relationship("Transcript", back_populates="messages")

    def __repr__(self) -> str:
        return (
            f"ChatMessage(message_id={self.message_id}, "
            f"meeting_id={self.meeting_id!r}, name={self.name!r})"
        )
