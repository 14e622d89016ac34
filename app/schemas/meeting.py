from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MeetingStartRequest(BaseModel):
    """Body of POST /start. Ids are optional here so missing values surface as 400."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("user_id", mode="before")
    @classmethod
    def stringify_user_id(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None


class ParticipantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    socket_id: Optional[str] = Field(None, alias="socketId")

    @field_validator("user_id", "socket_id", mode="before")
    @classmethod
    def stringify_ids(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None


class ProfileSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    photo_url: Optional[str] = Field(None, serialization_alias="photoURL")


class ParticipantEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., serialization_alias="userId")
    socket_id: Optional[str] = Field(None, serialization_alias="socketId")
    profile: ProfileSnapshot = Field(default_factory=ProfileSnapshot)
    position: int = 0
    joined_at: Optional[datetime] = Field(None, serialization_alias="joinedAt")

    @field_validator("profile", mode="before")
    @classmethod
    def default_profile(cls, value: Any) -> Any:
        return value or {}


class MeetingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    meeting_id: str = Field(..., serialization_alias="id")
    owner_id: str = Field(..., serialization_alias="userId")
    description: Optional[str] = None
    status: str
    is_active: bool
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    started_at: Optional[datetime] = Field(None, serialization_alias="startAt")
    finished_at: Optional[datetime] = Field(None, serialization_alias="finishAt")
    participants: List[ParticipantEntry] = Field(
        default_factory=list, serialization_alias="active_users"
    )


def dump_participants(participants) -> List[dict]:
    return [
        ParticipantEntry.model_validate(p).model_dump(mode="json", by_alias=True)
        for p in participants
    ]


def dump_meeting(meeting) -> dict:
    return MeetingRead.model_validate(meeting).model_dump(mode="json", by_alias=True)
