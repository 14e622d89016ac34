from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SaveMessageRequest(BaseModel):
    """Body of PUT /saveMessage; the entry is validated by the coordinator."""

    model_config = ConfigDict(populate_by_name=True)

    meet_id: Optional[str] = Field(None, alias="meetId")
    message: Optional[Dict[str, Any]] = None


class ChatEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    message: str
    timestamp: Optional[str] = None


class TranscriptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    meeting_id: str = Field(..., serialization_alias="meetId")
    summary: Optional[str] = Field(None, serialization_alias="ai_summary")
    messages: List[ChatEntry] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")


def dump_transcript(transcript) -> dict:
    return TranscriptRead.model_validate(transcript).model_dump(mode="json", by_alias=True)
