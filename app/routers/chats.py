import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.chat import SaveMessageRequest, dump_transcript
from app.services.errors import NotFoundError
from app.services.meeting_coordinator import MeetingCoordinator, get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chats", tags=["chats"])


@router.get("/chatsByUser/{user_id}")
def get_chats_by_user(
    user_id: str, coordinator: MeetingCoordinator = Depends(get_coordinator)
):
    transcripts = coordinator.transcripts_for_user(user_id)
    return {"message": "Chats", "chats": [dump_transcript(t) for t in transcripts]}


@router.get("/{meeting_id}")
def get_chat(meeting_id: str, coordinator: MeetingCoordinator = Depends(get_coordinator)):
    try:
        transcript = coordinator.get_transcript(meeting_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No chat found for this meeting",
        )
    return dump_transcript(transcript)


@router.put("/saveMessage", status_code=status.HTTP_201_CREATED)
def save_message(
    payload: SaveMessageRequest,
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    transcript = coordinator.append_message(payload.meet_id, payload.message)
    logger.debug(f"Appended message to meeting {payload.meet_id}")
    return dump_transcript(transcript)
