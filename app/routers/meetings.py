import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.auth.auth import Identity, get_current_identity
from app.schemas.meeting import (
    MeetingStartRequest,
    ParticipantRequest,
    dump_meeting,
    dump_participants,
)
from app.schemas.user import dump_user
from app.services.errors import NotFoundError, SummarizationError
from app.services.meeting_coordinator import (
    OUTCOME_NO_TRANSCRIPT,
    FinishOutcome,
    MeetingCoordinator,
    get_coordinator,
)

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


def _outcome_or_error(outcome: FinishOutcome, message: str) -> Dict[str, Any]:
    """Translate the saga outcome into the response body, or a 400 for failures."""
    if outcome.status == OUTCOME_NO_TRANSCRIPT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Meeting {outcome.meeting_id} finished but has no transcript to summarize",
        )
    if not outcome.summarized:
        raise SummarizationError(outcome.error or "Summarization failed")
    return {
        "message": message,
        "meetingId": outcome.meeting_id,
        "status": outcome.status,
        "summary": outcome.summary,
    }


@router.get("")
def list_meetings(coordinator: MeetingCoordinator = Depends(get_coordinator)):
    meetings = coordinator.list_meetings()
    return {"message": "Meetings", "meetings": [dump_meeting(m) for m in meetings]}


@router.get("/byUser/{user_id}")
def list_meetings_for_user(
    user_id: str, coordinator: MeetingCoordinator = Depends(get_coordinator)
):
    return [dump_meeting(m) for m in coordinator.meetings_for_user(user_id)]


@router.get("/getMeetingUsers/{meeting_id}")
def get_meeting_users(
    meeting_id: str, coordinator: MeetingCoordinator = Depends(get_coordinator)
):
    participants = coordinator.active_participants(meeting_id)
    return {
        "message": "Active participants",
        "meeting_participants": dump_participants(participants),
    }


@router.get("/getUsersMeeting/{meeting_id}")
def get_users_in_meeting(
    meeting_id: str, coordinator: MeetingCoordinator = Depends(get_coordinator)
):
    users = coordinator.participant_profiles(meeting_id)
    return {
        "message": "Participant profiles",
        "users": [dump_user(u) for u in users],
    }


@router.get("/{meeting_id}")
def get_meeting(
    meeting_id: str, coordinator: MeetingCoordinator = Depends(get_coordinator)
):
    try:
        meeting = coordinator.get_meeting(meeting_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Meeting not found"
        )
    return {"message": "Meeting found", "meeting": dump_meeting(meeting)}


@router.post("/start", status_code=status.HTTP_201_CREATED)
def start_meeting(
    payload: MeetingStartRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.start_meeting(payload.user_id, payload.description)
    logger.info(f"{identity.uid} started meeting {meeting.meeting_id}")
    return {"success": True, "id": meeting.meeting_id}


@router.put("/update/{meeting_id}")
def update_meeting(
    meeting_id: str,
    fields: Optional[Dict[str, Any]] = Body(None),
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    meeting = coordinator.update_meeting(meeting_id, fields)
    return {"message": "Meeting updated", "updatedMeeting": dump_meeting(meeting)}


@router.put("/addUser/{meeting_id}")
def add_user_to_meeting(
    meeting_id: str,
    payload: ParticipantRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    participants = coordinator.add_participant(meeting_id, payload.user_id)
    return {
        "message": "Participant added",
        "meeting_participants": dump_participants(participants),
    }


@router.put("/updateOrAddMeetingUser/{meeting_id}")
def update_or_add_meeting_user(
    meeting_id: str,
    payload: ParticipantRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    participants = coordinator.reconcile(meeting_id, payload.user_id, payload.socket_id)
    return {
        "message": "Participant connected",
        "meeting_participants": dump_participants(participants),
    }


@router.put("/removeUser/{meeting_id}")
def remove_user_from_meeting(
    meeting_id: str,
    payload: ParticipantRequest,
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    participants = coordinator.remove_participant(meeting_id, payload.user_id)
    return {
        "message": "Participant removed",
        "meeting_participants": dump_participants(participants),
    }


@router.put("/finish/{meeting_id}")
def finish_meeting(
    meeting_id: str,
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    outcome = coordinator.finish_meeting(meeting_id)
    logger.info(
        f"{identity.uid} finished meeting {meeting_id} (outcome={outcome.status})"
    )
    return _outcome_or_error(outcome, "Meeting finished")


@router.put("/summarize/{meeting_id}")
def summarize_meeting(
    meeting_id: str,
    identity: Identity = Depends(get_current_identity),
    coordinator: MeetingCoordinator = Depends(get_coordinator),
):
    outcome = coordinator.summarize_meeting(meeting_id)
    return _outcome_or_error(outcome, "Summary generated")
