"""
Meeting session coordinator.

Orchestrates meeting creation, presence (join, leave, reconcile-on-connect),
transcript appends and the finish-meeting saga on top of the data managers
and the summarization gateway. All collaborators are injected so the
coordinator can be driven directly in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from fastapi import Depends

from app.data.meeting_manager import MeetingManager, get_meeting_manager
from app.data.transcript_manager import TranscriptManager, get_transcript_manager
from app.data.user_manager import UserManager, get_user_manager
from app.models.meeting import Meeting, MeetingParticipant
from app.models.transcript import Transcript
from app.models.user import User
from app.services.errors import NotFoundError, SummarizationError, ValidationError
from app.services.summarization import Summarizer, get_summarizer

logger = logging.getLogger(__name__)

MUTABLE_MEETING_FIELDS = frozenset({"description"})

OUTCOME_SUMMARIZED = "summarized"
OUTCOME_NO_TRANSCRIPT = "no_transcript"
OUTCOME_SUMMARIZATION_FAILED = "summarization_failed"


@dataclass
class FinishOutcome:
    """Result of the post-finish steps; the meeting itself is always finished."""

    meeting_id: str
    status: str
    summary: Optional[str] = None
    error: Optional[str] = None

    @property
    def summarized(self) -> bool:
        return self.status == OUTCOME_SUMMARIZED


def _require_id(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required")
    return str(value).strip()


class MeetingCoordinator:
    def __init__(
        self,
        meetings: MeetingManager,
        transcripts: TranscriptManager,
        users: UserManager,
        summarizer: Summarizer,
    ):
        self.meetings = meetings
        self.transcripts = transcripts
        self.users = users
        self.summarizer = summarizer

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def _require_meeting(self, meeting_id: Optional[str]) -> Meeting:
        meeting_id = _require_id(meeting_id, "Meeting id")
        meeting = self.meetings.get_meeting(meeting_id)
        if meeting is None:
            raise NotFoundError(f"Meeting not found: {meeting_id}")
        return meeting

    def _require_open_meeting(self, meeting_id: Optional[str]) -> Meeting:
        meeting = self._require_meeting(meeting_id)
        if not meeting.is_active:
            raise ValidationError(
                f"Meeting {meeting.meeting_id} is finished; its participant set is closed"
            )
        return meeting

    def _require_user(self, user_id: str) -> User:
        user = self.users.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    def get_meeting(self, meeting_id: Optional[str]) -> Meeting:
        return self._require_meeting(meeting_id)

    def list_meetings(self) -> List[Meeting]:
        return self.meetings.get_all_meetings()

    def meetings_for_user(self, user_id: Optional[str]) -> List[Meeting]:
        return self.meetings.get_meetings_by_owner(_require_id(user_id, "User id"))

    def active_participants(self, meeting_id: Optional[str]) -> List[MeetingParticipant]:
        meeting = self._require_meeting(meeting_id)
        return self.meetings.list_participants(meeting.meeting_id)

    def participant_profiles(self, meeting_id: Optional[str]) -> List[User]:
        """Live profiles of the active participants; deleted users are skipped."""
        participants = self.active_participants(meeting_id)
        found = self.users.get_users_by_ids([p.user_id for p in participants])
        return [found[p.user_id] for p in participants if p.user_id in found]

    def get_transcript(self, meeting_id: Optional[str]) -> Transcript:
        meeting_id = _require_id(meeting_id, "Meeting id")
        transcript = self.transcripts.get_transcript(meeting_id)
        if transcript is None:
            raise NotFoundError(f"No transcript for meeting {meeting_id}")
        return transcript

    def transcripts_for_user(self, user_id: Optional[str]) -> List[Transcript]:
        return self.transcripts.get_transcripts_by_owner(_require_id(user_id, "User id"))

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start_meeting(
        self, user_id: Optional[str], description: Optional[str] = None
    ) -> Meeting:
        user_id = _require_id(user_id, "User id")
        owner = self.users.get_user_by_id(user_id)
        if owner is None:
            raise ValidationError(f"User not found: {user_id}")
        meeting = self.meetings.create_meeting(owner, description=description)
        logger.info("Meeting %s started by %s", meeting.meeting_id, user_id)
        return meeting

    def update_meeting(
        self, meeting_id: Optional[str], fields: Optional[Mapping[str, Any]]
    ) -> Meeting:
        meeting = self._require_meeting(meeting_id)
        fields = dict(fields or {})
        rejected = sorted(set(fields) - MUTABLE_MEETING_FIELDS)
        if rejected:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(rejected)}. Only "
                "description is editable; status, timestamps and participants "
                "change through the start, presence and finish operations"
            )
        description = fields.get("description", meeting.description)
        if description is not None and not isinstance(description, str):
            raise ValidationError("Description must be text")
        return self.meetings.update_meeting(meeting, {"description": description})

    # ------------------------------------------------------------------ #
    # Presence
    # ------------------------------------------------------------------ #

    def add_participant(
        self, meeting_id: Optional[str], user_id: Optional[str]
    ) -> List[MeetingParticipant]:
        user_id = _require_id(user_id, "User id")
        meeting = self._require_open_meeting(meeting_id)
        if self.meetings.get_participant(meeting.meeting_id, user_id) is None:
            user = self._require_user(user_id)
            self.meetings.add_participant(
                meeting.meeting_id, user_id, profile=user.profile_snapshot()
            )
        return self.meetings.list_participants(meeting.meeting_id)

    def remove_participant(
        self, meeting_id: Optional[str], user_id: Optional[str]
    ) -> List[MeetingParticipant]:
        user_id = _require_id(user_id, "User id")
        meeting = self._require_meeting(meeting_id)
        self.meetings.remove_participant(meeting.meeting_id, user_id)
        return self.meetings.list_participants(meeting.meeting_id)

    def reconcile(
        self,
        meeting_id: Optional[str],
        user_id: Optional[str],
        socket_id: Optional[str],
    ) -> List[MeetingParticipant]:
        """
        Join-or-refresh on (re)connect.

        A present user gets its socket id overwritten in place; an absent user
        is inserted with a fresh profile snapshot. If a concurrent reconcile
        inserts the same user first, the insert is a no-op and the update path
        runs instead, so there is never more than one entry per user.
        """
        user_id = _require_id(user_id, "User id")
        socket_id = _require_id(socket_id, "Socket id")
        meeting = self._require_open_meeting(meeting_id)

        if self.meetings.update_socket(meeting.meeting_id, user_id, socket_id):
            logger.debug("Refreshed socket for %s in %s", user_id, meeting.meeting_id)
        else:
            user = self._require_user(user_id)
            inserted = self.meetings.add_participant(
                meeting.meeting_id,
                user_id,
                profile=user.profile_snapshot(),
                socket_id=socket_id,
            )
            if not inserted:
                self.meetings.update_socket(meeting.meeting_id, user_id, socket_id)
        return self.meetings.list_participants(meeting.meeting_id)

    # ------------------------------------------------------------------ #
    # Transcript
    # ------------------------------------------------------------------ #

    def append_message(
        self, meeting_id: Optional[str], entry: Optional[Mapping[str, Any]]
    ) -> Transcript:
        meeting_id = _require_id(meeting_id, "Meeting id")
        if not entry:
            raise ValidationError("Message is required")
        name = entry.get("name")
        text = entry.get("message")
        if name is None or not str(name).strip():
            raise ValidationError("Message sender name is required")
        if text is None or not str(text).strip():
            raise ValidationError("Message text is required")
        timestamp = entry.get("timestamp")

        meeting = self._require_meeting(meeting_id)
        self.transcripts.ensure_transcript(meeting.meeting_id)
        self.transcripts.append_message(
            meeting.meeting_id,
            name=str(name).strip(),
            message=str(text),
            timestamp=str(timestamp) if timestamp is not None else None,
        )
        return self.transcripts.get_transcript(meeting.meeting_id)

    # ------------------------------------------------------------------ #
    # Finish saga
    # ------------------------------------------------------------------ #

    def finish_meeting(self, meeting_id: Optional[str]) -> FinishOutcome:
        """
        Finish the meeting, then summarize its transcript.

        The status flip and active-set clear are committed before the
        transcript is read; nothing after that point re-opens the meeting.
        """
        meeting = self._require_meeting(meeting_id)
        self.meetings.finish_meeting(meeting)
        logger.info("Meeting %s finished", meeting.meeting_id)
        return self._summarize(meeting.meeting_id)

    def summarize_meeting(self, meeting_id: Optional[str]) -> FinishOutcome:
        """Re-run summarization for an already finished meeting."""
        meeting = self._require_meeting(meeting_id)
        if meeting.is_active:
            raise ValidationError(
                f"Meeting {meeting.meeting_id} is still active; finish it first"
            )
        return self._summarize(meeting.meeting_id)

    def _summarize(self, meeting_id: str) -> FinishOutcome:
        transcript = self.transcripts.get_transcript(meeting_id)
        if transcript is None:
            logger.info("Meeting %s has no transcript to summarize", meeting_id)
            return FinishOutcome(meeting_id=meeting_id, status=OUTCOME_NO_TRANSCRIPT)

        entries: List[Dict[str, Any]] = [
            {"name": m.name, "message": m.message, "timestamp": m.timestamp}
            for m in self.transcripts.get_messages(meeting_id)
        ]
        try:
            summary = self.summarizer.summarize(entries)
        except SummarizationError as exc:
            logger.warning("Summarization failed for %s: %s", meeting_id, exc)
            return FinishOutcome(
                meeting_id=meeting_id,
                status=OUTCOME_SUMMARIZATION_FAILED,
                error=str(exc),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Summarization gateway crashed for %s", meeting_id)
            return FinishOutcome(
                meeting_id=meeting_id,
                status=OUTCOME_SUMMARIZATION_FAILED,
                error=f"Summarization failed: {exc}",
            )
        if not summary or not summary.strip():
            return FinishOutcome(
                meeting_id=meeting_id,
                status=OUTCOME_SUMMARIZATION_FAILED,
                error="Summarization returned no content",
            )

        self.transcripts.set_summary(meeting_id, summary)
        logger.info("Stored summary for meeting %s", meeting_id)
        return FinishOutcome(
            meeting_id=meeting_id, status=OUTCOME_SUMMARIZED, summary=summary
        )


def get_coordinator(
    meetings: MeetingManager = Depends(get_meeting_manager),
    transcripts: TranscriptManager = Depends(get_transcript_manager),
    users: UserManager = Depends(get_user_manager),
    summarizer: Summarizer = Depends(get_summarizer),
) -> MeetingCoordinator:
    """Dependency provider for MeetingCoordinator."""
    return MeetingCoordinator(meetings, transcripts, users, summarizer)
