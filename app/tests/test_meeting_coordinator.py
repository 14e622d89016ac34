import pytest

from app.models.meeting import MeetingStatus
from app.services.errors import NotFoundError, SummarizationError, ValidationError
from app.services.meeting_coordinator import (
    OUTCOME_NO_TRANSCRIPT,
    OUTCOME_SUMMARIZATION_FAILED,
    OUTCOME_SUMMARIZED,
)


def _entries(participants):
    return [(p.user_id, p.socket_id) for p in participants]


def test_start_meeting_seeds_creator_without_socket(coordinator, make_user):
    owner = make_user("Ana Torres")

    meeting = coordinator.start_meeting(owner.user_id, description="Weekly sync")

    assert meeting.meeting_id.startswith("MTG")
    assert meeting.status == MeetingStatus.ACTIVE.value
    assert meeting.finished_at is None
    assert meeting.started_at is not None
    assert meeting.description == "Weekly sync"
    participants = coordinator.active_participants(meeting.meeting_id)
    assert _entries(participants) == [(owner.user_id, None)]
    assert participants[0].profile["name"] == "Ana Torres"


@pytest.mark.parametrize("user_id", [None, "", "   "])
def test_start_meeting_requires_user_id(coordinator, user_id):
    with pytest.raises(ValidationError):
        coordinator.start_meeting(user_id)


def test_start_meeting_rejects_unknown_user(coordinator):
    with pytest.raises(ValidationError):
        coordinator.start_meeting("USR-NOBODYX-001")


def test_reconcile_is_idempotent_per_user(coordinator, make_user):
    owner = make_user("Ana Torres")
    meeting = coordinator.start_meeting(owner.user_id)

    first = coordinator.reconcile(meeting.meeting_id, owner.user_id, "s1")
    assert _entries(first) == [(owner.user_id, "s1")]

    second = coordinator.reconcile(meeting.meeting_id, owner.user_id, "s2")
    assert _entries(second) == [(owner.user_id, "s2")]


def test_reconcile_update_keeps_position_and_profile(coordinator, make_user):
    owner = make_user("Ana Torres")
    guest = make_user("Luis Gomez")
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.reconcile(meeting.meeting_id, guest.user_id, "g1")

    before = {p.user_id: (p.position, dict(p.profile)) for p in coordinator.active_participants(meeting.meeting_id)}
    coordinator.reconcile(meeting.meeting_id, owner.user_id, "o2")
    after = coordinator.active_participants(meeting.meeting_id)

    assert [p.user_id for p in after] == [owner.user_id, guest.user_id]
    for participant in after:
        assert (participant.position, dict(participant.profile)) == before[participant.user_id]


def test_reconcile_inserts_absent_user_with_profile(coordinator, make_user):
    owner = make_user("Ana Torres")
    guest = make_user("Luis Gomez", age=41, photo_url="https://img.example/luis.png")
    meeting = coordinator.start_meeting(owner.user_id)

    participants = coordinator.reconcile(meeting.meeting_id, guest.user_id, "g1")

    assert _entries(participants) == [(owner.user_id, None), (guest.user_id, "g1")]
    snapshot = participants[1].profile
    assert snapshot["name"] == "Luis Gomez"
    assert snapshot["age"] == 41
    assert snapshot["photo_url"] == "https://img.example/luis.png"


def test_reconcile_after_racing_insert_updates_existing_entry(coordinator, make_user, monkeypatch):
    owner = make_user("Ana Torres")
    guest = make_user("Luis Gomez")
    meeting = coordinator.start_meeting(owner.user_id)
    meetings = coordinator.meetings
    real_update_socket = meetings.update_socket
    seen = []

    def update_socket_racing(meeting_id, user_id, socket_id):
        # The first UPDATE misses; another reconcile inserts the row before ours.
        if not seen:
            seen.append(socket_id)
            meetings.add_participant(
                meeting_id, user_id, profile=guest.profile_snapshot(), socket_id="g-other"
            )
            return 0
        return real_update_socket(meeting_id, user_id, socket_id)

    monkeypatch.setattr(meetings, "update_socket", update_socket_racing)

    participants = coordinator.reconcile(meeting.meeting_id, guest.user_id, "g-mine")

    assert _entries(participants) == [(owner.user_id, None), (guest.user_id, "g-mine")]


def test_reconcile_when_insert_hits_unique_constraint(coordinator, make_user, monkeypatch):
    owner = make_user("Ana Torres")
    guest = make_user("Luis Gomez")
    meeting = coordinator.start_meeting(owner.user_id)
    meetings = coordinator.meetings
    real_update_socket = meetings.update_socket
    seen = []

    def update_socket_racing(meeting_id, user_id, socket_id):
        if not seen:
            seen.append(socket_id)
            meetings.add_participant(meeting_id, user_id, socket_id="g-other")
            # Our own existence check runs before the racing row is visible.
            monkeypatch.setattr(meetings, "get_participant", lambda *args: None)
            return 0
        return real_update_socket(meeting_id, user_id, socket_id)

    monkeypatch.setattr(meetings, "update_socket", update_socket_racing)

    participants = coordinator.reconcile(meeting.meeting_id, guest.user_id, "g-mine")

    assert _entries(participants) == [(owner.user_id, None), (guest.user_id, "g-mine")]


def test_reconcile_unknown_meeting(coordinator, make_user):
    user = make_user()
    with pytest.raises(NotFoundError):
        coordinator.reconcile("MTG20240101-0001", user.user_id, "s1")


def test_reconcile_unknown_user(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    with pytest.raises(NotFoundError):
        coordinator.reconcile(meeting.meeting_id, "USR-GHOSTXX-001", "s1")


def test_reconcile_requires_socket(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    with pytest.raises(ValidationError):
        coordinator.reconcile(meeting.meeting_id, owner.user_id, None)


def test_reconcile_on_finished_meeting_is_rejected(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.finish_meeting(meeting.meeting_id)

    with pytest.raises(ValidationError):
        coordinator.reconcile(meeting.meeting_id, owner.user_id, "s1")
    assert coordinator.active_participants(meeting.meeting_id) == []


def test_add_and_remove_are_set_operations(coordinator, make_user):
    owner = make_user("Ana Torres")
    guest = make_user("Luis Gomez")
    meeting = coordinator.start_meeting(owner.user_id)

    assert len(coordinator.add_participant(meeting.meeting_id, guest.user_id)) == 2
    assert len(coordinator.add_participant(meeting.meeting_id, guest.user_id)) == 2

    assert len(coordinator.remove_participant(meeting.meeting_id, guest.user_id)) == 1
    assert len(coordinator.remove_participant(meeting.meeting_id, guest.user_id)) == 1


def test_add_participant_unknown_meeting(coordinator, make_user):
    user = make_user()
    with pytest.raises(NotFoundError):
        coordinator.add_participant("MTG20240101-0009", user.user_id)


def test_remove_participant_requires_user_id(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    with pytest.raises(ValidationError):
        coordinator.remove_participant(meeting.meeting_id, None)


def test_presence_scenario(coordinator, make_user):
    u1 = make_user("Ana Torres")
    u2 = make_user("Luis Gomez")
    meeting = coordinator.start_meeting(u1.user_id)
    meeting_id = meeting.meeting_id

    assert _entries(coordinator.active_participants(meeting_id)) == [(u1.user_id, None)]
    assert _entries(coordinator.reconcile(meeting_id, u1.user_id, "s1")) == [(u1.user_id, "s1")]
    assert _entries(coordinator.reconcile(meeting_id, u1.user_id, "s2")) == [(u1.user_id, "s2")]
    assert len(coordinator.add_participant(meeting_id, u2.user_id)) == 2

    remaining = coordinator.remove_participant(meeting_id, u1.user_id)
    assert [p.user_id for p in remaining] == [u2.user_id]

    outcome = coordinator.finish_meeting(meeting_id)
    finished = coordinator.get_meeting(meeting_id)
    assert outcome.status == OUTCOME_NO_TRANSCRIPT
    assert finished.status == MeetingStatus.FINISHED.value
    assert finished.finished_at is not None
    assert coordinator.active_participants(meeting_id) == []


def test_append_preserves_arrival_order(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)

    for text in ("A", "B", "C"):
        coordinator.append_message(meeting.meeting_id, {"name": "Ana", "message": text})

    transcript = coordinator.get_transcript(meeting.meeting_id)
    assert [m.message for m in transcript.messages] == ["A", "B", "C"]
    assert transcript.summary is None


def test_append_ignores_client_timestamp_for_order(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)

    coordinator.append_message(
        meeting.meeting_id, {"name": "Ana", "message": "late", "timestamp": "2030-01-01T00:00:00Z"}
    )
    coordinator.append_message(
        meeting.meeting_id, {"name": "Ana", "message": "early", "timestamp": "2020-01-01T00:00:00Z"}
    )

    transcript = coordinator.get_transcript(meeting.meeting_id)
    assert [m.message for m in transcript.messages] == ["late", "early"]
    assert transcript.messages[0].timestamp == "2030-01-01T00:00:00Z"


def test_append_does_not_deduplicate(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    entry = {"name": "Ana", "message": "hello"}

    coordinator.append_message(meeting.meeting_id, entry)
    transcript = coordinator.append_message(meeting.meeting_id, entry)

    assert [m.message for m in transcript.messages] == ["hello", "hello"]


def test_append_requires_meeting_id(coordinator):
    with pytest.raises(ValidationError):
        coordinator.append_message(None, {"name": "Ana", "message": "hi"})


def test_append_unknown_meeting_creates_nothing(coordinator, transcript_manager):
    with pytest.raises(NotFoundError):
        coordinator.append_message("MTG20240101-0042", {"name": "Ana", "message": "hi"})
    assert transcript_manager.get_transcript("MTG20240101-0042") is None


@pytest.mark.parametrize(
    "entry",
    [None, {}, {"name": "Ana"}, {"message": "hi"}, {"name": " ", "message": "hi"}],
)
def test_append_requires_name_and_message(coordinator, make_user, entry):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    with pytest.raises(ValidationError):
        coordinator.append_message(meeting.meeting_id, entry)


def test_finish_summarizes_transcript_in_order(coordinator, summarizer, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.append_message(meeting.meeting_id, {"name": "Ana", "message": "first"})
    coordinator.append_message(meeting.meeting_id, {"name": "Luis", "message": "second"})

    outcome = coordinator.finish_meeting(meeting.meeting_id)

    assert outcome.status == OUTCOME_SUMMARIZED
    assert outcome.summary == summarizer.result
    assert len(summarizer.calls) == 1
    assert [(e["name"], e["message"]) for e in summarizer.calls[0]] == [
        ("Ana", "first"),
        ("Luis", "second"),
    ]
    assert coordinator.get_transcript(meeting.meeting_id).summary == summarizer.result


def test_finish_without_transcript_reports_no_transcript(coordinator, summarizer, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)

    outcome = coordinator.finish_meeting(meeting.meeting_id)

    assert outcome.status == OUTCOME_NO_TRANSCRIPT
    assert summarizer.calls == []
    assert coordinator.get_meeting(meeting.meeting_id).status == MeetingStatus.FINISHED.value


def test_finish_keeps_meeting_finished_when_summarizer_fails(coordinator, summarizer, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.append_message(meeting.meeting_id, {"name": "Ana", "message": "hi"})
    summarizer.error = SummarizationError("Gemini unavailable")

    outcome = coordinator.finish_meeting(meeting.meeting_id)

    assert outcome.status == OUTCOME_SUMMARIZATION_FAILED
    assert outcome.error == "Gemini unavailable"
    finished = coordinator.get_meeting(meeting.meeting_id)
    assert finished.status == MeetingStatus.FINISHED.value
    assert coordinator.active_participants(meeting.meeting_id) == []
    assert coordinator.get_transcript(meeting.meeting_id).summary is None


def test_finish_treats_unexpected_gateway_errors_as_failures(coordinator, summarizer, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.append_message(meeting.meeting_id, {"name": "Ana", "message": "hi"})
    summarizer.error = RuntimeError("socket closed")

    outcome = coordinator.finish_meeting(meeting.meeting_id)

    assert outcome.status == OUTCOME_SUMMARIZATION_FAILED
    assert coordinator.get_meeting(meeting.meeting_id).status == MeetingStatus.FINISHED.value


def test_finish_with_blank_summary_is_a_failure(coordinator, summarizer, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.append_message(meeting.meeting_id, {"name": "Ana", "message": "hi"})
    summarizer.result = "   "

    outcome = coordinator.finish_meeting(meeting.meeting_id)

    assert outcome.status == OUTCOME_SUMMARIZATION_FAILED
    assert coordinator.get_transcript(meeting.meeting_id).summary is None


def test_finish_unknown_meeting(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.finish_meeting("MTG20240101-0ZZZ")


def test_refinish_keeps_original_finish_time(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.finish_meeting(meeting.meeting_id)
    first_finished_at = coordinator.get_meeting(meeting.meeting_id).finished_at

    coordinator.finish_meeting(meeting.meeting_id)

    assert coordinator.get_meeting(meeting.meeting_id).finished_at == first_finished_at


def test_summarize_meeting_retries_after_failure(coordinator, summarizer, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.append_message(meeting.meeting_id, {"name": "Ana", "message": "hi"})
    summarizer.error = SummarizationError("timeout")
    assert coordinator.finish_meeting(meeting.meeting_id).status == OUTCOME_SUMMARIZATION_FAILED

    summarizer.error = None
    outcome = coordinator.summarize_meeting(meeting.meeting_id)

    assert outcome.status == OUTCOME_SUMMARIZED
    assert coordinator.get_transcript(meeting.meeting_id).summary == summarizer.result


def test_summarize_meeting_rejects_active_meeting(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    with pytest.raises(ValidationError):
        coordinator.summarize_meeting(meeting.meeting_id)


def test_update_meeting_description(coordinator, make_user):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id, description="old")

    updated = coordinator.update_meeting(meeting.meeting_id, {"description": "new"})

    assert updated.description == "new"
    assert updated.status == MeetingStatus.ACTIVE.value


@pytest.mark.parametrize("fields", [{"status": "finished"}, {"finished_at": None}, {"owner_id": "x"}])
def test_update_meeting_rejects_protected_fields(coordinator, make_user, fields):
    owner = make_user()
    meeting = coordinator.start_meeting(owner.user_id)
    with pytest.raises(ValidationError, match="Only description is editable"):
        coordinator.update_meeting(meeting.meeting_id, fields)


def test_update_unknown_meeting(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.update_meeting("MTG20240101-0001", {"description": "x"})


def test_participant_profiles_skip_deleted_users(coordinator, user_manager, make_user):
    owner = make_user("Ana Torres")
    guest = make_user("Luis Gomez")
    meeting = coordinator.start_meeting(owner.user_id)
    coordinator.add_participant(meeting.meeting_id, guest.user_id)

    user_manager.delete_user(guest.user_id)

    profiles = coordinator.participant_profiles(meeting.meeting_id)
    assert [u.user_id for u in profiles] == [owner.user_id]
    # The stale snapshot stays on the participant row.
    assert len(coordinator.active_participants(meeting.meeting_id)) == 2


def test_queries_filter_by_owner(coordinator, make_user):
    ana = make_user("Ana Torres")
    luis = make_user("Luis Gomez")
    m1 = coordinator.start_meeting(ana.user_id)
    m2 = coordinator.start_meeting(luis.user_id)
    coordinator.append_message(m1.meeting_id, {"name": "Ana", "message": "hi"})
    coordinator.append_message(m2.meeting_id, {"name": "Luis", "message": "hola"})

    assert [m.meeting_id for m in coordinator.meetings_for_user(ana.user_id)] == [m1.meeting_id]
    assert [t.meeting_id for t in coordinator.transcripts_for_user(luis.user_id)] == [m2.meeting_id]
    assert len(coordinator.list_meetings()) == 2
