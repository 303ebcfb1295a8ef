"""Unit tests for voicenotes data models."""

import pytest
from datetime import datetime, timezone

from voicenotes.errors import ErrorKind, NotFoundError, VoiceNotesError
from voicenotes.models import (
    VoiceNote,
    RecordingSession,
    RecordingPhase,
    PlaybackSession,
    PlaybackPhase,
    PlaybackStatus,
    PlaybackStatusEvent,
)


def make_note(**overrides) -> VoiceNote:
    fields = dict(
        id="recording_1700000000000",
        name="Standup",
        location="/data/recordings/recording_1700000000000.wav",
        duration_ms=4200,
        created_at="2026-10-01T09:30:00.000+00:00",
        size_bytes=370000,
    )
    fields.update(overrides)
    return VoiceNote(**fields)


@pytest.mark.unit
class TestVoiceNote:

    def test_from_dict_accepts_index_record(self):
        note = VoiceNote.from_dict({
            "id": "recording_1",
            "name": "Idea",
            "uri": "/tmp/recording_1.wav",
            "duration": 1500,
            "createdAt": "2026-10-01T09:30:00.000Z",
        })

        assert note.location == "/tmp/recording_1.wav"
        assert note.duration_ms == 1500
        assert note.size_bytes is None

    def test_to_dict_omits_unknown_size(self):
        assert "size" not in make_note(size_bytes=None).to_dict()

    @pytest.mark.parametrize("record", [
        {},
        {"id": "recording_1", "name": "x", "uri": "/a.wav", "createdAt": "2026-10-01T00:00:00Z"},
        {"id": "recording_1", "name": "x", "uri": "/a.wav", "duration": "long", "createdAt": "2026-10-01"},
    ])
    def test_from_dict_rejects_bad_records(self, record):
        with pytest.raises(ValueError):
            VoiceNote.from_dict(record)

    def test_renamed_keeps_other_fields(self):
        note = make_note()
        renamed = note.renamed("Retro")

        assert renamed.name == "Retro"
        assert renamed.id == note.id
        assert renamed.location == note.location
        assert renamed.duration_ms == note.duration_ms
        assert renamed.created_at == note.created_at
        assert note.name == "Standup"

    @pytest.mark.parametrize("created_at", [
        "2026-10-01T09:30:00.000Z",
        "2026-10-01T09:30:00.000+00:00",
        "2026-10-01T09:30:00",
    ])
    def test_created_datetime_is_aware(self, created_at):
        created = make_note(created_at=created_at).created_datetime
        assert created == datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.unit
class TestSessions:

    def test_recording_session_reset(self):
        session = RecordingSession(phase=RecordingPhase.PAUSED, elapsed_ms=1200)
        assert session.is_active

        session.reset()

        assert session.phase == RecordingPhase.IDLE
        assert session.elapsed_ms == 0
        assert not session.is_active

    def test_playback_session_reset_keeps_rate(self):
        session = PlaybackSession(note_id="recording_1", phase=PlaybackPhase.PLAYING,
                                  position_ms=800, duration_ms=3000, rate=1.5, token=7)
        assert session.is_loaded

        session.reset()

        assert session.note_id is None
        assert session.phase == PlaybackPhase.STOPPED
        assert session.token == 0
        assert session.rate == 1.5
        assert not session.is_loaded

    def test_status_event_finished(self):
        status = PlaybackStatus(is_loaded=False, is_playing=False, position_ms=0,
                                duration_ms=3000, did_just_finish=True)
        assert PlaybackStatusEvent(token=1, note_id="recording_1", status=status).finished


@pytest.mark.unit
def test_error_kinds():
    error = NotFoundError("Unknown voice note: recording_1")

    assert isinstance(error, VoiceNotesError)
    assert error.kind == ErrorKind.NOT_FOUND
    assert error.message == "Unknown voice note: recording_1"
