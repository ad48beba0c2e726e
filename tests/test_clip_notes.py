"""
tests/test_clip_notes.py — Tests for ableton_bridge/clip_notes.py and ableton_bridge/schemas.py

Covers:
    - RawClipNote / ClipSnapshot validation
    - notes_from_daw / notes_to_daw conversion
    - read_clip_notation / write_clip_notation for melodic and drum tracks
    - transform_clip_notes: results, per-note errors, logging
"""

from __future__ import annotations

import logging
import random

import pytest
from pydantic import ValidationError

from ableton_bridge.clip_notes import (
    clip_context,
    notes_from_daw,
    notes_to_daw,
    read_clip_notation,
    transform_clip_notes,
    write_clip_notation,
)
from ableton_bridge.schemas import ClipSnapshot, RawClipNote
from core.notation.errors import NotationSyntaxError
from core.notation.types import NoteEvent


def _raw(pitch: int, start: float, duration: float = 1.0, velocity: float = 70.0) -> dict:
    return {
        "pitch": pitch,
        "start_time": start,
        "duration": duration,
        "velocity": velocity,
        "probability": 1.0,
    }


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class TestSchemas:
    def test_extra_keys_ignored(self) -> None:
        note = RawClipNote.model_validate({**_raw(60, 0), "note_id": 7, "mute": 0})
        assert note.pitch == 60

    def test_pitch_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            RawClipNote.model_validate(_raw(200, 0))

    def test_zero_duration(self) -> None:
        with pytest.raises(ValidationError):
            RawClipNote.model_validate(_raw(60, 0, duration=0))

    def test_probability_default(self) -> None:
        note = RawClipNote(pitch=60, start_time=0, duration=1)
        assert note.probability == 1.0

    def test_beat_length(self) -> None:
        snapshot = ClipSnapshot(time_signature_numerator=6, time_signature_denominator=8)
        assert snapshot.beat_length == 0.5

    def test_velocity_deviation_range(self) -> None:
        with pytest.raises(ValidationError):
            RawClipNote.model_validate({**_raw(60, 0), "velocity_deviation": -200})

    def test_denominator_power_of_two(self) -> None:
        with pytest.raises(ValidationError, match="power of two"):
            ClipSnapshot(time_signature_denominator=3)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


class TestConversion:
    def test_velocity_rounded(self) -> None:
        [note] = notes_from_daw([_raw(60, 0, velocity=99.6)])
        assert note.velocity == 100

    def test_accepts_models(self) -> None:
        [note] = notes_from_daw([RawClipNote(pitch=62, start_time=1, duration=0.5)])
        assert (note.pitch, note.start_time, note.duration) == (62, 1.0, 0.5)

    def test_invalid_raw_note(self) -> None:
        with pytest.raises(ValidationError):
            notes_from_daw([{"pitch": 60}])

    def test_to_daw(self) -> None:
        assert notes_to_daw([NoteEvent(60, 0.5, 0.25, 90, 0.5)]) == [
            {
                "pitch": 60,
                "start_time": 0.5,
                "duration": 0.25,
                "velocity": 90.0,
                "probability": 0.5,
                "velocity_deviation": 0.0,
            }
        ]

    def test_clip_context(self) -> None:
        snapshot = ClipSnapshot(length=8, arrangement_position=16, time_signature_numerator=3)
        context = clip_context(snapshot, index=1, count=2)
        assert (context.duration, context.position, context.beats_per_bar) == (8.0, 16.0, 3.0)
        assert (context.index, context.count) == (1, 2)

    def test_clip_context_six_eight(self) -> None:
        snapshot = ClipSnapshot(
            length=6,
            arrangement_position=12,
            time_signature_numerator=6,
            time_signature_denominator=8,
        )
        context = clip_context(snapshot)
        assert (context.duration, context.position) == (12.0, 24.0)
        assert (context.beats_per_bar, context.beat_length) == (6, 0.5)

    def test_deviation_round_trip(self) -> None:
        [note] = notes_from_daw([{**_raw(60, 0), "velocity_deviation": -12.5}])
        assert note.velocity_deviation == -12.5
        assert notes_to_daw([note])[0]["velocity_deviation"] == -12.5


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------


class TestReadWrite:
    def test_read_chord(self) -> None:
        snapshot = {"notes": [_raw(60, 0), _raw(64, 0)]}
        assert read_clip_notation(snapshot) == "[C3 E3]"

    def test_read_drums_uses_drum_defaults(self) -> None:
        snapshot = {
            "notes": [_raw(36, 0, 0.25, 100), _raw(36, 1, 0.25, 100), _raw(38, 1, 0.25, 100)],
            "is_drum_track": True,
        }
        assert read_clip_notation(snapshot) == "C1t1 C1; R1 D1"

    def test_read_empty(self) -> None:
        assert read_clip_notation(ClipSnapshot()) == ""

    def test_write(self) -> None:
        notes = write_clip_notation("C3 D3")
        assert [(n["pitch"], n["start_time"], n["velocity"]) for n in notes] == [
            (60, 0.0, 70.0),
            (62, 1.0, 70.0),
        ]

    def test_write_drums(self) -> None:
        notes = write_clip_notation("C1 D1", is_drum_track=True)
        assert [(n["start_time"], n["duration"], n["velocity"]) for n in notes] == [
            (0.0, 0.25, 100.0),
            (0.25, 0.25, 100.0),
        ]

    def test_write_seeded(self) -> None:
        first = write_clip_notation("C3v60-100*8", rng=random.Random(1))
        second = write_clip_notation("C3v60-100*8", rng=random.Random(1))
        assert first == second

    def test_write_syntax_error_propagates(self) -> None:
        with pytest.raises(NotationSyntaxError):
            write_clip_notation("C3 [E3")

    def test_read_after_write(self) -> None:
        text = "[C3 E3 G3]n2t3 D3v90t0.5 E3"
        snapshot = {"notes": write_clip_notation(text)}
        assert read_clip_notation(snapshot) == text


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


class TestTransformClipNotes:
    def test_applies_program(self) -> None:
        snapshot = {"notes": [_raw(60, 0), _raw(62, 1)]}
        result = transform_clip_notes(snapshot, "velocity = 100")
        assert [n["velocity"] for n in result.notes] == [100.0, 100.0]
        assert result.transformed == 2
        assert result.errors == []

    def test_clip_variables_available(self) -> None:
        snapshot = {"notes": [_raw(60, 0)], "arrangement_position": 8.0}
        result = transform_clip_notes(snapshot, "velocity = clip.position * 10")
        assert result.notes[0]["velocity"] == 80.0

    def test_errors_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        snapshot = {"notes": [_raw(60, 0), _raw(62, 1)]}
        with caplog.at_level(logging.WARNING, logger="ableton_bridge.clip_notes"):
            result = transform_clip_notes(snapshot, "velocity = 100 / note.index")
        assert result.errors == ["note 0: velocity: Division by zero: 100.0 / 0"]
        assert "Transform failed" in caplog.text

    def test_deleted_count(self) -> None:
        snapshot = {"notes": [_raw(60, 0), _raw(62, 1)]}
        result = transform_clip_notes(snapshot, "D3: velocity = 0")
        assert result.deleted == 1
        assert [n["pitch"] for n in result.notes] == [60]

    def test_as_dict(self) -> None:
        result = transform_clip_notes({"notes": [_raw(60, 0)]}, "pitch += 1")
        payload = result.as_dict()
        assert payload["notes"][0]["pitch"] == 61
        assert set(payload) == {"notes", "errors", "transformed", "deleted"}

    def test_six_eight_selector_counts_eighths(self) -> None:
        snapshot = {
            "notes": [_raw(60, 0.0, 0.5, 80), _raw(62, 1.5, 0.5, 80)],
            "time_signature_numerator": 6,
            "time_signature_denominator": 8,
        }
        result = transform_clip_notes(snapshot, "1|4: velocity = 100")
        assert [n["velocity"] for n in result.notes] == [80.0, 100.0]

    def test_six_eight_timing_in_eighths(self) -> None:
        snapshot = {
            "notes": [_raw(60, 0.0, 0.5)],
            "time_signature_numerator": 6,
            "time_signature_denominator": 8,
        }
        result = transform_clip_notes(snapshot, "timing += 1\nduration = 2")
        assert (result.notes[0]["start_time"], result.notes[0]["duration"]) == (0.5, 1.0)

    def test_deviation_written_back(self) -> None:
        result = transform_clip_notes({"notes": [_raw(60, 0)]}, "deviation = -20")
        assert result.notes[0]["velocity_deviation"] == -20.0
