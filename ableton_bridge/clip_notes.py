"""
ableton_bridge/clip_notes.py — Convert between Live clip notes and notation text.

This is the boundary between the DAW integration and core/notation/:

    read_clip_notation(snapshot)          Live notes  → notation text (for the agent)
    write_clip_notation(text)             notation    → Live note dicts
    transform_clip_notes(snapshot, prog)  Live notes  → transformed Live note dicts

Raw note dictionaries are validated with pydantic, then converted to
NoteEvents; velocities arrive as floats and are rounded to integers. Errors
from the notation engine propagate unchanged so the caller can report the
exact position or note that failed. Per-note transform failures do not
abort the batch; they are logged and returned with the result.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ableton_bridge.schemas import ClipSnapshot, RawClipNote
from core.notation.config import DEFAULT_CONFIG, DRUM_CONFIG, NotationConfig
from core.notation.formatter import format_notation
from core.notation.pipeline import parse_notation
from core.notation.transform import TransformResult, apply_transforms
from core.notation.types import ClipContext, NoteEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipTransformResult:
    """Notes to write back to Live after a transform, plus what went wrong.

    Fields:
        notes:       Note dicts in Live's ``add_new_notes`` shape.
        errors:      Human-readable per-note failures.
        transformed: Count of notes changed by at least one assignment.
        deleted:     Count of notes removed by the transform.
    """

    notes: list[dict[str, Any]]
    errors: list[str]
    transformed: int
    deleted: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "notes": self.notes,
            "errors": self.errors,
            "transformed": self.transformed,
            "deleted": self.deleted,
        }


# ---------------------------------------------------------------------------
# Note conversion
# ---------------------------------------------------------------------------


def notes_from_daw(raw_notes: Iterable[Mapping[str, Any] | RawClipNote]) -> list[NoteEvent]:
    """Validate raw DAW notes and convert them to NoteEvents.

    Raises:
        pydantic.ValidationError: a note is missing a field or out of range.
    """
    events = []
    for raw in raw_notes:
        note = raw if isinstance(raw, RawClipNote) else RawClipNote.model_validate(raw)
        events.append(
            NoteEvent(
                pitch=note.pitch,
                start_time=note.start_time,
                duration=note.duration,
                velocity=min(127, int(math.floor(note.velocity + 0.5))),
                probability=note.probability,
                velocity_deviation=note.velocity_deviation,
            )
        )
    return events


def notes_to_daw(notes: Iterable[NoteEvent]) -> list[dict[str, Any]]:
    """NoteEvents → Live note dicts."""
    return [
        {
            "pitch": note.pitch,
            "start_time": note.start_time,
            "duration": note.duration,
            "velocity": float(note.velocity),
            "probability": note.probability,
            "velocity_deviation": note.velocity_deviation,
        }
        for note in notes
    ]


def clip_context(snapshot: ClipSnapshot, index: int = 0, count: int = 1) -> ClipContext:
    """Clip-level transform variables for a snapshot, in time-signature beats."""
    beat_length = snapshot.beat_length
    position = snapshot.arrangement_position
    return ClipContext(
        duration=snapshot.length / beat_length,
        index=index,
        count=count,
        position=position / beat_length if position is not None else None,
        beats_per_bar=snapshot.time_signature_numerator,
        beat_length=beat_length,
    )


def config_for(is_drum_track: bool) -> NotationConfig:
    return DRUM_CONFIG if is_drum_track else DEFAULT_CONFIG


# ---------------------------------------------------------------------------
# Clip operations
# ---------------------------------------------------------------------------


def read_clip_notation(snapshot: ClipSnapshot | Mapping[str, Any]) -> str:
    """Encode a clip's notes as notation text.

    Drum tracks are encoded one voice per pad with drum defaults
    (velocity 100, 16th-note gates) so typical patterns stay short.
    Multiple drum racks on one track are not merged; pads are grouped by
    pitch only.
    """
    if not isinstance(snapshot, ClipSnapshot):
        snapshot = ClipSnapshot.model_validate(snapshot)
    notes = notes_from_daw(snapshot.notes)
    text = format_notation(
        notes,
        is_drum_track=snapshot.is_drum_track,
        config=config_for(snapshot.is_drum_track),
    )
    logger.debug(
        "Encoded %d notes (drum=%s) as %d characters",
        len(notes),
        snapshot.is_drum_track,
        len(text),
    )
    return text


def write_clip_notation(
    text: str,
    *,
    is_drum_track: bool = False,
    start_time: float = 0.0,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Decode notation text into Live note dicts ready for ``add_new_notes``.

    Raises:
        NotationSyntaxError, DuplicateModifierError, RangeError
    """
    notes = parse_notation(
        text,
        start_time=start_time,
        config=config_for(is_drum_track),
        rng=rng,
    )
    logger.debug("Decoded %d notes from notation", len(notes))
    return notes_to_daw(notes)


def transform_clip_notes(
    snapshot: ClipSnapshot | Mapping[str, Any],
    program: str,
    *,
    clip_index: int = 0,
    clip_count: int = 1,
    rng: random.Random | None = None,
) -> ClipTransformResult:
    """Apply a transform program to a clip's notes.

    Raises:
        NotationSyntaxError: malformed program line or selector
        EvaluationError:     malformed expression
    """
    if not isinstance(snapshot, ClipSnapshot):
        snapshot = ClipSnapshot.model_validate(snapshot)
    result: TransformResult = apply_transforms(
        notes_from_daw(snapshot.notes),
        program,
        clip_context(snapshot, clip_index, clip_count),
        rng=rng,
    )
    errors = [f"note {index}: {message}" for index, message in result.errors]
    for error in errors:
        logger.warning("Transform failed for %s", error)
    if result.deleted:
        logger.info("Transform deleted %d notes", result.deleted)
    return ClipTransformResult(
        notes=notes_to_daw(result.notes),
        errors=errors,
        transformed=result.transformed,
        deleted=result.deleted,
    )
