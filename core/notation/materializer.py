"""
core/notation/materializer.py — Assign absolute start times to normalized voices.

Each voice keeps its own time cursor starting at ``start_time``:

    element duration   = n modifier, else the configured default
    element start      = cursor
    cursor advance     = t modifier when declared (overlap / staccato gaps),
                         else the element's duration; for a chord, the
                         longest member duration
    rests              = advance the cursor, emit nothing

Velocity ranges (``v80-100``) are drawn uniformly per note from the RNG the
caller passes in. No module-level generator is ever used, so concurrent
decodes cannot interfere and a seeded ``random.Random`` reproduces output.
"""

from __future__ import annotations

import random
from collections.abc import Sequence

from core.notation.config import DEFAULT_CONFIG, NotationConfig
from core.notation.errors import RangeError
from core.notation.types import (
    ElementKind,
    NormalizedNote,
    NormalizedSequence,
    NoteEvent,
    Velocity,
    VelocityRange,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def materialize(
    sequence: NormalizedSequence,
    start_time: float = 0.0,
    *,
    config: NotationConfig = DEFAULT_CONFIG,
    rng: random.Random | None = None,
) -> tuple[NoteEvent, ...]:
    """
    Turn one normalized voice into NoteEvents with absolute timing.

    Args:
        sequence:   Output of ``normalizer.normalize_voice``.
        start_time: Beat position of the first element (default 0.0).
        config:     Defaults for velocity, duration and probability.
        rng:        Random source for velocity ranges. None = a fresh,
                    unseeded ``random.Random`` owned by this call.

    Returns:
        Tuple of NoteEvents in sequence order (chord members by pitch).

    Raises:
        RangeError: if start_time is negative.
    """
    if start_time < 0:
        raise RangeError("start time", start_time)
    rng = rng if rng is not None else random.Random()

    events: list[NoteEvent] = []
    cursor = float(start_time)
    for element in sequence:
        if element.kind is ElementKind.REST:
            cursor += element.duration if element.duration is not None else config.default_duration
            continue

        durations = []
        for note in element.notes:
            event = _note_event(note, cursor, config, rng)
            events.append(event)
            durations.append(event.duration)

        advance = element.modifiers.time_until_next
        cursor += advance if advance is not None else max(durations)
    return tuple(events)


def materialize_voices(
    sequences: Sequence[NormalizedSequence],
    start_time: float = 0.0,
    *,
    config: NotationConfig = DEFAULT_CONFIG,
    rng: random.Random | None = None,
) -> tuple[NoteEvent, ...]:
    """Materialize every voice from the same start time and merge the results.

    Voices share one time base; the merged tuple keeps voice order, so the
    first voice's notes come first.
    """
    rng = rng if rng is not None else random.Random()
    merged: list[NoteEvent] = []
    for sequence in sequences:
        merged.extend(materialize(sequence, start_time, config=config, rng=rng))
    return tuple(merged)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _resolve_velocity(velocity: Velocity | None, config: NotationConfig, rng: random.Random) -> int:
    if velocity is None:
        return config.default_velocity
    if isinstance(velocity, VelocityRange):
        return rng.randint(velocity.low, velocity.high)
    return velocity


def _note_event(
    note: NormalizedNote,
    start: float,
    config: NotationConfig,
    rng: random.Random,
) -> NoteEvent:
    modifiers = note.modifiers
    return NoteEvent(
        pitch=note.pitch,
        start_time=start,
        duration=modifiers.duration if modifiers.duration is not None else config.default_duration,
        velocity=_resolve_velocity(modifiers.velocity, config, rng),
        probability=(
            modifiers.probability
            if modifiers.probability is not None
            else config.default_probability
        ),
    )
