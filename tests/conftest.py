"""
Shared fixtures for the test suite.

Centralizes reusable test infrastructure so individual test files
don't need to repeat note-building boilerplate.
"""

import random

import pytest

from core.notation.types import NoteEvent

# ---------------------------------------------------------------------------
# Note factory
# ---------------------------------------------------------------------------


def _note(
    pitch: int = 60,
    start: float = 0.0,
    duration: float = 1.0,
    velocity: int = 70,
    probability: float = 1.0,
) -> NoteEvent:
    """Build a NoteEvent with notation defaults for anything not given."""
    return NoteEvent(
        pitch=pitch,
        start_time=start,
        duration=duration,
        velocity=velocity,
        probability=probability,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def rng() -> random.Random:
    """Seeded generator so random draws are reproducible per test."""
    return random.Random(42)


@pytest.fixture()
def scale_notes() -> list[NoteEvent]:
    """C major scale from C3, one quarter note each."""
    pitches = [60, 62, 64, 65, 67, 69, 71, 72]
    return [_note(pitch=p, start=float(i)) for i, p in enumerate(pitches)]
