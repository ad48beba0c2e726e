"""
core/notation/pitch.py — Pitch name ↔ MIDI number conversion.

The notation uses Ableton's octave convention, where middle C (MIDI 60) is
``C3`` and the lowest MIDI note is ``C-2``:

    midi = (octave + 2) * 12 + pitch_class

Names are always encoded with flats (``Db3``, never ``C#3``); both ``#``
and ``b`` are accepted when decoding.
"""

from __future__ import annotations

import re

from core.notation.errors import RangeError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIDI_MIN = 0
MIDI_MAX = 127
_OCTAVE = 12
_OCTAVE_OFFSET = 2  # C-2 == MIDI 0

# Letter → semitone offset from C
NATURAL_SEMITONES: dict[str, int] = {
    "C": 0,
    "D": 2,
    "E": 4,
    "F": 5,
    "G": 7,
    "A": 9,
    "B": 11,
}

ACCIDENTALS: dict[str, int] = {"": 0, "#": 1, "b": -1}

# Flat spellings used for output
PITCH_CLASS_NAMES: tuple[str, ...] = (
    "C",
    "Db",
    "D",
    "Eb",
    "E",
    "F",
    "Gb",
    "G",
    "Ab",
    "A",
    "Bb",
    "B",
)

PITCH_NAME_RE = re.compile(r"([A-G])([#b]?)(-?\d+)")

# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def pitch_class_value(letter: str, accidental: str = "") -> int:
    """Semitone offset of a letter + accidental, e.g. ("E", "b") → 3. May be -1 for Cb."""
    return NATURAL_SEMITONES[letter] + ACCIDENTALS[accidental]


def pitch_from_parts(letter: str, accidental: str, octave: int) -> int:
    """
    Compute the MIDI pitch for a parsed pitch name.

    Args:
        letter:     "A"–"G"
        accidental: "", "#" or "b"
        octave:     Signed octave number (3 for middle C)

    Returns:
        MIDI pitch number in [0, 127]

    Raises:
        RangeError: if the computed pitch falls outside [0, 127]
    """
    midi = (octave + _OCTAVE_OFFSET) * _OCTAVE + pitch_class_value(letter, accidental)
    if not (MIDI_MIN <= midi <= MIDI_MAX):
        raise RangeError("pitch", midi, token=f"{letter}{accidental}{octave}")
    return midi


def name_to_midi(name: str) -> int:
    """
    Convert a pitch name such as ``"C3"``, ``"F#-1"`` or ``"Bb8"`` to MIDI.

    Raises:
        ValueError: if the name is not a valid pitch name
        RangeError: if the pitch is outside [0, 127]
    """
    match = PITCH_NAME_RE.fullmatch(name.strip())
    if not match:
        raise ValueError(f"Cannot parse pitch name {name!r}")
    letter, accidental, octave = match.groups()
    return pitch_from_parts(letter, accidental, int(octave))


def midi_to_name(pitch: int) -> str:
    """
    Convert a MIDI pitch to its notation name using flats.

    Examples:
        >>> midi_to_name(0)
        'C-2'
        >>> midi_to_name(60)
        'C3'
        >>> midi_to_name(127)
        'G8'

    Raises:
        RangeError: if pitch is outside [0, 127]
    """
    if isinstance(pitch, bool) or not isinstance(pitch, int):
        raise TypeError(f"MIDI pitch must be an int, got {type(pitch).__name__}")
    if not (MIDI_MIN <= pitch <= MIDI_MAX):
        raise RangeError("pitch", pitch)
    octave = pitch // _OCTAVE - _OCTAVE_OFFSET
    return f"{PITCH_CLASS_NAMES[pitch % _OCTAVE]}{octave}"
