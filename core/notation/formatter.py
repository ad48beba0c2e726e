"""
core/notation/formatter.py — Encode NoteEvents back into notation text.

This is the reverse of the decode pipeline and is what an AI agent reads when
it inspects a clip. Output is kept compact:

    - velocity / duration / probability suffixes are omitted when they equal
      the configured default
    - ``t<gap>`` is only written when the distance to the next element
      differs from the element's own duration (overlaps, staccato, gaps);
      the last element of a voice never carries one
    - a clip whose first note starts after beat 0 is prefixed with a rest

Melodic mode groups notes by start time. A group whose members share
velocity, duration and probability becomes a chord ``[C3 E3 G3]``; any
other group is written note by note with ``t0`` between members.

Drum mode groups notes by pitch instead: one ``;``-separated voice per pad,
pads in ascending pitch order.

Examples:
    [(60, 0, 1, 70), (64, 0, 1, 70)]              → "[C3 E3]"
    [(60, 0, 2, 70), (64, 1, 1, 70), (67, 2, 1, 70)] → "C3n2t1 E3 G3"
    drum: kick at 0/2, snare at 1/3              → "C1t2 C1; R D1t2 D1"
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from itertools import groupby

from core.notation.config import DEFAULT_CONFIG, NotationConfig
from core.notation.pitch import midi_to_name
from core.notation.types import NoteEvent

_VOICE_JOIN = "; "

# ---------------------------------------------------------------------------
# Internal value type
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Unit:
    """One printed element: a single note, or a chord of uniform notes."""

    start: float
    notes: tuple[NoteEvent, ...]

    @property
    def duration(self) -> float:
        return self.notes[0].duration


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def format_notation(
    notes: Iterable[NoteEvent],
    *,
    is_drum_track: bool = False,
    config: NotationConfig = DEFAULT_CONFIG,
) -> str:
    """
    Encode notes as notation text.

    Args:
        notes:         NoteEvents in any order.
        is_drum_track: True to write one voice per pitch (drum rack pads).
        config:        Defaults to omit and tolerances for timing.

    Returns:
        Notation text; "" for no notes.

    Raises:
        RangeError: if a note's pitch cannot be named (outside 0–127).
    """
    notes = list(notes)
    if not notes:
        return ""
    if is_drum_track:
        return format_drum_voices(notes, config=config)
    return format_voice(_melodic_units(notes, config), config=config)


def format_drum_voices(
    notes: Sequence[NoteEvent],
    *,
    config: NotationConfig = DEFAULT_CONFIG,
) -> str:
    """One voice per pitch, ascending; hits within a voice in time order."""
    by_pitch = sorted(notes, key=lambda n: (n.pitch, n.start_time))
    voices = []
    for _pitch, hits in groupby(by_pitch, key=lambda n: n.pitch):
        units = [_Unit(start=hit.start_time, notes=(hit,)) for hit in hits]
        voices.append(format_voice(units, config=config))
    return _VOICE_JOIN.join(voices)


def format_voice(units: Sequence[_Unit], *, config: NotationConfig = DEFAULT_CONFIG) -> str:
    """Serialize time-ordered units with the timing-suffix rule."""
    if not units:
        return ""
    tokens: list[str] = []
    lead_in = units[0].start
    if lead_in > config.time_epsilon:
        tokens.append(_rest_token(lead_in, config))
    for i, unit in enumerate(units):
        gap = units[i + 1].start - unit.start if i + 1 < len(units) else None
        tokens.append(_unit_token(unit, gap, config))
    return " ".join(tokens)


def format_number(value: float, precision: int = 3) -> str:
    """Compact decimal: 1.0 → "1", 0.25 → "0.25", 1/3 → "0.333"."""
    text = f"{value:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def _melodic_units(notes: Sequence[NoteEvent], config: NotationConfig) -> list[_Unit]:
    units: list[_Unit] = []
    for members in _start_groups(notes, config.time_epsilon):
        start = min(m.start_time for m in members)
        if len(members) == 1 or _is_uniform(members, config):
            units.append(_Unit(start=start, notes=members))
        else:
            units.extend(_Unit(start=start, notes=(member,)) for member in members)
    return units


def _start_groups(notes: Sequence[NoteEvent], epsilon: float) -> list[tuple[NoteEvent, ...]]:
    """Notes whose starts lie within ``epsilon`` of a group's first note, in time order."""
    groups: list[list[NoteEvent]] = []
    for note in sorted(notes, key=lambda n: (n.start_time, n.pitch)):
        if groups and note.start_time - groups[-1][0].start_time <= epsilon:
            groups[-1].append(note)
        else:
            groups.append([note])
    return [tuple(sorted(group, key=lambda n: n.pitch)) for group in groups]


def _is_uniform(members: Sequence[NoteEvent], config: NotationConfig) -> bool:
    first = members[0]
    return all(
        m.velocity == first.velocity
        and abs(m.duration - first.duration) <= config.time_epsilon
        and m.probability == first.probability
        for m in members[1:]
    )


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def _unit_token(unit: _Unit, gap: float | None, config: NotationConfig) -> str:
    if len(unit.notes) == 1:
        body = midi_to_name(unit.notes[0].pitch)
    else:
        body = "[" + " ".join(midi_to_name(n.pitch) for n in unit.notes) + "]"
    return body + _modifier_suffix(unit, gap, config)


def _modifier_suffix(unit: _Unit, gap: float | None, config: NotationConfig) -> str:
    note = unit.notes[0]
    precision = config.time_precision
    suffix = ""
    if note.velocity != config.default_velocity:
        suffix += f"v{note.velocity}"
    if abs(note.duration - config.default_duration) > config.time_epsilon:
        suffix += f"n{format_number(note.duration, precision)}"
    if note.probability != config.default_probability:
        suffix += f"p{format_number(note.probability, precision)}"
    if gap is not None and abs(gap - unit.duration) > config.time_epsilon:
        suffix += f"t{format_number(gap, precision)}"
    return suffix


def _rest_token(length: float, config: NotationConfig) -> str:
    if abs(length - config.default_duration) <= config.time_epsilon:
        return "R"
    return f"R{format_number(length, config.time_precision)}"
