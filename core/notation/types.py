"""
core/notation/types.py — Frozen value objects for the notation engine.

All types are immutable frozen dataclasses. No I/O, no side effects, no
external dependencies beyond stdlib.

Types:
    NoteEvent        — a materialized note (pitch, start, duration, velocity, probability,
                       velocity deviation)
    VelocityRange    — a velocity drawn uniformly from [low, high] at materialization
    Modifiers        — optional v / n / t / p attributes on an AST element
    Note, Chord, Rest, Grouping, Repetition — parsed AST elements
    NormalizedNote, NormalizedElement       — flat, repetition-free elements
    PitchRange, BarBeat, TimeRange, Selector — transform scoping predicates
    ClipContext      — clip-level values bound into transform expressions
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union

from core.notation.errors import RangeError

# ---------------------------------------------------------------------------
# NoteEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoteEvent:
    """A single note with absolute timing, as stored in a DAW clip.

    Attributes:
        pitch:       MIDI note number (0–127)
        start_time:  Position in quarter-note beats from the clip start (>= 0)
        duration:    Length in quarter-note beats (> 0)
        velocity:    MIDI velocity (0–127)
        probability: Chance the note plays (0.0–1.0)
        velocity_deviation: Random velocity spread the DAW applies on playback
                     (-127–127); not expressible in notation text
    """

    pitch: int
    start_time: float
    duration: float
    velocity: int = 70
    probability: float = 1.0
    velocity_deviation: float = 0.0

    def __post_init__(self) -> None:
        if not (0 <= self.pitch <= 127):
            raise RangeError("pitch", self.pitch)
        if self.start_time < 0:
            raise RangeError("start time", self.start_time)
        if self.duration <= 0:
            raise RangeError("duration", self.duration)
        if not (0 <= self.velocity <= 127):
            raise RangeError("velocity", self.velocity)
        if not (0.0 <= self.probability <= 1.0):
            raise RangeError("probability", self.probability)
        if not (-127.0 <= self.velocity_deviation <= 127.0):
            raise RangeError("velocity deviation", self.velocity_deviation)

    @property
    def end_time(self) -> float:
        """Beat position where the note releases."""
        return self.start_time + self.duration


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VelocityRange:
    """A velocity range written as ``v80-100``; resolved per note from an RNG."""

    low: int
    high: int

    def __post_init__(self) -> None:
        for value in (self.low, self.high):
            if not (0 <= value <= 127):
                raise RangeError("velocity", value)
        if self.low > self.high:
            raise ValueError(f"VelocityRange low ({self.low}) must be <= high ({self.high})")


Velocity = Union[int, VelocityRange]

#: Single-letter prefix → Modifiers field name
MODIFIER_FIELDS: dict[str, str] = {
    "v": "velocity",
    "n": "duration",
    "t": "time_until_next",
    "p": "probability",
}


@dataclass(frozen=True)
class Modifiers:
    """Optional attributes attached to a note, chord or grouping.

    ``None`` means "not declared here"; a declared value always wins over one
    inherited from an enclosing chord or grouping.
    """

    velocity: Velocity | None = None
    duration: float | None = None
    time_until_next: float | None = None
    probability: float | None = None

    def inherit(self, parent: Modifiers) -> Modifiers:
        """Fill every undeclared field from ``parent``; own fields take precedence."""
        return Modifiers(
            velocity=self.velocity if self.velocity is not None else parent.velocity,
            duration=self.duration if self.duration is not None else parent.duration,
            time_until_next=(
                self.time_until_next if self.time_until_next is not None else parent.time_until_next
            ),
            probability=self.probability if self.probability is not None else parent.probability,
        )

    def without_timing(self) -> Modifiers:
        """Copy with ``time_until_next`` cleared (chord members never advance time)."""
        return replace(self, time_until_next=None)

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.velocity, self.duration, self.time_until_next, self.probability)
        )


NO_MODIFIERS = Modifiers()

# ---------------------------------------------------------------------------
# AST elements (output of the parser)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Note:
    """A single pitch, e.g. ``C3v90``."""

    pitch: int
    modifiers: Modifiers = NO_MODIFIERS


@dataclass(frozen=True)
class Chord:
    """Simultaneous notes, e.g. ``[C3 E3 G3]n2``. Notes are sorted by pitch."""

    notes: tuple[Note, ...]
    modifiers: Modifiers = NO_MODIFIERS

    def __post_init__(self) -> None:
        if not self.notes:
            raise ValueError("Chord.notes must not be empty")
        ordered = tuple(sorted(self.notes, key=lambda n: n.pitch))
        if ordered != self.notes:
            object.__setattr__(self, "notes", ordered)


@dataclass(frozen=True)
class Rest:
    """Silence that advances time, e.g. ``R`` or ``R0.5``.

    ``duration`` is None for a bare ``R``, which uses the configured default.
    """

    duration: float | None = None


@dataclass(frozen=True)
class Grouping:
    """A parenthesised sub-sequence whose modifiers are distributed to its leaves."""

    content: tuple[Element, ...]
    modifiers: Modifiers = NO_MODIFIERS

    def __post_init__(self) -> None:
        if not self.content:
            raise ValueError("Grouping.content must not be empty")


@dataclass(frozen=True)
class Repetition:
    """``content`` played ``count`` times back to back, e.g. ``(C3 D3)*2``."""

    content: tuple[Element, ...]
    count: int

    def __post_init__(self) -> None:
        if not self.content:
            raise ValueError("Repetition.content must not be empty")
        if self.count < 1:
            raise ValueError(f"Repetition.count must be >= 1, got {self.count}")


Element = Union[Note, Chord, Rest, Grouping, Repetition]
Voice = tuple[Element, ...]

# ---------------------------------------------------------------------------
# Normalized elements (output of the normalizer)
# ---------------------------------------------------------------------------


class ElementKind(str, Enum):
    """Kinds of element left after normalization."""

    NOTE = "note"
    CHORD = "chord"
    REST = "rest"


@dataclass(frozen=True)
class NormalizedNote:
    """A pitch with its fully-resolved (own + inherited) modifiers."""

    pitch: int
    modifiers: Modifiers = NO_MODIFIERS


@dataclass(frozen=True)
class NormalizedElement:
    """One time step of a voice after repetition expansion and propagation.

    Attributes:
        kind:      note, chord or rest
        notes:     The sounding notes (one for ``NOTE``, several for ``CHORD``,
                   none for ``REST``)
        modifiers: Element-level modifiers. For chords only ``time_until_next``
                   matters for timing; members carry their own copies of the rest.
        duration:  Rest length in beats (``REST`` only; None = default)
    """

    kind: ElementKind
    notes: tuple[NormalizedNote, ...] = ()
    modifiers: Modifiers = NO_MODIFIERS
    duration: float | None = None

    @property
    def pitches(self) -> tuple[int, ...]:
        return tuple(n.pitch for n in self.notes)


NormalizedSequence = tuple[NormalizedElement, ...]

# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PitchRange:
    """Inclusive MIDI pitch range, e.g. ``C3-C5`` → (60, 84)."""

    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError(f"Invalid pitch range: {self.low} > {self.high}")

    def contains(self, pitch: int) -> bool:
        return self.low <= pitch <= self.high


@dataclass(frozen=True, order=True)
class BarBeat:
    """A 1-based ``bar|beat`` position, e.g. ``2|3.5``."""

    bar: int
    beat: float

    def to_beats(self, beats_per_bar: float) -> float:
        """Beats from the clip start for this position."""
        return (self.bar - 1) * beats_per_bar + (self.beat - 1)

    @classmethod
    def from_beats(cls, beats: float, beats_per_bar: float) -> BarBeat:
        bar_index = int(beats // beats_per_bar)
        beat = round(beats - bar_index * beats_per_bar, 6) + 1
        return cls(bar=bar_index + 1, beat=beat)


@dataclass(frozen=True)
class TimeRange:
    """Inclusive ``bar|beat-bar|beat`` range."""

    start: BarBeat
    end: BarBeat

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Invalid time range: {self.start} is after {self.end}")

    def contains(self, position: BarBeat) -> bool:
        return self.start <= position <= self.end


@dataclass(frozen=True)
class Selector:
    """Which notes a transform applies to. A missing dimension is unrestricted."""

    pitch_range: PitchRange | None = None
    time_range: TimeRange | None = None

    @property
    def is_unrestricted(self) -> bool:
        return self.pitch_range is None and self.time_range is None


# ---------------------------------------------------------------------------
# ClipContext
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClipContext:
    """Clip-level values exposed to transform expressions as ``clip.*`` / ``bar.*``.

    Expressions and selectors count in the time signature's own beat: in 6/8
    a beat is an eighth note, ``bar.duration`` is 6 and ``1|4`` is the fourth
    eighth. Note times are stored in quarter notes; ``beat_length`` converts.

    Attributes:
        duration:      Clip length in beats (``clip.duration``)
        index:         0-based clip index within a multi-clip operation (``clip.index``)
        count:         Number of clips in the operation (``clip.count``)
        position:      Arrangement start in beats; None for session clips (``clip.position``)
        beats_per_bar: Time signature numerator (``bar.duration``)
        beat_length:   Quarter notes per beat, ``4 / denominator`` (6/8 → 0.5)
    """

    duration: float = 4.0
    index: int = 0
    count: int = 1
    position: float | None = None
    beats_per_bar: float = 4.0
    beat_length: float = 1.0

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"ClipContext.duration must be >= 0, got {self.duration}")
        if self.index < 0:
            raise ValueError(f"ClipContext.index must be >= 0, got {self.index}")
        if self.beats_per_bar <= 0:
            raise ValueError(
                f"ClipContext.beats_per_bar must be > 0, got {self.beats_per_bar}"
            )
        if self.beat_length <= 0:
            raise ValueError(f"ClipContext.beat_length must be > 0, got {self.beat_length}")

    def to_beats(self, quarter_notes: float) -> float:
        """Quarter-note time → beats of the time signature."""
        return quarter_notes / self.beat_length

    def to_quarter_notes(self, beats: float) -> float:
        """Beats of the time signature → quarter-note time."""
        return beats * self.beat_length


@dataclass(frozen=True)
class TransformOutcome:
    """Result of evaluating one expression over the selected notes of a clip.

    Attributes:
        values: ``(note_index, value)`` for each selected note that evaluated;
                ``note_index`` refers to the caller's input order.
        errors: ``(note_index, message)`` for each selected note that failed.
    """

    values: tuple[tuple[int, float], ...] = ()
    errors: tuple[tuple[int, str], ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors
