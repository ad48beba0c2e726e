"""
core/notation/transform.py — Evaluate expressions over the notes of a clip.

Two entry points:

    evaluate_transform(expression, selector, notes, clip_context, rng=...)
        One expression, one number per selected note. Nothing is mutated;
        the caller decides what to do with the values.

    apply_transforms(notes, program, clip_context, rng=...)
        A program of assignments, one per line, applied in order:

            velocity += ramp(-20, 20)
            C1: probability = choose(1, 0.75, 0.5)
            1|1-2|4: timing += rand(-0.02, 0.02)
            C3-C5: pitch += 12 * (note.index % 2)

        Parameters: velocity, timing, duration, probability, deviation, pitch.
        ``=`` sets the value, ``+=`` adds to it. Each assignment sees the
        result of the previous ones. New notes are returned; once the whole
        program has run, a note whose velocity is below 1 or whose duration
        is 0 or less is deleted.

Notes are visited in musical order (start time, then pitch), so
``note.index`` counts 0, 1, 2 … through the selected notes in time order.
Times inside expressions (``note.start``, ``note.duration``, ``timing``,
``duration``) are in beats of the clip's time signature; see ClipContext.
A malformed expression or selector raises at once; a failure while
evaluating one note is recorded against that note and the batch continues.
"""

from __future__ import annotations

import math
import random
import re
from collections.abc import Sequence
from dataclasses import dataclass

from core.notation.errors import EvaluationError, NotationSyntaxError
from core.notation.expression import Bindings, Expression, compile_expression, evaluate
from core.notation.selector import (
    UNRESTRICTED,
    matches,
    parse_selector,
    selects,
    time_range_beats,
)
from core.notation.types import ClipContext, NoteEvent, Selector, TransformOutcome

TRANSFORM_PARAMETERS: tuple[str, ...] = (
    "velocity",
    "timing",
    "duration",
    "probability",
    "deviation",
    "pitch",
)

_ASSIGNMENT_RE = re.compile(
    r"^\s*(?:(?P<selector>[^:=]*):)?\s*(?P<parameter>[A-Za-z]+)\s*(?P<operator>\+?=)\s*(?P<expression>.*?)\s*$"
)

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransformAssignment:
    """One line of a transform program, e.g. ``C1: velocity += rand(-5, 5)``."""

    parameter: str
    operator: str  # "=" or "+="
    expression: Expression
    selector: Selector = UNRESTRICTED
    source: str = ""

    def __post_init__(self) -> None:
        if self.parameter not in TRANSFORM_PARAMETERS:
            raise ValueError(
                f"Unknown transform parameter '{self.parameter}', "
                f"expected one of {', '.join(TRANSFORM_PARAMETERS)}"
            )
        if self.operator not in ("=", "+="):
            raise ValueError(f"Unknown transform operator '{self.operator}'")


@dataclass(frozen=True)
class TransformResult:
    """Outcome of ``apply_transforms``.

    Attributes:
        notes:       Surviving notes in musical order (start time, then pitch).
        errors:      ``(note_index, message)`` per failed evaluation;
                     ``note_index`` refers to the caller's input order.
        transformed: Number of input notes changed by at least one assignment.
        deleted:     Number of input notes removed (velocity < 1 or duration <= 0).
    """

    notes: tuple[NoteEvent, ...]
    errors: tuple[tuple[int, str], ...] = ()
    transformed: int = 0
    deleted: int = 0


@dataclass
class NoteDraft:
    """A note while a program rewrites it.

    Values are not validated until ``finish``: a line may push velocity to 0
    and a later line bring it back. Times are in quarter notes, like NoteEvent.
    """

    pitch: int
    start_time: float
    duration: float
    velocity: float
    probability: float
    velocity_deviation: float

    @classmethod
    def from_note(cls, note: NoteEvent) -> NoteDraft:
        return cls(
            pitch=note.pitch,
            start_time=note.start_time,
            duration=note.duration,
            velocity=float(note.velocity),
            probability=note.probability,
            velocity_deviation=note.velocity_deviation,
        )

    def finish(self) -> NoteEvent | None:
        """The finished note, or None when velocity < 1 or duration <= 0."""
        if self.velocity < 1 or self.duration <= 0:
            return None
        return NoteEvent(
            pitch=self.pitch,
            start_time=self.start_time,
            duration=self.duration,
            velocity=min(127, _round_half_up(self.velocity)),
            probability=self.probability,
            velocity_deviation=self.velocity_deviation,
        )


# ---------------------------------------------------------------------------
# Single expression
# ---------------------------------------------------------------------------


def evaluate_transform(
    expression_text: str,
    selector_text: str | None,
    notes: Sequence[NoteEvent],
    clip_context: ClipContext | None = None,
    *,
    rng: random.Random | None = None,
) -> TransformOutcome:
    """
    Evaluate one expression for every note the selector matches.

    Args:
        expression_text: e.g. ``"100 + 20 * sine(4)"``.
        selector_text:   e.g. ``"C3-C5 1|1-2|4:"``; empty or None = all notes.
        notes:           The clip's notes, in any order.
        clip_context:    Values for ``clip.*`` / ``bar.*``; None = defaults.
        rng:             Random source for ``rand``/``choose``. None = a fresh,
                         unseeded ``random.Random`` owned by this call.

    Returns:
        TransformOutcome with one value or one error per selected note.

    Raises:
        EvaluationError:     malformed expression text
        NotationSyntaxError: malformed selector text

    Example:
        >>> notes = [NoteEvent(60, 0, 1), NoteEvent(64, 1, 1)]
        >>> evaluate_transform("note.index * 10", "", notes).values
        ((0, 0.0), (1, 10.0))
    """
    expression = compile_expression(expression_text)
    selector = parse_selector(selector_text)
    clip_context = clip_context or ClipContext()
    rng = rng if rng is not None else random.Random()

    ordered = _musical_order(notes)
    selected = [i for i in ordered if matches(selector, notes[i], clip_context)]
    span = _active_span(selector, notes, clip_context)

    values: list[tuple[int, float]] = []
    errors: list[tuple[int, str]] = []
    for position, i in enumerate(selected):
        bindings = build_bindings(notes[i], position, len(selected), clip_context, span)
        try:
            values.append((i, evaluate(expression, bindings, rng=rng)))
        except EvaluationError as exc:
            errors.append((i, str(exc)))
    return TransformOutcome(values=tuple(values), errors=tuple(errors))


def build_bindings(
    note: NoteEvent | NoteDraft,
    index: int,
    count: int,
    clip_context: ClipContext,
    span: tuple[float, float] | None = None,
) -> Bindings:
    """Variables visible to an expression while it evaluates ``note``.

    ``span`` is in beats of the time signature, as returned by
    ``time_range_beats``.
    """
    start = clip_context.to_beats(note.start_time)
    variables: dict[str, float] = {
        "note.index": index,
        "note.count": count,
        "note.pitch": note.pitch,
        "note.start": start,
        "note.duration": clip_context.to_beats(note.duration),
        "note.velocity": note.velocity,
        "note.probability": note.probability,
        "note.deviation": note.velocity_deviation,
        "clip.duration": clip_context.duration,
        "clip.index": clip_context.index,
        "clip.count": clip_context.count,
        "bar.duration": clip_context.beats_per_bar,
    }
    if clip_context.position is not None:
        variables["clip.position"] = clip_context.position
    return Bindings(variables=variables, position=start, span=span)


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------


def parse_transform_program(text: str | None) -> tuple[TransformAssignment, ...]:
    """
    Parse a multi-line transform program.

    Blank lines and lines starting with ``#`` are skipped.

    Raises:
        NotationSyntaxError: a line is not ``[selector:] parameter (=|+=) expression``
        EvaluationError:     an expression is malformed
    """
    if not text:
        return ()
    assignments: list[TransformAssignment] = []
    offset = 0
    for line in text.splitlines(keepends=True):
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            assignments.append(_parse_assignment(line.rstrip("\r\n"), text, offset))
        offset += len(line)
    return tuple(assignments)


def _parse_assignment(line: str, text: str, offset: int) -> TransformAssignment:
    match = _ASSIGNMENT_RE.match(line)
    if match is None or not match.group("expression"):
        raise NotationSyntaxError(
            f"Expected '[selector:] parameter = expression', got '{line.strip()}'",
            text,
            offset,
        )
    parameter = match.group("parameter")
    if parameter not in TRANSFORM_PARAMETERS:
        raise NotationSyntaxError(
            f"Unknown transform parameter '{parameter}', "
            f"expected one of {', '.join(TRANSFORM_PARAMETERS)}",
            text,
            offset + match.start("parameter"),
        )
    selector_text = match.group("selector")
    return TransformAssignment(
        parameter=parameter,
        operator=match.group("operator"),
        expression=compile_expression(match.group("expression")),
        selector=parse_selector(selector_text) if selector_text else UNRESTRICTED,
        source=line.strip(),
    )


def apply_transforms(
    notes: Sequence[NoteEvent],
    program: str | Sequence[TransformAssignment],
    clip_context: ClipContext | None = None,
    *,
    rng: random.Random | None = None,
) -> TransformResult:
    """
    Apply a transform program and return the rewritten notes.

    Assignments run in order; each one is applied to every selected note
    before the next starts, so later lines see earlier changes (including
    pitch changes that move a note in or out of a pitch range). Ramps span
    the assignment's time range, else the clip's notes as given. Deletion
    is decided once, after the last line.

    Args:
        notes:        Input notes (not modified).
        program:      Program text or pre-parsed assignments.
        clip_context: Values for ``clip.*`` / ``bar.*``; None = defaults.
        rng:          Random source shared by every assignment.

    Returns:
        TransformResult with the surviving notes in musical order.
    """
    assignments = parse_transform_program(program) if isinstance(program, str) else tuple(program)
    clip_context = clip_context or ClipContext()
    rng = rng if rng is not None else random.Random()

    # (input index, draft) in musical order of the input
    drafts = [(i, NoteDraft.from_note(notes[i])) for i in _musical_order(notes)]
    clip_span = _notes_span(notes, clip_context)
    errors: list[tuple[int, str]] = []
    touched: set[int] = set()

    for assignment in assignments:
        selected = [
            (origin, draft)
            for origin, draft in drafts
            if selects(assignment.selector, draft.pitch, draft.start_time, clip_context)
        ]
        span = (
            time_range_beats(assignment.selector.time_range, clip_context.beats_per_bar)
            if assignment.selector.time_range is not None
            else clip_span
        )
        for position, (origin, draft) in enumerate(selected):
            bindings = build_bindings(draft, position, len(selected), clip_context, span)
            try:
                value = evaluate(assignment.expression, bindings, rng=rng)
            except EvaluationError as exc:
                errors.append((origin, f"{assignment.parameter}: {exc}"))
                continue
            _apply_value(draft, assignment.parameter, assignment.operator, value, clip_context)
            touched.add(origin)

    finished = [draft.finish() for _origin, draft in drafts]
    survivors = [note for note in finished if note is not None]
    survivors.sort(key=lambda n: (n.start_time, n.pitch))
    return TransformResult(
        notes=tuple(survivors),
        errors=tuple(errors),
        transformed=len(touched),
        deleted=len(drafts) - len(survivors),
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _musical_order(notes: Sequence[NoteEvent]) -> list[int]:
    return sorted(range(len(notes)), key=lambda i: (notes[i].start_time, notes[i].pitch))


def _notes_span(notes: Sequence[NoteEvent], clip_context: ClipContext) -> tuple[float, float] | None:
    if not notes:
        return None
    start = min(n.start_time for n in notes)
    end = max(n.end_time for n in notes)
    return clip_context.to_beats(start), clip_context.to_beats(end)


def _active_span(
    selector: Selector,
    notes: Sequence[NoteEvent],
    clip_context: ClipContext,
) -> tuple[float, float] | None:
    if selector.time_range is not None:
        return time_range_beats(selector.time_range, clip_context.beats_per_bar)
    return _notes_span(notes, clip_context)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _apply_value(
    draft: NoteDraft,
    parameter: str,
    operator: str,
    value: float,
    clip_context: ClipContext,
) -> None:
    """Set (``=``) or offset (``+=``) one parameter of ``draft`` in place.

    ``timing`` and ``duration`` values are in beats of the time signature.
    """
    add = operator == "+="
    if parameter == "velocity":
        draft.velocity = min(127.0, draft.velocity + value if add else value)
    elif parameter == "timing":
        shift = clip_context.to_quarter_notes(value)
        draft.start_time = max(0.0, draft.start_time + shift if add else shift)
    elif parameter == "duration":
        length = clip_context.to_quarter_notes(value)
        draft.duration = draft.duration + length if add else length
    elif parameter == "probability":
        probability = draft.probability + value if add else value
        draft.probability = min(1.0, max(0.0, probability))
    elif parameter == "deviation":
        deviation = draft.velocity_deviation + value if add else value
        draft.velocity_deviation = min(127.0, max(-127.0, deviation))
    elif parameter == "pitch":
        pitch = _round_half_up(draft.pitch + value if add else value)
        draft.pitch = min(127, max(0, pitch))
    else:
        raise ValueError(f"Unknown transform parameter '{parameter}'")
