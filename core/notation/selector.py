"""
core/notation/selector.py — Parse and apply transform selectors.

A selector scopes a transform to part of a clip. It is written in front of
an expression and terminated by ``:``; both dimensions are optional and may
appear in either order:

    C3:                  only middle C
    C3-C5:               pitches 60–84 inclusive
    1|1-2|4:             bar 1 beat 1 through bar 2 beat 4 inclusive
    C3-C5 1|1-2|4:       both
    1|2.5-1|4+1/2:       fractional beats, decimal or ``+n/d`` form

Bars and beats are 1-based and count in the time signature's beat, so
``1|4`` in 6/8 is the fourth eighth note. A note matches when its pitch is
inside the pitch range and its start position, converted to ``bar|beat``
with the clip's time signature, is inside the time range.
"""

from __future__ import annotations

import re
from fractions import Fraction

from core.notation.errors import NotationSyntaxError
from core.notation.pitch import name_to_midi
from core.notation.types import (
    BarBeat,
    ClipContext,
    NoteEvent,
    PitchRange,
    Selector,
    TimeRange,
)

_PITCH = r"[A-G][#b]?-?\d+"
_BEAT = r"\d+(?:\.\d+)?(?:\+\d+/\d+)?"
_POSITION = rf"\d+\|{_BEAT}"

_PITCH_TOKEN_RE = re.compile(rf"(?P<low>{_PITCH})(?:-(?P<high>{_PITCH}))?")
_TIME_TOKEN_RE = re.compile(rf"(?P<start>{_POSITION})(?:-(?P<end>{_POSITION}))?")
_TOKEN_RE = re.compile(r"\S+")

UNRESTRICTED = Selector()

# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_selector(text: str | None) -> Selector:
    """
    Parse selector text such as ``"C3-C5 1|1-2|4:"``.

    The trailing ``:`` is optional here so callers may pass the text with or
    without it. Empty text selects every note.

    Raises:
        NotationSyntaxError: unknown token, repeated dimension, inverted range
        RangeError: a pitch name outside 0–127
    """
    if text is None:
        return UNRESTRICTED
    body = text.rstrip()
    if body.endswith(":"):
        body = body[:-1]

    pitch_range: PitchRange | None = None
    time_range: TimeRange | None = None
    for match in _TOKEN_RE.finditer(body):
        token, position = match.group(), match.start()
        pitch_match = _PITCH_TOKEN_RE.fullmatch(token)
        time_match = _TIME_TOKEN_RE.fullmatch(token)
        if pitch_match is not None:
            if pitch_range is not None:
                raise NotationSyntaxError("Selector has more than one pitch range", text, position)
            pitch_range = _pitch_range(pitch_match, text, position)
        elif time_match is not None:
            if time_range is not None:
                raise NotationSyntaxError("Selector has more than one time range", text, position)
            time_range = _time_range(time_match, text, position)
        else:
            raise NotationSyntaxError(
                f"Unexpected selector token '{token}', expected a pitch range "
                "(C3 or C3-C5) or a time range (1|1-2|4)",
                text,
                position,
            )
    return Selector(pitch_range=pitch_range, time_range=time_range)


def parse_bar_beat(token: str) -> BarBeat:
    """``"2|3.5"`` or ``"1|1+1/2"`` → BarBeat. Bars and beats start at 1."""
    bar_text, beat_text = token.split("|", 1)
    whole, _, fraction = beat_text.partition("+")
    beat = float(whole)
    if fraction:
        numerator, denominator = fraction.split("/", 1)
        if int(denominator) == 0:
            raise ValueError(f"Zero denominator in beat '{beat_text}'")
        beat += float(Fraction(int(numerator), int(denominator)))
    bar = int(bar_text)
    if bar < 1 or beat < 1:
        raise ValueError(f"Bar and beat are 1-based, got '{token}'")
    return BarBeat(bar=bar, beat=beat)


def _pitch_range(match: re.Match[str], text: str, position: int) -> PitchRange:
    token = match.group()
    low = name_to_midi(match.group("low"))
    high = name_to_midi(match.group("high")) if match.group("high") else low
    if low > high:
        raise NotationSyntaxError(
            f"Invalid pitch range '{token}': {match.group('low')} is above {match.group('high')}",
            text,
            position,
        )
    return PitchRange(low=low, high=high)


def _time_range(match: re.Match[str], text: str, position: int) -> TimeRange:
    token = match.group()
    try:
        start = parse_bar_beat(match.group("start"))
        end = parse_bar_beat(match.group("end")) if match.group("end") else start
    except ValueError as exc:
        raise NotationSyntaxError(f"Invalid time range '{token}': {exc}", text, position) from exc
    if end < start:
        raise NotationSyntaxError(
            f"Invalid time range '{token}': end is before start", text, position
        )
    return TimeRange(start=start, end=end)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def matches(selector: Selector, note: NoteEvent, clip_context: ClipContext | None = None) -> bool:
    """True when the note is inside every dimension the selector restricts."""
    return selects(selector, note.pitch, note.start_time, clip_context)


def selects(
    selector: Selector,
    pitch: int,
    start_time: float,
    clip_context: ClipContext | None = None,
) -> bool:
    """``matches`` for a pitch and a quarter-note start time."""
    if selector.pitch_range is not None and not selector.pitch_range.contains(pitch):
        return False
    if selector.time_range is not None:
        clip_context = clip_context or ClipContext()
        position = BarBeat.from_beats(clip_context.to_beats(start_time), clip_context.beats_per_bar)
        if not selector.time_range.contains(position):
            return False
    return True


def time_range_beats(time_range: TimeRange, beats_per_bar: float) -> tuple[float, float]:
    """(start, end) of a time range in beats from the clip start."""
    return time_range.start.to_beats(beats_per_bar), time_range.end.to_beats(beats_per_bar)
