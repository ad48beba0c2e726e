"""
core/notation/parser.py — Recursive-descent parser for the note notation.

Grammar (informal):

    notation   := voice (";" voice)*
    voice      := element (SEP element)*
    element    := (note | chord | rest | grouping) ("*" COUNT)?
    note       := PITCH modifier*
    chord      := "[" note (WS note)* "]" modifier*
    grouping   := "(" voice ")" modifier*
    rest       := "R" NUMBER?
    modifier   := "v" INT ("-" INT)? | "n" NUMBER | "t" NUMBER | "p" NUMBER
    PITCH      := [A-G] [#b]? -?[0-9]+
    NUMBER     := [0-9]+ ("." [0-9]+)? | "." [0-9]+

SEP is one or more whitespace characters; it may be omitted next to a
bracket or parenthesis. Voices are separated by ``;`` at the top level only.

Examples:
    "C3 D3 E3"                 three quarter notes
    "[C3 E3 G3]v90n2"          a chord with shared velocity and duration
    "(C3 D3)v80*2 R G3n.5"     a repeated group, a rest, a short note
    "C1*4; R.5 Gb1t1*4"        two voices (kick + offbeat hats)

Errors are raised immediately with the character position that failed; no
partial AST is ever returned.
"""

from __future__ import annotations

from core.notation.errors import DuplicateModifierError, NotationSyntaxError, RangeError
from core.notation.pitch import NATURAL_SEMITONES, pitch_from_parts
from core.notation.types import (
    MODIFIER_FIELDS,
    Chord,
    Element,
    Grouping,
    Modifiers,
    Note,
    Repetition,
    Rest,
    VelocityRange,
    Voice,
)

_WHITESPACE = frozenset(" \t\r\n")
_DIGITS = frozenset("0123456789")
_OPENERS = frozenset("[(")
_CLOSERS = frozenset("])")
_VOICE_SEPARATOR = ";"

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(text: str | None) -> tuple[Voice, ...]:
    """
    Parse notation text into one AST sequence per voice.

    Args:
        text: Notation text. Empty, whitespace-only or None yields no voices.

    Returns:
        Tuple of voices; each voice is a tuple of AST elements.

    Raises:
        NotationSyntaxError: malformed text (message includes the position)
        DuplicateModifierError: e.g. ``C3v80v90``
        RangeError: pitch, velocity, duration or probability out of range

    Examples:
        >>> parse("C3 [E3 G3]")
        ((Note(pitch=60, ...), Chord(notes=(...), ...)),)
    """
    if not text or not text.strip():
        return ()
    return _Parser(text).parse()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    """Single-use cursor over the source text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    # -- cursor helpers ------------------------------------------------------

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _skip_ws(self) -> int:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1
        return self.pos - start

    def _error(self, detail: str, position: int | None = None) -> NotationSyntaxError:
        return NotationSyntaxError(detail, self.text, self.pos if position is None else position)

    def _unexpected(self, expected: str) -> NotationSyntaxError:
        if self._at_end():
            return self._error(f"Unexpected end of input, expected {expected}")
        return self._error(f"Unexpected '{self._peek()}', expected {expected}")

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            raise self._unexpected(f"'{char}'")
        self.pos += 1

    # -- top level -----------------------------------------------------------

    def parse(self) -> tuple[Voice, ...]:
        voices = [self._sequence(closing=None)]
        while self._peek() == _VOICE_SEPARATOR:
            self.pos += 1
            voices.append(self._sequence(closing=None))
        if not self._at_end():
            raise self._unexpected(f"'{_VOICE_SEPARATOR}' or end of input")
        return tuple(voices)

    def _sequence(self, closing: str | None) -> Voice:
        """Parse elements until ``closing`` (or ``;`` / end of input at top level)."""
        elements: list[Element] = []
        self._skip_ws()
        separated = True
        while not self._at_sequence_end(closing):
            if not separated and self._peek() not in _OPENERS:
                raise self._error(f"Expected whitespace before '{self._peek()}'")
            elements.append(self._element())
            ended_with_bracket = self.text[self.pos - 1] in _CLOSERS
            separated = self._skip_ws() > 0 or ended_with_bracket
        if not elements:
            raise self._unexpected("a note, chord, rest or grouping")
        return tuple(elements)

    def _at_sequence_end(self, closing: str | None) -> bool:
        if self._at_end():
            return True
        char = self._peek()
        if closing is None:
            return char == _VOICE_SEPARATOR
        return char == closing

    # -- elements ------------------------------------------------------------

    def _element(self) -> Element:
        char = self._peek()
        element: Element
        if char == "(":
            element = self._grouping()
        elif char == "[":
            element = self._chord()
        elif char == "R":
            element = self._rest()
        elif char in NATURAL_SEMITONES:
            element = self._note()
        else:
            raise self._unexpected("a note, chord, rest or grouping")
        if self._peek() == "*":
            element = Repetition(content=(element,), count=self._repeat_count())
        return element

    def _grouping(self) -> Grouping:
        self._expect("(")
        content = self._sequence(closing=")")
        if self._at_end():
            raise self._unexpected("')'")
        self._expect(")")
        return Grouping(content=content, modifiers=self._modifiers())

    def _chord(self) -> Chord:
        open_pos = self.pos
        self._expect("[")
        self._skip_ws()
        notes: list[Note] = []
        while self._peek() != "]":
            if self._at_end():
                raise self._error("Unclosed chord, expected ']'", open_pos)
            if notes and self.text[self.pos - 1] not in _WHITESPACE:
                raise self._error(f"Expected whitespace before '{self._peek()}'")
            if self._peek() not in NATURAL_SEMITONES:
                raise self._unexpected("a note inside chord")
            notes.append(self._note())
            self._skip_ws()
        if not notes:
            raise self._error("Chord must contain at least one note", open_pos)
        self._expect("]")
        return Chord(notes=tuple(notes), modifiers=self._modifiers())

    def _note(self) -> Note:
        start = self.pos
        letter = self._peek()
        self.pos += 1
        accidental = ""
        if self._peek() in ("#", "b"):
            accidental = self._peek()
            self.pos += 1
        octave_start = self.pos
        if self._peek() == "-":
            self.pos += 1
        if self._peek() not in _DIGITS or not self._peek():
            raise self._unexpected(f"an octave number after '{self.text[start:self.pos]}'")
        while self._peek() and self._peek() in _DIGITS:
            self.pos += 1
        octave = int(self.text[octave_start : self.pos])
        pitch = pitch_from_parts(letter, accidental, octave)
        return Note(pitch=pitch, modifiers=self._modifiers())

    def _rest(self) -> Rest:
        self._expect("R")
        if self._peek() and self._peek() in _DIGITS | {"."}:
            token_start = self.pos
            duration = self._number()
            if duration <= 0:
                raise RangeError("duration", duration, token=self.text[token_start - 1 : self.pos])
            return Rest(duration=duration)
        return Rest()

    def _repeat_count(self) -> int:
        self._expect("*")
        start = self.pos
        if not self._peek() or self._peek() not in _DIGITS:
            raise self._unexpected("a repeat count")
        count = self._integer()
        if count < 1:
            raise self._error(f"Repeat count must be a positive integer, got {count}", start)
        return count

    # -- modifiers -----------------------------------------------------------

    def _modifiers(self) -> Modifiers:
        values: dict[str, object] = {}
        while self._peek() and self._peek() in MODIFIER_FIELDS:
            kind = self._peek()
            field_name = MODIFIER_FIELDS[kind]
            if field_name in values:
                raise DuplicateModifierError(kind, self.text, self.pos)
            token_start = self.pos
            self.pos += 1
            values[field_name] = self._modifier_value(kind, token_start)
        return Modifiers(**values)  # type: ignore[arg-type]

    def _modifier_value(self, kind: str, token_start: int) -> int | float | VelocityRange:
        if kind == "v":
            low = self._integer_value("velocity")
            if self._peek() == "-":
                self.pos += 1
                high = self._integer_value("velocity")
                token = self.text[token_start : self.pos]
                for value in (low, high):
                    if value > 127:
                        raise RangeError("velocity", value, token=token)
                return VelocityRange(low=min(low, high), high=max(low, high))
            if low > 127:
                raise RangeError("velocity", low, token=self.text[token_start : self.pos])
            return low

        if not self._peek() or self._peek() not in _DIGITS | {"."}:
            raise self._unexpected(f"a number after '{kind}'")
        value = self._number()
        token = self.text[token_start : self.pos]
        if kind == "n" and value <= 0:
            raise RangeError("duration", value, token=token)
        if kind == "p" and not (0.0 <= value <= 1.0):
            raise RangeError("probability", value, token=token)
        return value

    # -- literals ------------------------------------------------------------

    def _integer(self) -> int:
        start = self.pos
        while self._peek() and self._peek() in _DIGITS:
            self.pos += 1
        return int(self.text[start : self.pos])

    def _integer_value(self, what: str) -> int:
        if not self._peek() or self._peek() not in _DIGITS:
            raise self._unexpected(f"an integer {what}")
        return self._integer()

    def _number(self) -> float:
        """Integer, decimal or leading-dot decimal (``2``, ``0.5``, ``.5``)."""
        start = self.pos
        while self._peek() and self._peek() in _DIGITS:
            self.pos += 1
        if self._peek() == ".":
            self.pos += 1
            fraction_start = self.pos
            while self._peek() and self._peek() in _DIGITS:
                self.pos += 1
            if self.pos == fraction_start:
                raise self._unexpected("digits after '.'")
        return float(self.text[start : self.pos])
