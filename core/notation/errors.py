"""
core/notation/errors.py — Error taxonomy for the notation engine.

Every error is a ``ValueError`` subclass so callers that only care about
"bad input" can catch the builtin, while callers that need to tell an
upstream agent precisely what failed can catch the specific type.

    NotationError
    ├── NotationSyntaxError     malformed notation / selector text (has position)
    │   └── DuplicateModifierError   two modifiers of one kind on one element
    ├── RangeError              pitch / velocity / probability / duration out of range
    └── EvaluationError         transform expression could not be evaluated
"""

from __future__ import annotations


class NotationError(ValueError):
    """Base class for every error raised by core/notation/."""


class NotationSyntaxError(NotationError):
    """Malformed notation text.

    Attributes:
        position: 0-based character offset into the source text.
        line:     1-based line of ``position``.
        column:   1-based column of ``position``.
        detail:   Description of what was expected or found.
    """

    def __init__(self, detail: str, text: str = "", position: int = 0) -> None:
        self.detail = detail
        self.position = position
        self.line = text.count("\n", 0, position) + 1
        self.column = position - (text.rfind("\n", 0, position) + 1) + 1
        super().__init__(
            f"Notation syntax error at position {position} "
            f"(line {self.line}, column {self.column}): {detail}"
        )


class DuplicateModifierError(NotationSyntaxError):
    """An element carries two modifiers of the same kind, e.g. ``C3v80v90``."""

    def __init__(self, kind: str, text: str = "", position: int = 0) -> None:
        self.kind = kind
        super().__init__(f"Duplicate modifier '{kind}'", text, position)


class RangeError(NotationError):
    """A numeric field is outside its valid range.

    Attributes:
        field: Field name, e.g. "pitch", "velocity", "probability".
        value: The offending value.
        token: Source token that produced the value, when there is one.
    """

    _LIMITS: dict[str, str] = {
        "pitch": "0-127",
        "velocity": "0-127",
        "probability": "0.0-1.0",
        "duration": "> 0",
        "time until next": ">= 0",
        "start time": ">= 0",
        "velocity deviation": "-127 to 127",
    }

    def __init__(self, field: str, value: float, token: str | None = None) -> None:
        self.field = field
        self.value = value
        self.token = token
        limits = self._LIMITS.get(field, "valid range")
        if token is not None and field == "pitch":
            message = f"Pitch {token} (MIDI {value}) outside valid range {limits}"
        elif token is not None:
            message = f"{field.capitalize()} {value} in {token!r} outside valid range {limits}"
        else:
            message = f"{field.capitalize()} {value} outside valid range {limits}"
        super().__init__(message)


class EvaluationError(NotationError):
    """A transform expression failed to parse or evaluate for one note."""
