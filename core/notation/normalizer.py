"""
core/notation/normalizer.py — Flatten a parsed AST into time-ready elements.

Two rewrites are applied to every voice:

    1. Repetition expansion — ``X*N`` becomes N back-to-back copies of X.
       Copies share the same (immutable) modifiers; nothing is re-parsed.
    2. Modifier propagation — every modifier declared on a grouping or chord
       is copied onto each contained leaf that does not declare that kind
       itself. The innermost declaration always wins:

           ([C3 E3] D3v50)v90   →   C3v90 E3v90 (chord)   D3v50

The output per voice is a flat tuple of NOTE / CHORD / REST elements.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from core.notation.types import (
    NO_MODIFIERS,
    Chord,
    Element,
    ElementKind,
    Grouping,
    Modifiers,
    NormalizedElement,
    NormalizedNote,
    NormalizedSequence,
    Note,
    Repetition,
    Rest,
    Voice,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(voices: Sequence[Voice]) -> tuple[NormalizedSequence, ...]:
    """
    Normalize every voice of a parsed notation.

    Args:
        voices: Output of ``parser.parse`` — one element tuple per voice.

    Returns:
        One flat NormalizedSequence per voice, in the same order.

    Examples:
        >>> [seq] = normalize(parse("C3*2"))
        >>> [e.pitches for e in seq]
        [(60,), (60,)]
    """
    return tuple(normalize_voice(voice) for voice in voices)


def normalize_voice(voice: Sequence[Element]) -> NormalizedSequence:
    """Normalize a single voice (a sequence of AST elements)."""
    return tuple(_flatten(voice, NO_MODIFIERS))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _flatten(elements: Sequence[Element], inherited: Modifiers) -> Iterator[NormalizedElement]:
    for element in elements:
        yield from _flatten_element(element, inherited)


def _flatten_element(element: Element, inherited: Modifiers) -> Iterator[NormalizedElement]:
    if isinstance(element, Note):
        modifiers = element.modifiers.inherit(inherited)
        yield NormalizedElement(
            kind=ElementKind.NOTE,
            notes=(NormalizedNote(pitch=element.pitch, modifiers=modifiers),),
            modifiers=modifiers,
        )
    elif isinstance(element, Chord):
        yield _normalize_chord(element, inherited)
    elif isinstance(element, Rest):
        yield NormalizedElement(kind=ElementKind.REST, duration=element.duration)
    elif isinstance(element, Grouping):
        yield from _flatten(element.content, element.modifiers.inherit(inherited))
    elif isinstance(element, Repetition):
        for _ in range(element.count):
            yield from _flatten(element.content, inherited)
    else:
        raise TypeError(f"Unknown notation element: {type(element).__name__}")


def _normalize_chord(chord: Chord, inherited: Modifiers) -> NormalizedElement:
    """Resolve chord members against the chord's own (plus inherited) modifiers.

    ``t`` on a member is dropped: only the chord as a whole advances time.
    """
    chord_modifiers = chord.modifiers.inherit(inherited)
    member_defaults = chord_modifiers.without_timing()
    notes = tuple(
        NormalizedNote(
            pitch=note.pitch,
            modifiers=note.modifiers.without_timing().inherit(member_defaults),
        )
        for note in chord.notes
    )
    return NormalizedElement(kind=ElementKind.CHORD, notes=notes, modifiers=chord_modifiers)
