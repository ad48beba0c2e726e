"""
tests/test_notation_normalizer.py — Tests for core/notation/normalizer.py

Covers:
    - Repetition expansion (notes, chords, groupings)
    - Modifier propagation from groupings and chords; innermost wins
    - Chord timing: member ``t`` dropped, chord ``t`` kept
    - Rests and multiple voices
"""

from __future__ import annotations

import pytest

from core.notation.normalizer import normalize, normalize_voice
from core.notation.parser import parse
from core.notation.types import ElementKind, Modifiers


def _voice(text: str):
    [sequence] = normalize(parse(text))
    return sequence


# ---------------------------------------------------------------------------
# Repetition
# ---------------------------------------------------------------------------


class TestRepetition:
    def test_note_repeated(self) -> None:
        seq = _voice("C3*3")
        assert [e.pitches for e in seq] == [(60,), (60,), (60,)]
        assert all(e.kind is ElementKind.NOTE for e in seq)

    def test_grouping_repeated_in_order(self) -> None:
        assert [e.pitches for e in _voice("(C3 D3)*2")] == [(60,), (62,), (60,), (62,)]

    def test_copies_keep_modifiers(self) -> None:
        seq = _voice("C3v90n.5*2")
        assert [e.notes[0].modifiers for e in seq] == [Modifiers(velocity=90, duration=0.5)] * 2

    def test_nested_repetition(self) -> None:
        assert len(_voice("(C3*2 D3)*3")) == 9

    def test_chord_repeated(self) -> None:
        seq = _voice("[C3 E3]*2")
        assert [e.kind for e in seq] == [ElementKind.CHORD, ElementKind.CHORD]


# ---------------------------------------------------------------------------
# Propagation
# ---------------------------------------------------------------------------


class TestPropagation:
    def test_grouping_modifier_reaches_leaves(self) -> None:
        seq = _voice("(C3 D3)v80")
        assert [e.notes[0].modifiers.velocity for e in seq] == [80, 80]

    def test_leaf_modifier_wins(self) -> None:
        seq = _voice("(C3 D3v50)v80")
        assert [e.notes[0].modifiers.velocity for e in seq] == [80, 50]

    def test_inner_grouping_wins(self) -> None:
        seq = _voice("((C3)v90 D3)v60")
        assert [e.notes[0].modifiers.velocity for e in seq] == [90, 60]

    def test_grouping_into_chord_members(self) -> None:
        chord, note = _voice("([C3 E3] D3v50)v90")
        assert [n.modifiers.velocity for n in chord.notes] == [90, 90]
        assert note.notes[0].modifiers.velocity == 50

    def test_chord_modifier_reaches_members(self) -> None:
        [chord] = _voice("[C3v100 E3]v60n2")
        assert [n.modifiers for n in chord.notes] == [
            Modifiers(velocity=100, duration=2.0),
            Modifiers(velocity=60, duration=2.0),
        ]

    def test_kinds_merge_independently(self) -> None:
        [element] = _voice("(C3n2)v80p0.5")
        assert element.notes[0].modifiers == Modifiers(velocity=80, duration=2.0, probability=0.5)

    def test_grouping_timing_reaches_leaves(self) -> None:
        seq = _voice("(C3 D3)t5")
        assert [e.modifiers.time_until_next for e in seq] == [5.0, 5.0]


# ---------------------------------------------------------------------------
# Chord timing
# ---------------------------------------------------------------------------


class TestChordTiming:
    def test_chord_keeps_time_until_next(self) -> None:
        [chord] = _voice("[C3 E3]t2")
        assert chord.modifiers.time_until_next == 2.0
        assert all(n.modifiers.time_until_next is None for n in chord.notes)

    def test_member_time_until_next_dropped(self) -> None:
        [chord] = _voice("[C3t2 E3]")
        assert chord.modifiers.time_until_next is None
        assert chord.notes[0].modifiers.time_until_next is None


# ---------------------------------------------------------------------------
# Rests and voices
# ---------------------------------------------------------------------------


class TestRestsAndVoices:
    def test_rest_element(self) -> None:
        _, rest, _ = _voice("C3 R.5 D3")
        assert rest.kind is ElementKind.REST
        assert rest.duration == 0.5
        assert rest.notes == ()

    def test_rest_does_not_take_grouping_modifiers(self) -> None:
        _, rest = _voice("(C3 R)v80")
        assert rest.modifiers == Modifiers()

    def test_one_sequence_per_voice(self) -> None:
        voices = normalize(parse("C3 D3; E3"))
        assert [[e.pitches for e in v] for v in voices] == [[(60,), (62,)], [(64,)]]

    def test_unknown_element_type(self) -> None:
        with pytest.raises(TypeError, match="Unknown notation element"):
            normalize_voice(("C3",))  # type: ignore[arg-type]
