"""
tests/test_notation_transform.py — Tests for core/notation/transform.py

Covers:
    - evaluate_transform: musical order, selector scoping, per-note errors,
      clip context variables, ramp span, RNG reproducibility
    - parse_transform_program: selectors, operators, comments, errors
    - apply_transforms: set/add per parameter, caps, deletion, stacking
"""

from __future__ import annotations

import random

import pytest

from core.notation.errors import EvaluationError, NotationSyntaxError
from core.notation.transform import (
    TransformAssignment,
    apply_transforms,
    build_bindings,
    evaluate_transform,
    parse_transform_program,
)
from core.notation.types import ClipContext, NoteEvent, PitchRange


def _note(pitch: int, start: float, duration: float = 1.0, velocity: int = 70) -> NoteEvent:
    return NoteEvent(pitch=pitch, start_time=start, duration=duration, velocity=velocity)


# ---------------------------------------------------------------------------
# evaluate_transform
# ---------------------------------------------------------------------------


class TestEvaluateTransform:
    def test_index_in_time_order(self) -> None:
        notes = [_note(64, 1), _note(60, 0)]
        outcome = evaluate_transform("note.index * 10", "", notes)
        assert outcome.values == ((1, 0.0), (0, 10.0))
        assert outcome.ok

    def test_same_start_ordered_by_pitch(self) -> None:
        notes = [_note(67, 0), _note(60, 0)]
        outcome = evaluate_transform("note.index", None, notes)
        assert outcome.values == ((1, 0.0), (0, 1.0))

    def test_pitch_selector(self, scale_notes: list[NoteEvent]) -> None:
        outcome = evaluate_transform("note.index", "C3-E3:", scale_notes)
        assert outcome.values == ((0, 0.0), (1, 1.0), (2, 2.0))

    def test_count_is_selection_size(self, scale_notes: list[NoteEvent]) -> None:
        outcome = evaluate_transform("note.count", "C3-E3:", scale_notes)
        assert [v for _, v in outcome.values] == [3.0, 3.0, 3.0]

    def test_time_selector_sets_ramp_span(self, scale_notes: list[NoteEvent]) -> None:
        outcome = evaluate_transform("ramp(0, 100)", "1|1-2|1:", scale_notes)
        assert [v for _, v in outcome.values] == pytest.approx([0, 25, 50, 75, 100])

    def test_ramp_spans_clip_notes(self, scale_notes: list[NoteEvent]) -> None:
        outcome = evaluate_transform("ramp(0, 80)", "", scale_notes)
        assert dict(outcome.values)[4] == pytest.approx(40.0)

    def test_note_variables(self) -> None:
        notes = [NoteEvent(62, 1.5, 0.5, 90, 0.5)]
        outcome = evaluate_transform(
            "note.pitch + note.start + note.duration + note.velocity + note.probability",
            "",
            notes,
        )
        assert outcome.values == ((0, pytest.approx(154.5)),)

    def test_clip_variables(self) -> None:
        context = ClipContext(duration=16, index=2, count=3, position=32, beats_per_bar=3)
        outcome = evaluate_transform(
            "clip.duration + clip.index + clip.count + clip.position + bar.duration",
            "",
            [_note(60, 0)],
            context,
        )
        assert outcome.values == ((0, 56.0),)

    def test_per_note_errors(self, scale_notes: list[NoteEvent]) -> None:
        outcome = evaluate_transform("100 / (note.index - 1)", "", scale_notes)
        assert not outcome.ok
        assert [i for i, _ in outcome.errors] == [1]
        assert "Division by zero" in outcome.errors[0][1]
        assert len(outcome.values) == len(scale_notes) - 1

    def test_session_clip_has_no_position(self) -> None:
        outcome = evaluate_transform("clip.position", "", [_note(60, 0), _note(62, 1)])
        assert outcome.values == ()
        assert all("clip.position" in message for _, message in outcome.errors)

    def test_overflow_inside_function_is_per_note(self) -> None:
        notes = [_note(60, 0), _note(62, 1)]
        for text in ("floor(10^300 * 10^300)", "round(0 * (10^300 * 10^300))"):
            outcome = evaluate_transform(text, "", notes)
            assert outcome.values == ()
            assert [i for i, _ in outcome.errors] == [0, 1]

    def test_six_eight_counts_eighth_notes(self) -> None:
        six_eight = ClipContext(beats_per_bar=6, beat_length=0.5)
        notes = [_note(60, 0), _note(62, 1.5, 0.5)]
        outcome = evaluate_transform("note.start + note.duration", "1|4:", notes, six_eight)
        assert outcome.values == ((1, 4.0),)

    def test_deviation_variable(self) -> None:
        note = NoteEvent(60, 0, 1, velocity_deviation=-15)
        assert evaluate_transform("note.deviation", "", [note]).values == ((0, -15.0),)

    def test_malformed_expression_raises(self) -> None:
        with pytest.raises(EvaluationError):
            evaluate_transform("1 +", "", [_note(60, 0)])

    def test_malformed_selector_raises(self) -> None:
        with pytest.raises(NotationSyntaxError):
            evaluate_transform("1", "C5-C3:", [_note(60, 0)])

    def test_same_seed_same_values(self, scale_notes: list[NoteEvent]) -> None:
        first = evaluate_transform("rand(0, 127)", "", scale_notes, rng=random.Random(5))
        second = evaluate_transform("rand(0, 127)", "", scale_notes, rng=random.Random(5))
        assert first == second

    def test_no_notes(self) -> None:
        outcome = evaluate_transform("note.index", "", [])
        assert outcome.values == () and outcome.ok

    def test_bindings_omit_missing_position(self) -> None:
        bindings = build_bindings(_note(60, 0), 0, 1, ClipContext())
        assert "clip.position" not in bindings.variables
        assert bindings.variables["bar.duration"] == 4.0


# ---------------------------------------------------------------------------
# parse_transform_program
# ---------------------------------------------------------------------------


class TestParseProgram:
    def test_single_line(self) -> None:
        [assignment] = parse_transform_program("velocity += ramp(-20, 20)")
        assert (assignment.parameter, assignment.operator) == ("velocity", "+=")
        assert assignment.selector.is_unrestricted

    def test_selector(self) -> None:
        [assignment] = parse_transform_program("C3-C5 1|1-2|4: velocity = 100")
        assert assignment.selector.pitch_range == PitchRange(60, 84)
        assert assignment.selector.time_range is not None

    def test_comments_and_blank_lines(self) -> None:
        program = "# humanize\n\nvelocity = 90\n  \ntiming += rand(-0.02, 0.02)\n"
        assert [a.parameter for a in parse_transform_program(program)] == ["velocity", "timing"]

    def test_empty(self) -> None:
        assert parse_transform_program("") == ()

    def test_unknown_parameter(self) -> None:
        with pytest.raises(NotationSyntaxError, match="Unknown transform parameter 'gain'"):
            parse_transform_program("gain = 1")

    def test_missing_expression(self) -> None:
        with pytest.raises(NotationSyntaxError, match="Expected"):
            parse_transform_program("velocity =")

    def test_missing_operator(self) -> None:
        with pytest.raises(NotationSyntaxError):
            parse_transform_program("velocity 100")

    def test_error_reports_line(self) -> None:
        with pytest.raises(NotationSyntaxError) as excinfo:
            parse_transform_program("velocity = 1\npan = 2")
        assert excinfo.value.line == 2

    def test_bad_expression(self) -> None:
        with pytest.raises(EvaluationError):
            parse_transform_program("velocity = 1 +")

    def test_assignment_validates_parameter(self) -> None:
        with pytest.raises(ValueError, match="Unknown transform parameter"):
            TransformAssignment(parameter="gain", operator="=", expression=None)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# apply_transforms
# ---------------------------------------------------------------------------


class TestApplyTransforms:
    def test_set_velocity(self, scale_notes: list[NoteEvent]) -> None:
        result = apply_transforms(scale_notes, "velocity = 100")
        assert {n.velocity for n in result.notes} == {100}
        assert result.transformed == len(scale_notes)

    def test_velocity_ramp(self, scale_notes: list[NoteEvent]) -> None:
        result = apply_transforms(scale_notes, "velocity = ramp(20, 100)")
        assert [n.velocity for n in result.notes] == [20, 30, 40, 50, 60, 70, 80, 90]

    def test_velocity_capped(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "velocity += 200").notes
        assert note.velocity == 127

    def test_velocity_rounded(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "velocity = 80.5").notes
        assert note.velocity == 81

    def test_zero_velocity_deletes(self, scale_notes: list[NoteEvent]) -> None:
        result = apply_transforms(scale_notes, "C3: velocity = 0")
        assert result.deleted == 1
        assert 60 not in [n.pitch for n in result.notes]

    def test_negative_velocity_deletes(self) -> None:
        assert apply_transforms([_note(60, 0)], "velocity += -100").notes == ()

    def test_duration(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "duration = 0.5").notes
        assert note.duration == 0.5

    def test_zero_duration_deletes(self) -> None:
        result = apply_transforms([_note(60, 0)], "duration += -1")
        assert result.notes == () and result.deleted == 1

    def test_timing_shift(self) -> None:
        [note] = apply_transforms([_note(60, 1)], "timing += 0.25").notes
        assert note.start_time == 1.25

    def test_timing_not_negative(self) -> None:
        [note] = apply_transforms([_note(60, 1)], "timing += -5").notes
        assert note.start_time == 0.0

    def test_probability_clamped(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "probability = 2").notes
        assert note.probability == 1.0

    def test_pitch(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "pitch += 12").notes
        assert note.pitch == 72

    def test_pitch_rounded_and_clamped(self) -> None:
        assert apply_transforms([_note(60, 0)], "pitch += 0.6").notes[0].pitch == 61
        assert apply_transforms([_note(60, 0)], "pitch = 200").notes[0].pitch == 127

    def test_alternating_octaves(self, scale_notes: list[NoteEvent]) -> None:
        result = apply_transforms(scale_notes, "pitch += 12 * (note.index % 2)")
        assert [n.pitch for n in result.notes][:4] == [60, 74, 64, 77]

    def test_assignments_stack(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "velocity = 50\nvelocity += 10").notes
        assert note.velocity == 60

    def test_later_line_sees_new_pitch(self) -> None:
        program = "C3: pitch += 12\nC4: velocity = 10"
        [note] = apply_transforms([_note(60, 0)], program).notes
        assert (note.pitch, note.velocity) == (72, 10)

    def test_selector_scopes_line(self, scale_notes: list[NoteEvent]) -> None:
        result = apply_transforms(scale_notes, "C3: velocity = 100")
        assert [n.velocity for n in result.notes if n.pitch == 60] == [100]
        assert all(n.velocity == 70 for n in result.notes if n.pitch != 60)
        assert result.transformed == 1

    def test_errors_keep_note_unchanged(self, scale_notes: list[NoteEvent]) -> None:
        result = apply_transforms(scale_notes, "velocity = 100 / note.index")
        assert [i for i, _ in result.errors] == [0]
        assert result.errors[0][1].startswith("velocity: Division by zero")
        assert result.notes[0].velocity == 70
        assert result.transformed == len(scale_notes) - 1

    def test_deletion_decided_after_last_line(self) -> None:
        result = apply_transforms([_note(60, 0, velocity=80)], "velocity = 0\nvelocity += 50")
        assert [n.velocity for n in result.notes] == [50]
        assert result.deleted == 0

    def test_restored_duration_survives(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "duration = 0\nduration += 0.5").notes
        assert note.duration == 0.5

    def test_zeroed_note_still_selected_by_later_lines(self) -> None:
        result = apply_transforms([_note(60, 0), _note(62, 1)], "C3: velocity = 0\npitch += 1")
        assert [n.pitch for n in result.notes] == [63]
        assert (result.deleted, result.transformed) == (1, 2)

    def test_deviation(self) -> None:
        [note] = apply_transforms([_note(60, 0)], "deviation = 20\ndeviation += -5").notes
        assert note.velocity_deviation == 15.0

    @pytest.mark.parametrize(
        ("program", "expected"),
        [("deviation = 300", 127.0), ("deviation = -300", -127.0)],
    )
    def test_deviation_clamped(self, program: str, expected: float) -> None:
        [note] = apply_transforms([_note(60, 0)], program).notes
        assert note.velocity_deviation == expected

    def test_six_eight_timing_and_duration(self) -> None:
        six_eight = ClipContext(beats_per_bar=6, beat_length=0.5)
        [note] = apply_transforms([_note(60, 1)], "timing += 1\nduration = 3", six_eight).notes
        assert (note.start_time, note.duration) == (1.5, 1.5)

    def test_six_eight_selector(self) -> None:
        six_eight = ClipContext(beats_per_bar=6, beat_length=0.5)
        notes = [_note(60, 0, 0.5, 80), _note(62, 1.5, 0.5, 80)]
        result = apply_transforms(notes, "1|4: velocity = 100", six_eight)
        assert [n.velocity for n in result.notes] == [80, 100]

    def test_output_in_musical_order(self) -> None:
        notes = [_note(60, 0), _note(62, 1)]
        result = apply_transforms(notes, "C3: timing = 2")
        assert [n.pitch for n in result.notes] == [62, 60]

    def test_pre_parsed_program(self) -> None:
        program = parse_transform_program("velocity = 90")
        assert apply_transforms([_note(60, 0)], program).notes[0].velocity == 90

    def test_same_seed_same_result(self, scale_notes: list[NoteEvent]) -> None:
        program = "velocity += rand(-10, 10)\ntiming += rand(-0.05, 0.05)"
        first = apply_transforms(scale_notes, program, rng=random.Random(11))
        second = apply_transforms(scale_notes, program, rng=random.Random(11))
        assert first == second

    def test_input_untouched(self, scale_notes: list[NoteEvent]) -> None:
        before = list(scale_notes)
        apply_transforms(scale_notes, "velocity = 1")
        assert scale_notes == before
