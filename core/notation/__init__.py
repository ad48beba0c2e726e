"""
core/notation/ — Text notation for MIDI clips and the transform engine.

Exports:
    Pipeline:   parse_notation, format_notation
    Stages:     parse, normalize, materialize, materialize_voices
    Pitch:      name_to_midi, midi_to_name
    Transforms: evaluate, evaluate_transform, apply_transforms,
                parse_transform_program, parse_selector, matches
    Config:     NotationConfig, DEFAULT_CONFIG, DRUM_CONFIG
    Types:      NoteEvent, VelocityRange, Modifiers, Selector, ClipContext,
                TransformOutcome, TransformResult
    Errors:     NotationError, NotationSyntaxError, DuplicateModifierError,
                RangeError, EvaluationError
"""

from core.notation.config import DEFAULT_CONFIG, DRUM_CONFIG, NotationConfig
from core.notation.errors import (
    DuplicateModifierError,
    EvaluationError,
    NotationError,
    NotationSyntaxError,
    RangeError,
)
from core.notation.expression import Bindings, compile_expression, evaluate
from core.notation.formatter import format_notation
from core.notation.materializer import materialize, materialize_voices
from core.notation.normalizer import normalize
from core.notation.parser import parse
from core.notation.pipeline import parse_notation
from core.notation.pitch import midi_to_name, name_to_midi
from core.notation.selector import matches, parse_selector
from core.notation.transform import (
    TransformAssignment,
    TransformResult,
    apply_transforms,
    evaluate_transform,
    parse_transform_program,
)
from core.notation.types import (
    ClipContext,
    Modifiers,
    NoteEvent,
    Selector,
    TransformOutcome,
    VelocityRange,
)

__all__ = [
    # Pipeline
    "parse_notation",
    "format_notation",
    # Stages
    "parse",
    "normalize",
    "materialize",
    "materialize_voices",
    # Pitch
    "name_to_midi",
    "midi_to_name",
    # Transforms
    "Bindings",
    "compile_expression",
    "evaluate",
    "evaluate_transform",
    "apply_transforms",
    "parse_transform_program",
    "TransformAssignment",
    "TransformResult",
    "parse_selector",
    "matches",
    # Config
    "NotationConfig",
    "DEFAULT_CONFIG",
    "DRUM_CONFIG",
    # Types
    "NoteEvent",
    "VelocityRange",
    "Modifiers",
    "Selector",
    "ClipContext",
    "TransformOutcome",
    # Errors
    "NotationError",
    "NotationSyntaxError",
    "DuplicateModifierError",
    "RangeError",
    "EvaluationError",
]
