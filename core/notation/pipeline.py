"""
core/notation/pipeline.py — Full decode pipeline: text → NoteEvents.

    parse → normalize → materialize

Any error aborts the whole call; no partial result is returned. The encode
direction is ``formatter.format_notation``.
"""

from __future__ import annotations

import random

from core.notation.config import DEFAULT_CONFIG, NotationConfig
from core.notation.materializer import materialize_voices
from core.notation.normalizer import normalize
from core.notation.parser import parse
from core.notation.types import NoteEvent


def parse_notation(
    text: str | None,
    *,
    start_time: float = 0.0,
    config: NotationConfig = DEFAULT_CONFIG,
    rng: random.Random | None = None,
) -> tuple[NoteEvent, ...]:
    """
    Decode notation text into NoteEvents.

    Args:
        text:       Notation, e.g. ``"[C3 E3 G3]n2 R (D3 E3)v90*2"``.
        start_time: Beat position where every voice starts.
        config:     Default velocity, duration and probability.
        rng:        Random source for velocity ranges (``v80-100``).

    Returns:
        NoteEvents, voice by voice in source order; () for empty text.

    Raises:
        NotationSyntaxError, DuplicateModifierError, RangeError

    Example:
        >>> [(n.pitch, n.start_time) for n in parse_notation("C3*3")]
        [(60, 0.0), (60, 1.0), (60, 2.0)]
    """
    return materialize_voices(normalize(parse(text)), start_time, config=config, rng=rng)
