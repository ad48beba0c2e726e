"""
core/notation/waveforms.py — Shape functions used by transform expressions.

Periodic shapes take a phase in cycles (1.0 = one full period) and return a
bipolar value in [-1, 1]; phases outside [0, 1) wrap. Ramps take a phase in
[0, 1] across the active time range and interpolate between two values.

    sine   0 → 1 → 0 → -1 → 0
    cosine 1 → 0 → -1 → 0 → 1
    tri    0 → 1 (¼) → -1 (¾) → 0
    saw    0 → 1 (just before ½), jumps to -1 at ½, rises back to 0
    square 1 for phase < pulse_width, else -1

Random helpers take the generator explicitly; nothing here touches the
``random`` module's global state.
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence

_TAU = 2.0 * math.pi


def _wrap(phase: float) -> float:
    return phase % 1.0


def sine(phase: float) -> float:
    return math.sin(_TAU * _wrap(phase))


def cosine(phase: float) -> float:
    return math.cos(_TAU * _wrap(phase))


def tri(phase: float) -> float:
    p = _wrap(phase)
    if p < 0.25:
        return 4.0 * p
    if p < 0.75:
        return 2.0 - 4.0 * p
    return 4.0 * p - 4.0


def saw(phase: float) -> float:
    return 2.0 * _wrap(phase + 0.5) - 1.0


def square(phase: float, pulse_width: float = 0.5) -> float:
    return 1.0 if _wrap(phase) < pulse_width else -1.0


def ramp(phase: float, start: float, end: float, speed: float = 1.0) -> float:
    """Linear interpolation from start to end; ``speed`` > 1 repeats the ramp."""
    p = phase * speed
    if p > 1.0:
        p = _wrap(p)
    p = max(0.0, p)
    return start + (end - start) * p


def exp_ramp(phase: float, start: float, end: float, curve: float) -> float:
    """Interpolation along ``phase ** curve``; curve > 1 starts slow, < 1 starts fast.

    The phase is clamped to [0, 1] so the value holds at ``end`` past the range.
    """
    p = min(max(phase, 0.0), 1.0)
    return start + (end - start) * p**curve


def rand(rng: random.Random, low: float, high: float) -> float:
    """Uniform value in [low, high] from the caller's generator."""
    return rng.uniform(low, high)


def choose(rng: random.Random, values: Sequence[float]) -> float:
    """One of ``values``, picked uniformly from the caller's generator."""
    return rng.choice(values)
