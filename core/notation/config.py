"""
Configuration for the notation engine.

Defaults are carried in an immutable config object that is passed to every
call site instead of living in module-level state, so a caller can decode and
encode with a different default velocity without touching anything global.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class NotationConfig:
    """
    Defaults and tolerances shared by the decoder and encoder.

    Attributes:
        default_velocity: Velocity given to notes without a ``v`` modifier,
            and omitted from encoded output when a note has exactly this value.
        default_duration: Duration in beats for notes without an ``n``
            modifier and for bare ``R`` rests.
        default_probability: Probability for notes without a ``p`` modifier.
        time_epsilon: Tolerance in beats when comparing times. A ``t`` suffix
            is only written when the gap to the next element differs from the
            element's own duration by more than this, and notes starting
            within this of each other are grouped together.
        time_precision: Decimal places used to print numbers in encoded output.

    Example:
        >>> config = NotationConfig(default_velocity=100)
        >>> events = parse_notation("C1 D1", config=config)
    """

    default_velocity: int = 70
    default_duration: float = 1.0
    default_probability: float = 1.0
    time_epsilon: float = 0.001
    time_precision: int = 3

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not (0 <= self.default_velocity <= 127):
            raise ValueError(
                f"default_velocity must be in [0, 127], got {self.default_velocity}"
            )
        if self.default_duration <= 0:
            raise ValueError(f"default_duration must be positive, got {self.default_duration}")
        if not (0.0 <= self.default_probability <= 1.0):
            raise ValueError(
                f"default_probability must be in [0, 1], got {self.default_probability}"
            )
        if self.time_epsilon < 0:
            raise ValueError(f"time_epsilon must be non-negative, got {self.time_epsilon}")
        if self.time_precision < 0:
            raise ValueError(f"time_precision must be non-negative, got {self.time_precision}")


DEFAULT_CONFIG = NotationConfig()
"""Default configuration: velocity 70, one-beat duration, 0.001-beat tolerance."""

DRUM_CONFIG = NotationConfig(default_velocity=100, default_duration=0.25)
"""Drum-rack friendly defaults: accented hits, 16th-note gate length."""
