"""
ableton_bridge/schemas.py — Pydantic models for clip note data exchanged with Live.

Live's ``get_notes_extended`` returns note dictionaries with float velocities
and extra keys (``note_id``, ``mute``, ``release_velocity`` …). These models
validate the fields the notation engine uses and ignore the rest.
"""

from pydantic import BaseModel, Field, field_validator


class RawClipNote(BaseModel):
    """One note as reported by the DAW."""

    pitch: int = Field(..., ge=0, le=127, description="MIDI note number (0–127).")
    start_time: float = Field(
        ..., ge=0.0, description="Position in quarter notes from the clip start."
    )
    duration: float = Field(..., gt=0.0, description="Length in quarter notes.")
    velocity: float = Field(
        default=100.0, ge=0.0, le=127.0, description="MIDI velocity; Live reports floats."
    )
    probability: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Chance the note plays (0–1)."
    )
    velocity_deviation: float = Field(
        default=0.0, ge=-127.0, le=127.0, description="Random velocity spread on playback."
    )


class ClipSnapshot(BaseModel):
    """A clip's notes plus the context needed to encode or transform them."""

    notes: list[RawClipNote] = Field(default_factory=list, description="Notes in any order.")
    is_drum_track: bool = Field(
        default=False, description="True when the track hosts a drum rack (one voice per pad)."
    )
    length: float = Field(default=4.0, ge=0.0, description="Clip length in quarter notes.")
    time_signature_numerator: int = Field(default=4, ge=1, le=99)
    time_signature_denominator: int = Field(default=4, ge=1, le=16)
    arrangement_position: float | None = Field(
        default=None,
        ge=0.0,
        description="Clip start in the arrangement, in quarter notes. None for session clips.",
    )

    @field_validator("time_signature_denominator")
    @classmethod
    def denominator_must_be_power_of_two(cls, v: int) -> int:
        """Validate that the denominator is 1, 2, 4, 8 or 16."""
        if v & (v - 1):
            raise ValueError(f"time signature denominator must be a power of two, got {v}")
        return v

    @property
    def beat_length(self) -> float:
        """Quarter notes per time-signature beat, e.g. 6/8 → 0.5."""
        return 4 / self.time_signature_denominator
