from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class DrumType(StrEnum):
    """The eight playable lanes. Declaration order is the lane index."""

    kick = "kick"
    snare = "snare"
    hihat = "hihat"
    high_tom = "high_tom"
    mid_tom = "mid_tom"
    floor_tom = "floor_tom"
    crash = "crash"
    ride = "ride"

    @property
    def lane(self) -> int:
        return list(DrumType).index(self)


class Onset(BaseModel):
    time: float = Field(ge=0.0)  # seconds
    lane: int = Field(ge=0, le=len(DrumType) - 1)
    type: DrumType
    energy: float  # detector-specific magnitude, not comparable across sources

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _lane_matches_type(self) -> "Onset":
        if self.lane != self.type.lane:
            raise ValueError(f"lane {self.lane} does not match drum type '{self.type}'")
        return self

    @classmethod
    def for_drum(cls, time: float, drum_type: DrumType, energy: float) -> "Onset":
        return cls(time=time, lane=drum_type.lane, type=drum_type, energy=energy)
