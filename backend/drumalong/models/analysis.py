from typing import Literal

from pydantic import BaseModel

from drumalong.models.onset import Onset


class AnalysisResult(BaseModel):
    """Onset chart handed to the gameplay loop, identical for both input paths."""

    onsets: list[Onset]  # ascending time
    bpm: float
    source: Literal["audio", "midi"]


class MidiParseResult(AnalysisResult):
    source: Literal["audio", "midi"] = "midi"
    matched_note_count: int = 0

    @property
    def has_drum_notes(self) -> bool:
        return self.matched_note_count > 0
