import logging
from collections import defaultdict
from pathlib import Path

import pretty_midi

from drumalong.mapping.drum_map import EXPORT_NOTES
from drumalong.models.analysis import AnalysisResult
from drumalong.models.onset import DrumType, Onset

logger = logging.getLogger(__name__)

HIT_LENGTH = 0.05  # seconds
MIN_VELOCITY = 40
MAX_VELOCITY = 127


def lane_velocities(onsets: list[Onset]) -> list[int]:
    """Velocity per onset, scaled against the loudest onset in the same lane.

    Energies come from different measures per detector, so they are only
    compared within a lane. The loudest hit of each lane gets MAX_VELOCITY.
    """
    peaks: dict[DrumType, float] = defaultdict(float)
    for onset in onsets:
        peaks[onset.type] = max(peaks[onset.type], onset.energy)

    velocities = []
    for onset in onsets:
        peak = peaks[onset.type]
        share = onset.energy / peak if peak > 0 else 1.0
        velocities.append(MIN_VELOCITY + round((MAX_VELOCITY - MIN_VELOCITY) * share))
    return velocities


def write_midi(chart: AnalysisResult, output_path: Path, velocity: int | None = None) -> Path:
    """Export a chart as a single GM percussion track at the chart's tempo.

    ``velocity`` forces one velocity for every hit instead of the per-lane scaling.
    """
    midi = pretty_midi.PrettyMIDI(initial_tempo=chart.bpm)
    kit = pretty_midi.Instrument(program=0, is_drum=True, name=f"drumalong {chart.source} chart")

    if velocity is None:
        velocities = lane_velocities(chart.onsets)
    else:
        velocities = [velocity] * len(chart.onsets)

    for onset, hit_velocity in zip(chart.onsets, velocities):
        kit.notes.append(
            pretty_midi.Note(
                velocity=hit_velocity,
                pitch=EXPORT_NOTES[onset.type],
                start=onset.time,
                end=onset.time + HIT_LENGTH,
            )
        )

    midi.instruments.append(kit)
    midi.write(str(output_path))
    logger.info(f"Exported {len(chart.onsets)} {chart.source} onsets at {chart.bpm:g} BPM to {output_path}")
    return Path(output_path)
