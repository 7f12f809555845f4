import logging
from collections.abc import Mapping
from pathlib import Path

import librosa
import numpy as np

from drumalong.config import settings
from drumalong.models.analysis import AnalysisResult, MidiParseResult
from drumalong.models.onset import DrumType
from drumalong.services.byte_reader import MidiFormatError
from drumalong.services.midi_parser import is_midi_filename, looks_like_midi, parse_midi
from drumalong.services.onset_detection import get_detector
from drumalong.services.tempo import estimate_tempo

logger = logging.getLogger(__name__)


def analyze_samples(samples: np.ndarray, sample_rate: int, detector: str | None = None) -> AnalysisResult:
    """Detect onsets in a decoded mono buffer and estimate its tempo."""
    onset_detector = get_detector(detector or settings.default_detector)
    onsets = onset_detector.detect(samples, sample_rate)
    bpm = estimate_tempo(onsets)
    return AnalysisResult(onsets=onsets, bpm=bpm, source="audio")


def analyze_audio_file(audio_path: Path, detector: str | None = None) -> AnalysisResult:
    """Load any librosa-readable file as mono at the target rate, then analyze it."""
    logger.info(f"Loading audio from {audio_path}")
    y, sr = librosa.load(str(audio_path), sr=settings.target_sample_rate, mono=True)
    return analyze_samples(y, sr, detector)


def analyze_midi_bytes(data: bytes, note_map: Mapping[int, DrumType] | None = None) -> MidiParseResult:
    result = parse_midi(data, note_map)
    if not result.has_drum_notes:
        logger.warning(
            "MIDI file contains no recognised drum notes; keep the previously detected onsets "
            "instead of replacing them with an empty chart"
        )
    return result


def analyze_file(path: Path, detector: str | None = None) -> AnalysisResult:
    """Analyze a song file, routing symbolic files to the MIDI parser.

    The ``MThd`` magic tag decides the route. A MIDI extension on a file
    without the tag is reported as a format error rather than decoded as audio.
    """
    path = Path(path)
    with path.open("rb") as f:
        head = f.read(4)

    if looks_like_midi(head):
        return analyze_midi_bytes(path.read_bytes())
    if is_midi_filename(path.name):
        raise MidiFormatError(f"{path.name} has a MIDI extension but no MThd header")
    return analyze_audio_file(path, detector)
