"""Onset detection over a fully decoded mono buffer.

Two interchangeable strategies share framing, the minimum-gap gate and the
per-onset classification step:

* ``RmsOnsetDetector``: frame RMS against 1.5x the running median (default)
* ``SpectralFluxOnsetDetector``: positive spectral flux of Hann-windowed
  frames against a median/mean blend (slower, better on dense mixes)

Both return onsets in ascending time. Degenerate input (empty, shorter than a
frame, silent, bad sample rate) gives an empty list rather than an error.
"""

import logging
import math
import statistics
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterator

import numpy as np

from drumalong.config import settings
from drumalong.dsp.framing import Frame, Framer
from drumalong.dsp.spectral import frame_rms, hann_window, magnitude_spectrum
from drumalong.models.onset import Onset
from drumalong.services.drum_classifier import BandEnergyClassifier, DrumClassifier

logger = logging.getLogger(__name__)


def gap_in_samples(min_gap: float, sample_rate: int) -> int:
    """Smallest whole number of samples spanning at least ``min_gap`` seconds."""
    # round() first so 0.05 * 5120 lands on 256, not 257
    return math.ceil(round(min_gap * sample_rate, 6))


class _OnsetGate:
    """Minimum-gap filter for a single detection run, in sample indices.

    A rejected candidate does not move the gate, so a burst of close peaks is
    measured against the last *accepted* onset.
    """

    def __init__(self, min_gap_samples: int) -> None:
        self.min_gap_samples = min_gap_samples
        self.last_onset_start: int | None = None

    def accept(self, start: int) -> bool:
        if self.last_onset_start is not None and start - self.last_onset_start < self.min_gap_samples:
            return False
        self.last_onset_start = start
        return True


class OnsetDetector(ABC):
    name: str
    frame_size: int
    hop_size: int

    def __init__(
        self,
        classifier: DrumClassifier | None = None,
        min_onset_gap: float | None = None,
    ) -> None:
        self.classifier = classifier or BandEnergyClassifier()
        self.min_onset_gap = settings.min_onset_gap if min_onset_gap is None else min_onset_gap

    @abstractmethod
    def _candidates(self, framer: Framer) -> Iterator[tuple[Frame, float]]:
        """Yield (frame, strength) for every frame that crosses the adaptive threshold."""

    def detect(self, samples: np.ndarray, sample_rate: int) -> list[Onset]:
        """Detect and classify drum onsets in a mono float buffer."""
        if sample_rate <= 0:
            logger.warning(f"Invalid sample rate {sample_rate}, skipping onset detection")
            return []

        y = np.asarray(samples, dtype=np.float32).reshape(-1)
        framer = Framer(y, self.frame_size, self.hop_size)
        if len(framer) == 0:
            logger.info(f"Buffer of {len(y)} samples is shorter than one {self.frame_size}-sample frame")
            return []

        gate = _OnsetGate(gap_in_samples(self.min_onset_gap, sample_rate))
        onsets: list[Onset] = []
        for frame, strength in self._candidates(framer):
            if not gate.accept(frame.start):
                continue
            time_sec = frame.start / sample_rate
            drum_type = self.classifier.classify(frame.samples, sample_rate)
            onsets.append(Onset.for_drum(time_sec, drum_type, float(strength)))

        logger.info(f"{self.name} detector: {len(onsets)} onsets in {len(y) / sample_rate:.1f}s of audio")
        return onsets


class RmsOnsetDetector(OnsetDetector):
    name = "rms"

    def __init__(
        self,
        classifier: DrumClassifier | None = None,
        min_onset_gap: float | None = None,
        frame_size: int | None = None,
        hop_size: int | None = None,
    ) -> None:
        super().__init__(classifier, min_onset_gap)
        self.frame_size = settings.rms_frame_size if frame_size is None else frame_size
        self.hop_size = settings.rms_hop_size if hop_size is None else hop_size
        self.history_size = settings.rms_history_size
        self.threshold_ratio = settings.rms_threshold_ratio
        self.threshold_offset = settings.rms_threshold_offset
        self.rise_ratio = settings.rms_rise_ratio

    def _candidates(self, framer: Framer) -> Iterator[tuple[Frame, float]]:
        history: deque[float] = deque(maxlen=self.history_size)
        prev_energy = 0.0
        for frame in framer:
            energy = frame_rms(frame.samples)
            history.append(energy)
            threshold = statistics.median(history) * self.threshold_ratio + self.threshold_offset
            if energy > threshold and energy > prev_energy * self.rise_ratio:
                yield frame, energy
            prev_energy = energy


class SpectralFluxOnsetDetector(OnsetDetector):
    name = "flux"

    def __init__(
        self,
        classifier: DrumClassifier | None = None,
        min_onset_gap: float | None = None,
        frame_size: int | None = None,
        hop_size: int | None = None,
    ) -> None:
        super().__init__(classifier, min_onset_gap)
        self.frame_size = settings.flux_frame_size if frame_size is None else frame_size
        self.hop_size = settings.flux_hop_size if hop_size is None else hop_size
        self.history_size = settings.flux_history_size
        self.median_weight = settings.flux_median_weight
        self.mean_weight = settings.flux_mean_weight

    def _candidates(self, framer: Framer) -> Iterator[tuple[Frame, float]]:
        history: deque[float] = deque(maxlen=self.history_size)
        prev_spectrum: np.ndarray | None = None
        for frame in framer:
            spectrum = magnitude_spectrum(hann_window(frame.samples))
            if prev_spectrum is not None:
                flux = float(np.sum(np.maximum(spectrum - prev_spectrum, 0.0)))
                history.append(flux)
                threshold = (
                    statistics.median(history) * self.median_weight
                    + statistics.fmean(history) * self.mean_weight
                )
                if flux > threshold:
                    yield frame, flux
            prev_spectrum = spectrum


DETECTORS: dict[str, type[OnsetDetector]] = {
    RmsOnsetDetector.name: RmsOnsetDetector,
    SpectralFluxOnsetDetector.name: SpectralFluxOnsetDetector,
}


def get_detector(name: str, classifier: DrumClassifier | None = None) -> OnsetDetector:
    """Build a fresh detector by name ("rms" or "flux")."""
    try:
        detector_cls = DETECTORS[name]
    except KeyError:
        raise ValueError(f"Unknown onset detector '{name}', expected one of {sorted(DETECTORS)}") from None
    return detector_cls(classifier=classifier)
