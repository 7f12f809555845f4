import math

import numpy as np


def frame_rms(frame: np.ndarray) -> float:
    """RMS amplitude of raw (unwindowed) samples."""
    if len(frame) == 0:
        return 0.0
    samples = np.asarray(frame, dtype=np.float64)
    return float(np.sqrt(np.mean(samples**2)))


def hann_window(frame: np.ndarray) -> np.ndarray:
    """Attenuate a frame with a raised-cosine window, w[i] = 0.5(1 - cos(2*pi*i/(M-1)))."""
    m = len(frame)
    if m < 2:
        return np.asarray(frame, dtype=np.float64).copy()
    i = np.arange(m)
    window = 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (m - 1)))
    return np.asarray(frame, dtype=np.float64) * window


def magnitude_spectrum(frame: np.ndarray) -> np.ndarray:
    """Magnitudes of the non-negative DFT bins 0 .. M/2 - 1 of a length-M frame."""
    m = len(frame)
    if m < 2:
        return np.zeros(0)
    spectrum = np.fft.rfft(np.asarray(frame, dtype=np.float64))
    return np.abs(spectrum[: m // 2])


def band_energy(
    spectrum: np.ndarray, low_hz: float, high_hz: float, sample_rate: int, frame_size: int
) -> float:
    """RMS of spectral magnitude between low_hz and high_hz (bins inclusive).

    The upper bin is clamped to the spectrum; an empty range gives 0.0.
    """
    bin_width = sample_rate / frame_size
    low_bin = math.floor(low_hz / bin_width)
    high_bin = min(math.ceil(high_hz / bin_width), len(spectrum) - 1)
    band = spectrum[low_bin : high_bin + 1]
    if len(band) == 0:
        return 0.0
    return math.sqrt(float(np.sum(band**2)) / max(1, high_bin - low_bin + 1))
