import logging
import statistics
from collections import Counter
from collections.abc import Sequence

from drumalong.config import settings
from drumalong.models.onset import Onset

logger = logging.getLogger(__name__)

MIN_ONSETS = 4
MIN_INTERVALS = 3
# Octave candidates tried on the histogram peak, in priority order
INTERVAL_MULTIPLES = (1.0, 2.0, 0.5, 4.0, 0.25)


def intervals(onsets: Sequence[Onset]) -> list[float]:
    """Inter-onset intervals (seconds) inside the plausible beat range."""
    times = [o.time for o in onsets]
    return [
        b - a
        for a, b in zip(times, times[1:])
        if settings.min_ioi <= b - a <= settings.max_ioi
    ]


def estimate_tempo(onsets: Sequence[Onset]) -> int:
    """Estimate a single global BPM from an ascending onset list.

    Uses an inter-onset-interval histogram with 10 ms bins. Falls back to the
    default tempo when there is too little data.
    """
    if len(onsets) < MIN_ONSETS:
        return settings.default_bpm

    iois = intervals(onsets)
    if len(iois) < MIN_INTERVALS:
        logger.info(f"Only {len(iois)} usable intervals, using default {settings.default_bpm} BPM")
        return settings.default_bpm

    histogram = Counter(round(ioi * 100) / 100 for ioi in iois)
    peak_interval, count = histogram.most_common(1)[0]
    logger.debug(f"IOI histogram peak at {peak_interval:.2f}s ({count}/{len(iois)} intervals)")

    for multiple in INTERVAL_MULTIPLES:
        interval = peak_interval * multiple
        if interval <= 0:
            continue
        bpm = 60.0 / interval
        if settings.min_bpm <= bpm <= settings.max_bpm:
            logger.info(f"Estimated tempo: {round(bpm)} BPM")
            return round(bpm)

    median_bpm = 60.0 / statistics.median(iois)
    bpm = round(min(max(median_bpm, settings.min_bpm), settings.max_bpm))
    logger.info(f"No histogram candidate in range, using median IOI: {bpm} BPM")
    return bpm
