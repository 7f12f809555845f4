"""Frequency-band drum classification for a single analysis frame.

Each frame is scored in eight fixed bands (see ``FREQUENCY_BANDS``), the band
energies are normalized by the loudest band, and an ordered list of rules is
applied; the first rule whose conditions all hold decides the drum. Snare is
the fallback, so every frame gets exactly one drum type.

The thresholds match the charts already shipped with the game. A smarter
classifier should implement ``DrumClassifier`` and be passed to the
detector instead of editing the rule table.
"""

import logging
import operator
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from drumalong.dsp.spectral import band_energy, magnitude_spectrum
from drumalong.mapping.drum_map import FREQUENCY_BANDS, TOM_TYPES
from drumalong.models.onset import DrumType

logger = logging.getLogger(__name__)

# Pseudo-band: loudest of the three tom sub-bands
TOM_FAMILY = "tom"

# Floor for the normalization divisor, keeps silent frames finite
MIN_MAX_ENERGY = 1e-4


class DrumClassifier(Protocol):
    def classify(self, frame: np.ndarray, sample_rate: int) -> DrumType: ...


@dataclass(frozen=True)
class Condition:
    """``band <op> factor`` or, with a reference band, ``band <op> factor * reference``."""

    band: str
    op: Callable[[float, float], bool]
    factor: float
    reference: str | None = None

    def holds(self, energies: Mapping[str, float]) -> bool:
        bound = self.factor if self.reference is None else self.factor * energies[self.reference]
        return self.op(energies[self.band], bound)


@dataclass(frozen=True)
class ClassificationRule:
    label: str  # a DrumType value, or TOM_FAMILY
    conditions: tuple[Condition, ...]

    def matches(self, energies: Mapping[str, float]) -> bool:
        return all(c.holds(energies) for c in self.conditions)


gt, lt = operator.gt, operator.lt

DECISION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        DrumType.kick,
        (Condition("kick", gt, 0.6), Condition("kick", gt, 1.5, "snare")),
    ),
    ClassificationRule(
        DrumType.hihat,
        (Condition("hihat", gt, 0.5), Condition("hihat", gt, 1.0, "crash")),
    ),
    ClassificationRule(
        DrumType.crash,
        (Condition("crash", gt, 0.4), Condition("crash", gt, 1.2, "ride")),
    ),
    ClassificationRule(
        DrumType.ride,
        (Condition("ride", gt, 0.4), Condition("ride", gt, 0.8, "hihat")),
    ),
    ClassificationRule(
        TOM_FAMILY,
        (
            Condition(TOM_FAMILY, gt, 0.5),
            Condition(TOM_FAMILY, gt, 0.9, "snare"),
            Condition("kick", lt, 0.7, TOM_FAMILY),
        ),
    ),
)

DEFAULT_DRUM = DrumType.snare


def normalized_band_energies(frame: np.ndarray, sample_rate: int) -> dict[str, float]:
    """Band energies of a raw frame scaled so the loudest band is 1.0.

    Includes the ``TOM_FAMILY`` pseudo-band.
    """
    frame_size = len(frame)
    spectrum = magnitude_spectrum(frame)
    energies = {
        str(drum): band_energy(spectrum, band.low, band.high, sample_rate, frame_size)
        for drum, band in FREQUENCY_BANDS.items()
    }
    divisor = max(max(energies.values(), default=0.0), MIN_MAX_ENERGY)
    normalized = {name: energy / divisor for name, energy in energies.items()}
    normalized[TOM_FAMILY] = max(normalized[str(t)] for t in TOM_TYPES)
    return normalized


def resolve_tom(energies: Mapping[str, float]) -> DrumType:
    # max() keeps the first of equal values, so ties go high -> mid -> floor
    return max(TOM_TYPES, key=lambda t: energies[str(t)])


def decide(
    energies: Mapping[str, float], rules: Sequence[ClassificationRule] = DECISION_RULES
) -> DrumType:
    """Apply the rule cascade to normalized band energies."""
    for rule in rules:
        if rule.matches(energies):
            if rule.label == TOM_FAMILY:
                return resolve_tom(energies)
            return DrumType(rule.label)
    return DEFAULT_DRUM


class BandEnergyClassifier:
    def __init__(self, rules: Sequence[ClassificationRule] = DECISION_RULES) -> None:
        self.rules = tuple(rules)

    def classify(self, frame: np.ndarray, sample_rate: int) -> DrumType:
        energies = normalized_band_energies(frame, sample_rate)
        drum = decide(energies, self.rules)
        logger.debug(f"Classified frame as {drum} (kick={energies['kick']:.2f}, snare={energies['snare']:.2f})")
        return drum
