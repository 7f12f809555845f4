from typing import Mapping, NamedTuple

from drumalong.models.onset import DrumType


class FrequencyBand(NamedTuple):
    low: float  # Hz
    high: float  # Hz


# Spectral bands scored by the classifier. The three tom sub-bands split 80-400 Hz.
FREQUENCY_BANDS: dict[DrumType, FrequencyBand] = {
    DrumType.kick: FrequencyBand(20, 100),
    DrumType.snare: FrequencyBand(150, 400),
    DrumType.hihat: FrequencyBand(6000, 12000),
    DrumType.high_tom: FrequencyBand(250, 400),
    DrumType.mid_tom: FrequencyBand(150, 250),
    DrumType.floor_tom: FrequencyBand(80, 150),
    DrumType.crash: FrequencyBand(3000, 8000),
    DrumType.ride: FrequencyBand(4000, 10000),
}

TOM_TYPES = (DrumType.high_tom, DrumType.mid_tom, DrumType.floor_tom)

# GM percussion key map (channel 10)
GM_DRUM_MAP: dict[int, DrumType] = {
    35: DrumType.kick,  # Acoustic Bass Drum
    36: DrumType.kick,  # Bass Drum 1
    37: DrumType.snare,  # Side Stick
    38: DrumType.snare,  # Acoustic Snare
    40: DrumType.snare,  # Electric Snare
    42: DrumType.hihat,  # Closed Hi-Hat
    44: DrumType.hihat,  # Pedal Hi-Hat
    46: DrumType.hihat,  # Open Hi-Hat
    48: DrumType.high_tom,  # Hi-Mid Tom
    50: DrumType.high_tom,  # High Tom
    45: DrumType.mid_tom,  # Low Tom
    47: DrumType.mid_tom,  # Low-Mid Tom
    41: DrumType.floor_tom,  # Low Floor Tom
    43: DrumType.floor_tom,  # High Floor Tom
    49: DrumType.crash,  # Crash Cymbal 1
    52: DrumType.crash,  # Chinese Cymbal
    55: DrumType.crash,  # Splash Cymbal
    57: DrumType.crash,  # Crash Cymbal 2
    51: DrumType.ride,  # Ride Cymbal 1
    53: DrumType.ride,  # Ride Bell
    59: DrumType.ride,  # Ride Cymbal 2
}

# One canonical note per lane when writing a chart back out as MIDI
EXPORT_NOTES: dict[DrumType, int] = {
    DrumType.kick: 36,
    DrumType.snare: 38,
    DrumType.hihat: 42,
    DrumType.high_tom: 50,
    DrumType.mid_tom: 47,
    DrumType.floor_tom: 43,
    DrumType.crash: 49,
    DrumType.ride: 51,
}

SUPPORTED_MIDI_EXTENSIONS = (".mid", ".midi", ".smf", ".kar")


def build_note_map(overrides: Mapping[int, str | DrumType] | None = None) -> dict[int, DrumType]:
    """Merge a kit-specific note mapping over the GM defaults.

    Electronic kits often send non-standard notes for toms and cymbals, so
    callers may remap individual note numbers. Values may be drum type names.
    """
    note_map = dict(GM_DRUM_MAP)
    for note, drum in (overrides or {}).items():
        if not 0 <= int(note) <= 127:
            raise ValueError(f"MIDI note number out of range: {note}")
        note_map[int(note)] = DrumType(drum)
    return note_map
