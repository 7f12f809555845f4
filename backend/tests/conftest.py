import mido
import numpy as np
import pytest

SR = 22050
HIT_TIMES = [0.5, 1.0, 1.5, 2.0]


def decaying_hit(sr: int, freq: float = 200.0, duration: float = 0.1, decay: float = 0.02, amplitude: float = 0.8):
    """A drum-like burst: sine carrier under an exponential decay."""
    t = np.arange(int(sr * duration)) / sr
    return (amplitude * np.sin(2 * np.pi * freq * t) * np.exp(-t / decay)).astype(np.float32)


@pytest.fixture
def sr():
    return SR


@pytest.fixture
def drum_hits_audio():
    """2.5 s of silence with four decaying hits every 0.5 s (120 BPM)."""
    audio = np.zeros(int(SR * 2.5), dtype=np.float32)
    hit = decaying_hit(SR)
    for hit_time in HIT_TIMES:
        start = int(hit_time * SR)
        audio[start : start + len(hit)] += hit
    return audio, SR, HIT_TIMES


@pytest.fixture
def noisy_audio():
    """Random bursts over a low noise floor, seeded for repeatability."""
    rng = np.random.default_rng(1234)
    audio = rng.standard_normal(SR * 3).astype(np.float32) * 0.01
    for start in rng.integers(0, SR * 3 - 2000, size=12):
        audio[start : start + 2000] += rng.standard_normal(2000).astype(np.float32) * rng.uniform(0.1, 0.9)
    return audio, SR


def write_drum_midi(path, notes, ticks_per_beat=480, tempo=500000):
    """Save a type-0 file with one-beat note-ons on channel 10 using mido."""
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))
    for i, note in enumerate(notes):
        track.append(mido.Message("note_on", channel=9, note=note, velocity=100, time=0 if i == 0 else ticks_per_beat // 4 * 3))
        track.append(mido.Message("note_off", channel=9, note=note, velocity=0, time=ticks_per_beat // 4))
    mid = mido.MidiFile(type=0, ticks_per_beat=ticks_per_beat)
    mid.tracks.append(track)
    mid.save(str(path))
    return path


@pytest.fixture
def midi_file(tmp_path):
    """Kick, snare, hi-hat, crash one beat apart at 120 BPM."""
    return write_drum_midi(tmp_path / "groove.mid", [36, 38, 42, 49])
