"""Standard MIDI File reader that turns percussion notes into onsets.

This path skips audio analysis entirely: note-on events are read straight
from the file, mapped through the GM drum map and converted to seconds.

The last Set Tempo meta event seen anywhere in the file is applied to every
tick, so files with tempo changes are stretched uniformly. Tempo maps are
not modelled.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import PurePath

from drumalong.config import settings
from drumalong.mapping.drum_map import GM_DRUM_MAP, SUPPORTED_MIDI_EXTENSIONS
from drumalong.models.analysis import MidiParseResult
from drumalong.models.onset import DrumType, Onset
from drumalong.services.byte_reader import ByteReader, MidiFormatError

logger = logging.getLogger(__name__)

HEADER_TAG = "MThd"
TRACK_TAG = "MTrk"
MIN_HEADER_LENGTH = 6

META_EVENT = 0xFF
META_SET_TEMPO = 0x51
SYSEX_START = 0xF0
SYSEX_ESCAPE = 0xF7

NOTE_ON = 0x90
# Data bytes that follow each channel-voice status (high nibble)
CHANNEL_DATA_LENGTHS = {
    0x80: 2,  # note off
    0x90: 2,  # note on
    0xA0: 2,  # polyphonic aftertouch
    0xB0: 2,  # control change
    0xC0: 1,  # program change
    0xD0: 1,  # channel pressure
    0xE0: 2,  # pitch bend
}

# Used only as a fixed per-onset magnitude; velocity is kept on NoteEvent
MIDI_ONSET_ENERGY = 1.0


@dataclass(frozen=True)
class MidiHeader:
    format: int
    track_count: int
    ppq: int  # ticks per quarter note


@dataclass(frozen=True)
class NoteEvent:
    ticks: int  # absolute
    note: int
    velocity: int
    channel: int


@dataclass
class TrackScan:
    notes: list[NoteEvent]
    tempo: int | None = None  # last Set Tempo in this track, microseconds per quarter


def looks_like_midi(data: bytes) -> bool:
    """True if the buffer starts with the SMF header tag."""
    return data[:4] == HEADER_TAG.encode("ascii")


def is_midi_filename(filename: str) -> bool:
    return PurePath(filename).suffix.lower() in SUPPORTED_MIDI_EXTENSIONS


def read_header(reader: ByteReader) -> MidiHeader:
    tag = reader.read_tag()
    if tag != HEADER_TAG:
        raise MidiFormatError(f"Invalid MIDI file: missing {HEADER_TAG} header (found {tag!r})")
    length = reader.read_u32()
    if length < MIN_HEADER_LENGTH:
        raise MidiFormatError(f"Invalid MIDI file: header chunk too short ({length} bytes)")
    body = reader.sub_reader(length)
    fmt = body.read_u16()
    track_count = body.read_u16()
    division = body.read_u16()

    if division & 0x8000:
        raise MidiFormatError("SMPTE time division not supported")
    if division == 0:
        raise MidiFormatError("Invalid MIDI file: time division of 0 ticks per quarter note")
    return MidiHeader(format=fmt, track_count=track_count, ppq=division)


def scan_track(reader: ByteReader) -> TrackScan:
    """Walk one MTrk chunk body, collecting sounding note-ons and tempo."""
    scan = TrackScan(notes=[])
    absolute_ticks = 0
    running_status: int | None = None

    while not reader.at_end():
        absolute_ticks += reader.read_vlq()

        status = reader.peek_u8()
        if status < 0x80:
            if running_status is None:
                raise MidiFormatError(f"Data byte 0x{status:02X} without running status at offset {reader.offset}")
            status = running_status
        else:
            reader.read_u8()
            if status < 0xF0:
                running_status = status

        if status == META_EVENT:
            meta_type = reader.read_u8()
            length = reader.read_vlq()
            payload = reader.read_bytes(length)
            if meta_type == META_SET_TEMPO and length == 3:
                scan.tempo = int.from_bytes(payload, "big")
        elif status in (SYSEX_START, SYSEX_ESCAPE):
            reader.skip(reader.read_vlq())
        elif status >= 0xF0:
            raise MidiFormatError(f"Unexpected system message 0x{status:02X} at offset {reader.offset - 1}")
        else:
            kind = status & 0xF0
            data = reader.read_bytes(CHANNEL_DATA_LENGTHS[kind])
            if kind == NOTE_ON and data[1] > 0:
                scan.notes.append(
                    NoteEvent(ticks=absolute_ticks, note=data[0], velocity=data[1], channel=status & 0x0F)
                )

    return scan


def ticks_to_seconds(ticks: int, ppq: int, tempo: int) -> float:
    return ticks / ppq * (tempo / 1_000_000)


def parse_midi(data: bytes, note_map: Mapping[int, DrumType] | None = None) -> MidiParseResult:
    """Parse a Standard MIDI File into a drum onset chart.

    Args:
        data: Raw file bytes
        note_map: Note number -> drum type; defaults to the GM percussion map.
                  Unmapped notes are dropped.

    Returns:
        MidiParseResult with onsets sorted by time, the file's BPM (unclamped)
        and how many notes matched the map

    Raises:
        MidiFormatError: bad magic, SMPTE division, truncated or corrupt chunks
    """
    note_map = GM_DRUM_MAP if note_map is None else note_map
    reader = ByteReader(data)
    header = read_header(reader)

    scans: list[TrackScan] = []
    for index in range(header.track_count):
        tag = reader.read_tag()
        if tag != TRACK_TAG:
            raise MidiFormatError(f"Invalid MIDI file: expected {TRACK_TAG} chunk for track {index}, found {tag!r}")
        length = reader.read_u32()
        scans.append(scan_track(reader.sub_reader(length)))

    tempo = settings.default_midi_tempo
    for scan in scans:
        if scan.tempo is not None:
            tempo = scan.tempo
    if tempo <= 0:
        raise MidiFormatError("Invalid MIDI file: tempo of 0 microseconds per quarter note")

    onsets: list[Onset] = []
    total_notes = 0
    for scan in scans:
        total_notes += len(scan.notes)
        for event in scan.notes:
            drum_type = note_map.get(event.note)
            if drum_type is None:
                continue
            time_sec = ticks_to_seconds(event.ticks, header.ppq, tempo)
            onsets.append(Onset.for_drum(time_sec, drum_type, MIDI_ONSET_ENERGY))
    onsets.sort(key=lambda o: o.time)

    bpm = round(60_000_000 / tempo)
    logger.info(
        f"Parsed MIDI format {header.format}: {header.track_count} tracks, ppq={header.ppq}, "
        f"{bpm} BPM, {len(onsets)}/{total_notes} notes mapped to drums"
    )
    return MidiParseResult(onsets=onsets, bpm=bpm, matched_note_count=len(onsets))
