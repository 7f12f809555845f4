"""Tests for the Standard MIDI File reader (byte_reader + midi_parser).

Most files are assembled byte by byte so that running status, SysEx and
truncation cases are exact; a few realistic files are produced with mido.
"""

import struct

import mido
import pytest

from drumalong.mapping.drum_map import build_note_map
from drumalong.models.analysis import MidiParseResult
from drumalong.models.onset import DrumType
from drumalong.services.byte_reader import ByteReader, MidiFormatError
from drumalong.services.midi_parser import is_midi_filename, looks_like_midi, parse_midi

END_OF_TRACK = b"\x00\xff\x2f\x00"


def vlq(value: int) -> bytes:
    out = [value & 0x7F]
    value >>= 7
    while value:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    return bytes(reversed(out))


def chunk(tag: bytes, body: bytes) -> bytes:
    return tag + struct.pack(">I", len(body)) + body


def header(track_count: int = 1, division: int = 480, fmt: int = 1) -> bytes:
    return chunk(b"MThd", struct.pack(">HHH", fmt, track_count, division))


def smf(*tracks: bytes, division: int = 480) -> bytes:
    return header(len(tracks), division) + b"".join(chunk(b"MTrk", t + END_OF_TRACK) for t in tracks)


def note_on(delta: int, note: int, velocity: int = 100, channel: int = 9) -> bytes:
    return vlq(delta) + bytes([0x90 | channel, note, velocity])


def set_tempo(delta: int, microseconds: int) -> bytes:
    return vlq(delta) + b"\xff\x51\x03" + microseconds.to_bytes(3, "big")


class TestByteReader:
    @pytest.mark.parametrize(
        "encoded,value",
        [
            (b"\x00", 0),
            (b"\x7f", 127),
            (b"\x81\x00", 128),
            (b"\xff\x7f", 16383),
            (b"\x81\x80\x00", 16384),
            (b"\xff\xff\xff\x7f", 0x0FFFFFFF),
        ],
    )
    def test_vlq(self, encoded, value):
        reader = ByteReader(encoded)

        assert reader.read_vlq() == value
        assert reader.at_end()

    def test_vlq_too_long(self):
        with pytest.raises(MidiFormatError):
            ByteReader(b"\x81\x81\x81\x81\x01").read_vlq()

    def test_vlq_truncated(self):
        with pytest.raises(MidiFormatError, match="Truncated"):
            ByteReader(b"\x81\x81").read_vlq()

    def test_big_endian_integers(self):
        reader = ByteReader(b"\x01\x02\x00\x00\x01\x00")

        assert reader.read_u16() == 0x0102
        assert reader.read_u32() == 0x100
        assert reader.remaining == 0

    def test_read_past_end(self):
        reader = ByteReader(b"\x01")
        reader.read_u8()

        with pytest.raises(MidiFormatError):
            reader.read_u8()

    def test_sub_reader_is_bounded(self):
        reader = ByteReader(b"\x01\x02\x03\x04")
        sub = reader.sub_reader(2)

        assert reader.offset == 2
        assert sub.read_u16() == 0x0102
        with pytest.raises(MidiFormatError):
            sub.read_u8()

    def test_skip_past_end(self):
        with pytest.raises(MidiFormatError):
            ByteReader(b"\x00\x00").skip(3)


class TestParseMidi:
    def test_single_kick_at_default_tempo(self):
        result = parse_midi(smf(note_on(0, 36)))

        assert isinstance(result, MidiParseResult)
        assert result.bpm == 120
        assert result.matched_note_count == 1
        assert len(result.onsets) == 1
        onset = result.onsets[0]
        assert onset.time == 0.0
        assert onset.lane == 0
        assert onset.type == DrumType.kick

    def test_default_tempo_conversion(self):
        """480 ticks at ppq 480 and 500000 us/quarter is half a second."""
        result = parse_midi(smf(note_on(480, 38)))

        assert result.onsets[0].time == pytest.approx(0.5)
        assert result.onsets[0].type == DrumType.snare

    def test_tempo_event(self):
        result = parse_midi(smf(set_tempo(0, 600000) + note_on(480, 42)))

        assert result.bpm == 100
        assert result.onsets[0].time == pytest.approx(0.6)

    def test_tempo_not_clamped(self):
        assert parse_midi(smf(set_tempo(0, 250000) + note_on(0, 36))).bpm == 240

    def test_last_tempo_applies_to_whole_file(self):
        track = set_tempo(0, 500000) + note_on(480, 36) + set_tempo(480, 1000000)

        result = parse_midi(smf(track))

        assert result.bpm == 60
        assert result.onsets[0].time == pytest.approx(1.0)

    def test_tempo_from_conductor_track(self):
        result = parse_midi(smf(set_tempo(0, 750000), note_on(960, 36)))

        assert result.bpm == 80
        assert result.onsets[0].time == pytest.approx(1.5)

    def test_running_status(self):
        track = vlq(0) + bytes([0x99, 36, 100]) + vlq(240) + bytes([38, 90]) + vlq(240) + bytes([42, 80])

        result = parse_midi(smf(track))

        assert [o.type for o in result.onsets] == [DrumType.kick, DrumType.snare, DrumType.hihat]
        assert [o.time for o in result.onsets] == pytest.approx([0.0, 0.25, 0.5])

    def test_zero_velocity_note_on_is_note_off(self):
        track = note_on(0, 36) + vlq(100) + bytes([36, 0]) + note_on(380, 36, velocity=0)

        result = parse_midi(smf(track))

        assert result.matched_note_count == 1

    def test_other_channel_messages_are_skipped(self):
        track = (
            vlq(0) + b"\x89\x24\x40"  # note off
            + vlq(0) + b"\xa9\x24\x10"  # aftertouch
            + vlq(0) + b"\xb9\x07\x64"  # control change
            + vlq(0) + b"\xc9\x05"  # program change
            + vlq(0) + b"\xd9\x20"  # channel pressure
            + vlq(0) + b"\xe9\x00\x40"  # pitch bend
            + note_on(0, 49)
        )

        result = parse_midi(smf(track))

        assert [o.type for o in result.onsets] == [DrumType.crash]

    def test_meta_and_sysex_are_skipped(self):
        track = (
            vlq(0) + b"\xff\x03\x05Drums"  # track name
            + vlq(0) + b"\xf0\x05\x7e\x7f\x09\x01\xf7"  # GM reset sysex
            + vlq(0) + b"\xf7\x02\x01\x02"  # escape sysex
            + note_on(240, 51)
        )

        result = parse_midi(smf(track))

        assert [o.type for o in result.onsets] == [DrumType.ride]
        assert result.onsets[0].time == pytest.approx(0.25)

    def test_running_status_survives_meta_event(self):
        track = note_on(0, 36) + vlq(0) + b"\xff\x01\x01x" + vlq(480) + bytes([38, 100])

        result = parse_midi(smf(track))

        assert [o.type for o in result.onsets] == [DrumType.kick, DrumType.snare]

    def test_unmapped_notes_dropped(self):
        result = parse_midi(smf(note_on(0, 60) + note_on(0, 36) + note_on(0, 81)))

        assert result.matched_note_count == 1
        assert [o.type for o in result.onsets] == [DrumType.kick]

    def test_no_drum_notes_is_not_an_error(self):
        result = parse_midi(smf(note_on(0, 60, channel=0)))

        assert result.onsets == []
        assert result.matched_note_count == 0
        assert not result.has_drum_notes
        assert result.bpm == 120

    def test_tracks_merged_and_sorted(self):
        result = parse_midi(smf(note_on(960, 38) + note_on(480, 49), note_on(0, 36) + note_on(480, 42)))

        assert [o.type for o in result.onsets] == [DrumType.kick, DrumType.hihat, DrumType.snare, DrumType.crash]
        times = [o.time for o in result.onsets]
        assert times == sorted(times)

    def test_every_gm_articulation_maps_to_a_lane(self):
        notes = [35, 36, 37, 38, 40, 41, 42, 43, 44, 45, 46, 47, 48, 49, 50, 51, 52, 53, 55, 57, 59]
        track = b"".join(note_on(10, n) for n in notes)

        result = parse_midi(smf(track))

        assert result.matched_note_count == len(notes)
        assert {o.lane for o in result.onsets} == set(range(8))

    def test_custom_note_map(self):
        note_map = build_note_map({60: "ride", 36: DrumType.floor_tom})

        result = parse_midi(smf(note_on(0, 60) + note_on(10, 36)), note_map=note_map)

        assert [o.type for o in result.onsets] == [DrumType.ride, DrumType.floor_tom]
        assert [o.lane for o in result.onsets] == [7, 5]

    def test_energy_is_constant(self):
        result = parse_midi(smf(note_on(0, 36, velocity=10) + note_on(10, 38, velocity=127)))

        assert {o.energy for o in result.onsets} == {1.0}


class TestMalformedFiles:
    def test_wrong_magic(self):
        data = b"RIFF" + smf(note_on(0, 36))[4:]

        with pytest.raises(MidiFormatError, match="MThd"):
            parse_midi(data)

    def test_empty_buffer(self):
        with pytest.raises(MidiFormatError):
            parse_midi(b"")

    def test_smpte_division(self):
        with pytest.raises(MidiFormatError, match="SMPTE"):
            parse_midi(smf(note_on(0, 36), division=0xE728))

    def test_zero_ppq(self):
        with pytest.raises(MidiFormatError):
            parse_midi(smf(note_on(0, 36), division=0))

    def test_short_header(self):
        with pytest.raises(MidiFormatError):
            parse_midi(chunk(b"MThd", b"\x00\x00\x00\x01"))

    def test_truncated_track_chunk(self):
        data = smf(note_on(0, 36) + note_on(10, 38))

        with pytest.raises(MidiFormatError, match="Truncated"):
            parse_midi(data[:-5])

    def test_event_runs_past_track_end(self):
        # note-on missing its velocity byte
        data = header() + chunk(b"MTrk", vlq(0) + b"\x99\x24")

        with pytest.raises(MidiFormatError):
            parse_midi(data)

    def test_missing_track(self):
        data = header(track_count=2) + chunk(b"MTrk", note_on(0, 36) + END_OF_TRACK)

        with pytest.raises(MidiFormatError):
            parse_midi(data)

    def test_wrong_track_tag(self):
        data = header() + chunk(b"XFIH", note_on(0, 36) + END_OF_TRACK)

        with pytest.raises(MidiFormatError, match="MTrk"):
            parse_midi(data)

    def test_data_byte_without_running_status(self):
        with pytest.raises(MidiFormatError, match="running status"):
            parse_midi(smf(vlq(0) + bytes([36, 100])))

    def test_zero_tempo(self):
        with pytest.raises(MidiFormatError, match="tempo"):
            parse_midi(smf(set_tempo(0, 0) + note_on(0, 36)))


class TestMidoGeneratedFiles:
    """Files written by a real MIDI library."""

    def test_type1_file_with_tempo(self, tmp_path):
        mid = mido.MidiFile(type=1, ticks_per_beat=96)
        conductor = mido.MidiTrack()
        conductor.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(90), time=0))
        drums = mido.MidiTrack()
        for note in (36, 42, 38, 42):
            drums.append(mido.Message("note_on", channel=9, note=note, velocity=100, time=0))
            drums.append(mido.Message("note_off", channel=9, note=note, velocity=0, time=48))
        mid.tracks.extend([conductor, drums])
        path = tmp_path / "groove.mid"
        mid.save(str(path))

        result = parse_midi(path.read_bytes())

        assert result.bpm == 90
        assert [o.type for o in result.onsets] == [DrumType.kick, DrumType.hihat, DrumType.snare, DrumType.hihat]
        expected = [mido.tick2second(48 * i, 96, mido.bpm2tempo(90)) for i in range(4)]
        assert [o.time for o in result.onsets] == pytest.approx(expected)

    def test_type0_file_ignores_melodic_notes(self, tmp_path):
        mid = mido.MidiFile(type=0, ticks_per_beat=480)
        track = mido.MidiTrack()
        track.append(mido.Message("program_change", channel=0, program=33, time=0))
        track.append(mido.Message("note_on", channel=0, note=72, velocity=80, time=0))
        track.append(mido.Message("note_on", channel=9, note=49, velocity=110, time=0))
        track.append(mido.Message("pitchwheel", channel=0, pitch=1000, time=120))
        track.append(mido.Message("note_off", channel=0, note=72, velocity=0, time=360))
        mid.tracks.append(track)
        path = tmp_path / "song.midi"
        mid.save(str(path))

        result = parse_midi(path.read_bytes())

        assert result.matched_note_count == 1
        assert result.onsets[0].type == DrumType.crash


class TestFileDetection:
    def test_magic(self):
        assert looks_like_midi(smf(note_on(0, 36)))
        assert not looks_like_midi(b"RIFF\x00\x00")
        assert not looks_like_midi(b"")

    @pytest.mark.parametrize("name", ["beat.mid", "beat.MIDI", "karaoke.kar", "x.smf"])
    def test_midi_extensions(self, name):
        assert is_midi_filename(name)

    @pytest.mark.parametrize("name", ["song.mp3", "song.wav", "mid", "notes.txt"])
    def test_other_extensions(self, name):
        assert not is_midi_filename(name)
