import struct


class MidiFormatError(ValueError):
    """The byte stream is not a well-formed Standard MIDI File."""


# SMF variable-length quantities are capped at 0x0FFFFFFF (four bytes)
MAX_VLQ_BYTES = 4


class ByteReader:
    """Big-endian cursor over a byte buffer.

    Every read is bounds-checked; running off the end raises
    ``MidiFormatError`` with the offset and what was being read.
    """

    def __init__(self, data: bytes, start: int = 0, end: int | None = None) -> None:
        self._data = data if isinstance(data, bytes) else bytes(data)
        self._end = len(data) if end is None else end
        if not 0 <= start <= self._end <= len(data):
            raise MidiFormatError(f"Invalid reader bounds {start}..{end} for {len(data)} bytes")
        self.offset = start

    @property
    def remaining(self) -> int:
        return self._end - self.offset

    def at_end(self) -> bool:
        return self.offset >= self._end

    def _require(self, count: int, what: str) -> None:
        if count < 0 or self.offset + count > self._end:
            raise MidiFormatError(
                f"Truncated data reading {what} at offset {self.offset}: "
                f"need {count} byte(s), {self.remaining} left"
            )

    def peek_u8(self) -> int:
        self._require(1, "byte")
        return self._data[self.offset]

    def read_u8(self) -> int:
        value = self.peek_u8()
        self.offset += 1
        return value

    def read_u16(self) -> int:
        self._require(2, "16-bit integer")
        (value,) = struct.unpack_from(">H", self._data, self.offset)
        self.offset += 2
        return value

    def read_u32(self) -> int:
        self._require(4, "32-bit integer")
        (value,) = struct.unpack_from(">I", self._data, self.offset)
        self.offset += 4
        return value

    def read_bytes(self, count: int) -> bytes:
        self._require(count, f"{count}-byte field")
        value = self._data[self.offset : self.offset + count]
        self.offset += count
        return value

    def read_tag(self) -> str:
        """Four-character chunk tag, e.g. ``MThd``."""
        return self.read_bytes(4).decode("latin-1")

    def read_vlq(self) -> int:
        """Variable-length quantity: 7 bits per byte, high bit means more follow."""
        value = 0
        for _ in range(MAX_VLQ_BYTES):
            byte = self.read_u8()
            value = (value << 7) | (byte & 0x7F)
            if not byte & 0x80:
                return value
        raise MidiFormatError(f"Variable-length quantity longer than {MAX_VLQ_BYTES} bytes at offset {self.offset}")

    def skip(self, count: int) -> None:
        self._require(count, f"{count}-byte payload")
        self.offset += count

    def sub_reader(self, length: int) -> "ByteReader":
        """Reader limited to the next ``length`` bytes; advances this cursor past them."""
        self._require(length, f"{length}-byte chunk")
        reader = ByteReader(self._data, self.offset, self.offset + length)
        self.offset += length
        return reader
