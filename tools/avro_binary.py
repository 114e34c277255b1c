#!/usr/bin/env python3
"""
avro_binary.py - Binary encoder/decoder for primitive values

Wire layout:

    null      zero bytes
    boolean   one byte, 0x00 or 0x01
    int/long  zig-zag, then base-128 varint (low 7 bits first, 0x80 = more)
    float     4 bytes IEEE-754 single, little-endian
    double    8 bytes IEEE-754 double, little-endian
    bytes     long length + raw bytes
    string    long length + UTF-8 bytes
    fixed     raw bytes, length taken from the schema

int and long share one wire form: an int is written as a long.

Both classes wrap a binary file-like object (io.BytesIO, an open file).
Lengths read from the stream are trusted; guard untrusted input before
decoding it.

Usage:
    import io
    from avro_binary import BinaryEncoder, BinaryDecoder

    buf = io.BytesIO()
    BinaryEncoder(buf).write_long(-1)       # b'\\x01'
    BinaryDecoder(io.BytesIO(buf.getvalue())).read_long()
"""

import struct
from typing import Any, BinaryIO, Optional

from avro_errors import BinaryDecodeError

STRUCT_FLOAT = struct.Struct('<f')
STRUCT_DOUBLE = struct.Struct('<d')


def zigzag_encode(n: int) -> int:
    """Map a signed 64-bit value onto an unsigned one (0,-1,1,-2 -> 0,1,2,3)."""
    return (n << 1) ^ (n >> 63)


def zigzag_decode(n: int) -> int:
    return (n >> 1) ^ -(n & 1)


class BinaryEncoder:
    """Writes primitive values to a binary stream."""

    def __init__(self, writer: BinaryIO):
        self.writer = writer

    def write(self, datum: bytes) -> None:
        """Write raw bytes (used for fixed)."""
        self.writer.write(datum)

    def write_null(self, datum: Any) -> None:
        pass

    def write_boolean(self, datum: bool) -> None:
        self.writer.write(b'\x01' if datum else b'\x00')

    def write_int(self, datum: int) -> None:
        self.write_long(datum)

    def write_long(self, datum: int) -> None:
        n = zigzag_encode(datum)
        out = bytearray()
        while n & ~0x7F:
            out.append((n & 0x7F) | 0x80)
            n >>= 7
        out.append(n)
        self.writer.write(bytes(out))

    def write_float(self, datum: float) -> None:
        self.writer.write(STRUCT_FLOAT.pack(datum))

    def write_double(self, datum: float) -> None:
        self.writer.write(STRUCT_DOUBLE.pack(datum))

    def write_bytes(self, datum: bytes) -> None:
        self.write_long(len(datum))
        self.writer.write(datum)

    def write_utf8(self, datum: str) -> None:
        self.write_bytes(datum.encode('utf-8'))

    def write_string(self, datum: str) -> None:
        self.write_utf8(datum)


class BinaryDecoder:
    """Reads primitive values from a binary stream.

    Every read that runs past the end of the stream raises BinaryDecodeError.
    """

    def __init__(self, reader: BinaryIO):
        self.reader = reader

    def read(self, n: int) -> bytes:
        """Read exactly n bytes."""
        if n < 0:
            raise BinaryDecodeError(f"Negative length: {n}")
        data = self.reader.read(n)
        if len(data) < n:
            raise BinaryDecodeError(f"Buffer too short: need {n} bytes, got {len(data)}")
        return data

    def read_null(self) -> None:
        return None

    def read_boolean(self) -> bool:
        b = self.read(1)[0]
        if b > 1:
            raise BinaryDecodeError(f"Invalid boolean byte: 0x{b:02X}")
        return b == 1

    def read_int(self) -> int:
        return self.read_long()

    def read_long(self) -> int:
        return self._read_varint(self.read(1)[0])

    def read_long_or_eof(self) -> Optional[int]:
        """Read a long, or return None if the stream is already exhausted."""
        first = self.reader.read(1)
        if not first:
            return None
        return self._read_varint(first[0])

    def _read_varint(self, b: int) -> int:
        n = b & 0x7F
        shift = 7
        while b & 0x80:
            if shift > 63:
                raise BinaryDecodeError("Varint is longer than 10 bytes")
            b = self.read(1)[0]
            n |= (b & 0x7F) << shift
            shift += 7
        if n >> 64:
            raise BinaryDecodeError("Varint overflows a long")
        return zigzag_decode(n)

    def read_float(self) -> float:
        return STRUCT_FLOAT.unpack(self.read(4))[0]

    def read_double(self) -> float:
        return STRUCT_DOUBLE.unpack(self.read(8))[0]

    def read_bytes(self) -> bytes:
        return self.read(self.read_long())

    def read_utf8(self) -> str:
        data = self.read_bytes()
        try:
            return data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise BinaryDecodeError(f"Invalid UTF-8 string: {data!r}") from e

    def read_string(self) -> str:
        return self.read_utf8()

    # Skip operations consume an encoding without building a value

    def skip(self, n: int) -> None:
        self.read(n)

    def skip_null(self) -> None:
        pass

    def skip_boolean(self) -> None:
        self.skip(1)

    def skip_int(self) -> None:
        self.skip_long()

    def skip_long(self) -> None:
        b = self.read(1)[0]
        while b & 0x80:
            b = self.read(1)[0]

    def skip_float(self) -> None:
        self.skip(4)

    def skip_double(self) -> None:
        self.skip(8)

    def skip_bytes(self) -> None:
        self.skip(self.read_long())

    def skip_utf8(self) -> None:
        self.skip_bytes()

    def skip_string(self) -> None:
        self.skip_bytes()
