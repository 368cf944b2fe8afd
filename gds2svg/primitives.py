"""Big-endian primitive codecs used by GDSII records.

All decoders take a byte buffer and a start offset and raise ``TruncatedData``
when the buffer is too short. Encoders are the inverse and are used to build
record streams (tests, fixtures).
"""
from __future__ import annotations

import math
import struct

import numpy as np

from gds2svg.errors import TruncatedData

REAL8_SIZE = 8

# Excess-64 bit patterns of round values, used as decoder self-check.
REAL8_FIXTURES = [
    (0x4110000000000000, 1.0),
    (0x4120000000000000, 2.0),
    (0x4130000000000000, 3.0),
    (0xC110000000000000, -1.0),
    (0xC120000000000000, -2.0),
    (0xC130000000000000, -3.0),
    (0x4080000000000000, 0.5),
    (0x4099999999999999, 0.6),
    (0x40B3333333333333, 0.7),
    (0x4118000000000000, 1.5),
    (0x4119999999999999, 1.6),
    (0x411B333333333333, 1.7),
    (0x0000000000000000, 0.0),
    (0x41A0000000000000, 10.0),
    (0x4264000000000000, 100.0),
    (0x433E800000000000, 1000.0),
    (0x4427100000000000, 10000.0),
    (0x45186A0000000000, 100000.0),
]


def _require(data: bytes, start: int, size: int, what: str) -> None:
    if start < 0 or len(data) - start < size:
        raise TruncatedData(
            f"Need {size} bytes for {what} at offset {start}, "
            f"only {max(len(data) - start, 0)} available",
            reason="short-payload",
        )


def read_uint16(data: bytes, start: int = 0) -> int:
    _require(data, start, 2, "uint16")
    return struct.unpack_from(">H", data, start)[0]


def read_int16(data: bytes, start: int = 0) -> int:
    _require(data, start, 2, "int16")
    return struct.unpack_from(">h", data, start)[0]


def read_int32(data: bytes, start: int = 0) -> int:
    _require(data, start, 4, "int32")
    return struct.unpack_from(">i", data, start)[0]


def read_ascii(data: bytes, start: int = 0, length: int | None = None) -> str:
    """Decode ``length`` bytes and drop the trailing NUL padding.

    Bytes outside ASCII are kept as their Latin-1 characters.

    Args:
        data: buffer to read from
        start: offset of the first character
        length: number of bytes to decode (defaults to the rest of the buffer)

    Returns:
        The decoded string, possibly empty if the field was all padding.
    """
    if length is None:
        length = len(data) - start
    _require(data, start, length, "string")
    raw = bytes(data[start : start + length])
    while raw and raw[-1] == 0:
        raw = raw[:-1]
    return raw.decode("latin-1")


def read_real8(data: bytes, start: int = 0) -> float:
    """Decode an 8-byte excess-64 base-16 real.

    Layout: sign (1 bit) | exponent (7 bits, excess 64, base 16) | mantissa
    (56 bits, binary fraction). The value is mantissa / 2**56 * 16**(exponent - 64).
    """
    _require(data, start, REAL8_SIZE, "real8")
    first = data[start]
    exponent = (first & 0x7F) - 64
    mantissa = int.from_bytes(data[start + 1 : start + REAL8_SIZE], "big")
    value = math.ldexp(mantissa, 4 * exponent - 56)
    return -value if first & 0x80 else value


def read_points(data: bytes, start: int = 0, count: int | None = None) -> np.ndarray:
    """Decode ``count`` (x, y) pairs of big-endian int32 into an (N, 2) array."""
    if count is None:
        count = (len(data) - start) // 8
    _require(data, start, 8 * count, "coordinates")
    values = np.frombuffer(data, dtype=">i4", count=2 * count, offset=start)
    return values.astype(np.int64).reshape((count, 2))


def pack_uint16(value: int) -> bytes:
    return struct.pack(">H", value)


def pack_int16(value: int) -> bytes:
    return struct.pack(">h", value)


def pack_int32(value: int) -> bytes:
    return struct.pack(">i", value)


def pack_ascii(value: str) -> bytes:
    """Encode a string, padded with a NUL to an even length."""
    raw = value.encode("latin-1")
    if len(raw) % 2:
        raw += b"\x00"
    return raw


def pack_real8(value: float) -> bytes:
    """Encode a float in the 8-byte excess-64 format.

    Raises:
        ValueError: if the magnitude is outside the representable range
    """
    if value == 0:
        return bytes(REAL8_SIZE)
    sign = 0x80 if value < 0 else 0x00
    value = abs(value)
    exponent = math.floor(math.log2(value) / 4) + 1
    mantissa = round(math.ldexp(value, 56 - 4 * exponent))
    # log2 rounding can leave the mantissa one hex digit off
    if mantissa >= 1 << 56:
        exponent += 1
        mantissa = round(math.ldexp(value, 56 - 4 * exponent))
    elif mantissa < 1 << 52:
        exponent -= 1
        mantissa = round(math.ldexp(value, 56 - 4 * exponent))
    if not 0 <= exponent + 64 <= 0x7F:
        raise ValueError(f"{value} cannot be represented as an excess-64 real")
    return bytes([sign | (exponent + 64)]) + mantissa.to_bytes(7, "big")


def pack_points(points) -> bytes:
    """Encode an (N, 2) sequence of integer coordinates."""
    return np.asarray(points, dtype=">i4").reshape(-1).tobytes()


def check_real8_fixtures(rel_tol: float = 1e-4) -> list[tuple[int, float, float, bool]]:
    """Decode every entry of ``REAL8_FIXTURES``.

    Returns:
        list of (bit pattern, decoded value, expected value, passed)
    """
    results = []
    for pattern, expected in REAL8_FIXTURES:
        decoded = read_real8(pattern.to_bytes(REAL8_SIZE, "big"))
        passed = math.isclose(decoded, expected, rel_tol=rel_tol, abs_tol=0.0)
        results.append((pattern, decoded, expected, passed))
    return results
