import io

import numpy as np
import pytest

from gds2svg.errors import TruncatedData
from gds2svg.primitives import (
    REAL8_FIXTURES,
    check_real8_fixtures,
    pack_ascii,
    pack_int16,
    pack_int32,
    pack_points,
    pack_real8,
    read_ascii,
    read_int16,
    read_int32,
    read_points,
    read_real8,
    read_uint16,
)
from gds2svg.records import RecordType, encode_record, iter_records

FIXTURES = dict((value, pattern) for pattern, value in REAL8_FIXTURES)


@pytest.mark.parametrize("pattern, expected", REAL8_FIXTURES)
def test_read_real8_fixtures(pattern, expected):
    decoded = read_real8(pattern.to_bytes(8, "big"))
    assert decoded == pytest.approx(expected, rel=1e-4)


def test_check_real8_fixtures():
    results = check_real8_fixtures()
    assert len(results) == len(REAL8_FIXTURES)
    assert all(passed for *_, passed in results)


@pytest.mark.parametrize(
    "value", [1.0, 2.0, 3.0, -1.0, -2.0, -3.0, 0.5, 1.5, 0.0, 10.0, 100.0, 1000.0]
)
def test_pack_real8_matches_known_patterns(value):
    assert pack_real8(value) == FIXTURES[value].to_bytes(8, "big")


def test_pack_real8_precision():
    for value in (1e-3, 1e-9, 0.6, 123.456, -7.25e5):
        assert read_real8(pack_real8(value)) == pytest.approx(value, rel=1e-14)


def test_read_real8_offset():
    data = b"\xff\xff" + pack_real8(2.0)
    assert read_real8(data, 2) == 2.0


def test_integers():
    assert read_int16(b"\xff\xfe") == -2
    assert read_uint16(b"\xff\xfe") == 65534
    assert read_int32(b"\x00\x00\x01\x00") == 256
    assert read_int32(pack_int32(-123456)) == -123456
    assert read_int16(b"\x00" + pack_int16(-300), 1) == -300


def test_read_ascii_strips_padding():
    assert read_ascii(b"AB\x00\x00") == "AB"
    assert read_ascii(b"\x00\x00") == ""
    assert read_ascii(b"xxTOP\x00", 2, 4) == "TOP"


def test_read_ascii_keeps_non_ascii_bytes():
    assert read_ascii(b"caf\xe9") == "caf\xe9"
    assert read_ascii(pack_ascii("caf\xe9")) == "caf\xe9"


def test_pack_ascii_pads_to_even_length():
    assert pack_ascii("ABC") == b"ABC\x00"
    assert pack_ascii("AB") == b"AB"


def test_points():
    points = [[1, 2], [-3, 4], [2**31 - 1, -(2**31)]]
    decoded = read_points(pack_points(points))
    assert decoded.shape == (3, 2)
    np.testing.assert_array_equal(decoded, points)


@pytest.mark.parametrize(
    "reader, data",
    [
        (read_int16, b"\x00"),
        (read_uint16, b""),
        (read_int32, b"\x00\x01\x02"),
        (read_real8, b"\x41\x10\x00"),
    ],
)
def test_truncated(reader, data):
    with pytest.raises(TruncatedData) as error:
        reader(data)
    assert error.value.reason == "short-payload"


def test_read_points_truncated():
    with pytest.raises(TruncatedData):
        read_points(b"\x00" * 8, count=2)


def test_record_round_trip():
    raw = encode_record(RecordType.LAYER, pack_int16(5))
    (record,) = list(iter_records(io.BytesIO(raw)))
    assert record.type == RecordType.LAYER
    assert read_int16(record.data) == 5
    assert encode_record(record.type, pack_int16(read_int16(record.data))) == raw
