import io

import pytest

from gds2svg.errors import MalformedStructure, TruncatedData
from gds2svg.primitives import pack_int16
from gds2svg.records import DataType, RecordType, encode_record, iter_records


def records_of(raw: bytes):
    return list(iter_records(io.BytesIO(raw)))


def test_stops_at_endlib():
    raw = (
        encode_record(RecordType.HEADER, pack_int16(600))
        + encode_record(RecordType.ENDLIB)
        + b"trailing garbage"
    )
    records = records_of(raw)
    assert [record.type for record in records] == [RecordType.HEADER, RecordType.ENDLIB]
    assert records[1].offset == 6
    assert records[1].data == b""


def test_end_of_stream_without_endlib():
    records = records_of(encode_record(RecordType.HEADER, pack_int16(3)))
    assert len(records) == 1


def test_unknown_code_is_yielded_as_int():
    (record,) = records_of(encode_record(0x7F00, b"\x00\x01"))
    assert record.type == 0x7F00
    assert not isinstance(record.type, RecordType)


def test_short_header():
    with pytest.raises(TruncatedData) as error:
        records_of(b"\x00")
    assert error.value.reason == "short-header"


def test_length_below_header_size():
    with pytest.raises(MalformedStructure) as error:
        records_of(b"\x00\x02\x0d\x02")
    assert error.value.reason == "bad-record-length"


def test_short_record_body():
    with pytest.raises(TruncatedData) as error:
        records_of(b"\x00\x08\x0d\x02\x00")
    assert error.value.reason == "short-record"


@pytest.mark.parametrize(
    "record_type, data_type",
    [
        (RecordType.ENDEL, DataType.NONE),
        (RecordType.STRANS, DataType.BITARRAY),
        (RecordType.LAYER, DataType.INT16),
        (RecordType.XY, DataType.INT32),
        (RecordType.MAG, DataType.REAL8),
        (RecordType.STRNAME, DataType.ASCII),
    ],
)
def test_payload_data_type(record_type, data_type):
    assert record_type.data_type == data_type


def test_encode_record_header():
    assert encode_record(RecordType.LAYER, b"\x00\x05") == b"\x00\x06\x0d\x02\x00\x05"
