"""GDSII record framing.

A stream is a sequence of records: uint16 total length, uint16 record type,
then ``length - 4`` bytes of payload. The low byte of the record type is the
payload data type.
"""
from __future__ import annotations

from enum import IntEnum
from typing import BinaryIO, Iterator, NamedTuple

from gds2svg.errors import MalformedStructure, TruncatedData
from gds2svg.primitives import pack_uint16

HEADER_SIZE = 4


class DataType(IntEnum):
    """Payload data type, encoded in the low byte of the record type."""

    NONE = 0x00
    BITARRAY = 0x01
    INT16 = 0x02
    INT32 = 0x03
    REAL4 = 0x04
    REAL8 = 0x05
    ASCII = 0x06


class RecordType(IntEnum):
    """Record types of the GDSII stream format."""

    HEADER = 0x0002  # int16: stream version
    BGNLIB = 0x0102  # int16 x12: modification and access time
    LIBNAME = 0x0206  # ascii
    UNITS = 0x0305  # real8 x2: user unit, database unit in metres
    ENDLIB = 0x0400
    BGNSTR = 0x0502  # int16 x12: creation and modification time
    STRNAME = 0x0606  # ascii
    ENDSTR = 0x0700
    BOUNDARY = 0x0800
    PATH = 0x0900
    SREF = 0x0A00
    AREF = 0x0B00
    TEXT = 0x0C00
    LAYER = 0x0D02  # int16
    DATATYPE = 0x0E02  # int16
    WIDTH = 0x0F03  # int32, negative means absolute
    XY = 0x1003  # int32 pairs
    ENDEL = 0x1100
    SNAME = 0x1206  # ascii
    COLROW = 0x1302  # int16 x2: columns, rows
    TEXTNODE = 0x1400
    NODE = 0x1500
    TEXTTYPE = 0x1602  # int16
    PRESENTATION = 0x1701  # bits: font, vertical and horizontal justification
    SPACING = 0x1802
    STRING = 0x1906  # ascii
    STRANS = 0x1A01  # bits: reflection, absolute magnification, absolute angle
    MAG = 0x1B05  # real8
    ANGLE = 0x1C05  # real8, degrees counterclockwise
    UINTEGER = 0x1D02
    USTRING = 0x1E06
    REFLIBS = 0x1F06  # ascii
    FONTS = 0x2006  # ascii
    PATHTYPE = 0x2102  # int16: endcap kind
    GENERATIONS = 0x2202  # int16
    ATTRTABLE = 0x2306  # ascii
    STYPTABLE = 0x2406
    STRTYPE = 0x2502
    ELFLAGS = 0x2601  # bits: template, external
    ELKEY = 0x2703
    LINKTYPE = 0x2802
    LINKKEYS = 0x2903
    NODETYPE = 0x2A02  # int16
    PROPATTR = 0x2B02  # int16
    PROPVALUE = 0x2C06  # ascii
    BOX = 0x2D00
    BOXTYPE = 0x2E02  # int16
    PLEX = 0x2F03  # int32
    BGNEXTN = 0x3003  # int32
    ENDEXTN = 0x3103  # int32
    TAPENUM = 0x3202
    TAPECODE = 0x3302
    STRCLASS = 0x3401
    RESERVED = 0x3503
    FORMAT = 0x3602
    MASK = 0x3706
    ENDMASKS = 0x3800
    LIBDIRSIZE = 0x3902
    SRFNAME = 0x3A06
    LIBSECUR = 0x3B02

    @property
    def data_type(self) -> DataType:
        return DataType(self.value & 0xFF)


class Record(NamedTuple):
    """One framed record.

    ``type`` is a ``RecordType`` for known codes and a plain int otherwise.
    ``offset`` is the position of the record header in the stream.
    """

    type: RecordType | int
    data: bytes
    offset: int


def _record_type(code: int) -> RecordType | int:
    try:
        return RecordType(code)
    except ValueError:
        return code


def iter_records(stream: BinaryIO) -> Iterator[Record]:
    """Yield records from ``stream`` until ENDLIB (inclusive) or end of stream.

    Bytes following ENDLIB are never read.

    Raises:
        TruncatedData: if a header or payload is cut short
        MalformedStructure: if a record declares a length below the header size
    """
    offset = 0
    while True:
        header = stream.read(HEADER_SIZE)
        if not header:
            return
        if len(header) < HEADER_SIZE:
            raise TruncatedData(
                f"Record header at offset {offset} has only {len(header)} bytes",
                reason="short-header",
            )
        length = (header[0] << 8) | header[1]
        code = (header[2] << 8) | header[3]
        if length < HEADER_SIZE:
            raise MalformedStructure(
                f"Record 0x{code:04X} at offset {offset} declares length {length}",
                reason="bad-record-length",
            )
        data = stream.read(length - HEADER_SIZE) if length > HEADER_SIZE else b""
        if len(data) < length - HEADER_SIZE:
            raise TruncatedData(
                f"Record 0x{code:04X} at offset {offset} needs {length - HEADER_SIZE} "
                f"payload bytes, only {len(data)} available",
                reason="short-record",
            )
        record_type = _record_type(code)
        yield Record(record_type, data, offset)
        if record_type == RecordType.ENDLIB:
            return
        offset += length


def encode_record(record_type: RecordType | int, data: bytes = b"") -> bytes:
    """Frame ``data`` as one record."""
    return pack_uint16(HEADER_SIZE + len(data)) + pack_uint16(int(record_type)) + data
