"""State machine turning framed records into a ``Library``.

The assembler keeps three pieces of context: the open structure, the open
element and a property key waiting for its value. Every record checks that
the context it needs is present and raises a ``GDSError`` otherwise.
"""
from __future__ import annotations

import warnings
from dataclasses import replace
from datetime import datetime
from typing import Callable

from gds2svg.elements import (
    ELEMENT_TYPES,
    ArrayRef,
    Box,
    Boundary,
    Element,
    HorizontalAlign,
    Node,
    Path,
    Reference,
    StructureRef,
    Text,
    VerticalAlign,
)
from gds2svg.errors import (
    GDSError,
    GDSWarning,
    MalformedStructure,
    TruncatedData,
    UnsupportedAssignment,
)
from gds2svg.library import Library, Structure
from gds2svg.primitives import (
    read_ascii,
    read_int16,
    read_int32,
    read_points,
    read_real8,
    read_uint16,
)
from gds2svg.records import Record, RecordType

STRANS_REFLECT = 0x8000
STRANS_ABSOLUTE_MAGNIFICATION = 0x0004
STRANS_ABSOLUTE_ANGLE = 0x0002

ELFLAGS_TEMPLATE = 0x0001
ELFLAGS_EXTERNAL = 0x0002

# Legal records that carry nothing this library models.
IGNORED_RECORDS = frozenset(
    {
        RecordType.REFLIBS,
        RecordType.FONTS,
        RecordType.ATTRTABLE,
        RecordType.GENERATIONS,
        RecordType.FORMAT,
        RecordType.MASK,
        RecordType.ENDMASKS,
        RecordType.LIBDIRSIZE,
        RecordType.SRFNAME,
        RecordType.LIBSECUR,
        RecordType.STRCLASS,
        RecordType.TAPENUM,
        RecordType.TAPECODE,
        RecordType.TEXTNODE,
        RecordType.SPACING,
        RecordType.UINTEGER,
        RecordType.USTRING,
        RecordType.STYPTABLE,
        RecordType.STRTYPE,
        RecordType.ELKEY,
        RecordType.LINKTYPE,
        RecordType.LINKKEYS,
        RecordType.RESERVED,
    }
)

LAYER_TYPES = (Boundary, Path, Text, Node, Box)


def _to_datetime(fields) -> datetime | None:
    year, month, day, hour, minute, second = fields
    if year < 1900:
        year += 1900
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def read_timestamps(data: bytes) -> tuple[datetime | None, datetime | None]:
    """Decode the two 6-field timestamps of BGNLIB/BGNSTR; missing or invalid ones are None."""
    if len(data) < 24:
        return None, None
    fields = [read_int16(data, 2 * index) for index in range(12)]
    return _to_datetime(fields[:6]), _to_datetime(fields[6:])


class RecordAssembler:
    """Builds a ``Library`` from records fed in stream order.

    Attributes:
        library: the library being built
        ignore_text: drop TEXT elements instead of storing them
        verbose: print file-level information while reading
        debug: also print each structure as it is opened
    """

    def __init__(
        self,
        ignore_text: bool = False,
        verbose: bool = False,
        debug: bool = False,
    ):
        self.library = Library()
        self.ignore_text = ignore_text
        self.verbose = verbose or debug
        self.debug = debug

        self.structure: Structure | None = None
        self.element: Element | None = None
        self.property_key: int | None = None
        self.finished = False

        self._warned_codes: set[int] = set()
        self._handlers: dict[RecordType, Callable[[bytes], None]] = {
            RecordType.HEADER: self._header,
            RecordType.BGNLIB: self._begin_library,
            RecordType.LIBNAME: self._library_name,
            RecordType.UNITS: self._units,
            RecordType.ENDLIB: self._end_library,
            RecordType.BGNSTR: self._begin_structure,
            RecordType.STRNAME: self._structure_name,
            RecordType.ENDSTR: self._end_structure,
            RecordType.ELFLAGS: self._element_flags,
            RecordType.PLEX: self._plex,
            RecordType.LAYER: self._layer,
            RecordType.DATATYPE: self._datatype,
            RecordType.WIDTH: self._width,
            RecordType.PATHTYPE: self._path_type,
            RecordType.BGNEXTN: self._begin_extension,
            RecordType.ENDEXTN: self._end_extension,
            RecordType.XY: self._xy,
            RecordType.SNAME: self._structure_reference_name,
            RecordType.STRANS: self._strans,
            RecordType.MAG: self._magnification,
            RecordType.ANGLE: self._angle,
            RecordType.COLROW: self._column_row,
            RecordType.NODETYPE: self._node_type,
            RecordType.BOXTYPE: self._box_type,
            RecordType.TEXTTYPE: self._text_type,
            RecordType.PRESENTATION: self._presentation,
            RecordType.STRING: self._string,
            RecordType.PROPATTR: self._property_attribute,
            RecordType.PROPVALUE: self._property_value,
            RecordType.ENDEL: self._end_element,
        }
        for record_type in ELEMENT_TYPES:
            self._handlers[RecordType[record_type]] = self._begin_element

        self._pending_type: RecordType | None = None

    def feed(self, record: Record) -> bool:
        """Process one record. Returns True once ENDLIB has been seen."""
        if self.finished:
            return True
        if record.type in IGNORED_RECORDS:
            return False
        handler = self._handlers.get(record.type)
        if handler is None:
            if record.type not in self._warned_codes:
                warnings.warn(
                    f"Record type 0x{record.type:04X} at offset {record.offset} is not "
                    "a GDSII record, skipping",
                    GDSWarning,
                    stacklevel=2,
                )
                self._warned_codes.add(record.type)
            return False
        self._pending_type = record.type
        handler(record.data)
        return self.finished

    def finish(self) -> Library:
        """Close the stream and return the library.

        Raises:
            TruncatedData: if the stream ended inside a structure or element
        """
        if not self.finished:
            if self.structure is not None or self.element is not None:
                raise self._error(
                    TruncatedData,
                    "Stream ended inside an open structure or element",
                    "unterminated-structure",
                )
            warnings.warn(
                "Stream ended without an ENDLIB record", GDSWarning, stacklevel=2
            )
            self.finished = True
        return self.library

    def _error(self, error_type: type[GDSError], message: str, reason: str) -> GDSError:
        return error_type(
            message,
            reason=reason,
            structure=self.structure.name if self.structure is not None else None,
            element=self.element.describe() if self.element is not None else None,
        )

    @property
    def _record_name(self) -> str:
        return self._pending_type.name if self._pending_type is not None else "record"

    def _read(self, reader, data: bytes, *args):
        try:
            return reader(data, *args)
        except TruncatedData as error:
            raise self._error(
                TruncatedData, f"{self._record_name}: {error.message}", error.reason
            ) from error

    def _read_string(self, data: bytes) -> str:
        if not data:
            raise self._error(
                TruncatedData, f"{self._record_name} has no data", "empty-string"
            )
        return read_ascii(data)

    def _require_structure(self) -> Structure:
        if self.structure is None:
            raise self._error(
                MalformedStructure,
                f"{self._record_name} found outside of a structure",
                "no-structure",
            )
        return self.structure

    def _require_element(self) -> Element:
        if self.element is None:
            raise self._error(
                MalformedStructure,
                f"{self._record_name} found outside of an element",
                "no-element",
            )
        return self.element

    def _require_kind(self, element: Element, kinds: tuple[type, ...]) -> Element:
        if not isinstance(element, kinds):
            raise self._error(
                UnsupportedAssignment,
                f"{self._record_name} cannot be assigned to {element.record_name}",
                "unsupported-field",
            )
        return element

    def _field(self, data: bytes, reader, kinds: tuple[type, ...], *args):
        """Check the open element, decode the payload and check the element kind."""
        element = self._require_element()
        value = self._read(reader, data, *args)
        return self._require_kind(element, kinds), value

    def _header(self, data: bytes) -> None:
        self.library.version = self._read(read_int16, data)
        if self.verbose:
            print(f"File version is {self.library.version}")

    def _begin_library(self, data: bytes) -> None:
        self.library.name = "UNNAMED"
        self.library.modified, self.library.accessed = read_timestamps(data)

    def _library_name(self, data: bytes) -> None:
        self.library.name = self._read_string(data)
        if self.verbose:
            print(f"Reading library {self.library.name}")

    def _units(self, data: bytes) -> None:
        self.library.user_unit = self._read(read_real8, data, 0)
        self.library.database_unit = self._read(read_real8, data, 8)

    def _end_library(self, data: bytes) -> None:
        self.finished = True

    def _begin_structure(self, data: bytes) -> None:
        if self.structure is not None:
            raise self._error(
                MalformedStructure,
                "Structure started before finishing previous one",
                "structure-open",
            )
        modified, accessed = read_timestamps(data)
        self.structure = Structure(modified=modified, accessed=accessed)

    def _structure_name(self, data: bytes) -> None:
        structure = self._require_structure()
        structure.name = self._read_string(data)
        if self.debug:
            print(f"Reading structure {structure.name}")

    def _end_structure(self, data: bytes) -> None:
        structure = self._require_structure()
        if self.element is not None:
            raise self._error(
                MalformedStructure,
                "Structure ended while an element is still open",
                "element-open",
            )
        if structure.name is None:
            raise self._error(
                MalformedStructure, "Structure has no STRNAME record", "unnamed-structure"
            )
        if structure.name in self.library.structures:
            raise self._error(
                MalformedStructure,
                f"Structure '{structure.name}' is defined twice",
                "duplicate-structure",
            )
        self.library.structures[structure.name] = structure
        self.library.last_structure = structure
        self.structure = None

    def _begin_element(self, data: bytes) -> None:
        if self.element is not None:
            raise self._error(
                MalformedStructure,
                f"{self._record_name} started before finishing previous element",
                "element-open",
            )
        self._require_structure()
        self.element = ELEMENT_TYPES[self._record_name]()

    def _element_flags(self, data: bytes) -> None:
        element = self._require_element()
        flags = self._read(read_uint16, data)
        element.template = bool(flags & ELFLAGS_TEMPLATE)
        element.external = bool(flags & ELFLAGS_EXTERNAL)

    def _plex(self, data: bytes) -> None:
        element = self._require_element()
        element.plex = self._read(read_int32, data)

    def _layer(self, data: bytes) -> None:
        element, layer = self._field(data, read_int16, LAYER_TYPES)
        element.layer = layer

    def _datatype(self, data: bytes) -> None:
        element, datatype = self._field(data, read_int16, (Boundary, Path))
        element.datatype = datatype

    def _width(self, data: bytes) -> None:
        element, width = self._field(data, read_int32, (Path, Text))
        element.width = width

    def _path_type(self, data: bytes) -> None:
        element, path_type = self._field(data, read_int16, (Path, Text))
        element.path_type = path_type

    def _begin_extension(self, data: bytes) -> None:
        element, extension = self._field(data, read_int32, (Path,))
        element.begin_extension = extension

    def _end_extension(self, data: bytes) -> None:
        element, extension = self._field(data, read_int32, (Path,))
        element.end_extension = extension

    def _xy(self, data: bytes) -> None:
        element = self._require_element()
        if not data:
            raise self._error(TruncatedData, "XY has no data", "empty-coordinates")
        if len(data) % 8:
            raise self._error(
                TruncatedData,
                f"XY payload of {len(data)} bytes is not a whole number of points",
                "partial-coordinate",
            )
        element.coords = self._read(read_points, data)

    def _structure_reference_name(self, data: bytes) -> None:
        element = self._require_element()
        name = self._read_string(data)
        self._require_kind(element, (StructureRef, ArrayRef)).structure_name = name

    def _strans(self, data: bytes) -> None:
        element, flags = self._field(data, read_uint16, (Reference, Text))
        element.transform = replace(
            element.transform,
            reflect=bool(flags & STRANS_REFLECT),
            absolute_magnification=bool(flags & STRANS_ABSOLUTE_MAGNIFICATION),
            absolute_angle=bool(flags & STRANS_ABSOLUTE_ANGLE),
        )

    def _magnification(self, data: bytes) -> None:
        element, magnification = self._field(data, read_real8, (Reference, Text))
        element.transform = replace(element.transform, magnification=magnification)

    def _angle(self, data: bytes) -> None:
        element, angle = self._field(data, read_real8, (Reference, Text))
        element.transform = replace(element.transform, angle=angle)

    def _column_row(self, data: bytes) -> None:
        element = self._require_element()
        columns = self._read(read_int16, data, 0)
        rows = self._read(read_int16, data, 2)
        self._require_kind(element, (ArrayRef,)).repeat = (columns, rows)

    def _node_type(self, data: bytes) -> None:
        element, node_type = self._field(data, read_int16, (Node,))
        element.node_type = node_type

    def _box_type(self, data: bytes) -> None:
        element, box_type = self._field(data, read_int16, (Box,))
        element.box_type = box_type

    def _text_type(self, data: bytes) -> None:
        element, text_type = self._field(data, read_int16, (Text,))
        element.text_type = text_type

    def _presentation(self, data: bytes) -> None:
        element, flags = self._field(data, read_uint16, (Text,))
        # 3 is not a valid justification, keep the default
        if flags & 0b11 != 0b11:
            element.horizontal = HorizontalAlign(flags & 0b11)
        if (flags >> 2) & 0b11 != 0b11:
            element.vertical = VerticalAlign((flags >> 2) & 0b11)
        element.font = (flags >> 4) & 0b11

    def _string(self, data: bytes) -> None:
        element = self._require_element()
        value = self._read_string(data)
        self._require_kind(element, (Text,)).string = value

    def _property_attribute(self, data: bytes) -> None:
        if self.property_key is not None:
            raise self._error(
                MalformedStructure,
                "New property started before previous one had a value",
                "property-pending",
            )
        self._require_element()
        self.property_key = self._read(read_int16, data)

    def _property_value(self, data: bytes) -> None:
        element = self._require_element()
        if self.property_key is None:
            raise self._error(
                MalformedStructure, "Property value without a key", "no-property-key"
            )
        value = self._read_string(data)
        if self.property_key in element.properties:
            raise self._error(
                MalformedStructure,
                f"Property {self.property_key} assigned twice",
                "duplicate-property",
            )
        element.properties[self.property_key] = value
        self.property_key = None

    def _end_element(self, data: bytes) -> None:
        structure = self._require_structure()
        element = self._require_element()
        if self.property_key is not None:
            raise self._error(
                MalformedStructure,
                f"Element ended with property {self.property_key} still awaiting a value",
                "property-pending",
            )
        if isinstance(element, (Reference, Text)):
            element.transform = element.placement()
        if not element.check():
            warnings.warn(
                f"{element.describe()} in structure '{structure.name}' does not have "
                "all required data present",
                GDSWarning,
                stacklevel=3,
            )
        if not (self.ignore_text and isinstance(element, Text)):
            structure.elements.append(element)
        self.element = None
