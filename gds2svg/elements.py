"""Element types stored in a GDS structure."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import ClassVar

import numpy as np
import shapely
from shapely.geometry import Polygon

from gds2svg.transform import IDENTITY, Transform


class PathEnd(IntEnum):
    """PATHTYPE values."""

    BUTT = 0
    ROUND = 1
    SQUARE = 2
    CUSTOM = 4


class VerticalAlign(IntEnum):
    TOP = 0
    MIDDLE = 1
    BOTTOM = 2


class HorizontalAlign(IntEnum):
    LEFT = 0
    CENTER = 1
    RIGHT = 2


@dataclass(eq=False)
class Element:
    """Base class for everything found between an element start record and ENDEL.

    Attributes:
        properties: PROPATTR -> PROPVALUE mapping
        template: ELFLAGS template bit
        external: ELFLAGS external bit
        plex: PLEX number, if any
        coords: (N, 2) array of points in database units, None until an XY record is read
    """

    record_name: ClassVar[str] = "ELEMENT"
    closed: ClassVar[bool] = False

    properties: dict[int, str] = field(default_factory=dict)
    template: bool = False
    external: bool = False
    plex: int | None = None
    coords: np.ndarray | None = None

    def check(self) -> bool:
        """Whether every field needed to draw the element is present."""
        raise NotImplementedError("Subclasses must implement check method")

    def describe(self) -> str:
        return self.record_name

    def _mapped_coords(self, transform: Transform) -> np.ndarray | None:
        if self.coords is None:
            return None
        mapped = transform.apply_points(self.coords)
        if transform.reflect and self.closed:
            # reflection flips the winding, restore it
            return mapped[::-1].copy()
        return mapped

    def transformed(self, transform: Transform) -> Element:
        """Return a copy with its coordinates mapped through ``transform``."""
        return replace(
            self,
            properties=dict(self.properties),
            coords=self._mapped_coords(transform),
        )


@dataclass(eq=False)
class LayerElement(Element):
    """Element drawn on a layer."""

    layer: int | None = None

    def describe(self) -> str:
        if self.layer is None:
            return self.record_name
        return f"{self.record_name} on layer {self.layer}"


def _has_points(coords: np.ndarray | None) -> bool:
    return coords is not None and len(coords) > 0


@dataclass(eq=False)
class Boundary(LayerElement):
    """Filled polygon."""

    record_name: ClassVar[str] = "BOUNDARY"
    closed: ClassVar[bool] = True

    datatype: int | None = None

    def check(self) -> bool:
        return (
            self.layer is not None
            and self.datatype is not None
            and _has_points(self.coords)
        )


@dataclass(eq=False)
class Path(LayerElement):
    """Stroked polyline.

    Attributes:
        datatype: DATATYPE value
        path_type: endcap kind, see ``PathEnd``
        width: stroke width; negative means not scaled by magnification
        begin_extension: extension of the first segment, used by ``PathEnd.CUSTOM``
        end_extension: extension of the last segment, used by ``PathEnd.CUSTOM``
    """

    record_name: ClassVar[str] = "PATH"

    datatype: int | None = None
    path_type: int = 0
    width: float = 0
    begin_extension: float = 0
    end_extension: float = 0

    def check(self) -> bool:
        return (
            self.layer is not None
            and self.datatype is not None
            and _has_points(self.coords)
        )

    @property
    def stroke_width(self) -> float:
        return abs(self.width)

    def butt_coords(self) -> np.ndarray:
        """Centerline for drawing with butt ends.

        For custom endcaps the first and last segments are stretched by the
        begin/end extensions (negative values shorten them); other endcap kinds
        return the coordinates unchanged.
        """
        coords = np.asarray(self.coords, dtype=float)
        if self.path_type != PathEnd.CUSTOM or len(coords) < 2:
            return coords
        coords = coords.copy()
        for end, neighbor, extension in (
            (0, 1, self.begin_extension),
            (-1, -2, self.end_extension),
        ):
            direction = coords[end] - coords[neighbor]
            length = np.hypot(*direction)
            if length and extension:
                coords[end] = coords[end] + direction / length * extension
        return coords

    def is_over_retracted(self) -> bool:
        """Whether negative custom extensions consume a whole end segment."""
        coords = np.asarray(self.coords, dtype=float)
        if self.path_type != PathEnd.CUSTOM or len(coords) < 2:
            return False
        begin = max(-self.begin_extension, 0)
        end = max(-self.end_extension, 0)
        first = np.hypot(*(coords[1] - coords[0]))
        last = np.hypot(*(coords[-1] - coords[-2]))
        if len(coords) == 2:
            return bool(begin + end >= first and (begin or end))
        return bool((begin and begin >= first) or (end and end >= last))

    def transformed(self, transform: Transform) -> Path:
        scale = abs(transform.magnification)
        width = self.width if self.width < 0 else self.width * scale
        return replace(
            self,
            properties=dict(self.properties),
            coords=self._mapped_coords(transform),
            width=width,
            begin_extension=self.begin_extension * scale,
            end_extension=self.end_extension * scale,
        )


@dataclass(eq=False)
class Reference(Element):
    """Placement of another structure, looked up by name."""

    structure_name: str | None = None
    transform: Transform = IDENTITY

    def describe(self) -> str:
        return f"{self.record_name} to '{self.structure_name}'"

    def placement(self) -> Transform:
        """The reference transform with its offset set to the first coordinate."""
        if not _has_points(self.coords):
            return self.transform
        x, y = self.coords[0]
        return replace(self.transform, offset=(float(x), float(y)))

    def transformed(self, transform: Transform) -> Reference:
        return replace(
            self,
            properties=dict(self.properties),
            coords=self._mapped_coords(transform),
            transform=transform.compose(self.placement()),
        )


@dataclass(eq=False)
class StructureRef(Reference):
    record_name: ClassVar[str] = "SREF"

    def check(self) -> bool:
        return self.structure_name is not None and _has_points(self.coords)


@dataclass(eq=False)
class ArrayRef(Reference):
    """Array placement. Parsed and carried through flattening, never expanded.

    Attributes:
        repeat: (columns, rows)
    """

    record_name: ClassVar[str] = "AREF"

    repeat: tuple[int, int] | None = None

    def check(self) -> bool:
        return (
            self.structure_name is not None
            and _has_points(self.coords)
            and self.repeat is not None
        )


@dataclass(eq=False)
class Text(LayerElement):
    """Text label anchored at its first coordinate."""

    record_name: ClassVar[str] = "TEXT"

    text_type: int | None = None
    transform: Transform = IDENTITY
    font: int = 0
    vertical: VerticalAlign = VerticalAlign.TOP
    horizontal: HorizontalAlign = HorizontalAlign.LEFT
    path_type: int = 0
    width: float = 0
    string: str | None = None

    def check(self) -> bool:
        return (
            self.layer is not None
            and self.text_type is not None
            and self.string is not None
            and _has_points(self.coords)
        )

    def placement(self) -> Transform:
        if not _has_points(self.coords):
            return self.transform
        x, y = self.coords[0]
        return replace(self.transform, offset=(float(x), float(y)))

    def transformed(self, transform: Transform) -> Text:
        return replace(
            self,
            properties=dict(self.properties),
            coords=self._mapped_coords(transform),
            transform=transform.compose(self.placement()),
        )


@dataclass(eq=False)
class Node(LayerElement):
    record_name: ClassVar[str] = "NODE"
    closed: ClassVar[bool] = True

    node_type: int | None = None

    def check(self) -> bool:
        return (
            self.layer is not None
            and self.node_type is not None
            and _has_points(self.coords)
        )


@dataclass(eq=False)
class Box(LayerElement):
    """Rectangle given as a closed 5-point outline."""

    record_name: ClassVar[str] = "BOX"
    closed: ClassVar[bool] = True

    box_type: int | None = None

    def check(self) -> bool:
        return (
            self.layer is not None
            and self.box_type is not None
            and _has_points(self.coords)
        )


@dataclass(eq=False)
class OptimizedGeometry(LayerElement):
    """Union of all the geometry of one layer, produced by the optimizer.

    Polygon exteriors are counterclockwise and holes clockwise.
    """

    record_name: ClassVar[str] = "GEOMETRY"

    polygons: list[Polygon] = field(default_factory=list)

    def check(self) -> bool:
        return self.layer is not None and self.polygons is not None

    def rings(self) -> list[np.ndarray]:
        """Every exterior and interior ring as an (N, 2) array, closing point dropped."""
        rings = []
        for polygon in self.polygons:
            for ring in [polygon.exterior, *polygon.interiors]:
                rings.append(np.asarray(ring.coords)[:-1])
        return rings

    def transformed(self, transform: Transform) -> OptimizedGeometry:
        polygons = []
        for polygon in self.polygons:
            moved = shapely.transform(polygon, transform.apply_points)
            if transform.reflect:
                # reflection flips the winding, restore it
                moved = shapely.reverse(moved)
            polygons.append(moved)
        return replace(self, properties=dict(self.properties), polygons=polygons)


ELEMENT_TYPES = {
    "BOUNDARY": Boundary,
    "PATH": Path,
    "SREF": StructureRef,
    "AREF": ArrayRef,
    "TEXT": Text,
    "NODE": Node,
    "BOX": Box,
}
