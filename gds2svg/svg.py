"""SVG output of a structure, one group per layer."""
from __future__ import annotations

import math
import warnings
from pathlib import Path
from xml.etree import ElementTree as ET

import numpy as np

from gds2svg.elements import (
    ArrayRef,
    Boundary,
    Box,
    Element,
    HorizontalAlign,
    Node,
    OptimizedGeometry,
    PathEnd,
    StructureRef,
    Text,
    VerticalAlign,
)
from gds2svg.elements import Path as GDSPath
from gds2svg.errors import CyclicReference, GDSWarning
from gds2svg.flatten import DEFAULT_MAX_DEPTH, check_references
from gds2svg.layers import LayerConfig
from gds2svg.library import Library, Structure
from gds2svg.transform import IDENTITY, Transform

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
DEFAULT_FONT_SIZE = 100

LINECAPS = {
    PathEnd.BUTT: "butt",
    PathEnd.ROUND: "round",
    PathEnd.SQUARE: "square",
    PathEnd.CUSTOM: "butt",
}
TEXT_ANCHORS = {
    HorizontalAlign.LEFT: "start",
    HorizontalAlign.CENTER: "middle",
    HorizontalAlign.RIGHT: "end",
}
BASELINES = {
    VerticalAlign.TOP: "hanging",
    VerticalAlign.MIDDLE: "middle",
    VerticalAlign.BOTTOM: "auto",
}


def fmt(value: float, precision: int = 3) -> str:
    """Format a coordinate with fixed precision, trailing zeros removed."""
    if abs(value) < 1e-10:
        return "0"
    formatted = f"{value:.{precision}f}"
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    return formatted


class SVGWriter:
    """Collects the elements of a structure per layer and writes them as SVG.

    References are expanded on the fly through their composed transforms, so
    both raw and flattened structures can be written. SVG Y points down, the
    GDS Y axis is inverted on output.

    Attributes:
        library: library used to resolve structure references
        layers: colours and stacking order of the layers
        max_depth: maximum number of nested structure references
    """

    def __init__(
        self,
        library: Library,
        layers: LayerConfig | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        precision: int = 3,
    ):
        self.library = library
        self.layers = layers or LayerConfig()
        self.max_depth = max_depth
        self.precision = precision
        self.output: dict[int, list[ET.Element]] = {}
        self.min_x = self.min_y = math.inf
        self.max_x = self.max_y = -math.inf

    def write_root(self, structure: Structure) -> None:
        """Collect all elements of ``structure`` and of the structures it references.

        Raises:
            UnresolvedReference, CyclicReference: if the reference graph is broken
        """
        check_references(self.library, structure, self.max_depth)
        self.write_structure(structure, IDENTITY, (structure.name,))

    def write_structure(
        self, structure: Structure, transform: Transform, path: tuple[str, ...]
    ) -> None:
        for element in structure.elements:
            self.write_element(element, transform, path)

    def write_element(
        self,
        element: Element,
        transform: Transform = IDENTITY,
        path: tuple[str, ...] = (),
    ) -> None:
        if isinstance(element, (Node, ArrayRef)):
            if isinstance(element, ArrayRef):
                self._skip(f"{element.describe()}, array references are not expanded")
            return
        if not element.check():
            self._skip(f"incomplete {element.describe()}")
            return
        if isinstance(element, StructureRef):
            self._write_reference(element, transform, path)
        elif isinstance(element, OptimizedGeometry):
            self._write_geometry(element, transform)
        elif isinstance(element, GDSPath):
            self._write_path(element, transform)
        elif isinstance(element, Text):
            self._write_text(element, transform)
        elif isinstance(element, (Boundary, Box)):
            self._write_polygon(element, transform)
        else:
            self._skip(f"unknown element {element!r}")

    @staticmethod
    def _skip(what: str) -> None:
        warnings.warn(f"Skipping {what} while writing SVG", GDSWarning, stacklevel=3)

    def _layer_output(self, layer: int) -> list[ET.Element]:
        return self.output.setdefault(layer, [])

    def _points(self, points: np.ndarray, transform: Transform) -> np.ndarray:
        mapped = transform.apply_points(points)
        if len(mapped):
            self.min_x = min(self.min_x, float(mapped[:, 0].min()))
            self.min_y = min(self.min_y, float(mapped[:, 1].min()))
            self.max_x = max(self.max_x, float(mapped[:, 0].max()))
            self.max_y = max(self.max_y, float(mapped[:, 1].max()))
        return mapped

    def _point_list(self, points: np.ndarray) -> str:
        return " ".join(
            f"{fmt(x, self.precision)},{fmt(-y, self.precision)}" for x, y in points
        )

    def _write_reference(
        self, reference: StructureRef, transform: Transform, path: tuple[str, ...]
    ) -> None:
        parent = path[-1] if path else None
        child = self.library.resolve(reference.structure_name, referrer=parent)
        if child.name in path:
            raise CyclicReference(
                f"Structure '{child.name}' references itself",
                reason="cycle",
                structure=parent,
                element=reference.describe(),
            )
        self.write_structure(
            child, transform.compose(reference.placement()), (*path, child.name)
        )

    def _write_polygon(self, element: Boundary | Box, transform: Transform) -> None:
        coords = np.asarray(element.coords)
        if isinstance(element, Box) and len(coords) != 5:
            self._skip(f"{element.describe()} with {len(coords)} points instead of 5")
            return
        if len(coords) > 1 and np.array_equal(coords[0], coords[-1]):
            coords = coords[:-1]
        if len(coords) < 3:
            self._skip(f"{element.describe()} with less than 3 points")
            return
        points = self._points(coords, transform)
        self._layer_output(element.layer).append(
            ET.Element("polygon", points=self._point_list(points))
        )

    def _write_path(self, element: GDSPath, transform: Transform) -> None:
        if len(element.coords) < 2:
            self._skip(f"{element.describe()} with less than 2 points")
            return
        if element.is_over_retracted():
            self._skip(f"{element.describe()} retracted past its end segments")
            return
        points = self._points(element.butt_coords(), transform)
        width = -element.width if element.width < 0 else element.width * abs(
            transform.magnification
        )
        layer = self.layers.get(element.layer)
        self._layer_output(element.layer).append(
            ET.Element(
                "polyline",
                {
                    "points": self._point_list(points),
                    "stroke": layer.hex_color,
                    "stroke-width": fmt(width, self.precision),
                    "stroke-linecap": LINECAPS.get(element.path_type, "butt"),
                    "fill": "none",
                },
            )
        )

    def _write_text(self, element: Text, transform: Transform) -> None:
        placement = transform.compose(element.placement())
        x, y = self._points(element.coords[:1], transform)[0]
        layer = self.layers.get(element.layer)
        if element.width:
            size = -element.width if element.width < 0 else element.width * abs(
                placement.magnification
            )
        else:
            size = DEFAULT_FONT_SIZE
        attributes = {
            "x": fmt(x, self.precision),
            "y": fmt(-y, self.precision),
            "text-anchor": TEXT_ANCHORS.get(element.horizontal, "start"),
            "dominant-baseline": BASELINES.get(element.vertical, "auto"),
            "fill": layer.hex_color,
            "font-size": fmt(size, self.precision),
        }
        angle = placement.angle % 360.0
        if angle:
            attributes["transform"] = (
                f"rotate({fmt(-angle, self.precision)} "
                f"{attributes['x']} {attributes['y']})"
            )
        text = ET.Element("text", attributes)
        text.text = element.string
        self._layer_output(element.layer).append(text)

    def _write_geometry(self, element: OptimizedGeometry, transform: Transform) -> None:
        rings = element.rings()
        if not rings:
            self._skip(f"empty {element.describe()}")
            return
        commands = []
        for ring in rings:
            points = self._points(ring, transform)
            commands.append(f"M {self._point_list(points)} Z")
        self._layer_output(element.layer).append(
            ET.Element("path", {"d": " ".join(commands), "fill-rule": "nonzero"})
        )

    @property
    def view_box(self) -> tuple[float, float, float, float]:
        """(x, y, width, height) covering every point written, in SVG coordinates."""
        if self.min_x > self.max_x:
            return 0.0, 0.0, 0.0, 0.0
        return (
            self.min_x,
            -self.max_y,
            self.max_x - self.min_x,
            self.max_y - self.min_y,
        )

    def to_tree(self) -> ET.ElementTree:
        """Assemble the collected elements into an SVG document."""
        root = ET.Element(
            "svg",
            {
                "xmlns": SVG_NAMESPACE,
                "version": "1.1",
                "viewBox": " ".join(fmt(value, self.precision) for value in self.view_box),
            },
        )
        for layer in self.layers.ordered(self.output):
            group = ET.SubElement(
                root,
                "g",
                {
                    "id": f"layer_{layer.layer}",
                    "fill": layer.hex_color,
                    "opacity": fmt(layer.opacity, self.precision),
                },
            )
            ET.SubElement(group, "title").text = layer.name
            group.extend(self.output[layer.layer])
        tree = ET.ElementTree(root)
        ET.indent(tree)
        return tree

    def write(self, filename: str | Path) -> Path:
        filename = Path(filename)
        self.to_tree().write(filename, encoding="utf-8", xml_declaration=True)
        return filename


def write_svg(
    library: Library,
    structure: Structure,
    filename: str | Path,
    layers: LayerConfig | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Path:
    """Utility function that wraps the SVGWriter class for easier usage.

    Args:
        library: library used to resolve structure references
        structure: structure to draw
        filename: SVG file to write, overwritten if it exists
        layers: colours and stacking order, grey for every layer if None
        max_depth: maximum number of nested structure references

    Returns:
        The path of the written file
    """
    writer = SVGWriter(library, layers=layers, max_depth=max_depth)
    writer.write_root(structure)
    return writer.write(filename)
