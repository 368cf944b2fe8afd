"""Per-layer polygon union of the geometry of a structure."""
from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor
from os import cpu_count

import numpy as np
import shapely
from shapely.geometry import LineString, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import unary_union

from gds2svg.elements import (
    Box,
    Boundary,
    Element,
    Node,
    OptimizedGeometry,
    Path,
    PathEnd,
)
from gds2svg.errors import DegenerateGeometry, GDSError, GDSWarning
from gds2svg.library import Library, Structure

CAP_STYLES = {
    PathEnd.BUTT: "flat",
    PathEnd.ROUND: "round",
    PathEnd.SQUARE: "square",
    PathEnd.CUSTOM: "flat",
}

FILL_TYPES = (Boundary, Path, Box, Node, OptimizedGeometry)


def winding_number(point, ring: np.ndarray) -> int:
    """Winding number of ``ring`` (closing point optional) around ``point``."""
    x, y = point
    x0, y0 = ring[:, 0], ring[:, 1]
    following = np.roll(ring, -1, axis=0)
    x1, y1 = following[:, 0], following[:, 1]
    cross = (x1 - x0) * (y - y0) - (x - x0) * (y1 - y0)
    upward = (y0 <= y) & (y1 > y) & (cross > 0)
    downward = (y0 > y) & (y1 <= y) & (cross < 0)
    return int(np.count_nonzero(upward) - np.count_nonzero(downward))


def _nonzero_fill(points: np.ndarray) -> list[Polygon]:
    """Faces of a self-intersecting ring that are filled under the non-zero rule."""
    closed = np.vstack([points, points[:1]])
    noded = unary_union(LineString(closed))
    faces = shapely.get_parts(shapely.polygonize(shapely.get_parts(noded)))
    return [
        face
        for face in faces
        if winding_number(face.representative_point().coords[0], points) != 0
    ]


def ring_polygons(coords, description: str = "shape") -> list[Polygon]:
    """Turn an outline into polygons filled with the non-zero winding rule.

    Raises:
        DegenerateGeometry: if the outline encloses no area
    """
    points = np.asarray(coords, dtype=float).reshape(-1, 2)
    if len(points) > 1 and np.array_equal(points[0], points[-1]):
        points = points[:-1]
    if len(np.unique(points, axis=0)) < 3:
        raise DegenerateGeometry(
            f"{description} has fewer than 3 distinct points",
            reason="too-few-points",
            element=description,
        )
    polygon = Polygon(points)
    if polygon.is_valid and polygon.area > 0:
        return [polygon]
    polygons = _nonzero_fill(points)
    if not polygons:
        raise DegenerateGeometry(
            f"{description} encloses no area", reason="no-area", element=description
        )
    return polygons


def path_polygon(path: Path) -> Polygon:
    """Outline of a path: its centerline offset by half the width on both sides.

    Custom endcaps are first reduced to butt ends by stretching the end segments.

    Raises:
        DegenerateGeometry: if the offset does not yield exactly one polygon
    """
    coords = path.butt_coords()
    if len(coords) < 2:
        raise DegenerateGeometry(
            "Path has fewer than 2 points", reason="too-few-points", element=path.describe()
        )
    if path.is_over_retracted():
        raise DegenerateGeometry(
            "Path end extensions are longer than its end segments",
            reason="over-retracted",
            element=path.describe(),
        )
    if path.stroke_width == 0:
        raise DegenerateGeometry(
            "Path has zero width", reason="zero-width", element=path.describe()
        )
    outline = LineString(coords).buffer(
        path.stroke_width / 2,
        cap_style=CAP_STYLES.get(path.path_type, "flat"),
        join_style="mitre",
    )
    if not isinstance(outline, Polygon) or outline.is_empty:
        count = len(shapely.get_parts(outline))
        raise DegenerateGeometry(
            f"Offsetting path resulted in {count} polygons instead of 1",
            reason="path-offset",
            element=path.describe(),
        )
    return outline


def element_polygons(element: Element) -> list[Polygon]:
    """Fill geometry contributed by one element."""
    if isinstance(element, OptimizedGeometry):
        return list(element.polygons)
    if isinstance(element, Path):
        return [path_polygon(element)]
    if isinstance(element, Box) and len(element.coords) != 5:
        raise DegenerateGeometry(
            f"Box has {len(element.coords)} points instead of 5",
            reason="box-point-count",
            element=element.describe(),
        )
    if isinstance(element, (Boundary, Box, Node)):
        return ring_polygons(element.coords, element.describe())
    return []


def _polygon_list(geometry) -> list[Polygon]:
    return [
        orient(part, sign=1.0)
        for part in shapely.get_parts(geometry)
        if isinstance(part, Polygon) and not part.is_empty
    ]


def optimize_elements(
    elements: list[Element], structure_name: str | None = None
) -> list[Element]:
    """Replace all fill elements of each layer by one ``OptimizedGeometry``.

    Text and reference elements are passed through unchanged. Incomplete or
    degenerate elements are skipped with a warning.
    """
    passthrough: list[Element] = []
    layers: dict[int, list[Polygon]] = {}
    for element in elements:
        if not isinstance(element, FILL_TYPES):
            passthrough.append(element)
            continue
        if not element.check():
            warnings.warn(
                f"Skipping incomplete {element.describe()} in structure '{structure_name}'",
                GDSWarning,
                stacklevel=2,
            )
            continue
        polygons = layers.setdefault(element.layer, [])
        try:
            polygons.extend(element_polygons(element))
        except DegenerateGeometry as error:
            error.structure = structure_name
            warnings.warn(f"Skipping {error}", GDSWarning, stacklevel=2)

    optimized = [
        OptimizedGeometry(
            layer=layer,
            polygons=_polygon_list(unary_union(polygons)) if polygons else [],
        )
        for layer, polygons in layers.items()
    ]
    return passthrough + optimized


def optimize_structure(structure: Structure) -> Structure:
    """Union the geometry of one structure in place, leaving references untouched."""
    with structure.lock:
        structure.elements = optimize_elements(structure.elements, structure.name)
    return structure


def optimize_library(
    library: Library, n_threads: int = cpu_count()
) -> dict[str, GDSError]:
    """Optimize every structure of ``library``, one structure per worker.

    Returns:
        structure name -> error for the structures that could not be optimized
    """

    def work(structure: Structure) -> GDSError | None:
        try:
            optimize_structure(structure)
        except GDSError as error:
            return error
        return None

    structures = list(library.structures.values())
    failures: dict[str, GDSError] = {}
    with ThreadPoolExecutor(max_workers=n_threads) as executor:
        for structure, error in zip(structures, executor.map(work, structures)):
            if error is not None:
                warnings.warn(
                    f"Could not optimize structure '{structure.name}': {error}",
                    GDSWarning,
                    stacklevel=2,
                )
                failures[structure.name] = error
    return failures
