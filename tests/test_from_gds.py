import math

import gdstk
import numpy as np
import pytest
from shapely.ops import unary_union

from gds2svg.elements import (
    Boundary,
    OptimizedGeometry,
    Path,
    PathEnd,
    StructureRef,
    Text,
)
from gds2svg.flatten import flatten
from gds2svg.reader import read_gds


def write_test_gds(filename):
    """Create a GDS with two cells, a rotated reference, a path and a label."""
    # one database unit per user unit keeps coordinates readable
    lib = gdstk.Library("DESIGN", unit=1e-9, precision=1e-9)

    child = lib.new_cell("CHILD")
    child.add(gdstk.rectangle((0, 0), (10, 10), layer=5))

    top = lib.new_cell("TOP")
    top.add(gdstk.rectangle((20, 0), (30, 10), layer=5))
    top.add(gdstk.Reference(child, origin=(100, 0), rotation=math.pi / 2))
    top.add(
        gdstk.FlexPath(
            [(0, 50), (40, 50)], 4, layer=2, ends="flush", simple_path=True
        )
    )
    top.add(gdstk.Label("hello", (5, 5), layer=7))

    lib.write_gds(filename)
    return filename


@pytest.fixture
def gds_file(tmp_path):
    return write_test_gds(tmp_path / "design.gds")


def test_read_gdstk_library(gds_file):
    library = read_gds(gds_file)

    assert library.name == "DESIGN"
    assert set(library.structures) == {"CHILD", "TOP"}
    assert library.top().name == "TOP"
    assert library.database_unit == pytest.approx(1e-9)
    assert library.user_unit == pytest.approx(1)
    assert library.scan_layers() == [2, 5, 7]

    elements = library["TOP"].elements
    kinds = [type(element) for element in elements]
    assert kinds.count(Boundary) == 1
    assert kinds.count(StructureRef) == 1
    assert kinds.count(Path) == 1
    assert kinds.count(Text) == 1

    (reference,) = [e for e in elements if isinstance(e, StructureRef)]
    assert reference.structure_name == "CHILD"
    assert reference.transform.angle == pytest.approx(90)
    assert reference.placement().offset == (100.0, 0.0)

    (path,) = [e for e in elements if isinstance(e, Path)]
    assert path.width == 4
    assert path.path_type == PathEnd.BUTT
    np.testing.assert_array_equal(path.coords, [[0, 50], [40, 50]])

    (label,) = [e for e in elements if isinstance(e, Text)]
    assert label.string == "hello"
    assert label.layer == 7
    np.testing.assert_array_equal(label.coords, [[5, 5]])


def test_flatten_gdstk_library(gds_file):
    library = read_gds(gds_file)
    top = library.top()
    flatten(top, library)

    layers = {
        element.layer: unary_union(element.polygons)
        for element in top.elements
        if isinstance(element, OptimizedGeometry)
    }
    assert set(layers) == {2, 5}
    assert layers[5].area == pytest.approx(200)
    assert layers[5].bounds == pytest.approx((20, 0, 100, 10))
    assert layers[2].area == pytest.approx(160)
    assert any(isinstance(element, Text) for element in top.elements)


def test_ignore_text(gds_file):
    library = read_gds(gds_file, ignore_text=True)
    assert not any(isinstance(e, Text) for e in library["TOP"].elements)
    assert library.scan_layers() == [2, 5]
