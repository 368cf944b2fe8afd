import pytest

from gds2svg.errors import GDSWarning
from gds2svg.layers import Layer, LayerConfig, read_layer_config


def write_table(tmp_path, content):
    filename = tmp_path / "layers.csv"
    filename.write_text(content)
    return filename


def test_read_layer_config(tmp_path):
    filename = write_table(
        tmp_path,
        'Metal 1,5,FF0000,0.8\n"Poly, gate",6,00ff00,0.5\nshort,line\n',
    )
    with pytest.warns(GDSWarning, match="line 3"):
        config = read_layer_config(filename)

    assert len(config) == 2
    metal = config.get(5)
    assert metal.name == "Metal 1"
    assert metal.color == 0xFF0000
    assert metal.hex_color == "#FF0000"
    assert metal.opacity == pytest.approx(0.8)
    assert metal.sort_order == 0
    poly = config.get(6)
    assert poly.name == "Poly, gate"
    assert poly.sort_order == 1


def test_unconfigured_layer_is_grey(tmp_path):
    config = LayerConfig([Layer(name="M1", layer=1, color=0x123456, opacity=1)])
    unknown = config.get(9)
    assert unknown.name == "Unassigned Layer 9"
    assert unknown.hex_color == "#7F7F7F"
    assert unknown.opacity == 0.5
    assert 9 not in config


def test_stacking_order():
    config = LayerConfig(
        [
            Layer(name="top", layer=1, sort_order=2),
            Layer(name="bottom", layer=2, sort_order=0),
            Layer(name="middle", layer=3, sort_order=1),
        ]
    )
    ordered = config.ordered([9, 1, 2, 3])
    assert [layer.name for layer in ordered] == [
        "bottom",
        "middle",
        "top",
        "Unassigned Layer 9",
    ]


@pytest.mark.parametrize(
    "line",
    [
        "M1,abc,FF0000,1",
        "M1,1,GG0000,1",
        "M1,1,FF0000,1.5",
        "M1,40000,FF0000,1",
        "M1,1,1FF0000,1",
    ],
)
def test_invalid_line(tmp_path, line):
    filename = write_table(tmp_path, "ok,7,000000,1\n" + line + "\n")
    with pytest.raises(ValueError, match="line 2"):
        read_layer_config(filename)


def test_duplicate_layer(tmp_path):
    filename = write_table(tmp_path, "a,1,000000,1\nb,1,FFFFFF,1\n")
    with pytest.raises(ValueError, match="more than once"):
        read_layer_config(filename)
