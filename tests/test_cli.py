from xml.etree import ElementTree as ET

import gdstk
import pytest
from pydantic import ValidationError

from gds2svg.cli import convert, main
from gds2svg.options import ConversionOptions

SVG = "{http://www.w3.org/2000/svg}"


@pytest.fixture
def gds_file(tmp_path):
    lib = gdstk.Library("CLI", unit=1e-9, precision=1e-9)
    child = lib.new_cell("CHILD")
    child.add(gdstk.rectangle((0, 0), (10, 10), layer=1))
    child.add(gdstk.rectangle((5, 0), (15, 10), layer=1))
    top = lib.new_cell("TOP")
    top.add(gdstk.Reference(child, origin=(20, 0)))
    top.add(gdstk.rectangle((0, 0), (5, 5), layer=2))
    filename = tmp_path / "chip.gds"
    lib.write_gds(filename)
    return filename


@pytest.fixture
def layer_file(tmp_path):
    filename = tmp_path / "layers.csv"
    filename.write_text("Diffusion,1,00FF00,0.5\nMetal,2,0000FF,1\n")
    return filename


def test_options_defaults(tmp_path):
    options = ConversionOptions(gds_file=tmp_path / "chip.gds")
    assert options.output_file == tmp_path / "chip.svg"
    assert options.verbose
    assert options.max_depth == 64
    assert options.n_threads >= 1
    assert not ConversionOptions(gds_file="a.gds", layer_file="l.csv").verbose


def test_options_validation():
    with pytest.raises(ValidationError):
        ConversionOptions(gds_file="a.gds", n_threads=0)


def test_main_writes_svg(gds_file, layer_file, tmp_path, capsys):
    output = tmp_path / "out.svg"
    status = main([str(gds_file), "--csv", str(layer_file), "--svg", str(output)])

    assert status == 0
    root = ET.parse(output).getroot()
    groups = list(root.iter(f"{SVG}g"))
    assert [group.get("id") for group in groups] == ["layer_1", "layer_2"]
    assert [group.findtext(f"{SVG}title") for group in groups] == ["Diffusion", "Metal"]
    assert len(list(root.iter(f"{SVG}polygon"))) == 3
    assert 'Outputting unit "TOP"' in capsys.readouterr().out


def test_main_optimize(gds_file, layer_file, tmp_path):
    output = tmp_path / "out.svg"
    status = main(
        [str(gds_file), "--csv", str(layer_file), "--svg", str(output), "--optimize"]
    )
    assert status == 0
    root = ET.parse(output).getroot()
    assert len(list(root.iter(f"{SVG}polygon"))) == 0
    assert len(list(root.iter(f"{SVG}path"))) == 2


def test_default_output_and_info(gds_file, capsys):
    assert main([str(gds_file), "--unit", "CHILD", "--threads", "2"]) == 0
    assert gds_file.with_suffix(".svg").exists()
    out = capsys.readouterr().out
    assert "Found 2 units in GDS file:" in out
    assert "Found 2 layers:" in out
    assert "Layer 1 -> [NOT ASSIGNED]" in out


def test_debug_runs_self_check(gds_file, tmp_path, capsys):
    assert main([str(gds_file), "--svg", str(tmp_path / "x.svg"), "--debug"]) == 0
    out = capsys.readouterr().out
    assert "Testing double parsing:" in out
    assert "Pass: False" not in out


def test_unknown_unit(gds_file, tmp_path, capsys):
    output = tmp_path / "out.svg"
    assert main([str(gds_file), "--unit", "NOPE", "--svg", str(output)]) == 1
    assert "UnresolvedReference" in capsys.readouterr().err
    assert not output.exists()


def test_corrupt_file(tmp_path, capsys):
    broken = tmp_path / "broken.gds"
    broken.write_bytes(b"\x00\x06\x00\x02\x02\x58\x00\x08\x0d\x02")
    output = tmp_path / "out.svg"
    assert main([str(broken), "--svg", str(output)]) == 1
    assert "TruncatedData" in capsys.readouterr().err
    assert not output.exists()


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.gds")]) == 1
    assert "Could not find GDS file" in capsys.readouterr().err


def test_invalid_threads(gds_file):
    assert main([str(gds_file), "--threads", "0"]) == 2


def test_convert(gds_file, layer_file, tmp_path):
    options = ConversionOptions(
        gds_file=gds_file,
        layer_file=layer_file,
        svg_file=tmp_path / "converted.svg",
        ignore_text=True,
    )
    assert convert(options) == tmp_path / "converted.svg"
    assert options.output_file.exists()
