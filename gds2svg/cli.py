"""Command line entry point: ``gds2svg <GDS file> [options]``."""
from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path

from pydantic import ValidationError

from gds2svg import __version__
from gds2svg.errors import GDSError, GDSWarning, MalformedStructure
from gds2svg.flatten import flatten_library
from gds2svg.layers import LayerConfig, read_layer_config
from gds2svg.library import Library
from gds2svg.options import ConversionOptions
from gds2svg.primitives import check_real8_fixtures
from gds2svg.reader import read_gds
from gds2svg.svg import write_svg

LAYER_FORMAT = """\
layer file format: no header, each line holds
  <name>, <layer in range -32768 to 32767>, <colour, RRGGBB hex>, <opacity in range 0.0 to 1.0>
layers are stacked in file order, the last line on top.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gds2svg",
        description="Convert GDSII layout data into SVG graphics for printing or viewing.",
        epilog=LAYER_FORMAT,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("gds_file", type=Path, help="GDSII file to read")
    parser.add_argument(
        "--csv", dest="layer_file", type=Path, metavar="LAYERS", help="layer table"
    )
    parser.add_argument(
        "--svg",
        dest="svg_file",
        type=Path,
        metavar="OUTPUT",
        help="SVG file to write (default: GDS file name with .svg suffix)",
    )
    parser.add_argument(
        "--unit",
        dest="top_unit",
        metavar="NAME",
        help="top-level structure to output, with all its children (default: last in file)",
    )
    parser.add_argument(
        "--optimize",
        action="store_true",
        help="flatten the hierarchy and merge overlapping shapes of each layer",
    )
    parser.add_argument(
        "--ignore-text", action="store_true", help="drop all text elements"
    )
    parser.add_argument(
        "--threads",
        dest="n_threads",
        type=int,
        metavar="N",
        help="worker threads used by --optimize (default: CPU count)",
    )
    parser.add_argument(
        "--info", action="store_true", help="print the structures and layers found"
    )
    parser.add_argument(
        "--debug", action="store_true", help="print parser details and self-checks"
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def print_real8_check() -> None:
    print("Testing double parsing:")
    for pattern, decoded, expected, passed in check_real8_fixtures():
        print(
            f"  Input: 0x{pattern:016X}, calculated {decoded}, "
            f"expected {expected} -> Pass: {passed}"
        )


def print_layers(library: Library, layers: LayerConfig) -> None:
    found = library.scan_layers()
    print(f"Found {len(found)} layers:")
    for layer in found:
        name = layers.layers[layer].name if layer in layers else "[NOT ASSIGNED]"
        print(f"  Layer {layer} -> {name}")


def load_layers(options: ConversionOptions) -> LayerConfig:
    if options.layer_file is not None and options.layer_file.exists():
        return read_layer_config(options.layer_file)
    if options.layer_file is not None:
        warnings.warn(
            f"Layer file {options.layer_file} not found, drawing all layers grey",
            GDSWarning,
            stacklevel=2,
        )
    elif options.verbose:
        print("No layer file specified, drawing all layers grey.")
    return LayerConfig()


def convert(options: ConversionOptions) -> Path:
    """Read the GDS file, optionally optimize it and write the SVG file.

    Returns:
        The path of the written SVG file

    Raises:
        FileNotFoundError: if the GDS file does not exist
        GDSError: if the GDS data is corrupt or its hierarchy cannot be resolved
    """
    if not options.gds_file.exists():
        raise FileNotFoundError(f'Could not find GDS file "{options.gds_file}"')
    layers = load_layers(options)
    if options.debug:
        print_real8_check()

    library = read_gds(
        options.gds_file,
        ignore_text=options.ignore_text,
        verbose=options.verbose,
        debug=options.debug,
    )
    if options.verbose:
        print(f'Library "{library.name}", GDSII version {library.version}')
        print_layers(library, layers)

    structure = library.top(options.top_unit)
    if structure is None:
        raise MalformedStructure(
            "Could not determine top-level unit", reason="no-structure"
        )

    if options.optimize:
        failures = flatten_library(
            library, n_threads=options.n_threads, max_depth=options.max_depth
        )
        if structure.name in failures:
            raise failures[structure.name]

    output = options.output_file
    print(f'Outputting unit "{structure.name}" to "{output}".')
    write_svg(library, structure, output, layers=layers, max_depth=options.max_depth)
    print("Done!")
    return output


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = {key: value for key, value in vars(args).items() if value is not None}
    try:
        options = ConversionOptions(**settings)
        convert(options)
    except ValidationError as error:
        print(f"Invalid options: {error}", file=sys.stderr)
        return 2
    except GDSError as error:
        print(f"{type(error).__name__}: {error}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
