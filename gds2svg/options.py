from __future__ import annotations

from os import cpu_count
from pathlib import Path

from pydantic import BaseModel, Field

from gds2svg.flatten import DEFAULT_MAX_DEPTH


class ConversionOptions(BaseModel):
    """Settings of one GDS to SVG conversion.

    Attributes:
        gds_file: GDSII stream to read
        layer_file: CSV layer table; every layer is drawn grey if None
        svg_file: output file; the GDS file name with an ``.svg`` suffix if None
        top_unit: structure to draw; the last structure in the file if None
        ignore_text: drop TEXT elements while reading
        optimize: flatten the hierarchy and merge the geometry of each layer
        max_depth: maximum number of nested structure references
        n_threads: worker threads used when optimizing
        info: print the structures and layers found
        debug: print parser details and run the number decoder self-check
    """

    gds_file: Path
    layer_file: Path | None = None
    svg_file: Path | None = None
    top_unit: str | None = None
    ignore_text: bool = False
    optimize: bool = False
    max_depth: int = Field(DEFAULT_MAX_DEPTH, gt=0)
    n_threads: int = Field(default_factory=lambda: cpu_count() or 1, gt=0)
    info: bool = False
    debug: bool = False

    @property
    def output_file(self) -> Path:
        if self.svg_file is not None:
            return self.svg_file
        return self.gds_file.with_suffix(".svg")

    @property
    def verbose(self) -> bool:
        """Info output is on when asked for, when debugging, or without a layer table."""
        return self.info or self.debug or self.layer_file is None
