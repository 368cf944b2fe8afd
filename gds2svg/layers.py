"""Layer table: display name, colour and opacity of each GDS layer."""
from __future__ import annotations

import csv
import sys
import warnings
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from gds2svg.errors import GDSWarning

UNKNOWN_COLOR = 0x7F7F7F
UNKNOWN_OPACITY = 0.5


class Layer(BaseModel):
    """Rendering settings of one GDS layer.

    Attributes:
        name: label of the layer group in the output
        layer: layer number used in the GDS file
        color: 24-bit RGB colour
        opacity: opacity of the drawn shapes
        sort_order: stacking position, higher is drawn on top
    """

    name: str = "Unnamed Layer"
    layer: int = Field(ge=-32768, le=32767)
    color: int = Field(0, ge=0, le=0xFFFFFF)
    opacity: float = Field(1.0, ge=0, le=1)
    sort_order: int = 0

    @property
    def hex_color(self) -> str:
        return f"#{self.color:06X}"


class LayerConfig:
    """Lookup of configured layers, with a grey placeholder for the others."""

    def __init__(self, layers: list[Layer] | None = None):
        self.layers: dict[int, Layer] = {}
        for layer in layers or []:
            self.add(layer)

    def add(self, layer: Layer) -> None:
        if layer.layer in self.layers:
            raise ValueError(f"Layer {layer.layer} is configured more than once")
        self.layers[layer.layer] = layer

    def __contains__(self, layer: int) -> bool:
        return layer in self.layers

    def __len__(self) -> int:
        return len(self.layers)

    def get(self, layer: int) -> Layer:
        """The configured layer, or a placeholder stacked above all configured ones."""
        if layer in self.layers:
            return self.layers[layer]
        return Layer(
            name=f"Unassigned Layer {layer}",
            layer=layer,
            color=UNKNOWN_COLOR,
            opacity=UNKNOWN_OPACITY,
            sort_order=sys.maxsize,
        )

    def ordered(self, layers) -> list[Layer]:
        """Layers for the given layer numbers, in stacking order."""
        return sorted(
            (self.get(layer) for layer in layers),
            key=lambda entry: (entry.sort_order, entry.layer),
        )


def _parse_color(text: str) -> int:
    return int(text.strip().removeprefix("#"), 16)


def read_layer_config(path: str | Path) -> LayerConfig:
    """Read a layer table from a header-less CSV file.

    Each line holds ``name, layer, hex colour, opacity``; fields may be
    double-quoted. Layers are stacked in file order, the last line on top.

    Args:
        path: CSV file to read

    Returns:
        The layer configuration

    Raises:
        ValueError: if a line holds an invalid number or a repeated layer
    """
    config = LayerConfig()
    with Path(path).open(newline="", encoding="utf-8") as file:
        for line_number, fields in enumerate(csv.reader(file), start=1):
            if len(fields) < 4:
                warnings.warn(
                    f"Missing data in layer file {path} on line {line_number}",
                    GDSWarning,
                    stacklevel=2,
                )
                continue
            name, layer, color, opacity = (field.strip() for field in fields[:4])
            try:
                config.add(
                    Layer(
                        name=name,
                        layer=int(layer),
                        color=_parse_color(color),
                        opacity=float(opacity),
                        sort_order=line_number - 1,
                    )
                )
            except (ValueError, ValidationError) as error:
                raise ValueError(
                    f"Invalid layer definition in {path} on line {line_number}: {error}"
                ) from error
    return config
