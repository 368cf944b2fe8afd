"""In-memory design database: a library of named structures."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime

from gds2svg.elements import Element, LayerElement, Reference
from gds2svg.errors import UnresolvedReference


@dataclass(eq=False)
class Structure:
    """A named cell holding elements.

    Attributes:
        name: unique name within the library
        elements: elements in file order
        modified: BGNSTR modification time, if valid
        accessed: BGNSTR last access time, if valid
        is_flattened: set once all references were resolved into geometry
    """

    name: str | None = None
    elements: list[Element] = field(default_factory=list)
    modified: datetime | None = None
    accessed: datetime | None = None
    is_flattened: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def references(self) -> list[Reference]:
        return [element for element in self.elements if isinstance(element, Reference)]

    def layers(self) -> set[int]:
        return {
            element.layer
            for element in self.elements
            if isinstance(element, LayerElement) and element.layer is not None
        }


@dataclass(eq=False)
class Library:
    """All structures read from one GDS stream.

    Attributes:
        name: LIBNAME value
        structures: structure name -> Structure
        last_structure: most recently completed structure, the default top-level unit
        version: HEADER stream version
        user_unit: size of a user unit in database units
        database_unit: size of a database unit in metres
    """

    name: str = "UNNAMED"
    structures: dict[str, Structure] = field(default_factory=dict)
    last_structure: Structure | None = None
    version: int | None = None
    user_unit: float | None = None
    database_unit: float | None = None
    modified: datetime | None = None
    accessed: datetime | None = None

    def __contains__(self, name: str) -> bool:
        return name in self.structures

    def __getitem__(self, name: str) -> Structure:
        return self.resolve(name)

    def __len__(self) -> int:
        return len(self.structures)

    def resolve(self, name: str, referrer: str | None = None) -> Structure:
        """Look up a structure by name.

        Raises:
            UnresolvedReference: if no structure has that name
        """
        try:
            return self.structures[name]
        except KeyError:
            raise UnresolvedReference(
                f"Structure '{name}' is not defined in library '{self.name}'",
                reason="unknown-structure",
                structure=referrer,
            ) from None

    def top(self, name: str | None = None) -> Structure | None:
        """The structure named ``name``, or the last structure read."""
        if name is None:
            return self.last_structure
        return self.resolve(name)

    def scan_layers(self) -> list[int]:
        """Sorted list of all layers used by drawable elements."""
        layers = set()
        for structure in self.structures.values():
            layers.update(structure.layers())
        return sorted(layers)
