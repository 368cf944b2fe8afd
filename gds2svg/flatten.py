"""Resolve structure references into geometry in a single coordinate frame."""
from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor
from os import cpu_count

from gds2svg.elements import ArrayRef, Element, StructureRef
from gds2svg.errors import CyclicReference, GDSError, GDSWarning
from gds2svg.library import Library, Structure
from gds2svg.optimize import optimize_elements
from gds2svg.transform import Transform

DEFAULT_MAX_DEPTH = 64


def check_references(
    library: Library, structure: Structure, max_depth: int = DEFAULT_MAX_DEPTH
) -> None:
    """Validate the reference graph below ``structure`` without changing it.

    Args:
        library: library used to resolve referenced structure names
        structure: root of the subtree to check
        max_depth: maximum number of nested structure references

    Raises:
        UnresolvedReference: if a reference names a missing structure
        CyclicReference: if a structure references itself through its
            descendants, or the nesting is deeper than ``max_depth``
    """
    verified: set[str] = set()

    def visit(current: Structure, path: tuple[str, ...]) -> None:
        if len(path) > max_depth:
            raise CyclicReference(
                f"Reference chain deeper than {max_depth}: {' -> '.join(path)}",
                reason="max-depth",
                structure=current.name,
            )
        for reference in current.references():
            if not reference.check():
                continue
            child = library.resolve(reference.structure_name, referrer=current.name)
            # array references are never expanded
            if isinstance(reference, ArrayRef):
                continue
            if child.name in path:
                raise CyclicReference(
                    f"Structure '{child.name}' references itself: "
                    f"{' -> '.join((*path, child.name))}",
                    reason="cycle",
                    structure=current.name,
                    element=reference.describe(),
                )
            if child.name in verified or child.is_flattened:
                continue
            visit(child, (*path, child.name))
        verified.add(current.name)

    visit(structure, (structure.name,))


def _flatten(structure: Structure, library: Library, path: tuple[str, ...]) -> None:
    with structure.lock:
        if structure.is_flattened:
            return
        native: list[Element] = []
        imported: list[Element] = []
        for element in structure.elements:
            if not isinstance(element, StructureRef):
                if isinstance(element, ArrayRef):
                    warnings.warn(
                        f"{element.describe()} in structure '{structure.name}' "
                        "is not expanded",
                        GDSWarning,
                        stacklevel=2,
                    )
                native.append(element)
                continue
            if not element.check():
                warnings.warn(
                    f"Skipping incomplete {element.describe()} in structure "
                    f"'{structure.name}'",
                    GDSWarning,
                    stacklevel=2,
                )
                continue
            child = library.resolve(element.structure_name, referrer=structure.name)
            if child.name in path:
                raise CyclicReference(
                    f"Structure '{child.name}' references itself",
                    reason="cycle",
                    structure=structure.name,
                    element=element.describe(),
                )
            _flatten(child, library, (*path, child.name))
            placement = element.placement()
            imported.extend(item.transformed(placement) for item in child.elements)

        structure.elements = optimize_elements(native + imported, structure.name)
        structure.is_flattened = True


def flatten(
    structure: Structure,
    library: Library,
    transform: Transform | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Element]:
    """Flatten ``structure`` in place and return its elements placed by ``transform``.

    Every structure reachable through structure references is flattened first,
    then the native and imported geometry is merged per layer. The structure
    keeps its geometry in its own frame; ``transform`` only affects the
    returned copies. Flattening an already flattened structure does nothing.

    Args:
        structure: structure to flatten
        library: library holding the referenced structures
        transform: placement of the structure, identity if None
        max_depth: maximum number of nested structure references

    Returns:
        The flattened elements: ``OptimizedGeometry``, ``Text`` and ``ArrayRef``

    Raises:
        UnresolvedReference, CyclicReference: before anything is modified
    """
    check_references(library, structure, max_depth)
    _flatten(structure, library, (structure.name,))
    if transform is None or transform.is_identity:
        return list(structure.elements)
    return [element.transformed(transform) for element in structure.elements]


def flatten_library(
    library: Library,
    n_threads: int = cpu_count(),
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> dict[str, GDSError]:
    """Flatten every structure of ``library`` with a pool of worker threads.

    Structures whose reference graph is broken are left untouched; the other
    structures are still flattened.

    Returns:
        structure name -> error for the structures that could not be flattened
    """

    def work(structure: Structure) -> GDSError | None:
        try:
            flatten(structure, library, max_depth=max_depth)
        except GDSError as error:
            return error
        return None

    structures = list(library.structures.values())
    failures: dict[str, GDSError] = {}
    with ThreadPoolExecutor(max_workers=n_threads) as executor:
        for structure, error in zip(structures, executor.map(work, structures)):
            if error is not None:
                warnings.warn(
                    f"Could not flatten structure '{structure.name}': {error}",
                    GDSWarning,
                    stacklevel=2,
                )
                failures[structure.name] = error
    return failures
