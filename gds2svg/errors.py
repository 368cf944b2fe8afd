"""Error and warning types raised while reading, flattening and optimizing GDS data."""
from __future__ import annotations


class GDSWarning(UserWarning):
    """Non-fatal problem with the input (incomplete element, skipped geometry, ...)."""


class GDSError(ValueError):
    """Base class for all GDS processing errors.

    Attributes:
        reason: short machine-readable cause, e.g. "element-open"
        structure: name of the structure being processed, if known
        element: description of the element being processed, if known
    """

    def __init__(
        self,
        message: str,
        reason: str,
        structure: str | None = None,
        element: str | None = None,
    ):
        self.message = message
        self.reason = reason
        self.structure = structure
        self.element = element
        super().__init__(str(self))

    def __str__(self) -> str:
        context = []
        if self.structure is not None:
            context.append(f"structure '{self.structure}'")
        if self.element is not None:
            context.append(f"element {self.element}")
        if context:
            return f"{self.message} [{self.reason}] (in {', '.join(context)})"
        return f"{self.message} [{self.reason}]"


class TruncatedData(GDSError):
    """Fewer bytes were available than a field requires."""


class MalformedStructure(GDSError):
    """Records arrived in an order that violates the structure/element nesting."""


class UnsupportedAssignment(GDSError):
    """A field record targets an element type that cannot hold it."""


class UnresolvedReference(GDSError):
    """A reference names a structure that is not in the library."""


class CyclicReference(GDSError):
    """A reference chain revisits a structure (or exceeds the maximum depth)."""


class DegenerateGeometry(GDSError):
    """A shape cannot be turned into exactly one valid polygon."""
