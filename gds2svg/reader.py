"""GDSII stream reader."""
from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO

from gds2svg.assembler import RecordAssembler
from gds2svg.library import Library
from gds2svg.records import iter_records


class GDSReader:
    """Reads a GDSII stream into a ``Library``.

    Attributes:
        ignore_text: drop TEXT elements while reading
        verbose: print a summary of the structures found
        debug: print every structure name as it is read
    """

    def __init__(
        self,
        ignore_text: bool = False,
        verbose: bool = False,
        debug: bool = False,
    ):
        self.ignore_text = ignore_text
        self.verbose = verbose or debug
        self.debug = debug

    def read_stream(self, stream: BinaryIO) -> Library:
        """Read records from an open binary stream.

        Raises:
            TruncatedData, MalformedStructure, UnsupportedAssignment: on corrupt input
        """
        assembler = RecordAssembler(
            ignore_text=self.ignore_text, verbose=self.verbose, debug=self.debug
        )
        for record in iter_records(stream):
            if assembler.feed(record):
                break
        library = assembler.finish()
        if self.verbose:
            self._print_summary(library)
        return library

    def read(self, source: str | Path | bytes | BinaryIO) -> Library:
        """Read a file path, a bytes buffer or an open binary stream."""
        if isinstance(source, (bytes, bytearray, memoryview)):
            return self.read_stream(io.BytesIO(bytes(source)))
        if isinstance(source, (str, Path)):
            with Path(source).open("rb") as stream:
                return self.read_stream(stream)
        return self.read_stream(source)

    @staticmethod
    def _print_summary(library: Library) -> None:
        count = len(library.structures)
        print(f"Found {count} unit{'s' if count != 1 else ''} in GDS file:")
        for structure in library.structures.values():
            elements = len(structure.elements)
            top = " -> Top-level unit" if structure is library.last_structure else ""
            print(
                f'  Unit "{structure.name}" ({elements} object'
                f"{'s' if elements != 1 else ''}){top}"
            )


def read_gds(
    source: str | Path | bytes | BinaryIO,
    ignore_text: bool = False,
    verbose: bool = False,
    debug: bool = False,
) -> Library:
    """Utility function that wraps the GDSReader class for easier usage.

    Args:
        source: path, bytes or binary stream holding a GDSII stream
        ignore_text: drop TEXT elements while reading
        verbose: print a summary of the structures found
        debug: print every structure name as it is read

    Returns:
        The library read from the stream
    """
    return GDSReader(ignore_text=ignore_text, verbose=verbose, debug=debug).read(
        source
    )
