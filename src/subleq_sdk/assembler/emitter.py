"""
Program Image and Output Formats
================================

The ProgramImage is the finished product of assembly: a flat list of cells
where address equals index. Code, data, the literal pool and the temp
fields share this one address space; the image carries no tagging between
them at run time. The listing entries and symbol map ride along for
diagnostics only.

Output Formats
--------------
| Format    | Content                                              |
|-----------|------------------------------------------------------|
| `words`   | one signed integer per line (the loadable image)     |
| `listing` | address, cells and source text per item              |
| `symbols` | name, kind and value per symbol                      |
| `json`    | cells, entry, cell width, symbols, pool, temp fields |

``words`` and ``json`` images can be read back with read_image().
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from subleq_sdk.errors import SourceLocation


FORMATS = ("words", "listing", "symbols", "json")


# =============================================================================
# Image Data Classes
# =============================================================================

@dataclass(frozen=True)
class ListingEntry:
    """
    One row of the assembly listing.

    Attributes:
        address: First cell of the row
        cells: Cell values at that address
        text: Source text (or a description for generated storage)
        location: Source position, None for generated rows
    """
    address: int
    cells: tuple[int, ...]
    text: str
    location: Optional[SourceLocation] = None


@dataclass
class ProgramImage:
    """
    A fully resolved program.

    Attributes:
        cells: Memory image; address is the index
        cell_bits: Width of every cell
        entry: Address execution starts at
        symbols: Symbol name -> value
        symbol_kinds: Symbol name -> kind name (LABEL, CONSTANT, ...)
        pool: Literal value -> pool cell address, in first-use order
        temps: Temp field name -> address
        listing: Listing rows in address order
    """
    cells: list[int]
    cell_bits: int = 64
    entry: int = 0
    symbols: dict[str, int] = field(default_factory=dict)
    symbol_kinds: dict[str, str] = field(default_factory=dict)
    pool: dict[int, int] = field(default_factory=dict)
    temps: dict[str, int] = field(default_factory=dict)
    listing: list[ListingEntry] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.cells)

    def __len__(self) -> int:
        return len(self.cells)


# =============================================================================
# Emitter
# =============================================================================

class Emitter:
    """
    Serializes a ProgramImage. Pure: the image is never modified.

    Usage:
        emitter = Emitter(image)
        text = emitter.render("listing")
        emitter.write("program.words")
    """

    def __init__(self, image: ProgramImage):
        self._image = image

    def render(self, fmt: str = "words") -> str:
        """
        Render the image in one of FORMATS.

        Raises:
            ValueError: Unknown format name
        """
        if fmt not in FORMATS:
            raise ValueError(f"unknown output format '{fmt}' (expected one of {', '.join(FORMATS)})")
        return getattr(self, fmt)()

    def words(self) -> str:
        return "".join(f"{cell}\n" for cell in self._image.cells)

    def listing(self) -> str:
        image = self._image
        lines = [
            "SUBLEQ Assembler Listing",
            "=" * 72,
            "",
            f"{'Addr':>6}  {'Cells':<28}  Source",
            "-" * 72,
        ]

        for entry in image.listing:
            shown = " ".join(str(c) for c in entry.cells[:4])
            if len(entry.cells) > 4:
                shown += f" ... ({len(entry.cells)})"
            line = f"{entry.location.line:4d}  " if entry.location else "      "
            lines.append(f"{entry.address:6d}  {shown:<28}  {line}{entry.text}")

        lines.append("")
        lines.append(f"Image: {image.size} cells, {image.cell_bits}-bit, entry {image.entry}")
        lines.append("")
        lines.append("Symbol Table")
        lines.append("-" * 30)
        lines.extend(self._symbol_lines())
        return "\n".join(lines) + "\n"

    def symbols(self) -> str:
        lines = ["; Symbol table", "; name kind value"]
        lines.extend(self._symbol_lines())
        return "\n".join(lines) + "\n"

    def json(self) -> str:
        image = self._image
        document = {
            "cell_bits": image.cell_bits,
            "entry": image.entry,
            "cells": image.cells,
            "symbols": {
                name: {"kind": image.symbol_kinds.get(name, "LABEL"), "value": value}
                for name, value in image.symbols.items()
            },
            "pool": [{"value": value, "address": addr} for value, addr in image.pool.items()],
            "temps": image.temps,
        }
        return json.dumps(document, indent=2) + "\n"

    def _symbol_lines(self) -> list[str]:
        image = self._image
        return [
            f"{name:20s} {image.symbol_kinds.get(name, 'LABEL'):16s} {value}"
            for name, value in sorted(image.symbols.items())
        ]

    def write(self, filepath: str | Path, fmt: Optional[str] = None) -> None:
        """
        Write the image to a file.

        The format defaults from the suffix: .json, .lst, .sym, else words.
        """
        filepath = Path(filepath)
        if fmt is None:
            fmt = format_for_path(filepath)
        filepath.write_text(self.render(fmt))


def format_for_path(filepath: str | Path) -> str:
    """Guess an output format from a file suffix."""
    return {
        ".json": "json",
        ".lst": "listing",
        ".sym": "symbols",
    }.get(Path(filepath).suffix.lower(), "words")


# =============================================================================
# Loading
# =============================================================================

def read_image(filepath: str | Path) -> ProgramImage:
    """
    Load an image written in the ``words`` or ``json`` format.

    Blank lines and ';' comments are ignored in word files.

    Raises:
        ValueError: The file is not a valid image
    """
    filepath = Path(filepath)
    text = filepath.read_text()

    if text.lstrip().startswith("{"):
        document = json.loads(text)
        return ProgramImage(
            cells=[int(c) for c in document["cells"]],
            cell_bits=document.get("cell_bits", 64),
            entry=document.get("entry", 0),
            symbols={n: s["value"] for n, s in document.get("symbols", {}).items()},
            symbol_kinds={n: s["kind"] for n, s in document.get("symbols", {}).items()},
            pool={p["value"]: p["address"] for p in document.get("pool", [])},
            temps=document.get("temps", {}),
        )

    cells = []
    for number, line in enumerate(text.splitlines(), 1):
        line = line.split(";", 1)[0].strip()
        if not line:
            continue
        try:
            cells.extend(int(word) for word in line.split())
        except ValueError:
            raise ValueError(f"{filepath}:{number}: not an integer cell: {line!r}") from None
    return ProgramImage(cells=cells)
