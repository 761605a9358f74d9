"""
SUBLEQ Assembler - Main Interface
=================================

This module provides the Assembler class, the primary interface for turning
SUBLEQ assembly source into a ProgramImage. It coordinates the lexer,
parser, layout resolver and macro expander.

Pipeline
--------
1. Parse source into statements (lexer -> parser)
2. Pass 1: assign every item its address (LayoutResolver)
3. Pass 2: expand macros, interning virtual literals (MacroExpander)
4. Place the literal pool and temp fields, lower triples to cells

The first error aborts assembly; no partial image is ever returned.

Example Usage
-------------
>>> from subleq_sdk.assembler import Assembler
>>>
>>> asm = Assembler()
>>> image = asm.assemble('''
... value: dq 5
...        add [value], 2
...        hlt
... ''')
>>> image.cells[image.symbols["value"]]
5

Command-Line Usage
------------------
    $ slasm program.sasm -o program.words -l program.lst -s program.sym
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from subleq_sdk.errors import AssemblerError, SourceLocation
from subleq_sdk.assembler.emitter import Emitter, ListingEntry, ProgramImage
from subleq_sdk.assembler.expressions import number, symbol_names
from subleq_sdk.assembler.layout import Layout, LayoutResolver, data_cells
from subleq_sdk.assembler.macros import ExpandedTriple, MacroExpander
from subleq_sdk.assembler.parser import (
    Directive,
    DirectiveKind,
    Operation,
    Statement,
    parse_source,
)
from subleq_sdk.assembler.symbols import SymbolTable, TEMP_FIELDS

logger = logging.getLogger(__name__)


PREDEFINED = SourceLocation("<command line>", 0, 0)


@dataclass(frozen=True)
class AssemblerConfig:
    """
    Assembly options.

    Attributes:
        cell_bits: Width of every memory cell (signed two's complement)
        max_image_size: Largest image, in cells, including pool and temps
        strict_overflow: Reject out-of-range expression results instead of wrapping
        entry_jump: Prepend a jump over leading data to the first code item
    """
    cell_bits: int = 64
    max_image_size: int = 65536
    strict_overflow: bool = False
    entry_jump: bool = True


class Assembler:
    """
    Main SUBLEQ assembler class.

    An Assembler may be reused; each assemble() call starts from a fresh
    symbol table seeded with the predefined symbols.

    Attributes:
        config: Assembly options
    """

    def __init__(self, config: Optional[AssemblerConfig] = None):
        self.config = config or AssemblerConfig()
        self._defines: dict[str, int] = {}
        self._image: Optional[ProgramImage] = None

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a constant (like -D on the command line).

        Args:
            name: Symbol name
            value: Symbol value
        """
        self._defines[name] = value

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble(self, source: str, filename: str = "<input>") -> ProgramImage:
        """
        Assemble source code from a string.

        Args:
            source: Assembly source code
            filename: Name used in error messages

        Returns:
            The resolved program image

        Raises:
            AssemblerError: On the first error; no image is kept
        """
        self._image = None
        try:
            image = self._assemble(source, filename)
        except AssemblerError as e:
            raise self._attach_source(e, source, filename)

        self._image = image
        logger.info("assembled %s: %d cells", filename, image.size)
        return image

    def assemble_file(self, filepath: str | Path) -> ProgramImage:
        """
        Assemble source code from a file.

        Raises:
            AssemblerError: If assembly fails
            FileNotFoundError: If the source file does not exist
        """
        filepath = Path(filepath)
        logger.debug("assembling %s", filepath)
        return self.assemble(filepath.read_text(encoding="utf-8"), str(filepath))

    def _assemble(self, source: str, filename: str) -> ProgramImage:
        statements = parse_source(source, filename)
        logger.debug("parsed %d statements", len(statements))

        symbols = SymbolTable(self.config.cell_bits, self.config.strict_overflow)
        for name, value in self._defines.items():
            symbols.define_constant(name, number(value, PREDEFINED), PREDEFINED)

        resolver = LayoutResolver(
            symbols,
            max_image_size=self.config.max_image_size,
            entry_jump=self.config.entry_jump,
        )
        layout = resolver.resolve(statements)

        self._record_references(statements, symbols)
        symbols.check_references()
        symbols.resolve_all()

        contents = self._pass2(layout, symbols)
        resolver.place_storage(layout)
        return self._build_image(layout, contents, symbols)

    # =========================================================================
    # Pass 2
    # =========================================================================

    def _record_references(self, statements: list[Statement], symbols: SymbolTable) -> None:
        for stmt in statements:
            if isinstance(stmt, Operation):
                trees = [(op.expression, op.location) for op in stmt.operands if op.expression is not None]
            elif isinstance(stmt, Directive) and stmt.kind != DirectiveKind.CONSTANT:
                trees = [(v, v.location) for v in stmt.values if not isinstance(v, bytes)]
                if stmt.count is not None:
                    trees.append((stmt.count, stmt.location))
            else:
                continue
            for tree, location in trees:
                for name in sorted(symbol_names(tree)):
                    symbols.reference(name, location)

    def _pass2(self, layout: Layout, symbols: SymbolTable) -> list:
        """Expand every item; literals are interned in program order."""
        expander = MacroExpander(symbols)
        contents = []

        for item in layout.items:
            if item.is_code:
                contents.append(expander.expand(item.statement, item.address))
            else:
                contents.append(data_cells(item.statement, symbols, item.end))

        logger.debug("pass 2: %d virtual literals", len(symbols.literals))
        return contents

    def _build_image(self, layout: Layout, contents: list, symbols: SymbolTable) -> ProgramImage:
        cells = [0] * layout.image_size
        listing: list[ListingEntry] = []

        for item, content in zip(layout.items, contents):
            prefix = "".join(f"{label}: " for label in item.labels)

            if not item.is_code:
                cells[item.address:item.end] = content
                listing.append(ListingEntry(
                    item.address, tuple(content),
                    prefix + self._directive_text(item.statement),
                    item.statement.location,
                ))
                continue

            for triple in content:
                values = triple.resolve(symbols)
                cells[triple.address:triple.address + 3] = values
                listing.append(self._triple_entry(item.statement, triple, values, prefix, item.synthetic))

        for entry in symbols.literals:
            cells[entry.address] = entry.value
            listing.append(ListingEntry(entry.address, (entry.value,), f"{entry.name}  ; literal"))

        resolved = symbols.as_dict()
        for name in TEMP_FIELDS:
            listing.append(ListingEntry(resolved[name], (0,), f"{name}  ; temp"))

        return ProgramImage(
            cells=cells,
            cell_bits=self.config.cell_bits,
            entry=0,
            symbols=resolved,
            symbol_kinds={entry.name: entry.kind.name for entry in symbols if entry.resolved},
            pool={entry.value: entry.address for entry in symbols.literals},
            temps={name: resolved[name] for name in TEMP_FIELDS},
            listing=listing,
        )

    def _triple_entry(
        self,
        operation: Operation,
        triple: ExpandedTriple,
        values: tuple[int, int, int],
        prefix: str,
        synthetic: bool,
    ) -> ListingEntry:
        if operation.opcode == "subleq":
            return ListingEntry(triple.address, values, prefix + str(operation), operation.location)
        if triple.index == 0:
            text = f"{prefix}{operation}"
            if synthetic:
                text += "  ; entry"
            return ListingEntry(
                triple.address, values, f"{text:<32} {triple}",
                None if synthetic else operation.location,
            )
        return ListingEntry(triple.address, values, f"{'':<32} {triple}")

    def _directive_text(self, directive: Directive) -> str:
        if directive.kind == DirectiveKind.RESERVE:
            return f"{directive.name} {directive.count}"
        parts = [f'"{v.decode("utf-8", "replace")}"' if isinstance(v, bytes) else str(v)
                 for v in directive.values]
        return f"{directive.name} " + ", ".join(parts)

    def _attach_source(self, error: AssemblerError, source: str, filename: str) -> AssemblerError:
        location = error.location
        if error.source_line is not None or location is None or location.filename != filename:
            return error
        lines = source.splitlines()
        if 1 <= location.line <= len(lines):
            error.with_source_line(lines[location.line - 1])
        return error

    # =========================================================================
    # Output Methods
    # =========================================================================

    def get_image(self) -> ProgramImage:
        """
        Get the last assembled image.

        Raises:
            AssemblerError: Nothing has been assembled successfully
        """
        if self._image is None:
            raise AssemblerError("no program has been assembled")
        return self._image

    def get_symbols(self) -> dict[str, int]:
        return dict(self.get_image().symbols)

    def get_listing(self) -> str:
        return Emitter(self.get_image()).listing()

    def write_image(self, filepath: str | Path, fmt: Optional[str] = None) -> None:
        """
        Write the image file.

        Args:
            filepath: Output file path
            fmt: Output format; guessed from the suffix when omitted
        """
        Emitter(self.get_image()).write(filepath, fmt)
        logger.info("wrote %s", filepath)

    def write_listing(self, filepath: str | Path) -> None:
        Emitter(self.get_image()).write(filepath, "listing")
        logger.info("wrote listing to %s", filepath)

    def write_symbols(self, filepath: str | Path) -> None:
        Emitter(self.get_image()).write(filepath, "symbols")
        logger.info("wrote symbols to %s", filepath)


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>", config: Optional[AssemblerConfig] = None) -> ProgramImage:
    """
    Assemble source code (convenience function).

    Args:
        source: Assembly source code
        filename: Name used in error messages
        config: Assembly options

    Returns:
        The resolved program image
    """
    return Assembler(config).assemble(source, filename)


def assemble_file(filepath: str | Path, config: Optional[AssemblerConfig] = None) -> ProgramImage:
    """Assemble a source file (convenience function)."""
    return Assembler(config).assemble_file(filepath)
