"""
Symbol Table and Virtual Literal Pool
=====================================

The symbol table holds every name a program defines:

| Kind            | Defined by            | Value                    |
|-----------------|-----------------------|--------------------------|
| LABEL           | `name:` before an item| address of that item     |
| CONSTANT        | `equ` / `def`         | folded expression        |
| VIRTUAL_LITERAL | bare immediate operand| address of its pool slot |
| TEMP_SLOT       | implicit ($t $e $r)   | address after the pool   |

Constants are stored as expression trees and folded lazily the first time
something asks for their value, so a constant may mention a label defined
further down the file. A constant that (directly or indirectly) mentions
itself is reported as a circular definition.

The virtual literal pool gives runtime storage to compile-time values used
as memory operands. It is deduplicated by value: every use of the same
value, from any source line or macro expansion, shares one cell. Slots are
numbered in first-use order and placed by the layout resolver after all
code and data.

Example
-------
>>> table = SymbolTable()
>>> label = table.define_label("loop", 12)
>>> table.intern_literal(5) is table.intern_literal(5)
True
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from subleq_sdk.errors import (
    DuplicateSymbolError,
    ExpressionError,
    UndefinedSymbolError,
    SourceLocation,
)
from subleq_sdk.assembler.expressions import (
    ExprNode,
    ExpressionEvaluator,
    find_similar_symbols,
    symbol,
)


# Temp field names, in the order they are placed after the pool
TEMP_FIELDS = ("$t", "$e", "$r")


class SymbolKind(Enum):
    """Classification of symbol table entries."""
    LABEL = auto()
    CONSTANT = auto()
    VIRTUAL_LITERAL = auto()
    TEMP_SLOT = auto()


@dataclass
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Symbol name
        kind: What defined the symbol
        value: Address or integer once resolved
        expression: Unfolded definition (constants only)
        location: Where the symbol was defined
        resolved: True once value is final
    """
    name: str
    kind: SymbolKind
    value: Optional[int] = None
    expression: Optional[ExprNode] = None
    location: Optional[SourceLocation] = None
    resolved: bool = False


@dataclass
class PoolEntry:
    """One deduplicated virtual literal: its value and its storage cell."""
    value: int
    address: Optional[int] = None
    uses: int = 0

    @property
    def name(self) -> str:
        return literal_name(self.value)


def literal_name(value: int) -> str:
    """Symbol-table name of the pool slot holding ``value``."""
    return f"={value}"


# =============================================================================
# Virtual Literal Pool
# =============================================================================

class LiteralPool:
    """
    Deduplicating store of compile-time values that need a cell.

    Entries keep first-use order, which is also their layout order.
    """

    def __init__(self):
        self._entries: dict[int, PoolEntry] = {}
        self._base: Optional[int] = None

    def intern(self, value: int) -> PoolEntry:
        entry = self._entries.get(value)
        if entry is None:
            entry = PoolEntry(value)
            self._entries[value] = entry
        entry.uses += 1
        return entry

    def place(self, base: int) -> int:
        """
        Assign consecutive addresses starting at ``base``.

        Returns:
            The first address after the pool
        """
        self._base = base
        for offset, entry in enumerate(self._entries.values()):
            entry.address = base + offset
        return base + len(self._entries)

    @property
    def is_placed(self) -> bool:
        return self._base is not None

    @property
    def base(self) -> Optional[int]:
        return self._base

    def address_of(self, value: int) -> int:
        entry = self._entries.get(value)
        if entry is None or entry.address is None:
            raise KeyError(f"literal {value} has no pool slot")
        return entry.address

    def values(self) -> list[int]:
        """Pool contents in layout order."""
        return list(self._entries)

    def __contains__(self, value: int) -> bool:
        return value in self._entries

    def __iter__(self) -> Iterator[PoolEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """
    Names, constants, literal pool and temp fields of one compilation unit.

    Usage:
        table = SymbolTable(cell_bits=32)
        table.define_label("start", 0, location)
        table.define_constant("size", tree, location)
        ref = table.reference("size", location)
        value = table.evaluator.evaluate(ref)
    """

    def __init__(self, cell_bits: int = 64, strict_overflow: bool = False):
        self._symbols: dict[str, Symbol] = {}
        self._references: dict[str, list[Optional[SourceLocation]]] = {}
        self._resolving: list[str] = []
        self.literals = LiteralPool()
        self.evaluator = ExpressionEvaluator(self, cell_bits, strict_overflow)

    # =========================================================================
    # Definition
    # =========================================================================

    def define(
        self,
        name: str,
        kind: SymbolKind,
        value: Optional[int] = None,
        expression: Optional[ExprNode] = None,
        location: Optional[SourceLocation] = None,
    ) -> Symbol:
        """
        Add a symbol.

        Raises:
            DuplicateSymbolError: If the name is already defined
        """
        existing = self._symbols.get(name)
        if existing is not None:
            raise DuplicateSymbolError(
                name,
                location=location,
                original_location=existing.location,
            )

        entry = Symbol(
            name=name,
            kind=kind,
            value=value,
            expression=expression,
            location=location,
            resolved=value is not None,
        )
        self._symbols[name] = entry
        return entry

    def define_label(self, name: str, address: int, location: Optional[SourceLocation] = None) -> Symbol:
        return self.define(name, SymbolKind.LABEL, value=address, location=location)

    def define_constant(
        self,
        name: str,
        expression: ExprNode,
        location: Optional[SourceLocation] = None,
    ) -> Symbol:
        return self.define(name, SymbolKind.CONSTANT, expression=expression, location=location)

    def define_temp(self, name: str, address: int) -> Symbol:
        return self.define(name, SymbolKind.TEMP_SLOT, value=address)

    # =========================================================================
    # References and Lookup
    # =========================================================================

    def reference(self, name: str, location: Optional[SourceLocation] = None) -> ExprNode:
        """Record a use of ``name`` and return a lazily resolved reference."""
        self._references.setdefault(name, []).append(location)
        return symbol(name, location)

    def lookup(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def value_of(self, name: str, location: Optional[SourceLocation] = None) -> int:
        """
        Resolve a symbol to its integer value.

        Constants are folded on first request and cached.

        Raises:
            UndefinedSymbolError: Name never defined or not yet placed
            ExpressionError: Circular constant definition
        """
        entry = self._symbols.get(name)
        if entry is None:
            raise UndefinedSymbolError(
                name,
                location=location,
                similar_symbols=find_similar_symbols(name, self.user_names()),
            )

        if entry.resolved:
            return entry.value

        if entry.kind != SymbolKind.CONSTANT:
            raise UndefinedSymbolError(
                name,
                location=location,
                hint=f"'{name}' has no address yet",
            )

        if name in self._resolving:
            chain = " -> ".join(self._resolving[self._resolving.index(name):] + [name])
            raise ExpressionError(f"circular definition: {chain}", entry.location)

        self._resolving.append(name)
        try:
            entry.value = self.evaluator.evaluate(entry.expression)
        finally:
            self._resolving.pop()
        entry.resolved = True
        return entry.value

    def resolve_all(self) -> None:
        """Fold every constant, surfacing definition errors early."""
        for entry in list(self._symbols.values()):
            if entry.kind == SymbolKind.CONSTANT:
                self.value_of(entry.name, entry.location)

    def check_references(self) -> None:
        """
        Verify every recorded reference names a defined symbol.

        Raises:
            UndefinedSymbolError: At the first reference to an unknown name
        """
        for name, locations in self._references.items():
            if name not in self._symbols:
                raise UndefinedSymbolError(
                    name,
                    location=locations[0],
                    similar_symbols=find_similar_symbols(name, self.user_names()),
                )

    def user_names(self) -> list[str]:
        """Names defined by the program (labels and constants)."""
        return [
            name for name, entry in self._symbols.items()
            if entry.kind in (SymbolKind.LABEL, SymbolKind.CONSTANT)
        ]

    # =========================================================================
    # Virtual Literals
    # =========================================================================

    def intern_literal(self, value: int) -> PoolEntry:
        """
        Return the pool slot for ``value``, creating it on first use.

        The value is wrapped to the cell width first, so values that are
        the same cell content share a slot.
        """
        value = self.evaluator.wrap(value)
        first_use = value not in self.literals
        entry = self.literals.intern(value)
        if first_use:
            self.define(entry.name, SymbolKind.VIRTUAL_LITERAL)
        return entry

    def place_literals(self, base: int) -> int:
        """Place the pool at ``base`` and return the first address after it."""
        end = self.literals.place(base)
        for entry in self.literals:
            slot = self._symbols[entry.name]
            slot.value = entry.address
            slot.resolved = True
        return end

    # =========================================================================
    # Export
    # =========================================================================

    def as_dict(self, kinds: Optional[set[SymbolKind]] = None) -> dict[str, int]:
        """Resolved symbol values, optionally filtered by kind."""
        return {
            name: entry.value
            for name, entry in self._symbols.items()
            if entry.resolved and (kinds is None or entry.kind in kinds)
        }

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def __len__(self) -> int:
        return len(self._symbols)
