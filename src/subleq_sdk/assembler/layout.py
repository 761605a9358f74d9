"""
SUBLEQ Layout Resolver (Pass 1)
===============================

Pass 1 gives every item its final address before any macro is expanded.
This works because every opcode expands to a statically fixed number of
triples (see opcodes.OPCODE_TABLE), so the footprint of an item is known
from its opcode and operand kinds alone.

Memory Map
----------
```
0                    items in source order (code and data)
items_end            virtual literal pool, first-use order
temp_base            $t, $e, $r
image_size
```

The pool only becomes known during pass 2, when macro expansion interns
literals. Because the pool sits after every item, item addresses never
depend on it; ``place_storage()`` appends pool and temp fields afterwards.

Entry Jump
----------
Execution starts at address 0. When a program opens with data but also
contains code, the resolver prepends a synthetic ``jmp`` to the first code
item so the data is not executed.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from subleq_sdk.errors import DirectiveError, MemoryOverflowError
from subleq_sdk.assembler.expressions import number
from subleq_sdk.assembler.opcodes import OPCODE_TABLE, TRIPLE_SIZE
from subleq_sdk.assembler.parser import (
    Directive,
    DirectiveKind,
    LabelDef,
    MacroCall,
    Operation,
    OperandKind,
    Statement,
    immediate,
)
from subleq_sdk.assembler.symbols import SymbolTable, TEMP_FIELDS

logger = logging.getLogger(__name__)


# =============================================================================
# Layout Data Classes
# =============================================================================

@dataclass
class LayoutItem:
    """
    One storage-bearing item with its assigned address.

    Attributes:
        statement: The Operation or DATA/RESERVE Directive
        address: First cell of the item
        size: Number of cells the item occupies
        labels: Labels that name this item
        synthetic: True for items the assembler inserted itself
    """
    statement: Operation | Directive
    address: int
    size: int
    labels: list[str] = field(default_factory=list)
    synthetic: bool = False

    @property
    def end(self) -> int:
        """First address after the item; the value of '$' in its operands."""
        return self.address + self.size

    @property
    def is_code(self) -> bool:
        return isinstance(self.statement, Operation)


@dataclass
class Layout:
    """
    Result of pass 1, completed by place_storage() after pass 2.

    Attributes:
        items: Items in address order
        items_end: First address after the last item
        pool_base: First pool cell (None until placed)
        temp_base: Address of $t (None until placed)
        image_size: Total cells including pool and temp fields
    """
    items: list[LayoutItem] = field(default_factory=list)
    items_end: int = 0
    pool_base: Optional[int] = None
    temp_base: Optional[int] = None
    image_size: Optional[int] = None


# =============================================================================
# Size Rules
# =============================================================================

def expansion_size(operation: Operation) -> int:
    """
    Number of triples an operation expands to.

    Only ``add`` depends on its operands: one triple when the source is an
    immediate (compile-time add), three otherwise.
    """
    info = OPCODE_TABLE[operation.opcode]
    if info.triples is not None:
        return info.triples
    source = operation.operands[1]
    if source.kind == OperandKind.IMMEDIATE:
        return info.immediate_triples
    return info.memory_triples


# =============================================================================
# Layout Resolver
# =============================================================================

class LayoutResolver:
    """
    Assigns addresses to items and places the literal pool and temp fields.

    Usage:
        resolver = LayoutResolver(symbols, max_image_size=65536)
        layout = resolver.resolve(statements)
        ... expand macros, interning literals ...
        resolver.place_storage(layout)
    """

    def __init__(
        self,
        symbols: SymbolTable,
        max_image_size: int = 65536,
        entry_jump: bool = True,
    ):
        self._symbols = symbols
        # Every address must itself fit in a cell
        self._max_image_size = min(max_image_size, symbols.evaluator.max_value + 1)
        self._entry_jump = entry_jump

    # =========================================================================
    # Pass 1
    # =========================================================================

    def resolve(self, statements: list[Statement]) -> Layout:
        """
        Run pass 1 over the parsed statements.

        Constants are registered before any address is assigned so reserve
        counts may use constants defined further down the file.

        Raises:
            DuplicateSymbolError: Name defined twice
            DirectiveError: Bad reserve count or data width
            MemoryOverflowError: Items alone exceed the size bound
        """
        for stmt in statements:
            if isinstance(stmt, Directive) and stmt.kind == DirectiveKind.CONSTANT:
                self._symbols.define_constant(stmt.symbol, stmt.expression, stmt.location)

        layout = Layout()
        entry_jump = self._needs_entry_jump(statements)
        pc = TRIPLE_SIZE if entry_jump else 0
        pending_labels: list[LabelDef] = []

        for stmt in statements:
            if isinstance(stmt, LabelDef):
                pending_labels.append(stmt)
                continue

            if isinstance(stmt, Directive) and stmt.kind == DirectiveKind.CONSTANT:
                continue

            size = self._item_size(stmt)
            item = LayoutItem(stmt, pc, size, [label.name for label in pending_labels])
            for label in pending_labels:
                self._symbols.define_label(label.name, pc, label.location)
            pending_labels.clear()

            layout.items.append(item)
            pc += size
            self._check_size(pc)

        # Trailing labels name the end of the items
        for label in pending_labels:
            self._symbols.define_label(label.name, pc, label.location)

        if entry_jump:
            first_code = next(item for item in layout.items if item.is_code)
            layout.items.insert(0, self._entry_item(first_code))

        layout.items_end = pc
        logger.debug(
            "pass 1: %d items, %d cells before pool",
            len(layout.items), layout.items_end,
        )
        return layout

    def _needs_entry_jump(self, statements: list[Statement]) -> bool:
        if not self._entry_jump:
            return False
        first = next(
            (s for s in statements if isinstance(s, (Operation, Directive))
             and not (isinstance(s, Directive) and s.kind == DirectiveKind.CONSTANT)),
            None,
        )
        if first is None or isinstance(first, Operation):
            return False
        return any(isinstance(s, Operation) for s in statements)

    def _entry_item(self, first_code: LayoutItem) -> LayoutItem:
        location = first_code.statement.location
        jump = MacroCall(
            location=location,
            opcode="jmp",
            operands=[immediate(number(first_code.address, location))],
        )
        return LayoutItem(jump, 0, TRIPLE_SIZE, synthetic=True)

    def _item_size(self, stmt: Operation | Directive) -> int:
        if isinstance(stmt, Operation):
            return expansion_size(stmt) * TRIPLE_SIZE

        self._check_width(stmt)

        if stmt.kind == DirectiveKind.DATA:
            return sum(len(v) if isinstance(v, bytes) else 1 for v in stmt.values)

        count = self._symbols.evaluator.evaluate(stmt.count)
        if count < 0:
            raise DirectiveError(f"'{stmt.name}' count must not be negative, got {count}", stmt.location)
        return count

    def _check_width(self, directive: Directive) -> None:
        cell_bits = self._symbols.evaluator.cell_bits
        if directive.width_bits > cell_bits:
            raise DirectiveError(
                f"'{directive.name}' declares {directive.width_bits}-bit values "
                f"but cells are {cell_bits} bits wide",
                directive.location,
            )

    def _check_size(self, size: int) -> None:
        if size > self._max_image_size:
            raise MemoryOverflowError(size, self._max_image_size)

    # =========================================================================
    # Storage Placement (after pass 2)
    # =========================================================================

    def place_storage(self, layout: Layout) -> int:
        """
        Place the literal pool and the temp fields after the items.

        Returns:
            Total image size in cells

        Raises:
            MemoryOverflowError: Image exceeds max_image_size
        """
        layout.pool_base = layout.items_end
        layout.temp_base = self._symbols.place_literals(layout.pool_base)

        for offset, name in enumerate(TEMP_FIELDS):
            self._symbols.define_temp(name, layout.temp_base + offset)

        layout.image_size = layout.temp_base + len(TEMP_FIELDS)
        self._check_size(layout.image_size)

        logger.debug(
            "pool: %d literals at %d, temps at %d, image %d cells",
            len(self._symbols.literals), layout.pool_base,
            layout.temp_base, layout.image_size,
        )
        return layout.image_size


# =============================================================================
# Data Directives (pass 2)
# =============================================================================

def data_cells(directive: Directive, symbols: SymbolTable, pc: int) -> list[int]:
    """
    Cell contents of a DATA or RESERVE directive.

    Values may reference any label, so this runs once layout is complete.
    Each value must fit the declared width, signed or unsigned.

    Args:
        directive: Directive to encode
        symbols: Resolved symbol table
        pc: Value of '$' (address after the directive)

    Raises:
        DirectiveError: Value out of range for the directive width
    """
    if directive.kind == DirectiveKind.RESERVE:
        return [0] * symbols.evaluator.evaluate(directive.count)

    evaluator = symbols.evaluator
    low = -(1 << (directive.width_bits - 1))
    high = (1 << directive.width_bits) - 1
    cells: list[int] = []

    for value in directive.values:
        if isinstance(value, bytes):
            cells.extend(evaluator.wrap(b, directive.location) for b in value)
            continue
        result = evaluator.evaluate(value, pc)
        if not low <= result <= high:
            raise DirectiveError(
                f"value {result} does not fit in '{directive.name}' ({directive.width_bits} bits)",
                value.location or directive.location,
                hint=f"allowed range is {low}..{high}",
            )
        cells.append(result)

    return cells
