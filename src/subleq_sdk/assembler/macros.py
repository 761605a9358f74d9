"""
SUBLEQ Macro Expander (Pass 2)
==============================

Pass 2 rewrites every operation into its fixed sequence of primitive
triples. Addresses are already final (pass 1), so operand expressions are
evaluated here; compile-time values used as memory operands are interned
into the virtual literal pool as the triples are produced.

Expansions
----------
Macro operands are destination first. ``$`` inside an expansion is the
address right after the triple being emitted.

| Op                | Triples                                                  |
|-------------------|----------------------------------------------------------|
| `subleq A, B, C`  | itself                                                   |
| `sub dst, src`    | `src, dst, $`                                            |
| `hlt`             | `=0, =0, -1`                                             |
| `jmp target`      | `$t, $t, target`                                         |
| `mov dst, src`    | `dst, dst, $` `src, $t, $` `$t, dst, $` `$t, $t, $`      |
| `add_c dst, imm`  | `=-imm, dst, $`                                          |
| `add_r dst, src`  | `src, $t, $` `$t, dst, $` `$t, $t, $`                    |
| `add dst, src`    | add_c when src is an immediate, add_r otherwise          |
| `je a, b, target` | `a, $e, $` `$e, $t, $` `b, a, $+3` `$e, $e, $+3` `$t, b, target` |

Slots
-----
Triples are produced symbolically: each cell is a Slot naming a pool
literal, an absolute address or a temp field. The pool and the temp fields
are only placed once every operation has been expanded, after which
``ExpandedTriple.resolve()`` lowers the slots to integers.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from subleq_sdk.errors import CompileTimeAddError, MacroError
from subleq_sdk.assembler.layout import expansion_size
from subleq_sdk.assembler.opcodes import (
    OPCODE_TABLE,
    OUT_OF_BOUNDS,
    TRIPLE_SIZE,
    OperandRole,
)
from subleq_sdk.assembler.parser import Operand, OperandKind, Operation
from subleq_sdk.assembler.symbols import SymbolTable, literal_name


# =============================================================================
# Symbolic Triples
# =============================================================================

class SlotKind(Enum):
    LITERAL = auto()     # pool cell holding a compile-time value
    ADDRESS = auto()     # absolute cell address or jump target
    TEMP = auto()        # $t, $e or $r


@dataclass(frozen=True)
class Slot:
    """One cell of a triple before the pool and temp fields are placed."""
    kind: SlotKind
    value: int = 0
    temp: Optional[str] = None

    def resolve(self, symbols: SymbolTable) -> int:
        if self.kind == SlotKind.LITERAL:
            return symbols.literals.address_of(self.value)
        if self.kind == SlotKind.TEMP:
            return symbols.value_of(self.temp)
        return self.value

    def __str__(self) -> str:
        if self.kind == SlotKind.LITERAL:
            return literal_name(self.value)
        if self.kind == SlotKind.TEMP:
            return self.temp
        return str(self.value)


def literal(value: int) -> Slot:
    return Slot(SlotKind.LITERAL, value)


def address(value: int) -> Slot:
    return Slot(SlotKind.ADDRESS, value)


def temp_slot(name: str) -> Slot:
    return Slot(SlotKind.TEMP, temp=name)


T = temp_slot("$t")
E = temp_slot("$e")


@dataclass
class ExpandedTriple:
    """
    A primitive triple produced by expansion.

    Attributes:
        address: Address of the A cell
        a, b, c: Symbolic cells
        origin: Operation this triple came from
        index: Position within the operation's expansion
    """
    address: int
    a: Slot
    b: Slot
    c: Slot
    origin: Operation
    index: int = 0

    def resolve(self, symbols: SymbolTable) -> tuple[int, int, int]:
        """Lower to concrete cell values; the pool must be placed."""
        return (
            self.a.resolve(symbols),
            self.b.resolve(symbols),
            self.c.resolve(symbols),
        )

    def __str__(self) -> str:
        return f"subleq {self.a}, {self.b}, {self.c}"


@dataclass
class _Expansion:
    """Triples of one operation under construction."""
    base: int
    origin: Operation
    symbols: SymbolTable
    triples: list[ExpandedTriple] = field(default_factory=list)

    @property
    def next(self) -> Slot:
        """'$': the address right after the triple being emitted."""
        return address(self.base + TRIPLE_SIZE * (len(self.triples) + 1))

    def skip(self, triples: int) -> Slot:
        return address(self.next.value + TRIPLE_SIZE * triples)

    def emit(self, a: Slot, b: Slot, c: Slot) -> None:
        # Literals are interned in A, B, C order as triples are produced
        for slot in (a, b, c):
            if slot.kind == SlotKind.LITERAL:
                self.symbols.intern_literal(slot.value)
        self.triples.append(ExpandedTriple(
            self.base + TRIPLE_SIZE * len(self.triples),
            a, b, c, self.origin, len(self.triples),
        ))


# =============================================================================
# Macro Expander
# =============================================================================

class MacroExpander:
    """
    Expands operations into primitive triples.

    Usage:
        expander = MacroExpander(symbols)
        triples = expander.expand(operation, address)
    """

    def __init__(self, symbols: SymbolTable):
        self._symbols = symbols

    def expand(self, operation: Operation, base: int) -> list[ExpandedTriple]:
        """
        Expand one operation placed at ``base``.

        Args:
            operation: Parsed instruction or macro call
            base: Address assigned by pass 1

        Returns:
            Exactly expansion_size(operation) triples

        Raises:
            MacroError: Immediate used as a destination
            CompileTimeAddError: add_c with a non-immediate addend
            UndefinedSymbolError, ExpressionError: Operand evaluation
        """
        info = OPCODE_TABLE[operation.opcode]
        end = base + expansion_size(operation) * TRIPLE_SIZE
        slots = [
            self._lower_operand(operand, role, end)
            for operand, role in zip(operation.operands, info.roles)
        ]

        out = _Expansion(base, operation, self._symbols)
        getattr(self, f"_expand_{operation.opcode}")(out, *slots)
        return out.triples

    # =========================================================================
    # Operand Lowering
    # =========================================================================

    def _lower_operand(self, operand: Operand, role: OperandRole, pc: int) -> Slot | int:
        if operand.kind == OperandKind.TEMP:
            if role == OperandRole.ADDEND:
                raise CompileTimeAddError(str(operand), operand.location)
            return temp_slot(operand.temp)

        value = self._symbols.evaluator.evaluate(operand.expression, pc)

        if role == OperandRole.TARGET:
            return address(value)

        if operand.kind == OperandKind.IMMEDIATE:
            if role == OperandRole.WRITE:
                raise MacroError(
                    f"immediate '{operand}' cannot be a destination",
                    operand.location,
                    hint=f"write to a memory reference such as '[{operand}]'",
                )
            if role == OperandRole.ADDEND:
                return value
            return literal(value)

        if role == OperandRole.ADDEND:
            raise CompileTimeAddError(str(operand), operand.location)
        return address(value)

    # =========================================================================
    # Layer 0
    # =========================================================================

    def _expand_subleq(self, out: _Expansion, a: Slot, b: Slot, c: Slot) -> None:
        out.emit(a, b, c)

    # =========================================================================
    # Layer 1
    # =========================================================================

    def _expand_sub(self, out: _Expansion, dst: Slot, src: Slot) -> None:
        out.emit(src, dst, out.next)

    def _expand_hlt(self, out: _Expansion) -> None:
        out.emit(literal(0), literal(0), address(OUT_OF_BOUNDS))

    def _expand_jmp(self, out: _Expansion, target: Slot) -> None:
        out.emit(T, T, target)

    # =========================================================================
    # Layer 2
    # =========================================================================

    def _expand_mov(self, out: _Expansion, dst: Slot, src: Slot) -> None:
        out.emit(dst, dst, out.next)
        out.emit(src, T, out.next)
        out.emit(T, dst, out.next)
        out.emit(T, T, out.next)

    def _expand_add_c(self, out: _Expansion, dst: Slot, addend: int) -> None:
        negated = self._symbols.evaluator.wrap(-addend, out.origin.location)
        out.emit(literal(negated), dst, out.next)

    def _expand_add_r(self, out: _Expansion, dst: Slot, src: Slot) -> None:
        out.emit(src, T, out.next)
        out.emit(T, dst, out.next)
        out.emit(T, T, out.next)

    def _expand_add(self, out: _Expansion, dst: Slot, src: Slot) -> None:
        if src.kind == SlotKind.LITERAL:
            self._expand_add_c(out, dst, src.value)
        else:
            self._expand_add_r(out, dst, src)

    def _expand_je(self, out: _Expansion, a: Slot, b: Slot, target: Slot) -> None:
        out.emit(a, E, out.next)
        out.emit(E, T, out.next)
        out.emit(b, a, out.skip(1))
        out.emit(E, E, out.skip(1))
        out.emit(T, b, target)
