"""
SUBLEQ Instruction and Macro Set Definition
===========================================

The machine has one instruction:

    subleq A, B, C      [B] <- [B] - [A]; if [B] <= 0 then pc <- C else pc <- pc + 3

Every other opcode is a macro that expands to a statically fixed number of
subleq triples, whatever its operand values. The fixed size is what lets
pass 1 assign every address before any macro is expanded.

Operand Roles
-------------
Each operand slot has a role that decides how its syntax is lowered:

| Role   | `[expr]` / `$t`      | bare immediate                 |
|--------|----------------------|--------------------------------|
| READ   | that cell            | virtual literal cell           |
| WRITE  | that cell            | error (would overwrite a pool) |
| TARGET | the address `expr`   | the address itself             |
| ADDEND | error (add_c only)   | folded into a literal slot     |

Macro operand order is destination first (``mov dst, src``); the primitive
keeps machine order (``subleq A, B, C``).

Layers
------
| Layer | Opcodes                 |
|-------|-------------------------|
| 0     | subleq                  |
| 1     | sub hlt jmp             |
| 2     | mov add_c add_r add je  |
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# Jump target used by hlt; any address outside memory halts the machine
OUT_OF_BOUNDS = -1

# Cells per triple
TRIPLE_SIZE = 3


class OperandRole(Enum):
    """How an operand slot treats immediates and memory references."""
    READ = auto()
    WRITE = auto()
    TARGET = auto()
    ADDEND = auto()


@dataclass(frozen=True)
class OpcodeInfo:
    """
    Static description of one opcode.

    Attributes:
        name: Lowercase mnemonic
        roles: Role of each operand, in source order
        triples: Expansion size in triples; None when it depends on the
                 operand kind (see immediate_triples/memory_triples)
        layer: Macro layer (0 is the primitive)
        description: One-line summary for listings and help text
    """
    name: str
    roles: tuple[OperandRole, ...]
    triples: Optional[int]
    layer: int
    description: str
    immediate_triples: int = 0
    memory_triples: int = 0

    @property
    def arity(self) -> int:
        return len(self.roles)

    @property
    def is_primitive(self) -> bool:
        return self.layer == 0


OPCODE_TABLE: dict[str, OpcodeInfo] = {
    "subleq": OpcodeInfo(
        "subleq",
        (OperandRole.READ, OperandRole.READ, OperandRole.TARGET),
        1, 0, "[B] -= [A]; branch to C if [B] <= 0",
    ),
    "sub": OpcodeInfo(
        "sub",
        (OperandRole.WRITE, OperandRole.READ),
        1, 1, "[dst] -= [src]",
    ),
    "hlt": OpcodeInfo("hlt", (), 1, 1, "halt by jumping out of memory"),
    "jmp": OpcodeInfo("jmp", (OperandRole.TARGET,), 1, 1, "unconditional jump"),
    "mov": OpcodeInfo(
        "mov",
        (OperandRole.WRITE, OperandRole.READ),
        4, 2, "[dst] = [src]",
    ),
    "add_c": OpcodeInfo(
        "add_c",
        (OperandRole.WRITE, OperandRole.ADDEND),
        1, 2, "[dst] += immediate, folded at compile time",
    ),
    "add_r": OpcodeInfo(
        "add_r",
        (OperandRole.WRITE, OperandRole.READ),
        3, 2, "[dst] += [src] at run time",
    ),
    "add": OpcodeInfo(
        "add",
        (OperandRole.WRITE, OperandRole.READ),
        None, 2, "add_c for immediates, add_r otherwise",
        immediate_triples=1,
        memory_triples=3,
    ),
    "je": OpcodeInfo(
        "je",
        (OperandRole.READ, OperandRole.READ, OperandRole.TARGET),
        5, 2, "jump to target if [a] == [b]",
    ),
}


def get_opcode_info(name: str) -> Optional[OpcodeInfo]:
    """Look up an opcode (case-insensitive)."""
    return OPCODE_TABLE.get(name.lower())
