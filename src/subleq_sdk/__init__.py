"""
SUBLEQ SDK - Layered Macro-Assembler and Interpreter
====================================================

This package provides a toolchain for the one-instruction machine SUBLEQ
("subtract and branch if less than or equal to zero"). Source written with
labels, constants, data directives and layered macros is lowered into a
flat image of primitive triples that the reference interpreter executes.

Main Components
---------------
- **assembler**: two-pass macro-assembler (slasm)
    Converts assembly source (.sasm) into a program image

- **emulator**: reference interpreter (slrun)
    Runs images with breakpoints, watchpoints and step limits

Quick Start
-----------
Assemble and run a program:
    >>> from subleq_sdk import Assembler, Machine
    >>> image = Assembler().assemble_file("count.sasm")
    >>> machine = Machine(image, memory_size=256)
    >>> event = machine.run(100_000)
    >>> print(event)

Or use the command-line tools:
    $ slasm count.sasm -o count.words -l count.lst
    $ slrun count.words --memory-size 256 --dump 0:32

Version History
---------------
1.0.0 - Initial release with assembler, emulator and CLI tools
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from subleq_sdk.assembler import (
    Assembler,
    AssemblerConfig,
    ProgramImage,
    Emitter,
    assemble,
    assemble_file,
)
from subleq_sdk.emulator import Machine, StopEvent, StopReason
from subleq_sdk.errors import (
    SubleqError,
    SourceLocation,
    AssemblerError,
    AssemblySyntaxError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    ExpressionError,
    DirectiveError,
    MacroError,
    CompileTimeAddError,
    MemoryOverflowError,
    MachineError,
)

__all__ = [
    # Version info
    "__version__",
    # Assembler
    "Assembler",
    "AssemblerConfig",
    "ProgramImage",
    "Emitter",
    "assemble",
    "assemble_file",
    # Emulator
    "Machine",
    "StopEvent",
    "StopReason",
    # Exception hierarchy
    "SubleqError",
    "SourceLocation",
    "AssemblerError",
    "AssemblySyntaxError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "ExpressionError",
    "DirectiveError",
    "MacroError",
    "CompileTimeAddError",
    "MemoryOverflowError",
    "MachineError",
]
