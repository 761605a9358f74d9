"""
SUBLEQ SDK Error Hierarchy
==========================

This module defines the exception hierarchy for the entire SUBLEQ SDK.
All exceptions inherit from SubleqError, allowing callers to catch all
SDK-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
SubleqError (base)
├── AssemblerError (assembler-related)
│   ├── AssemblySyntaxError - lexical and syntax errors in source
│   ├── UndefinedSymbolError - reference to undefined label/constant
│   ├── DuplicateSymbolError - symbol defined multiple times
│   ├── ExpressionError - error evaluating expression
│   ├── DirectiveError - error in data/reserve/constant directive
│   ├── MacroError - wrong arity or operand kind for a macro
│   │   └── CompileTimeAddError - add_c applied to a runtime value
│   └── MemoryOverflowError - image larger than the configured bound
└── MachineError (reference interpreter configuration)

Design Philosophy
-----------------
Each exception captures source location information (filename, line, column)
when applicable. Error messages follow this format:

    filename:line:column: error: description
        source_line_text
        ^
    hint: suggestion for fixing (when available)

Every assembler error is fatal: assembly stops at the first one and no
partial image is produced. Halting the interpreter is a normal stop, not
an error.
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class SubleqError(Exception):
    """
    Base exception for all SUBLEQ SDK errors.

        try:
            Assembler().assemble_file("program.sasm")
        except SubleqError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(SubleqError):
    """
    Base exception for all assembler-related errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            loop.sasm:4:9: error: undefined symbol 'cuont'
                add [cuont], 1
                    ^
            hint: did you mean 'count'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def with_source_line(self, source_line: str) -> "AssemblerError":
        """Attach the offending source text after the fact and reformat."""
        self.source_line = source_line
        self.args = (self._format_message(),)
        return self


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Raised when the lexer or parser encounters text that cannot be
    tokenized or parsed according to the grammar.

    Examples:
        - Invalid character in source
        - Unterminated string literal in a db directive
        - Unknown opcode or directive
        - Malformed operand (missing ']', stray tokens)
    """
    pass


class UndefinedSymbolError(AssemblerError):
    """
    Reference to an undefined symbol (label or constant).

    Raised when an expression is folded and one of its names has no
    definition anywhere in the compilation unit. Similar names are
    suggested to help catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined multiple times.

    Includes information about the original definition location
    when available.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ExpressionError(AssemblerError):
    """
    Error evaluating an expression.

    Raised when a compile-time expression cannot be folded:
    - Division or modulo by zero
    - Result outside the cell width (strict overflow mode only)
    - Circular constant definitions
    - Malformed expression syntax
    """
    pass


class DirectiveError(AssemblerError):
    """
    Error in a data, reserve or constant directive.

    Examples:
        - db value that does not fit in 8 bits
        - resw with a negative count
        - dq on a 32-bit cell configuration
    """
    pass


class MacroError(AssemblerError):
    """
    Semantic error in a macro invocation.

    Raised when:
    - A macro is given the wrong number of operands
    - An immediate is used where the macro writes to memory
    """
    pass


class CompileTimeAddError(MacroError):
    """
    add_c used with an operand that is not a virtual literal.

    add_c folds its addend into a pool slot at compile time, which is only
    possible when the addend is an immediate. Use add_r (or plain add) for
    a value held in memory.
    """

    def __init__(
        self,
        operand: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.operand = operand
        super().__init__(
            f"add_c requires an immediate operand, got memory reference '{operand}'",
            location=location,
            hint="use 'add_r' or 'add' for runtime values",
            source_line=source_line,
        )


class MemoryOverflowError(AssemblerError):
    """
    Program image exceeds the configured size bound.

    The size includes code, data, the virtual-literal pool and the
    three temp fields.
    """

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"program image needs {size} cells, limit is {limit}",
            hint="raise max_image_size or shrink the program",
        )


# =============================================================================
# Interpreter Exceptions
# =============================================================================

class MachineError(SubleqError):
    """
    Invalid reference interpreter setup.

    Raised for configuration problems such as a memory size smaller than
    the loaded image. Running off the end of memory is not an error; it is
    how programs halt.
    """
    pass
