"""
SUBLEQ Layered Macro-Assembler
==============================

This module turns SUBLEQ assembly source into a flat image of primitive
triples that a machine knowing only ``subleq`` executes directly.

Main Components
---------------
- **Assembler**: Main class that orchestrates the assembly process
- **Lexer**: Tokenizes assembly source into tokens
- **Parser**: Parses tokens into statements (triples, macros, directives, labels)
- **SymbolTable**: Labels, constants, the virtual literal pool and temp fields
- **LayoutResolver**: Pass 1, address assignment
- **MacroExpander**: Pass 2, macro expansion into primitive triples
- **Emitter**: Serializes the finished ProgramImage
- **ExpressionEvaluator**: Folds compile-time expressions

Assembly Process
----------------
1. **Parsing (Lexer + Parser)**: tokens, then one statement per item.

2. **Pass 1 (LayoutResolver)**: every macro has a fixed expansion size, so
   every item's address is known before anything is expanded.

3. **Pass 2 (MacroExpander)**: operands are evaluated, macros become
   triples and compile-time values used as memory operands are interned
   in the literal pool. The pool and the temp fields $t, $e, $r are
   then placed after all items.

Example Usage
-------------
>>> from subleq_sdk.assembler import Assembler
>>> image = Assembler().assemble('''
... loop:  sub [30], 1
...        hlt
... ''')
>>> image.cells[:3]
[6, 30, 3]

Layers
------
- Layer 0: subleq
- Layer 1: sub, hlt, jmp
- Layer 2: mov, add_c, add_r, add, je
"""

from subleq_sdk.assembler.assembler import (
    Assembler,
    AssemblerConfig,
    assemble,
    assemble_file,
)
from subleq_sdk.assembler.lexer import Lexer, Token, TokenType
from subleq_sdk.assembler.parser import (
    Parser,
    Statement,
    Instruction,
    MacroCall,
    Directive,
    LabelDef,
    Operand,
    OperandKind,
    parse_source,
)
from subleq_sdk.assembler.symbols import SymbolTable, SymbolKind, LiteralPool, TEMP_FIELDS
from subleq_sdk.assembler.layout import LayoutResolver, Layout, expansion_size
from subleq_sdk.assembler.macros import MacroExpander, ExpandedTriple
from subleq_sdk.assembler.emitter import Emitter, ProgramImage, read_image, FORMATS
from subleq_sdk.assembler.opcodes import OPCODE_TABLE, OUT_OF_BOUNDS, get_opcode_info
from subleq_sdk.assembler.expressions import ExpressionEvaluator

__all__ = [
    # Main class and functions
    "Assembler",
    "AssemblerConfig",
    "assemble",
    "assemble_file",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    # Parser
    "Parser",
    "Statement",
    "Instruction",
    "MacroCall",
    "Directive",
    "LabelDef",
    "Operand",
    "OperandKind",
    "parse_source",
    # Symbols
    "SymbolTable",
    "SymbolKind",
    "LiteralPool",
    "TEMP_FIELDS",
    # Passes
    "LayoutResolver",
    "Layout",
    "expansion_size",
    "MacroExpander",
    "ExpandedTriple",
    # Output
    "Emitter",
    "ProgramImage",
    "read_image",
    "FORMATS",
    # Opcodes
    "OPCODE_TABLE",
    "OUT_OF_BOUNDS",
    "get_opcode_info",
    # Expressions
    "ExpressionEvaluator",
]
