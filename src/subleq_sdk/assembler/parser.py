"""
SUBLEQ Assembly Language Parser
===============================

This module converts the lexer's token stream into an ordered list of
statements. Each source line yields at most one item (plus an optional
label in front of it); comments and blank lines yield nothing.

Statement Types
---------------
1. **LabelDef**: Label definition
   ```asm
   loop:
   ```

2. **Instruction**: Primitive triple
   ```asm
   subleq [x], [y], $
   ```

3. **MacroCall**: Higher-layer pseudo-instruction
   ```asm
   mov [dst], [src]
   add [count], 1
   je [a], [b], done
   ```

4. **Directive**: Data, reserve or constant directive
   ```asm
   msg:  db "hi", 0
   buf:  resw 4
   size: equ 16
   def limit, size * 2
   ```

Operand Forms
-------------
| Syntax       | Kind      | Example          |
|--------------|-----------|------------------|
| `[expr]`     | MEMORY    | `[count]`, `[30]`|
| `$t $e $r`   | TEMP      | `$t`             |
| `expr`       | IMMEDIATE | `5`, `loop`, `$` |

Opcodes and directives are case-insensitive; symbol names are
case-sensitive.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from subleq_sdk.errors import (
    AssemblySyntaxError,
    ExpressionError,
    MacroError,
    SourceLocation,
)
from subleq_sdk.assembler.lexer import Token, TokenType, Lexer
from subleq_sdk.assembler.expressions import ExprNode, parse_expression
from subleq_sdk.assembler.opcodes import OperandRole, get_opcode_info


# =============================================================================
# Operands
# =============================================================================

class OperandKind(Enum):
    """Syntactic operand kinds."""
    IMMEDIATE = auto()   # compile-time value
    MEMORY = auto()      # [expr]
    TEMP = auto()        # $t, $e, $r


@dataclass(frozen=True)
class Operand:
    """
    One instruction operand.

    Attributes:
        kind: Immediate value, memory reference or temp field
        expression: Value or address expression (None for TEMP)
        temp: Temp field name for TEMP operands ("$t", "$e", "$r")
        location: Where the operand starts
    """
    kind: OperandKind
    expression: Optional[ExprNode] = None
    temp: Optional[str] = None
    location: Optional[SourceLocation] = None

    @property
    def is_immediate(self) -> bool:
        return self.kind == OperandKind.IMMEDIATE

    def __str__(self) -> str:
        if self.kind == OperandKind.TEMP:
            return self.temp
        if self.kind == OperandKind.MEMORY:
            return f"[{self.expression}]"
        return str(self.expression)


def immediate(expression: ExprNode) -> Operand:
    return Operand(OperandKind.IMMEDIATE, expression=expression, location=expression.location)


def memory(expression: ExprNode) -> Operand:
    return Operand(OperandKind.MEMORY, expression=expression, location=expression.location)


def temp(name: str, location: Optional[SourceLocation] = None) -> Operand:
    return Operand(OperandKind.TEMP, temp=name, location=location)


# =============================================================================
# Statement Data Classes
# =============================================================================

@dataclass
class Statement:
    """Base class for all parsed statements."""
    location: SourceLocation


@dataclass
class LabelDef(Statement):
    """Label definition; takes the address of the next item."""
    name: str


@dataclass
class Operation(Statement):
    """
    Common shape of primitive triples and macro invocations.

    Attributes:
        opcode: Lowercase mnemonic
        operands: Parsed operands, in source order
    """
    opcode: str
    operands: list[Operand] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.operands:
            return self.opcode
        return f"{self.opcode} " + ", ".join(str(op) for op in self.operands)


@dataclass
class Instruction(Operation):
    """Primitive subleq triple."""
    pass


@dataclass
class MacroCall(Operation):
    """Macro invocation, replaced by primitive triples in pass 2."""
    pass


class DirectiveKind(Enum):
    DATA = auto()        # db dw dd dq
    RESERVE = auto()     # resb resw resd resq
    CONSTANT = auto()    # equ def


@dataclass
class Directive(Statement):
    """
    Assembler directive.

    Attributes:
        name: Directive name (lowercase)
        kind: DATA, RESERVE or CONSTANT
        width_bits: Declared value width for DATA/RESERVE
        values: DATA values; bytes for string literals
        count: RESERVE cell count
        symbol: CONSTANT name
        expression: CONSTANT value
    """
    name: str
    kind: DirectiveKind
    width_bits: int = 0
    values: list[ExprNode | bytes] = field(default_factory=list)
    count: Optional[ExprNode] = None
    symbol: Optional[str] = None
    expression: Optional[ExprNode] = None


# =============================================================================
# Directive Names
# =============================================================================

DATA_DIRECTIVES = {"db": 8, "dw": 16, "dd": 32, "dq": 64}
RESERVE_DIRECTIVES = {"resb": 8, "resw": 16, "resd": 32, "resq": 64}
CONSTANT_DIRECTIVES = frozenset({"equ", "def"})

ALL_DIRECTIVES = frozenset(DATA_DIRECTIVES) | frozenset(RESERVE_DIRECTIVES) | CONSTANT_DIRECTIVES


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses SUBLEQ assembly tokens into statements.

    Usage:
        tokens = list(Lexer(source, filename).tokenize())
        statements = Parser(tokens, filename).parse()
    """

    def __init__(self, tokens: list[Token], filename: str = "<input>"):
        self._tokens = tokens
        self._filename = filename
        self._pos = 0

    def parse(self) -> list[Statement]:
        """
        Parse all tokens into statements.

        Raises:
            AssemblySyntaxError: On the first syntax error
            MacroError: On an opcode used with the wrong operand count
        """
        statements: list[Statement] = []

        while not self._at_end():
            if self._match(TokenType.NEWLINE):
                continue
            statements.extend(self._parse_line())

        return statements

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self._tokens) or self._current().type == TokenType.EOF

    def _current(self) -> Token:
        if self._pos >= len(self._tokens):
            last = self._tokens[-1] if self._tokens else None
            return Token(
                TokenType.EOF, None,
                last.line if last else 1,
                last.column if last else 1,
                last.filename if last else self._filename,
            )
        return self._tokens[self._pos]

    def _peek(self, offset: int = 0) -> Token:
        pos = self._pos + offset
        if pos >= len(self._tokens):
            return self._current()
        return self._tokens[pos]

    def _advance(self) -> Token:
        token = self._current()
        self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _at_line_end(self) -> bool:
        return self._check(TokenType.NEWLINE, TokenType.EOF)

    def _expect_line_end(self) -> None:
        if not self._at_line_end():
            tok = self._current()
            raise AssemblySyntaxError(
                f"unexpected '{tok.value if tok.value is not None else tok.type.name}' at end of line",
                tok.location,
            )
        self._match(TokenType.NEWLINE)

    # =========================================================================
    # Line Parsing
    # =========================================================================

    def _parse_line(self) -> list[Statement]:
        statements: list[Statement] = []
        label: Optional[Token] = None

        # "name:" label
        if self._check(TokenType.IDENTIFIER) and self._peek(1).type == TokenType.COLON:
            label = self._advance()
            self._advance()  # consume colon

        # "name equ expr" without a colon
        if (label is None and self._check(TokenType.IDENTIFIER)
                and self._peek(1).type == TokenType.IDENTIFIER
                and str(self._peek(1).value).lower() in CONSTANT_DIRECTIVES):
            label = self._advance()

        if self._at_line_end():
            if label is not None:
                statements.append(LabelDef(label.location, label.value))
            self._match(TokenType.NEWLINE)
            return statements

        if not self._check(TokenType.IDENTIFIER):
            tok = self._current()
            raise AssemblySyntaxError(
                f"expected opcode or directive, got '{tok.value if tok.value is not None else tok.type.name}'",
                tok.location,
            )

        name = str(self._current().value).lower()

        if name in CONSTANT_DIRECTIVES:
            statements.append(self._parse_constant(label))
        else:
            if label is not None:
                statements.append(LabelDef(label.location, label.value))
            if get_opcode_info(name) is not None:
                statements.append(self._parse_operation())
            elif name in ALL_DIRECTIVES:
                statements.append(self._parse_directive())
            else:
                raise AssemblySyntaxError(
                    f"unknown opcode or directive '{self._current().value}'",
                    self._current().location,
                )

        self._expect_line_end()
        return statements

    # =========================================================================
    # Operations
    # =========================================================================

    def _parse_operation(self) -> Operation:
        opcode_token = self._advance()
        opcode = str(opcode_token.value).lower()
        info = get_opcode_info(opcode)

        operands: list[Operand] = []
        if not self._at_line_end():
            operands.append(self._parse_operand())
            while self._match(TokenType.COMMA):
                operands.append(self._parse_operand())

        if len(operands) != info.arity:
            raise MacroError(
                f"'{opcode}' takes {info.arity} operand{'s' if info.arity != 1 else ''}, "
                f"got {len(operands)}",
                opcode_token.location,
            )

        for operand, role in zip(operands, info.roles):
            if operand.kind == OperandKind.TEMP and role == OperandRole.TARGET:
                raise MacroError(
                    f"temp field '{operand.temp}' cannot be a jump target",
                    operand.location,
                )

        cls = Instruction if info.is_primitive else MacroCall
        return cls(location=opcode_token.location, opcode=opcode, operands=operands)

    def _parse_operand(self) -> Operand:
        start = self._current()

        if start.type == TokenType.TEMP:
            self._advance()
            return temp(start.value, start.location)

        if start.type == TokenType.LBRACKET:
            self._advance()
            tokens = self._collect_until(TokenType.RBRACKET)
            if not self._match(TokenType.RBRACKET):
                raise AssemblySyntaxError("expected ']' to close memory reference", self._current().location)
            if not tokens:
                raise AssemblySyntaxError("empty memory reference", start.location)
            if len(tokens) == 1 and tokens[0].type == TokenType.TEMP:
                return temp(tokens[0].value, start.location)
            return Operand(
                OperandKind.MEMORY,
                expression=self._expression(tokens, start.location),
                location=start.location,
            )

        tokens = self._collect_until(TokenType.COMMA)
        if not tokens:
            raise AssemblySyntaxError("missing operand", start.location)
        return Operand(
            OperandKind.IMMEDIATE,
            expression=self._expression(tokens, start.location),
            location=start.location,
        )

    def _collect_until(self, stop: TokenType) -> list[Token]:
        """Collect tokens up to ``stop`` at bracket depth 0, or end of line."""
        tokens = []
        depth = 0

        while not self._at_line_end():
            tok = self._current()
            if tok.type == stop and depth == 0:
                break
            if tok.type in (TokenType.LPAREN, TokenType.LBRACKET):
                depth += 1
            elif tok.type in (TokenType.RPAREN, TokenType.RBRACKET):
                if depth == 0:
                    break
                depth -= 1
            tokens.append(self._advance())

        return tokens

    def _expression(self, tokens: list[Token], location: SourceLocation) -> ExprNode:
        try:
            return parse_expression(tokens, location)
        except ExpressionError as e:
            # Malformed operands are syntax errors
            raise AssemblySyntaxError(e.message, e.location, hint=e.hint) from e

    # =========================================================================
    # Directives
    # =========================================================================

    def _parse_directive(self) -> Directive:
        name_token = self._advance()
        name = str(name_token.value).lower()
        location = name_token.location

        if name in DATA_DIRECTIVES:
            values: list[ExprNode | bytes] = []
            for tokens in self._parse_comma_separated_args(location):
                if len(tokens) == 1 and tokens[0].type == TokenType.STRING:
                    values.append(tokens[0].value.encode("utf-8"))
                else:
                    values.append(self._expression(tokens, tokens[0].location))
            if not values:
                raise AssemblySyntaxError(f"'{name}' requires at least one value", location)
            if name != "db" and any(isinstance(v, bytes) for v in values):
                raise AssemblySyntaxError(
                    f"string literals are only allowed in 'db', not '{name}'",
                    location,
                )
            return Directive(location, name, DirectiveKind.DATA,
                             width_bits=DATA_DIRECTIVES[name], values=values)

        args = self._parse_comma_separated_args(location)
        if len(args) != 1:
            raise AssemblySyntaxError(f"'{name}' requires exactly one count", location)
        return Directive(location, name, DirectiveKind.RESERVE,
                         width_bits=RESERVE_DIRECTIVES[name],
                         count=self._expression(args[0], location))

    def _parse_constant(self, label: Optional[Token]) -> Directive:
        """
        Parse 'name: equ expr', 'name equ expr' or 'def name, expr'.
        """
        name_token = self._advance()
        name = str(name_token.value).lower()
        location = name_token.location

        if label is None:
            if not self._check(TokenType.IDENTIFIER):
                raise AssemblySyntaxError(f"'{name}' requires a symbol name", location)
            label = self._advance()
            if not self._match(TokenType.COMMA):
                raise AssemblySyntaxError(f"expected ',' after '{label.value}'", self._current().location)

        tokens = self._collect_until(TokenType.NEWLINE)
        if not tokens:
            raise AssemblySyntaxError(f"'{name}' requires a value", location)

        return Directive(
            label.location,
            name,
            DirectiveKind.CONSTANT,
            symbol=label.value,
            expression=self._expression(tokens, tokens[0].location),
        )

    def _parse_comma_separated_args(self, location: SourceLocation) -> list[list[Token]]:
        args: list[list[Token]] = []
        current: list[Token] = []
        depth = 0

        while not self._at_line_end():
            tok = self._current()

            if tok.type == TokenType.COMMA and depth == 0:
                if not current:
                    raise AssemblySyntaxError("empty argument", tok.location)
                args.append(current)
                current = []
                self._advance()
                continue

            if tok.type in (TokenType.LPAREN, TokenType.LBRACKET):
                depth += 1
            elif tok.type in (TokenType.RPAREN, TokenType.RBRACKET):
                depth -= 1

            current.append(self._advance())

        if current:
            args.append(current)
        elif args:
            raise AssemblySyntaxError("trailing ',' in argument list", location)

        return args


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> list[Statement]:
    """Tokenize and parse a source string."""
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, filename).parse()
