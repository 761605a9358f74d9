"""
Assembly Expression Trees and Evaluator
=======================================

This module parses compile-time expressions into small trees and folds them
to integers. Trees are kept (rather than evaluating while parsing) because
operands are parsed long before the addresses they mention are known: the
same tree is evaluated again after pass 1 has placed every label.

Supported Operations
--------------------
**Arithmetic:** + - * / %   (division truncates toward zero)
**Bitwise:**    & | ^ ~ << >>
**Unary:**      - + ~
**Special:**    $ - address of the next item (or of the next triple inside
                a macro expansion)

Operator precedence (lowest to highest):

1. Bitwise OR: |
2. Bitwise XOR: ^
3. Bitwise AND: &
4. Shift: << >>
5. Addition/Subtraction: + -
6. Multiplication/Division: * / %
7. Unary: + - ~
8. Primary: number, symbol, $, (grouped expression)

Overflow Policy
---------------
Every intermediate result is wrapped to a signed two's-complement integer
of the configured cell width, the same arithmetic the machine performs.
With ``strict_overflow=True`` an out-of-range result raises
ExpressionError instead.

Example Usage
-------------
>>> from subleq_sdk.assembler.lexer import tokenize
>>> from subleq_sdk.assembler.expressions import parse_expression, ExpressionEvaluator
>>> tree = parse_expression(tokenize("buffer + 10")[:-1])
>>> evaluator = ExpressionEvaluator()
>>> evaluator.set_symbol("buffer", 0x100)
>>> evaluator.evaluate(tree)
266
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Protocol

from subleq_sdk.errors import (
    ExpressionError,
    UndefinedSymbolError,
    SourceLocation,
)
from subleq_sdk.assembler.lexer import Token, TokenType


# =============================================================================
# Expression AST Nodes
# =============================================================================

class ExprNodeType(Enum):
    """Types of expression AST nodes."""
    NUMBER = auto()      # Literal number
    SYMBOL = auto()      # Symbol reference
    PC = auto()          # Address of the next item ($)
    BINARY_OP = auto()   # Binary operation (a + b)
    UNARY_OP = auto()    # Unary operation (-a, ~a)


@dataclass(frozen=True)
class ExprNode:
    """
    AST node for expression evaluation.

    Nodes are immutable so one tree can be shared by every evaluation of
    the operand it came from.
    """
    node_type: ExprNodeType
    value: int | str | None = None   # For NUMBER/SYMBOL
    operator: str | None = None      # For BINARY_OP/UNARY_OP
    left: Optional["ExprNode"] = None
    right: Optional["ExprNode"] = None
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        return format_expression(self)


def number(value: int, location: Optional[SourceLocation] = None) -> ExprNode:
    return ExprNode(ExprNodeType.NUMBER, value=value, location=location)


def symbol(name: str, location: Optional[SourceLocation] = None) -> ExprNode:
    return ExprNode(ExprNodeType.SYMBOL, value=name, location=location)


def current_address(location: Optional[SourceLocation] = None) -> ExprNode:
    return ExprNode(ExprNodeType.PC, location=location)


def binary(operator: str, left: ExprNode, right: ExprNode) -> ExprNode:
    return ExprNode(
        ExprNodeType.BINARY_OP,
        operator=operator,
        left=left,
        right=right,
        location=left.location,
    )


def format_expression(node: ExprNode) -> str:
    """Render a tree back to source-like text (fully parenthesized)."""
    match node.node_type:
        case ExprNodeType.NUMBER:
            return str(node.value)
        case ExprNodeType.SYMBOL:
            return str(node.value)
        case ExprNodeType.PC:
            return "$"
        case ExprNodeType.UNARY_OP:
            return f"{node.operator}{format_expression(node.left)}"
        case _:
            left = format_expression(node.left)
            right = format_expression(node.right)
            if node.left.node_type == ExprNodeType.BINARY_OP:
                left = f"({left})"
            if node.right.node_type == ExprNodeType.BINARY_OP:
                right = f"({right})"
            return f"{left}{node.operator}{right}"


def symbol_names(node: ExprNode) -> set[str]:
    """Collect every symbol name referenced by a tree."""
    if node.node_type == ExprNodeType.SYMBOL:
        return {node.value}
    names: set[str] = set()
    if node.left is not None:
        names |= symbol_names(node.left)
    if node.right is not None:
        names |= symbol_names(node.right)
    return names


def uses_current_address(node: ExprNode) -> bool:
    """True if the tree contains '$'."""
    if node.node_type == ExprNodeType.PC:
        return True
    return any(
        child is not None and uses_current_address(child)
        for child in (node.left, node.right)
    )


# =============================================================================
# Expression Parser
# =============================================================================

class ExpressionParser:
    """
    Recursive descent parser from a token slice to an ExprNode tree.

    The token slice must contain exactly one expression; leftover tokens
    are a syntax error.
    """

    BINARY_LEVELS: list[dict[TokenType, str]] = [
        {TokenType.PIPE: "|"},
        {TokenType.CARET: "^"},
        {TokenType.AMPERSAND: "&"},
        {TokenType.LSHIFT: "<<", TokenType.RSHIFT: ">>"},
        {TokenType.PLUS: "+", TokenType.MINUS: "-"},
        {TokenType.STAR: "*", TokenType.SLASH: "/", TokenType.PERCENT: "%"},
    ]

    UNARY_OPERATORS = {
        TokenType.MINUS: "-",
        TokenType.PLUS: "+",
        TokenType.TILDE: "~",
    }

    def __init__(self, tokens: list[Token], location: Optional[SourceLocation] = None):
        self._tokens = tokens
        self._pos = 0
        self._location = location

    def parse(self) -> ExprNode:
        if not self._tokens:
            raise ExpressionError("empty expression", self._location)

        node = self._parse_level(0)

        if self._pos < len(self._tokens):
            tok = self._tokens[self._pos]
            raise ExpressionError(
                f"unexpected token '{tok.value if tok.value is not None else tok.type.name}' in expression",
                tok.location,
            )
        return node

    def _current(self) -> Optional[Token]:
        if self._pos >= len(self._tokens):
            return None
        return self._tokens[self._pos]

    def _end_location(self) -> Optional[SourceLocation]:
        if self._tokens:
            return self._tokens[-1].location
        return self._location

    def _parse_level(self, level: int) -> ExprNode:
        if level == len(self.BINARY_LEVELS):
            return self._parse_unary()

        operators = self.BINARY_LEVELS[level]
        left = self._parse_level(level + 1)

        while (tok := self._current()) is not None and tok.type in operators:
            self._pos += 1
            right = self._parse_level(level + 1)
            left = binary(operators[tok.type], left, right)

        return left

    def _parse_unary(self) -> ExprNode:
        tok = self._current()
        if tok is not None and tok.type in self.UNARY_OPERATORS:
            self._pos += 1
            operand = self._parse_unary()
            return ExprNode(
                ExprNodeType.UNARY_OP,
                operator=self.UNARY_OPERATORS[tok.type],
                left=operand,
                location=tok.location,
            )
        return self._parse_primary()

    def _parse_primary(self) -> ExprNode:
        tok = self._current()
        if tok is None:
            raise ExpressionError("unexpected end of expression", self._end_location())

        if tok.type == TokenType.NUMBER:
            self._pos += 1
            return number(tok.value, tok.location)

        if tok.type == TokenType.IDENTIFIER:
            self._pos += 1
            return symbol(tok.value, tok.location)

        if tok.type == TokenType.DOLLAR:
            self._pos += 1
            return current_address(tok.location)

        if tok.type == TokenType.LPAREN:
            self._pos += 1
            node = self._parse_level(0)
            closing = self._current()
            if closing is None or closing.type != TokenType.RPAREN:
                raise ExpressionError(
                    "expected ')' to close expression",
                    closing.location if closing else self._end_location(),
                )
            self._pos += 1
            return node

        if tok.type == TokenType.TEMP:
            raise ExpressionError(
                f"temp field '{tok.value}' cannot be used inside an expression",
                tok.location,
                hint=f"use '{tok.value}' as a whole operand",
            )

        raise ExpressionError(
            f"expected value, got '{tok.value if tok.value is not None else tok.type.name}'",
            tok.location,
        )


def parse_expression(tokens: list[Token], location: Optional[SourceLocation] = None) -> ExprNode:
    """Parse a token slice holding one expression."""
    return ExpressionParser(tokens, location).parse()


# =============================================================================
# Expression Evaluator
# =============================================================================

class SymbolResolver(Protocol):
    """Anything that can turn a symbol name into its value."""

    def value_of(self, name: str, location: Optional[SourceLocation] = None) -> int:
        ...


class ExpressionEvaluator:
    """
    Folds expression trees to integers.

    Symbols come from an optional resolver (normally the SymbolTable) and
    from values set directly with set_symbol(), which take precedence.

    Attributes:
        cell_bits: Width of the signed cells results are wrapped to
        strict_overflow: Raise instead of wrapping out-of-range results
    """

    def __init__(
        self,
        symbols: Optional[SymbolResolver] = None,
        cell_bits: int = 64,
        strict_overflow: bool = False,
    ):
        if cell_bits < 2:
            raise ValueError(f"cell width must be at least 2 bits, got {cell_bits}")
        self._resolver = symbols
        self._values: dict[str, int] = {}
        self.cell_bits = cell_bits
        self.strict_overflow = strict_overflow
        self._modulus = 1 << cell_bits
        self.min_value = -(1 << (cell_bits - 1))
        self.max_value = (1 << (cell_bits - 1)) - 1

    # =========================================================================
    # Symbol Management
    # =========================================================================

    def set_symbol(self, name: str, value: int) -> None:
        self._values[name] = self.wrap(value)

    # =========================================================================
    # Arithmetic Policy
    # =========================================================================

    def wrap(self, value: int, location: Optional[SourceLocation] = None) -> int:
        """
        Bring a value into the signed cell range.

        Raises:
            ExpressionError: In strict mode, when the value is out of range
        """
        if self.min_value <= value <= self.max_value:
            return value
        if self.strict_overflow:
            raise ExpressionError(
                f"value {value} overflows a {self.cell_bits}-bit cell",
                location,
            )
        value %= self._modulus
        if value > self.max_value:
            value -= self._modulus
        return value

    # =========================================================================
    # Main Evaluation Interface
    # =========================================================================

    def evaluate(self, node: ExprNode, pc: Optional[int] = None) -> int:
        """
        Evaluate a tree.

        Args:
            node: Expression tree
            pc: Value of '$'; None when '$' is not meaningful here

        Raises:
            ExpressionError: Division by zero, overflow (strict), bad '$'
            UndefinedSymbolError: A referenced symbol has no definition
        """
        match node.node_type:
            case ExprNodeType.NUMBER:
                return self.wrap(node.value, node.location)

            case ExprNodeType.SYMBOL:
                return self._resolve_symbol(node.value, node.location)

            case ExprNodeType.PC:
                if pc is None:
                    raise ExpressionError("'$' is not available in this context", node.location)
                return pc

            case ExprNodeType.UNARY_OP:
                operand = self.evaluate(node.left, pc)
                if node.operator == "-":
                    return self.wrap(-operand, node.location)
                if node.operator == "~":
                    return self.wrap(~operand, node.location)
                return operand

            case ExprNodeType.BINARY_OP:
                left = self.evaluate(node.left, pc)
                right = self.evaluate(node.right, pc)
                return self.wrap(self._apply(node.operator, left, right, node.location), node.location)

        raise ExpressionError(f"unknown expression node {node.node_type}", node.location)

    def _apply(self, op: str, left: int, right: int, location: Optional[SourceLocation]) -> int:
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op in ("/", "%"):
            if right == 0:
                raise ExpressionError("division by zero", location)
            quotient = abs(left) // abs(right)
            if (left < 0) != (right < 0):
                quotient = -quotient
            return quotient if op == "/" else left - right * quotient
        if op == "&":
            return left & right
        if op == "|":
            return left | right
        if op == "^":
            return left ^ right
        if op in ("<<", ">>"):
            if right < 0:
                raise ExpressionError(f"negative shift count {right}", location)
            if op == "<<":
                return left << min(right, self.cell_bits)
            return left >> right
        raise ExpressionError(f"unknown operator '{op}'", location)

    def _resolve_symbol(self, name: str, location: Optional[SourceLocation]) -> int:
        if name in self._values:
            return self._values[name]

        if self._resolver is not None:
            return self._resolver.value_of(name, location)

        raise UndefinedSymbolError(
            name,
            location=location,
            similar_symbols=find_similar_symbols(name, self._values),
        )


# =============================================================================
# Typo Suggestions
# =============================================================================

def find_similar_symbols(name: str, candidates) -> list[str]:
    """
    Find symbols with similar names for error hints.

    Uses a simple edit distance heuristic; at most 3 suggestions.
    """
    name_lower = name.lower()
    similar = []

    for sym in candidates:
        sym_lower = sym.lower()
        if (
            sym_lower == name_lower or
            abs(len(sym) - len(name)) <= 1 and
            _edit_distance(name_lower, sym_lower) <= 2
        ):
            similar.append(sym)

    return sorted(similar)[:3]


def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]
