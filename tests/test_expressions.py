# =============================================================================
# test_expressions.py - Expression Evaluator Unit Tests
# =============================================================================
# Tests for the SUBLEQ assembler expression parser and evaluator.
#
# Test coverage includes:
#   - Simple values and operator precedence
#   - Bitwise and shift operations
#   - Truncating division and division by zero
#   - Wrapping versus strict overflow policy
#   - Symbol references and '$'
#   - Malformed expressions
# =============================================================================

import pytest
from subleq_sdk.assembler.expressions import (
    ExpressionEvaluator,
    ExprNodeType,
    find_similar_symbols,
    format_expression,
    parse_expression,
    symbol_names,
    uses_current_address,
)
from subleq_sdk.assembler.lexer import tokenize
from subleq_sdk.errors import ExpressionError, UndefinedSymbolError


# =============================================================================
# Helper Functions
# =============================================================================

def parse(expr_str: str):
    """Parse an expression string (dropping the EOF token)."""
    return parse_expression(tokenize(expr_str)[:-1])


def evaluate(
    expr_str: str,
    symbols: dict = None,
    pc: int = None,
    cell_bits: int = 64,
    strict: bool = False,
) -> int:
    """
    Helper to evaluate an expression string.

    Args:
        expr_str: The expression string to evaluate (e.g., "1+2", "0xFF & 0x0F")
        symbols: Optional dict of symbol names to values
        pc: Optional value of '$'
        cell_bits: Cell width results are wrapped to
        strict: Raise on overflow instead of wrapping
    """
    evaluator = ExpressionEvaluator(cell_bits=cell_bits, strict_overflow=strict)
    for name, value in (symbols or {}).items():
        evaluator.set_symbol(name, value)
    return evaluator.evaluate(parse(expr_str), pc)


# =============================================================================
# Simple Value Tests
# =============================================================================

class TestSimpleValues:
    """Test evaluation of simple values."""

    def test_decimal_number(self):
        assert evaluate("42") == 42

    def test_hex_number(self):
        assert evaluate("0xFF") == 255

    def test_char_literal(self):
        assert evaluate("'a'") == 97

    def test_negative_number(self):
        assert evaluate("-16") == -16

    def test_parenthesized(self):
        assert evaluate("(7)") == 7


# =============================================================================
# Operator Precedence Tests
# =============================================================================

class TestPrecedence:
    """Test operator precedence and associativity."""

    def test_multiplication_before_addition(self):
        assert evaluate("2 + 3 * 4") == 14

    def test_parentheses_override(self):
        assert evaluate("(2 + 3) * 4") == 20

    def test_left_associative_subtraction(self):
        assert evaluate("10 - 3 - 2") == 5

    def test_shift_below_addition(self):
        assert evaluate("1 << 2 + 1") == 8

    def test_and_below_shift(self):
        assert evaluate("0xF0 & 1 << 4") == 0x10

    def test_or_lowest(self):
        assert evaluate("1 | 2 ^ 3 & 1") == 1 | (2 ^ (3 & 1))

    def test_unary_binds_tightest(self):
        assert evaluate("-2 * 3") == -6

    def test_double_negation(self):
        assert evaluate("--5") == 5


# =============================================================================
# Arithmetic and Bitwise Tests
# =============================================================================

class TestArithmetic:
    """Test arithmetic operators."""

    def test_division_truncates_toward_zero(self):
        assert evaluate("7 / 2") == 3
        assert evaluate("-7 / 2") == -3
        assert evaluate("7 / -2") == -3

    def test_modulo_sign_follows_dividend(self):
        assert evaluate("-7 % 2") == -1
        assert evaluate("7 % -2") == 1

    def test_division_by_zero(self):
        with pytest.raises(ExpressionError, match="division by zero"):
            evaluate("1 / 0")

    def test_modulo_by_zero(self):
        with pytest.raises(ExpressionError, match="division by zero"):
            evaluate("1 % (2 - 2)")

    def test_complement(self):
        assert evaluate("~0") == -1

    def test_xor(self):
        assert evaluate("0b1100 ^ 0b1010") == 0b0110

    def test_right_shift(self):
        assert evaluate("256 >> 4") == 16

    def test_negative_shift(self):
        with pytest.raises(ExpressionError, match="negative shift"):
            evaluate("1 << -1")


# =============================================================================
# Overflow Policy Tests
# =============================================================================

class TestOverflow:
    """Test wrapping and strict overflow modes."""

    def test_wraps_to_cell_width(self):
        assert evaluate("127 + 1", cell_bits=8) == -128

    def test_wraps_each_intermediate(self):
        assert evaluate("(200 * 2) - 400", cell_bits=8) == 0

    def test_number_wraps(self):
        assert evaluate("255", cell_bits=8) == -1

    def test_64_bit_wrap(self):
        assert evaluate("0x7FFFFFFFFFFFFFFF + 1") == -(1 << 63)

    def test_strict_overflow_raises(self):
        with pytest.raises(ExpressionError, match="overflows"):
            evaluate("127 + 1", cell_bits=8, strict=True)

    def test_strict_in_range(self):
        assert evaluate("100 + 27", cell_bits=8, strict=True) == 127

    def test_cell_bits_minimum(self):
        with pytest.raises(ValueError):
            ExpressionEvaluator(cell_bits=1)


# =============================================================================
# Symbol and '$' Tests
# =============================================================================

class TestSymbols:
    """Test symbol references and the current address."""

    def test_symbol(self):
        assert evaluate("buffer + 10", {"buffer": 0x100}) == 266

    def test_symbols_case_sensitive(self):
        with pytest.raises(UndefinedSymbolError):
            evaluate("Buffer", {"buffer": 1})

    def test_undefined_symbol_suggestion(self):
        with pytest.raises(UndefinedSymbolError) as exc_info:
            evaluate("cuont", {"count": 1})
        assert exc_info.value.symbol == "cuont"
        assert "did you mean 'count'" in str(exc_info.value)

    def test_dollar(self):
        assert evaluate("$ + 3", pc=12) == 15

    def test_dollar_without_pc(self):
        with pytest.raises(ExpressionError, match=r"'\$'"):
            evaluate("$")

    def test_evaluation_is_repeatable(self):
        """The same tree evaluates to the same value every time."""
        tree = parse("a * 2 + $")
        evaluator = ExpressionEvaluator()
        evaluator.set_symbol("a", 5)
        assert evaluator.evaluate(tree, 3) == evaluator.evaluate(tree, 3) == 13


# =============================================================================
# Tree Utility Tests
# =============================================================================

class TestTrees:
    """Test expression tree helpers."""

    def test_tree_shape(self):
        tree = parse("a + 1")
        assert tree.node_type == ExprNodeType.BINARY_OP
        assert tree.left.node_type == ExprNodeType.SYMBOL
        assert tree.right.value == 1

    def test_symbol_names(self):
        assert symbol_names(parse("a + b * (c - a)")) == {"a", "b", "c"}

    def test_uses_current_address(self):
        assert uses_current_address(parse("$ + 3"))
        assert not uses_current_address(parse("x + 3"))

    def test_format_expression(self):
        assert format_expression(parse("a + b * 2")) == "a+(b*2)"

    def test_find_similar_symbols(self):
        assert find_similar_symbols("lop", ["loop", "stop", "xyzzy"]) == ["loop", "stop"]


# =============================================================================
# Malformed Expression Tests
# =============================================================================

class TestMalformed:
    """Test parse errors."""

    def test_empty(self):
        with pytest.raises(ExpressionError, match="empty"):
            parse_expression([])

    def test_unclosed_paren(self):
        with pytest.raises(ExpressionError, match=r"'\)'"):
            parse("(1 + 2")

    def test_trailing_tokens(self):
        with pytest.raises(ExpressionError, match="unexpected token"):
            parse("1 2")

    def test_missing_operand(self):
        with pytest.raises(ExpressionError):
            parse("1 +")

    def test_temp_field_inside_expression(self):
        with pytest.raises(ExpressionError, match="temp field"):
            parse("$t + 1")
