# =============================================================================
# test_lexer.py - Lexer Unit Tests
# =============================================================================
# Tests for the SUBLEQ assembler lexer/tokenizer.
#
# Test coverage includes:
#   - Number formats: decimal, hexadecimal (0x), binary (0b), octal (0o), char
#   - String literals with escape sequences
#   - '$' versus the temp fields $t, $e, $r
#   - Operators, delimiters and comments
#   - Line/column tracking
#   - Error conditions
# =============================================================================

import pytest
from subleq_sdk.assembler.lexer import Lexer, TokenType, tokenize as lex
from subleq_sdk.errors import AssemblySyntaxError


# =============================================================================
# Helper Function
# =============================================================================

def tokenize(source: str) -> list:
    """Tokenize, dropping the trailing EOF token."""
    return [t for t in Lexer(source, "<test>").tokenize() if t.type != TokenType.EOF]


def types(source: str) -> list:
    return [t.type for t in tokenize(source)]


# =============================================================================
# Basic Token Recognition Tests
# =============================================================================

class TestBasicTokens:
    """Test basic token recognition for simple inputs."""

    def test_empty_source(self):
        """Empty source produces only EOF."""
        tokens = lex("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_identifier(self):
        """Identifiers keep their case."""
        tokens = tokenize("Loop_1")
        assert tokens[0].type == TokenType.IDENTIFIER
        assert tokens[0].value == "Loop_1"

    def test_identifier_with_dot(self):
        """Dots are identifier characters."""
        assert tokenize(".local")[0].value == ".local"

    def test_newline_is_significant(self):
        """Newlines separate statements."""
        assert types("a\nb") == [TokenType.IDENTIFIER, TokenType.NEWLINE, TokenType.IDENTIFIER]

    def test_label_colon(self):
        assert types("start:") == [TokenType.IDENTIFIER, TokenType.COLON]


# =============================================================================
# Number Format Tests
# =============================================================================

class TestNumbers:
    """Test numeric literal formats."""

    def test_decimal(self):
        assert tokenize("1234")[0].value == 1234

    def test_hex(self):
        assert tokenize("0xFF")[0].value == 255

    def test_hex_uppercase_prefix(self):
        assert tokenize("0X1f")[0].value == 31

    def test_binary(self):
        assert tokenize("0b1010")[0].value == 10

    def test_octal(self):
        assert tokenize("0o17")[0].value == 15

    def test_zero(self):
        assert tokenize("0")[0].value == 0

    def test_char_literal(self):
        """Character literals become NUMBER tokens."""
        token = tokenize("'A'")[0]
        assert token.type == TokenType.NUMBER
        assert token.value == 65

    def test_char_escape(self):
        assert tokenize(r"'\n'")[0].value == 10

    def test_negative_is_two_tokens(self):
        """Unary minus is an operator, not part of the number."""
        assert types("-16") == [TokenType.MINUS, TokenType.NUMBER]

    def test_invalid_hex_digit(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize("0xZZ")

    def test_trailing_letters(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize("12ab")

    @pytest.mark.parametrize("source", ["²", "1²", "٣"])
    def test_non_ascii_digits(self, source):
        """Only ASCII digits start or continue a number."""
        with pytest.raises(AssemblySyntaxError) as exc_info:
            tokenize(source)
        assert exc_info.value.location.line == 1


# =============================================================================
# String Tests
# =============================================================================

class TestStrings:
    """Test string literal scanning."""

    def test_simple_string(self):
        token = tokenize('"hello"')[0]
        assert token.type == TokenType.STRING
        assert token.value == "hello"

    def test_escapes(self):
        assert tokenize(r'"a\tb\n\x41"')[0].value == "a\tb\nA"

    def test_escaped_quote(self):
        assert tokenize(r'"say \"hi\""')[0].value == 'say "hi"'

    def test_semicolon_inside_string(self):
        """A ';' inside a string does not start a comment."""
        assert tokenize('"a;b"')[0].value == "a;b"

    def test_unterminated_string(self):
        """Unterminated strings are reported at the opening quote."""
        with pytest.raises(AssemblySyntaxError) as exc_info:
            tokenize('db "oops')
        assert exc_info.value.location.column == 4
        assert "unterminated" in str(exc_info.value)


# =============================================================================
# Dollar and Temp Field Tests
# =============================================================================

class TestDollarAndTemps:
    """Test '$' and the $t/$e/$r temp field tokens."""

    @pytest.mark.parametrize("name", ["$t", "$e", "$r"])
    def test_temp_fields(self, name):
        token = tokenize(name)[0]
        assert token.type == TokenType.TEMP
        assert token.value == name

    def test_dollar_alone(self):
        assert types("$") == [TokenType.DOLLAR]

    def test_dollar_plus(self):
        assert types("$+3") == [TokenType.DOLLAR, TokenType.PLUS, TokenType.NUMBER]

    def test_dollar_followed_by_longer_name(self):
        """'$tx' is '$' followed by an identifier, not a temp field."""
        assert types("$tx") == [TokenType.DOLLAR, TokenType.IDENTIFIER]

    def test_temp_in_brackets(self):
        assert types("[$t]") == [TokenType.LBRACKET, TokenType.TEMP, TokenType.RBRACKET]


# =============================================================================
# Operator and Comment Tests
# =============================================================================

class TestOperators:
    """Test operator and delimiter tokens."""

    def test_arithmetic(self):
        assert types("+ - * / %") == [
            TokenType.PLUS, TokenType.MINUS, TokenType.STAR,
            TokenType.SLASH, TokenType.PERCENT,
        ]

    def test_bitwise(self):
        assert types("& | ^ ~ << >>") == [
            TokenType.AMPERSAND, TokenType.PIPE, TokenType.CARET,
            TokenType.TILDE, TokenType.LSHIFT, TokenType.RSHIFT,
        ]

    def test_delimiters(self):
        assert types("[ ] ( ) ,") == [
            TokenType.LBRACKET, TokenType.RBRACKET,
            TokenType.LPAREN, TokenType.RPAREN, TokenType.COMMA,
        ]

    def test_single_angle_bracket_is_error(self):
        with pytest.raises(AssemblySyntaxError):
            tokenize("a < b")

    def test_unexpected_character(self):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            tokenize("sub @x")
        assert "'@'" in str(exc_info.value)


class TestComments:
    """Test comment handling."""

    def test_comment_only(self):
        assert types("; nothing here") == []

    def test_trailing_comment(self):
        assert types("hlt ; stop") == [TokenType.IDENTIFIER]

    def test_comment_keeps_newline(self):
        assert types("; one\nhlt") == [TokenType.NEWLINE, TokenType.IDENTIFIER]


# =============================================================================
# Position Tracking Tests
# =============================================================================

class TestPositions:
    """Test line and column tracking."""

    def test_line_and_column(self):
        tokens = tokenize("hlt\n  sub [a], 1")
        sub = tokens[2]
        assert (sub.line, sub.column) == (2, 3)

    def test_location_includes_filename(self):
        token = tokenize("hlt")[0]
        assert str(token.location) == "<test>:1:1"

    def test_error_has_source_line(self):
        with pytest.raises(AssemblySyntaxError) as exc_info:
            tokenize("ok\nsub #x")
        assert exc_info.value.source_line == "sub #x"
        assert exc_info.value.location.line == 2
