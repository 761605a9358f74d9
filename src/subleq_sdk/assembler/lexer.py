"""
SUBLEQ Assembly Language Lexer
==============================

This module implements a lexer (tokenizer) for SUBLEQ assembly language.
It converts source text into a stream of tokens that the parser can process.

Token Types
-----------
- IDENTIFIER: Labels, opcodes, directives, symbol names
- NUMBER: Decimal, hex (0xFF), binary (0b1010), octal (0o17), character ('A')
- STRING: Double-quoted strings ("hello"), only meaningful in db
- TEMP: Temp field references ($t, $e, $r)
- DOLLAR: $ on its own, the address of the next item
- Operators: +, -, *, /, %, &, |, ^, ~, <<, >>
- Delimiters: , : ( ) [ ]
- NEWLINE: End of line
- EOF: End of file

Number Formats
--------------
| Format      | Prefix | Example | Value |
|-------------|--------|---------|-------|
| Decimal     | (none) | 123     | 123   |
| Hexadecimal | 0x     | 0x7F    | 127   |
| Binary      | 0b     | 0b1010  | 10    |
| Octal       | 0o     | 0o17    | 15    |
| Character   | '      | 'A'     | 65    |

Negative numbers are written with unary minus and folded by the
expression evaluator.

Comments
--------
A semicolon starts a comment that runs to the end of the line.

Example
-------
>>> from subleq_sdk.assembler.lexer import Lexer
>>> for token in Lexer("loop: sub [x], 1 ; dec").tokenize():
...     print(token)
Token(IDENTIFIER, 'loop', 1:1)
Token(COLON, ':', 1:5)
Token(IDENTIFIER, 'sub', 1:7)
Token(LBRACKET, '[', 1:11)
Token(IDENTIFIER, 'x', 1:12)
Token(RBRACKET, ']', 1:13)
Token(COMMA, ',', 1:14)
Token(NUMBER, 1, 1:16)
Token(EOF, 1:23)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from subleq_sdk.errors import AssemblySyntaxError, SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the SUBLEQ assembly language."""

    # Structural tokens
    NEWLINE = auto()    # End of line (significant for statement boundaries)
    EOF = auto()        # End of file

    # Values
    IDENTIFIER = auto()  # Labels, opcodes, symbols
    NUMBER = auto()      # Numeric literals (all formats)
    STRING = auto()      # Double-quoted string "..."
    TEMP = auto()        # $t, $e, $r

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /
    PERCENT = auto()     # %

    # Bitwise operators
    AMPERSAND = auto()   # &
    PIPE = auto()        # |
    CARET = auto()       # ^
    TILDE = auto()       # ~
    LSHIFT = auto()      # <<
    RSHIFT = auto()      # >>

    # Delimiters
    COMMA = auto()       # ,
    COLON = auto()       # :
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACKET = auto()    # [ (memory reference)
    RBRACKET = auto()    # ]
    DOLLAR = auto()      # $ (address of next item)


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    Represents a single token from the source code.

    Attributes:
        type: The TokenType classification
        value: The token value (string for identifiers, int for numbers, etc.)
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | None
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        if self.value is not None:
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes SUBLEQ assembly source code.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    IDENT_START = string.ascii_letters + "_."
    IDENT_CHARS = string.ascii_letters + string.digits + "_."

    TEMP_NAMES = frozenset({"t", "e", "r"})

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "%": TokenType.PERCENT,
        "&": TokenType.AMPERSAND,
        "|": TokenType.PIPE,
        "^": TokenType.CARET,
        "~": TokenType.TILDE,
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "[": TokenType.LBRACKET,
        "]": TokenType.RBRACKET,
    }

    ESCAPE_SEQUENCES = {
        "n": "\n",
        "r": "\r",
        "t": "\t",
        "\\": "\\",
        '"': '"',
        "'": "'",
        "0": "\0",
    }

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always terminated by an EOF token

        Raises:
            AssemblySyntaxError: If invalid syntax is encountered
        """
        while not self._at_end():
            if self._skip_whitespace():
                continue

            if self._skip_comment():
                continue

            token = self._scan_token()
            if token is not None:
                yield token

        yield self._make_token(TokenType.EOF, None)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look ahead without advancing; empty string past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        if self._peek() == expected:
            self._advance()
            return True
        return False

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | None,
        start_line: Optional[int] = None,
        start_column: Optional[int] = None,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=start_line or self._line,
            column=start_column or self._column,
            filename=self.filename,
        )

    def _error(self, message: str) -> AssemblySyntaxError:
        """Create a syntax error at the current position with line context."""
        location = SourceLocation(self.filename, self._line, self._column)
        return AssemblySyntaxError(message, location, source_line=self.get_current_line())

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace(self) -> bool:
        skipped = False
        # '' in " \t" is True, so guard against end of input
        while self._peek() and self._peek() in " \t\r":
            self._advance()
            skipped = True
        return skipped

    def _skip_comment(self) -> bool:
        if self._peek() == ";":
            while not self._at_end() and self._peek() != "\n":
                self._advance()
            return True
        return False

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Optional[Token]:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char == "\n":
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start_line, start_column)

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char in string.digits:
            return self._scan_number(start_line, start_column)

        if char == "$":
            return self._scan_dollar(start_line, start_column)

        if char == '"':
            return self._scan_string(start_line, start_column)

        if char == "'":
            return self._scan_char(start_line, start_column)

        if char == "<":
            self._advance()
            if self._match("<"):
                return self._make_token(TokenType.LSHIFT, "<<", start_line, start_column)
            raise self._error("unexpected character '<'")

        if char == ">":
            self._advance()
            if self._match(">"):
                return self._make_token(TokenType.RSHIFT, ">>", start_line, start_column)
            raise self._error("unexpected character '>'")

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(
                self.SINGLE_CHAR_TOKENS[char],
                char,
                start_line,
                start_column,
            )

        self._advance()
        raise self._error(f"unexpected character '{char}'")

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        return self._make_token(TokenType.IDENTIFIER, "".join(chars), start_line, start_column)

    def _scan_dollar(self, start_line: int, start_column: int) -> Token:
        """
        Scan '$' alone (next-item address) or a temp field reference.

        '$t', '$e' and '$r' name the temp fields only when the letter is
        not followed by further identifier characters.
        """
        self._advance()  # consume $
        name = self._peek()
        follow = self._peek(1)
        if name in self.TEMP_NAMES and not (follow and follow in self.IDENT_CHARS):
            self._advance()
            return self._make_token(TokenType.TEMP, f"${name}", start_line, start_column)
        return self._make_token(TokenType.DOLLAR, "$", start_line, start_column)

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        """Scan a decimal number, or a 0x/0b/0o prefixed one."""
        if self._peek() == "0":
            prefix = self._peek(1).lower()
            bases = {"x": (16, string.hexdigits), "b": (2, "01"), "o": (8, "01234567")}
            if prefix in bases:
                base, digits = bases[prefix]
                self._advance()  # consume 0
                self._advance()  # consume prefix letter
                return self._scan_digits(base, digits, start_line, start_column)

        chars = []
        while self._peek() and self._peek() in string.digits:
            chars.append(self._advance())

        if self._peek() and self._peek() in self.IDENT_START:
            raise self._error(f"invalid digit '{self._peek()}' in number")

        return self._make_token(TokenType.NUMBER, int("".join(chars)), start_line, start_column)

    def _scan_digits(self, base: int, digits: str, start_line: int, start_column: int) -> Token:
        chars = []
        while self._peek() and self._peek() in digits:
            chars.append(self._advance())

        if not chars:
            raise self._error(f"expected base-{base} digits")
        if self._peek() and self._peek() in self.IDENT_CHARS:
            raise self._error(f"invalid digit '{self._peek()}' in base-{base} number")

        return self._make_token(TokenType.NUMBER, int("".join(chars), base), start_line, start_column)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        """
        Scan a double-quoted string literal.

        Supports escape sequences: \\n, \\r, \\t, \\\\, \\", \\0, \\xNN
        """
        self._advance()  # consume opening "

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(TokenType.STRING, "".join(chars), start_line, start_column)

            if char == "\n":
                break

            if char == "\\":
                self._advance()
                chars.append(self._scan_escape_sequence())
            else:
                chars.append(self._advance())

        raise AssemblySyntaxError(
            "unterminated string literal",
            SourceLocation(self.filename, start_line, start_column),
            source_line=self.get_current_line(),
        )

    def _scan_char(self, start_line: int, start_column: int) -> Token:
        """Scan a single-quoted character literal into a NUMBER token."""
        self._advance()  # consume opening '

        if self._at_end() or self._peek() == "\n":
            raise self._error("unterminated character literal")

        if self._peek() == "\\":
            self._advance()
            char = self._scan_escape_sequence()
        else:
            char = self._advance()

        if self._peek() != "'":
            raise self._error("expected closing quote for character literal")
        self._advance()

        return self._make_token(TokenType.NUMBER, ord(char), start_line, start_column)

    def _scan_escape_sequence(self) -> str:
        if self._at_end():
            raise self._error("unexpected end of input in escape sequence")

        char = self._advance()

        if char in self.ESCAPE_SEQUENCES:
            return self.ESCAPE_SEQUENCES[char]

        if char == "x":
            hex_chars = []
            for _ in range(2):
                if self._peek() and self._peek() in string.hexdigits:
                    hex_chars.append(self._advance())
                else:
                    break

            if not hex_chars:
                raise self._error("expected hexadecimal digits after \\x")

            return chr(int("".join(hex_chars), 16))

        # Unknown escape - treat as literal
        return char

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def get_current_line(self) -> str:
        """Get the current line of source text, for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize a whole source string into a list."""
    return list(Lexer(source, filename).tokenize())
