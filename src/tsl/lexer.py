"""Lexer/tokenizer for TSL.

Converts expression strings into a stream of tokens for the parser.

Token types:
- Literals: NUMBER, STRING, DATE, RFC3339, BOOLEAN, NULL
- Identifiers: IDENTIFIER (field names, optionally dotted)
- Keywords: LIKE, ILIKE, AND, OR, BETWEEN, IN, IS, NOT, LEN, ANY, ALL, SUM
- Operators: comparison, regex, arithmetic
- Punctuation: LPAREN, RPAREN, LBRACKET, RBRACKET, COMMA
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Iterator

from tsl.errors import LexErrorKind, LexerError
from tsl.values import parse_datetime


class TokenType(Enum):
    """Types of tokens in the expression language."""

    # Literals
    NUMBER = auto()
    STRING = auto()
    DATE = auto()        # 2024-01-31
    RFC3339 = auto()     # 2024-01-31T10:00:00Z
    BOOLEAN = auto()
    NULL = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Comparison operators
    EQ = auto()          # =
    NEQ = auto()         # !=
    LT = auto()          # <
    LTE = auto()         # <=
    GT = auto()          # >
    GTE = auto()         # >=
    REQ = auto()         # =~
    RNE = auto()         # !~

    # Keywords
    LIKE = auto()
    ILIKE = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    BETWEEN = auto()
    IN = auto()
    IS = auto()
    LEN = auto()
    ANY = auto()
    ALL = auto()
    SUM = auto()

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    MULTIPLY = auto()    # *
    DIVIDE = auto()      # /
    MODULO = auto()      # %

    # Punctuation
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACKET = auto()    # [
    RBRACKET = auto()    # ]
    COMMA = auto()       # ,

    # End of input
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: Literal payload (float, str, datetime, bool) or the canonical
            spelling for operators and keywords
        position: Character offset in the source string
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        lexeme: The exact source slice
    """

    type: TokenType
    value: str | float | bool | datetime | None
    position: int
    line: int = 1
    column: int = 1
    lexeme: str = ""

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


# Token patterns (order matters - longer matches first)
TOKEN_PATTERNS = [
    # Whitespace (skip)
    (r"\s+", None),

    # Multi-character operators (before single character)
    (r"=~|~=", TokenType.REQ),
    (r"!~|~!", TokenType.RNE),
    (r"==", TokenType.EQ),
    (r"!=|<>", TokenType.NEQ),
    (r"<=", TokenType.LTE),
    (r">=", TokenType.GTE),

    # Single character operators
    (r"=", TokenType.EQ),
    (r"<", TokenType.LT),
    (r">", TokenType.GT),
    (r"\+", TokenType.PLUS),
    (r"-", TokenType.MINUS),
    (r"\*", TokenType.MULTIPLY),
    (r"/", TokenType.DIVIDE),
    (r"%", TokenType.MODULO),

    # Punctuation
    (r"\(", TokenType.LPAREN),
    (r"\)", TokenType.RPAREN),
    (r"\[", TokenType.LBRACKET),
    (r"\]", TokenType.RBRACKET),
    (r",", TokenType.COMMA),

    # Keywords and identifiers (must come after operators)
    (r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*", TokenType.IDENTIFIER),
]

# Canonical spelling for operators that have aliases
OPERATOR_SPELLING = {
    TokenType.REQ: "=~",
    TokenType.RNE: "!~",
    TokenType.EQ: "=",
    TokenType.NEQ: "!=",
}

# Keywords are matched case-insensitively
KEYWORDS = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "like": (TokenType.LIKE, "LIKE"),
    "ilike": (TokenType.ILIKE, "ILIKE"),
    "and": (TokenType.AND, "AND"),
    "or": (TokenType.OR, "OR"),
    "not": (TokenType.NOT, "NOT"),
    "between": (TokenType.BETWEEN, "BETWEEN"),
    "in": (TokenType.IN, "IN"),
    "is": (TokenType.IS, "IS"),
    "len": (TokenType.LEN, "LEN"),
    "any": (TokenType.ANY, "ANY"),
    "all": (TokenType.ALL, "ALL"),
    "sum": (TokenType.SUM, "SUM"),
}

# Loose date shape; the exact form is checked by parse_datetime
DATE_LIKE_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}(?:[Tt][0-9:.]*(?:[Zz]|[+-]\d{2}:\d{2})?)?"
)
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
DIGITS = "0123456789"
QUOTES = "\"'"


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


class Lexer:
    """Tokenizer for TSL.

    Usage:
        lexer = Lexer("status = 'active' AND count > 0")
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1
        self._compiled_patterns = [
            (re.compile(pattern), token_type)
            for pattern, token_type in TOKEN_PATTERNS
        ]

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Get the next token from the source."""
        if self.position >= len(self.source):
            return Token(TokenType.EOF, None, self.position, self.line, self.column)

        char = self.source[self.position]
        if char in QUOTES:
            return self._lex_string(char)
        if char in DIGITS:
            return self._lex_number_or_date()

        for pattern, token_type in self._compiled_patterns:
            match = pattern.match(self.source, self.position)
            if match:
                value = match.group()
                start_pos = self.position
                start_line = self.line
                start_column = self.column

                self._advance(len(value))

                # Skip whitespace
                if token_type is None:
                    return self.next_token()

                token_value: str | bool | None = OPERATOR_SPELLING.get(token_type, value)

                if token_type == TokenType.IDENTIFIER and "." not in value:
                    keyword = KEYWORDS.get(value.lower())
                    if keyword is not None:
                        token_type, token_value = keyword

                return Token(
                    token_type, token_value, start_pos, start_line, start_column, value
                )

        raise self._error(
            LexErrorKind.INVALID_CHARACTER, f"Unexpected character '{char}'"
        )

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)

    # -------------------------------------------------------------------------
    # Literal scanners
    # -------------------------------------------------------------------------

    def _lex_string(self, quote: str) -> Token:
        """Scan a quoted string starting at the current position."""
        start = self.position
        i = start + 1
        while i < len(self.source):
            if self.source[i] == "\\":
                i += 2
                continue
            if self.source[i] == quote:
                lexeme = self.source[start:i + 1]
                return self._emit(
                    TokenType.STRING, self._unescape_string(lexeme[1:-1]), lexeme
                )
            i += 1

        raise self._error(LexErrorKind.UNTERMINATED_STRING, "Unterminated string literal")

    def _lex_number_or_date(self) -> Token:
        """Scan a number, a bare date or an RFC3339 timestamp."""
        match = DATE_LIKE_PATTERN.match(self.source, self.position)
        if match:
            lexeme = match.group()
            try:
                value = parse_datetime(lexeme)
            except ValueError:
                value = None
            if value is None or self._glued(match.end()):
                raise self._error(
                    LexErrorKind.MALFORMED_DATE_LITERAL,
                    f"Malformed date literal '{self._word_at(self.position)}'",
                )
            token_type = TokenType.RFC3339 if "t" in lexeme.lower() else TokenType.DATE
            return self._emit(token_type, value, lexeme)

        match = NUMBER_PATTERN.match(self.source, self.position)
        # the pattern always matches here: the current character is a digit
        end = match.end()
        if end < len(self.source) and (
            self.source[end] == "." or _is_word_char(self.source[end])
        ):
            raise self._error(
                LexErrorKind.MALFORMED_NUMBER,
                f"Malformed number '{self._word_at(self.position)}'",
            )
        lexeme = match.group()
        value = float(lexeme)
        if math.isinf(value):
            raise self._error(
                LexErrorKind.MALFORMED_NUMBER, f"Number '{lexeme}' is out of range"
            )
        return self._emit(TokenType.NUMBER, value, lexeme)

    def _glued(self, end: int) -> bool:
        """Check whether a literal runs straight into a word character."""
        return end < len(self.source) and _is_word_char(self.source[end])

    def _word_at(self, start: int) -> str:
        """The run of non-space, non-delimiter characters at start (for messages)."""
        end = start
        while end < len(self.source) and (
            _is_word_char(self.source[end]) or self.source[end] in ".:+-"
        ):
            end += 1
        return self.source[start:end]

    def _emit(self, token_type: TokenType, value, lexeme: str) -> Token:
        token = Token(token_type, value, self.position, self.line, self.column, lexeme)
        self._advance(len(lexeme))
        return token

    def _error(self, kind: LexErrorKind, message: str) -> LexerError:
        return LexerError(kind, message, self.position, self.line, self.column)

    def _advance(self, count: int) -> None:
        """Advance position by count characters, updating line/column."""
        for _ in range(count):
            if self.position < len(self.source):
                if self.source[self.position] == "\n":
                    self.line += 1
                    self.column = 1
                else:
                    self.column += 1
                self.position += 1

    def _unescape_string(self, s: str) -> str:
        """Process escape sequences in a string."""
        result = []
        i = 0
        while i < len(s):
            if s[i] == "\\" and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char == "n":
                    result.append("\n")
                elif next_char == "t":
                    result.append("\t")
                elif next_char == "r":
                    result.append("\r")
                else:
                    result.append(next_char)
                i += 2
            else:
                result.append(s[i])
                i += 1
        return "".join(result)


def tokenize(source: str) -> list[Token]:
    """Convenience function to tokenize an expression string."""
    return Lexer(source).tokenize()
