"""Error taxonomy for TSL.

Each stage of the pipeline raises its own exception type:

- LexerError: the source text could not be tokenized
- ParseError: the token stream is not a valid expression
- EvaluationError: the AST could not be evaluated against a record

Every error carries a machine-checkable ``kind`` and a human-readable message.
"""

from enum import Enum
from typing import Any


class LexErrorKind(Enum):
    """Reasons the lexer can reject input."""

    INVALID_CHARACTER = "invalid_character"
    UNTERMINATED_STRING = "unterminated_string"
    MALFORMED_NUMBER = "malformed_number"
    MALFORMED_DATE_LITERAL = "malformed_date_literal"


class SyntaxErrorKind(Enum):
    """Reasons the parser can reject a token stream."""

    UNEXPECTED_TOKEN = "unexpected_token"
    UNEXPECTED_END_OF_INPUT = "unexpected_end_of_input"
    MISMATCHED_DELIMITER = "mismatched_delimiter"
    NESTING_TOO_DEEP = "nesting_too_deep"
    INPUT_TOO_LONG = "input_too_long"


class EvalErrorKind(Enum):
    """Reasons evaluation can fail."""

    UNDEFINED_FIELD = "undefined_field"
    TYPE_MISMATCH = "type_mismatch"
    DIVISION_BY_ZERO = "division_by_zero"
    REGEX_COMPILE_ERROR = "regex_compile_error"
    INVALID_AGGREGATE_OPERAND = "invalid_aggregate_operand"


class TSLError(Exception):
    """Base class for all TSL errors."""

    kind: Enum

    def to_dict(self) -> dict[str, Any]:
        """Export for machine consumption (CLI JSON output, host APIs)."""
        return {"kind": self.kind.value, "message": str(self)}


class LexerError(TSLError):
    """Error during lexical analysis."""

    def __init__(
        self,
        kind: LexErrorKind,
        message: str,
        position: int,
        line: int = 1,
        column: int = 1,
    ):
        self.kind = kind
        self.reason = message
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(position=self.position, line=self.line, column=self.column)
        return data


class ParseError(TSLError):
    """Error during parsing.

    Attributes:
        kind: What went wrong
        position: Character offset of the offending token
        expected: Description of what the parser was looking for
        found: Lexeme of the token actually found ("end of input" at EOF)
    """

    def __init__(
        self,
        kind: SyntaxErrorKind,
        message: str,
        position: int,
        expected: str | None = None,
        found: str | None = None,
        line: int = 1,
        column: int = 1,
    ):
        self.kind = kind
        self.position = position
        self.expected = expected
        self.found = found
        self.line = line
        self.column = column
        super().__init__(f"{message} at position {position}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            position=self.position,
            line=self.line,
            column=self.column,
            expected=self.expected,
            found=self.found,
        )
        return data


class EvaluationError(TSLError):
    """Error during expression evaluation.

    ``node`` is the rendered sub-expression that failed, when known.
    """

    def __init__(self, kind: EvalErrorKind, detail: str, node: str | None = None):
        self.kind = kind
        self.detail = detail
        self.node = node
        message = detail if node is None else f"{detail} (in `{node}`)"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(detail=self.detail, node=self.node)
        return data
