"""Parser for TSL.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Operator Precedence (lowest to highest):
1. OR
2. AND
3. NOT (prefix)
4. = != < <= > >= =~ !~ [NOT] LIKE [NOT] ILIKE [NOT] BETWEEN [NOT] IN IS [NOT] NULL
   (non-associative: a second comparison needs parentheses)
5. + -
6. * / %
7. - (unary)
8. literals, identifiers, ( ), [ ], LEN/ANY/ALL/SUM ( )
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from tsl.config import TSLConfig
from tsl.errors import ParseError, SyntaxErrorKind
from tsl.lexer import Lexer, Token, TokenType
from tsl.nodes import (
    Aggregate,
    AggregateKind,
    ASTNode,
    Between,
    BinaryOp,
    BinaryOperator,
    Identifier,
    In,
    IsNull,
    Like,
    ListLiteral,
    Literal,
    UnaryOp,
    UnaryOperator,
)

LITERAL_TOKENS = frozenset({
    TokenType.NUMBER,
    TokenType.STRING,
    TokenType.DATE,
    TokenType.RFC3339,
    TokenType.BOOLEAN,
    TokenType.NULL,
})

AGGREGATE_TOKENS = frozenset({
    TokenType.LEN,
    TokenType.ANY,
    TokenType.ALL,
    TokenType.SUM,
})

COMPARISON_OPERATORS = {
    TokenType.EQ: BinaryOperator.EQ,
    TokenType.NEQ: BinaryOperator.NE,
    TokenType.LT: BinaryOperator.LT,
    TokenType.LTE: BinaryOperator.LE,
    TokenType.GT: BinaryOperator.GT,
    TokenType.GTE: BinaryOperator.GE,
    TokenType.REQ: BinaryOperator.REGEX_EQ,
    TokenType.RNE: BinaryOperator.REGEX_NE,
}

# Comparison keywords that accept a NOT prefix
NEGATABLE_TOKENS = frozenset({
    TokenType.LIKE,
    TokenType.ILIKE,
    TokenType.BETWEEN,
    TokenType.IN,
})

ADDITIVE_OPERATORS = {
    TokenType.PLUS: BinaryOperator.ADD,
    TokenType.MINUS: BinaryOperator.SUB,
}

MULTIPLICATIVE_OPERATORS = {
    TokenType.MULTIPLY: BinaryOperator.MUL,
    TokenType.DIVIDE: BinaryOperator.DIV,
    TokenType.MODULO: BinaryOperator.MOD,
}

CLOSING_SPELLING = {
    TokenType.RPAREN: ")",
    TokenType.RBRACKET: "]",
}


class Parser:
    """Recursive descent parser for TSL.

    A parser instance holds the state of a single parse and must not be
    shared between threads; the module-level ``parse`` creates a fresh one
    per call.

    Usage:
        parser = Parser("status = 'active' AND count > 0")
        ast = parser.parse()
    """

    def __init__(
        self,
        source: str = "",
        config: TSLConfig | None = None,
        *,
        tokens: Sequence[Token] | None = None,
    ):
        self.source = source
        self.config = config or TSLConfig()
        if len(source) > self.config.max_length:
            raise ParseError(
                SyntaxErrorKind.INPUT_TOO_LONG,
                f"Expression is {len(source)} characters long, "
                f"limit is {self.config.max_length}",
                self.config.max_length,
            )
        self.tokens = list(tokens) if tokens is not None else Lexer(source).tokenize()
        self.position = 0
        self._depth = 0

    def parse(self) -> ASTNode:
        """Parse the expression and return the AST root."""
        if self._is_at_end():
            raise self._error(
                SyntaxErrorKind.UNEXPECTED_END_OF_INPUT,
                "Empty expression",
                expected="expression",
            )

        ast = self._parse_or()

        if not self._is_at_end():
            if self._current().type in CLOSING_SPELLING:
                raise self._error(
                    SyntaxErrorKind.MISMATCHED_DELIMITER,
                    f"Unmatched '{self._current().lexeme}'",
                    expected="end of input",
                )
            raise self._unexpected("end of input")

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[self.position]

    def _peek(self, offset: int = 0) -> Token:
        """Peek at a token without consuming it."""
        pos = self.position + offset
        if pos >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[pos]

    def _is_at_end(self) -> bool:
        """Check if we've consumed all tokens."""
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise self._unexpected(expected)

    def _consume_closing(
        self, token_type: TokenType, opening: Token, expected: str | None = None
    ) -> Token:
        """Consume the delimiter closing ``opening``."""
        if self._current().type == token_type:
            return self._advance()

        closing = CLOSING_SPELLING[token_type]
        if self._is_at_end() or self._current().type in CLOSING_SPELLING:
            raise self._error(
                SyntaxErrorKind.MISMATCHED_DELIMITER,
                f"Expected '{closing}' to close '{opening.lexeme}' "
                f"opened at position {opening.position}",
                expected=f"'{closing}'",
            )
        raise self._unexpected(expected or f"'{closing}'")

    def _error(
        self,
        kind: SyntaxErrorKind,
        message: str,
        token: Token | None = None,
        expected: str | None = None,
    ) -> ParseError:
        token = token or self._current()
        return ParseError(
            kind,
            message,
            token.position,
            expected=expected,
            found=_describe(token),
            line=token.line,
            column=token.column,
        )

    def _unexpected(self, expected: str) -> ParseError:
        """Build the error for a token that does not fit the grammar here."""
        token = self._current()
        if token.type == TokenType.EOF:
            return self._error(
                SyntaxErrorKind.UNEXPECTED_END_OF_INPUT,
                f"Unexpected end of input, expected {expected}",
                expected=expected,
            )
        return self._error(
            SyntaxErrorKind.UNEXPECTED_TOKEN,
            f"Unexpected token '{_describe(token)}', expected {expected}",
            expected=expected,
        )

    @contextmanager
    def _nested(self) -> Iterator[None]:
        """Track recursion into a nested construct."""
        self._depth += 1
        try:
            if self._depth > self.config.max_depth:
                raise self._error(
                    SyntaxErrorKind.NESTING_TOO_DEEP,
                    f"Expression nested deeper than {self.config.max_depth} levels",
                )
            yield
        finally:
            self._depth -= 1

    def _at_comparison(self) -> bool:
        token_type = self._current().type
        if token_type in COMPARISON_OPERATORS or token_type in NEGATABLE_TOKENS:
            return True
        if token_type == TokenType.IS:
            return True
        return token_type == TokenType.NOT and self._peek(1).type in NEGATABLE_TOKENS

    # -------------------------------------------------------------------------
    # Parsing methods (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_or(self) -> ASTNode:
        """Parse OR expression (lowest precedence)."""
        left = self._parse_and()

        while self._match(TokenType.OR):
            self._advance()
            right = self._parse_and()
            left = BinaryOp(BinaryOperator.OR, left, right)

        return left

    def _parse_and(self) -> ASTNode:
        """Parse AND expression."""
        left = self._parse_not()

        while self._match(TokenType.AND):
            self._advance()
            right = self._parse_not()
            left = BinaryOp(BinaryOperator.AND, left, right)

        return left

    def _parse_not(self) -> ASTNode:
        """Parse prefix NOT."""
        if self._match(TokenType.NOT):
            self._advance()
            with self._nested():
                operand = self._parse_not()
            return UnaryOp(UnaryOperator.NOT, operand)

        return self._parse_comparison()

    def _parse_comparison(self) -> ASTNode:
        """Parse a single (non-chaining) comparison."""
        left = self._parse_additive()

        if not self._at_comparison():
            return left

        token = self._current()
        if token.type in COMPARISON_OPERATORS:
            self._advance()
            right = self._parse_additive()
            node: ASTNode = BinaryOp(COMPARISON_OPERATORS[token.type], left, right)
        elif token.type == TokenType.IS:
            node = self._parse_is_null(left)
        elif token.type == TokenType.NOT:
            self._advance()
            node = self._parse_negatable(left, negated=True)
        else:
            node = self._parse_negatable(left, negated=False)

        if self._at_comparison():
            raise self._error(
                SyntaxErrorKind.UNEXPECTED_TOKEN,
                f"Unexpected '{_describe(self._current())}': comparisons cannot be "
                "chained, use parentheses",
                expected="AND, OR or end of input",
            )

        return node

    def _parse_negatable(self, subject: ASTNode, negated: bool) -> ASTNode:
        """Parse LIKE, ILIKE, BETWEEN or IN after the subject (and any NOT)."""
        op_token = self._advance()

        if op_token.type in (TokenType.LIKE, TokenType.ILIKE):
            pattern = self._parse_additive()
            return Like(
                subject,
                pattern,
                case_insensitive=op_token.type == TokenType.ILIKE,
                negated=negated,
            )

        if op_token.type == TokenType.BETWEEN:
            # Bounds stop at the additive tier so the AND belongs to BETWEEN
            low = self._parse_additive()
            self._consume(TokenType.AND, "'AND' after BETWEEN lower bound")
            high = self._parse_additive()
            return Between(subject, low, high, negated=negated)

        return In(subject, tuple(self._parse_candidates()), negated=negated)

    def _parse_candidates(self) -> list[ASTNode]:
        """Parse the parenthesized or bracketed list after IN."""
        if self._match(TokenType.LPAREN):
            closing = TokenType.RPAREN
        elif self._match(TokenType.LBRACKET):
            closing = TokenType.RBRACKET
        else:
            raise self._unexpected("'(' or '[' after IN")

        opening = self._advance()
        with self._nested():
            return self._parse_arguments(closing, opening)

    def _parse_is_null(self, subject: ASTNode) -> IsNull:
        """Parse IS [NOT] NULL."""
        self._consume(TokenType.IS, "'IS'")
        negated = False
        if self._match(TokenType.NOT):
            self._advance()
            negated = True
        self._consume(TokenType.NULL, "'NULL' after IS")
        return IsNull(subject, negated=negated)

    def _parse_additive(self) -> ASTNode:
        """Parse additive expression (+, -)."""
        left = self._parse_multiplicative()

        while self._current().type in ADDITIVE_OPERATORS:
            op = ADDITIVE_OPERATORS[self._advance().type]
            right = self._parse_multiplicative()
            left = BinaryOp(op, left, right)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        """Parse multiplicative expression (*, /, %)."""
        left = self._parse_unary()

        while self._current().type in MULTIPLICATIVE_OPERATORS:
            op = MULTIPLICATIVE_OPERATORS[self._advance().type]
            right = self._parse_unary()
            left = BinaryOp(op, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary minus (right-associative)."""
        if self._match(TokenType.MINUS):
            self._advance()
            with self._nested():
                operand = self._parse_unary()
            return UnaryOp(UnaryOperator.NEGATE, operand)

        return self._parse_primary()

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, groups, lists, aggregates)."""
        token = self._current()

        if token.type in LITERAL_TOKENS:
            self._advance()
            return Literal(token.value)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return Identifier(str(token.value))

        # Grouped expression
        if token.type == TokenType.LPAREN:
            opening = self._advance()
            with self._nested():
                expr = self._parse_or()
            self._consume_closing(TokenType.RPAREN, opening)
            return expr

        # List literal
        if token.type == TokenType.LBRACKET:
            opening = self._advance()
            with self._nested():
                elements = self._parse_arguments(TokenType.RBRACKET, opening)
            return ListLiteral(tuple(elements))

        if token.type in AGGREGATE_TOKENS:
            return self._parse_aggregate()

        raise self._unexpected("expression")

    def _parse_aggregate(self) -> Aggregate:
        """Parse LEN(x), ANY(x), ALL(x) or SUM(x)."""
        name_token = self._advance()
        name = str(name_token.value)
        opening = self._consume(TokenType.LPAREN, f"'(' after {name}")

        with self._nested():
            arguments = self._parse_arguments(TokenType.RPAREN, opening)

        if len(arguments) != 1:
            raise ParseError(
                SyntaxErrorKind.UNEXPECTED_TOKEN,
                f"{name} expects exactly one argument, got {len(arguments)}",
                name_token.position,
                expected="one argument",
                found=f"{len(arguments)} arguments",
                line=name_token.line,
                column=name_token.column,
            )

        return Aggregate(AggregateKind(name), arguments[0])

    def _parse_arguments(self, closing: TokenType, opening: Token) -> list[ASTNode]:
        """Parse a comma-separated expression list up to the closing delimiter.

        Shared by list literals, IN candidates and aggregate calls.
        """
        arguments: list[ASTNode] = []

        if not self._match(closing):
            arguments.append(self._parse_or())

            while self._match(TokenType.COMMA):
                self._advance()
                arguments.append(self._parse_or())

        self._consume_closing(
            closing, opening, f"',' or '{CLOSING_SPELLING[closing]}'"
        )

        return arguments


def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of input"
    return token.lexeme or str(token.value)


def parse(source: str, config: TSLConfig | None = None) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string
        config: Optional limits (nesting depth, input length)

    Returns:
        The AST root node

    Raises:
        LexerError: If the source cannot be tokenized
        ParseError: If the tokens do not form a valid expression
    """
    return Parser(source, config).parse()


def parse_tokens(tokens: Sequence[Token], config: TSLConfig | None = None) -> ASTNode:
    """Parse an already tokenized expression."""
    return Parser(config=config, tokens=tokens).parse()
