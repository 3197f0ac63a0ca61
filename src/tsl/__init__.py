"""TSL: a small typed filter language for records.

This package provides:
- Lexer: Tokenizes expression strings
- Parser: Produces an immutable AST from tokens
- Evaluator: Evaluates the AST against a record's field values
- AggregateRegistry: LEN, ANY, ALL and SUM
- Printer: Renders an AST as TSL source or plain data
"""

from tsl.aggregates import AggregateDefinition, AggregateRegistry
from tsl.config import TSLConfig
from tsl.errors import (
    EvalErrorKind,
    EvaluationError,
    LexErrorKind,
    LexerError,
    ParseError,
    SyntaxErrorKind,
    TSLError,
)
from tsl.evaluator import EvaluationContext, Evaluator, evaluate, evaluate_bool
from tsl.lexer import Lexer, Token, TokenType, tokenize
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
from tsl.parser import Parser, parse, parse_tokens
from tsl.printer import to_dict, to_tsl
from tsl.values import ValueKind, from_value, kind_of, to_value

__all__ = [
    # Aggregates
    "AggregateDefinition",
    "AggregateRegistry",
    # Config
    "TSLConfig",
    # Errors
    "EvalErrorKind",
    "EvaluationError",
    "LexErrorKind",
    "LexerError",
    "ParseError",
    "SyntaxErrorKind",
    "TSLError",
    # Evaluator
    "EvaluationContext",
    "Evaluator",
    "evaluate",
    "evaluate_bool",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # AST
    "Aggregate",
    "AggregateKind",
    "ASTNode",
    "Between",
    "BinaryOp",
    "BinaryOperator",
    "Identifier",
    "In",
    "IsNull",
    "Like",
    "ListLiteral",
    "Literal",
    "UnaryOp",
    "UnaryOperator",
    # Parser
    "Parser",
    "parse",
    "parse_tokens",
    # Printer
    "to_dict",
    "to_tsl",
    # Values
    "ValueKind",
    "from_value",
    "kind_of",
    "to_value",
]
