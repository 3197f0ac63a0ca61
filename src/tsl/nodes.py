"""AST node types for TSL.

Nodes are frozen dataclasses; child sequences are tuples. A parsed tree is
never mutated, so one AST can be evaluated from many threads at once.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class UnaryOperator(Enum):
    NEGATE = "-"
    NOT = "NOT"


class BinaryOperator(Enum):
    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    # Comparison
    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    REGEX_EQ = "=~"
    REGEX_NE = "!~"
    # Logical
    AND = "AND"
    OR = "OR"


class AggregateKind(Enum):
    LEN = "LEN"
    ANY = "ANY"
    ALL = "ALL"
    SUM = "SUM"


ARITHMETIC_OPERATORS = frozenset({
    BinaryOperator.ADD,
    BinaryOperator.SUB,
    BinaryOperator.MUL,
    BinaryOperator.DIV,
    BinaryOperator.MOD,
})

ADDITIVE_OPERATORS = frozenset({BinaryOperator.ADD, BinaryOperator.SUB})

MULTIPLICATIVE_OPERATORS = frozenset({
    BinaryOperator.MUL,
    BinaryOperator.DIV,
    BinaryOperator.MOD,
})

# Operators that associate left in the grammar, grouped by precedence tier
CHAINING_TIERS = (
    frozenset({BinaryOperator.OR}),
    frozenset({BinaryOperator.AND}),
    ADDITIVE_OPERATORS,
    MULTIPLICATIVE_OPERATORS,
)


@dataclass(frozen=True)
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (number, string, boolean, null, datetime)."""
    value: Any


@dataclass(frozen=True)
class Identifier(ASTNode):
    """A field reference, resolved against the record at evaluation time."""
    name: str


@dataclass(frozen=True)
class ListLiteral(ASTNode):
    """List expression (e.g., [1, 2, 3], [a, b])."""
    elements: tuple[ASTNode, ...]


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """Unary operation (e.g., NOT x, -y)."""
    operator: UnaryOperator
    operand: ASTNode


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x = y, p AND q)."""
    operator: BinaryOperator
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class Like(ASTNode):
    """SQL pattern match (LIKE / ILIKE, optionally negated)."""
    subject: ASTNode
    pattern: ASTNode
    case_insensitive: bool = False
    negated: bool = False


@dataclass(frozen=True)
class Between(ASTNode):
    """Inclusive range test (x BETWEEN low AND high)."""
    subject: ASTNode
    low: ASTNode
    high: ASTNode
    negated: bool = False


@dataclass(frozen=True)
class In(ASTNode):
    """Membership test against a candidate list (x IN (a, b))."""
    subject: ASTNode
    candidates: tuple[ASTNode, ...]
    negated: bool = False


@dataclass(frozen=True)
class IsNull(ASTNode):
    """Null test (x IS NULL / x IS NOT NULL)."""
    subject: ASTNode
    negated: bool = False


@dataclass(frozen=True)
class Aggregate(ASTNode):
    """Aggregate function application (LEN, ANY, ALL, SUM)."""
    kind: AggregateKind
    argument: ASTNode


def binary_chain(
    node: ASTNode, operators: frozenset[BinaryOperator]
) -> tuple[ASTNode, list[BinaryOp]]:
    """Unwind a left-leaning run of binary operators.

    ``a OR b OR c`` parses as ``((a OR b) OR c)``. This returns the leftmost
    operand ``a`` and the links ``(a OR b)``, ``((a OR b) OR c)`` from the
    innermost outwards, so callers can walk long chains without recursion.
    """
    links: list[BinaryOp] = []
    while isinstance(node, BinaryOp) and node.operator in operators:
        links.append(node)
        node = node.left
    links.reverse()
    return node, links
