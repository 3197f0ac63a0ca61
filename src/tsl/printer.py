"""Render TSL ASTs back to text or to plain data.

``to_tsl`` produces parenthesized source that parses back to an equal tree.
Every operator gets its own parentheses, except that a left-associative run
such as ``a OR b OR c`` shares one pair. ``to_dict`` produces a JSON/YAML
friendly structure.
"""

from datetime import datetime, timedelta
from typing import Any

from tsl.nodes import (
    CHAINING_TIERS,
    Aggregate,
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
    binary_chain,
)
from tsl.values import from_value

ALL_BINARY_OPERATORS = frozenset(BinaryOperator)

_STRING_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
}


def to_tsl(node: ASTNode) -> str:
    """Render an AST node as TSL source."""
    printer = _TSL_PRINTERS.get(type(node))
    if printer is None:
        raise TypeError(f"Unknown node type: {type(node).__name__}")
    return printer(node)


def to_dict(node: ASTNode) -> dict[str, Any]:
    """Render an AST node as nested dicts."""
    printer = _DICT_PRINTERS.get(type(node))
    if printer is None:
        raise TypeError(f"Unknown node type: {type(node).__name__}")
    return printer(node)


def format_value(value: Any) -> str:
    """Render a runtime value as a TSL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        if float(value).is_integer():
            return str(int(value))
        return repr(float(value))
    if isinstance(value, str):
        return "'" + "".join(_STRING_ESCAPES.get(c, c) for c in value) + "'"
    if isinstance(value, datetime):
        if (
            value.utcoffset() == timedelta(0)
            and value.hour == value.minute == value.second == value.microsecond == 0
        ):
            return value.strftime("%Y-%m-%d")
        return str(from_value(value))
    if isinstance(value, tuple):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    raise TypeError(f"Not a TSL value: {type(value).__name__}")


# -----------------------------------------------------------------------------
# TSL source
# -----------------------------------------------------------------------------


def _not(negated: bool) -> str:
    return "NOT " if negated else ""


def _tsl_unary(node: UnaryOp) -> str:
    if node.operator is UnaryOperator.NOT:
        return f"(NOT {to_tsl(node.operand)})"
    return f"(-{to_tsl(node.operand)})"


def _tsl_like(node: Like) -> str:
    keyword = "ILIKE" if node.case_insensitive else "LIKE"
    return f"({to_tsl(node.subject)} {_not(node.negated)}{keyword} {to_tsl(node.pattern)})"


def _tsl_between(node: Between) -> str:
    return (
        f"({to_tsl(node.subject)} {_not(node.negated)}BETWEEN "
        f"{to_tsl(node.low)} AND {to_tsl(node.high)})"
    )


def _tsl_in(node: In) -> str:
    candidates = ", ".join(to_tsl(c) for c in node.candidates)
    return f"({to_tsl(node.subject)} {_not(node.negated)}IN ({candidates}))"


def _tsl_is_null(node: IsNull) -> str:
    return f"({to_tsl(node.subject)} IS {_not(node.negated)}NULL)"


def _tsl_binary(node: BinaryOp) -> str:
    """Render a binary op; a left-associative run shares one pair of parens."""
    tier = next((t for t in CHAINING_TIERS if node.operator in t), None)
    if tier is None:
        return f"({to_tsl(node.left)} {node.operator.value} {to_tsl(node.right)})"

    leftmost, links = binary_chain(node, tier)
    parts = [to_tsl(leftmost)]
    for link in links:
        parts.append(f"{link.operator.value} {to_tsl(link.right)}")
    return "(" + " ".join(parts) + ")"


_TSL_PRINTERS = {
    Literal: lambda node: format_value(node.value),
    Identifier: lambda node: node.name,
    ListLiteral: lambda node: "[" + ", ".join(to_tsl(e) for e in node.elements) + "]",
    UnaryOp: _tsl_unary,
    BinaryOp: _tsl_binary,
    Like: _tsl_like,
    Between: _tsl_between,
    In: _tsl_in,
    IsNull: _tsl_is_null,
    Aggregate: lambda node: f"{node.kind.value}({to_tsl(node.argument)})",
}


# -----------------------------------------------------------------------------
# Plain data
# -----------------------------------------------------------------------------


def _dict_binary(node: BinaryOp) -> dict[str, Any]:
    leftmost, links = binary_chain(node, ALL_BINARY_OPERATORS)
    result = to_dict(leftmost)
    for link in links:
        result = {
            "type": "binary",
            "op": link.operator.value,
            "left": result,
            "right": to_dict(link.right),
        }
    return result


_DICT_PRINTERS = {
    Literal: lambda node: {"type": "literal", "value": from_value(node.value)},
    Identifier: lambda node: {"type": "identifier", "name": node.name},
    ListLiteral: lambda node: {
        "type": "list",
        "elements": [to_dict(e) for e in node.elements],
    },
    UnaryOp: lambda node: {
        "type": "unary",
        "op": node.operator.value,
        "operand": to_dict(node.operand),
    },
    BinaryOp: _dict_binary,
    Like: lambda node: {
        "type": "like",
        "subject": to_dict(node.subject),
        "pattern": to_dict(node.pattern),
        "case_insensitive": node.case_insensitive,
        "negated": node.negated,
    },
    Between: lambda node: {
        "type": "between",
        "subject": to_dict(node.subject),
        "low": to_dict(node.low),
        "high": to_dict(node.high),
        "negated": node.negated,
    },
    In: lambda node: {
        "type": "in",
        "subject": to_dict(node.subject),
        "candidates": [to_dict(c) for c in node.candidates],
        "negated": node.negated,
    },
    IsNull: lambda node: {
        "type": "is_null",
        "subject": to_dict(node.subject),
        "negated": node.negated,
    },
    Aggregate: lambda node: {
        "type": "aggregate",
        "kind": node.kind.value,
        "argument": to_dict(node.argument),
    },
}
