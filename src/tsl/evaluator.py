"""Evaluator for TSL.

Walks the AST and computes the result against an evaluation context
holding the record's field values. Evaluation is a pure function of the
tree and the record: the context is never mutated and no state survives
between calls.
"""

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any

from tsl.aggregates import AggregateRegistry
from tsl.config import TSLConfig
from tsl.errors import EvalErrorKind, EvaluationError
from tsl.nodes import (
    ARITHMETIC_OPERATORS,
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
from tsl.parser import parse
from tsl.printer import to_tsl
from tsl.values import Value, ValueKind, kind_of, parse_datetime, to_value, type_name

logger = logging.getLogger(__name__)

_DEFAULT_AGGREGATES = AggregateRegistry.with_builtins()

ORDERED_KINDS = frozenset({ValueKind.NUMBER, ValueKind.STRING, ValueKind.DATETIME})

ORDERING_TESTS = {
    BinaryOperator.LT: lambda c: c < 0,
    BinaryOperator.LE: lambda c: c <= 0,
    BinaryOperator.GT: lambda c: c > 0,
    BinaryOperator.GE: lambda c: c >= 0,
}


@dataclass(frozen=True)
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        record: Field values of the record being tested. Dotted identifiers
            match a literal dotted key first, then walk nested mappings.
    """

    record: Mapping[str, Any]

    def lookup(self, name: str) -> tuple[bool, Any]:
        """Resolve a field name, returning (found, raw value)."""
        if name in self.record:
            return True, self.record[name]

        if "." in name:
            current: Any = self.record
            for part in name.split("."):
                if not isinstance(current, Mapping) or part not in current:
                    return False, None
                current = current[part]
            return True, current

        return False, None


class Evaluator:
    """Evaluates expression AST against a context.

    Usage:
        ctx = EvaluationContext(record={"status": "active", "count": 5})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(ast)
    """

    def __init__(
        self,
        context: EvaluationContext,
        strict: bool = False,
        aggregates: AggregateRegistry | None = None,
    ):
        self.context = context
        self.strict = strict
        self.aggregates = aggregates or _DEFAULT_AGGREGATES

    def evaluate(self, node: ASTNode) -> Value:
        """Evaluate an AST node and return the result."""
        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Value:
        return to_value(node.value)

    def _eval_identifier(self, node: Identifier) -> Value:
        """Evaluate an identifier (field reference)."""
        found, raw = self.context.lookup(node.name)

        if not found:
            if self.strict:
                raise EvaluationError(
                    EvalErrorKind.UNDEFINED_FIELD,
                    f"Unknown field '{node.name}'",
                    node.name,
                )
            logger.debug("Field %r is not in the record, resolving to NULL", node.name)
            return None

        try:
            return to_value(raw)
        except EvaluationError as e:
            raise EvaluationError(e.kind, e.detail, node.name) from e

    def _eval_listliteral(self, node: ListLiteral) -> Value:
        return tuple(self.evaluate(element) for element in node.elements)

    def _eval_unaryop(self, node: UnaryOp) -> Value:
        """Evaluate a unary operation."""
        operand = self.evaluate(node.operand)

        if node.operator is UnaryOperator.NOT:
            if not isinstance(operand, bool):
                raise _mismatch(node, f"NOT requires a boolean, got {type_name(operand)}")
            return not operand

        if operand is None:
            return None
        if kind_of(operand) is ValueKind.NUMBER:
            return -operand
        raise _mismatch(node, f"Cannot negate {type_name(operand)}")

    def _eval_binaryop(self, node: BinaryOp) -> Value:
        """Evaluate a binary operation."""
        op = node.operator

        if op is BinaryOperator.AND or op is BinaryOperator.OR:
            return self._eval_logical_chain(node)

        if op in ARITHMETIC_OPERATORS:
            # ((1 + 2) + 3) leans left; walk the run in a loop
            leftmost, links = binary_chain(node, ARITHMETIC_OPERATORS)
            result = self.evaluate(leftmost)
            for link in links:
                result = self._arithmetic(link, result, self.evaluate(link.right))
            return result

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)

        if op is BinaryOperator.EQ:
            return self._equals(node, left, right)
        if op is BinaryOperator.NE:
            return not self._equals(node, left, right)

        if op in ORDERING_TESTS:
            comparison = self._compare(node, left, right)
            if comparison is None:
                return False
            return ORDERING_TESTS[op](comparison)

        # =~ and !~
        if left is None or right is None:
            return False
        if not isinstance(left, str) or not isinstance(right, str):
            raise _mismatch(
                node,
                f"'{op.value}' requires strings, got {type_name(left)} "
                f"and {type_name(right)}",
            )
        found = _compile_regex(node, right).search(left) is not None
        return found if op is BinaryOperator.REGEX_EQ else not found

    def _eval_like(self, node: Like) -> Value:
        """Evaluate LIKE / ILIKE."""
        subject = self.evaluate(node.subject)
        pattern = self.evaluate(node.pattern)

        if subject is None or pattern is None:
            return False
        if not isinstance(subject, str) or not isinstance(pattern, str):
            keyword = "ILIKE" if node.case_insensitive else "LIKE"
            raise _mismatch(
                node,
                f"{keyword} requires strings, got {type_name(subject)} "
                f"and {type_name(pattern)}",
            )

        matched = _like_regex(pattern, node.case_insensitive).fullmatch(subject) is not None
        return matched != node.negated

    def _eval_between(self, node: Between) -> Value:
        """Evaluate an inclusive range test."""
        subject = self.evaluate(node.subject)
        low = self.evaluate(node.low)
        high = self.evaluate(node.high)

        if subject is None or low is None or high is None:
            return False

        self._compare(node, low, high)
        inside = (
            self._compare(node, subject, low) >= 0
            and self._compare(node, subject, high) <= 0
        )
        return inside != node.negated

    def _eval_in(self, node: In) -> Value:
        """Evaluate membership in the candidate list."""
        subject = self.evaluate(node.subject)

        if subject is None:
            return False

        found = any(
            _equality(subject, self.evaluate(candidate)) is True
            for candidate in node.candidates
        )
        return found != node.negated

    def _eval_isnull(self, node: IsNull) -> Value:
        value = self.evaluate(node.subject)
        return (value is None) != node.negated

    def _eval_aggregate(self, node: Aggregate) -> Value:
        """Evaluate an aggregate function application."""
        argument = self.evaluate(node.argument)
        definition = self.aggregates.get(node.kind)

        try:
            return definition.implementation(argument)
        except EvaluationError as e:
            if e.node is not None:
                raise
            raise EvaluationError(e.kind, e.detail, to_tsl(node)) from e

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _eval_logical_chain(self, node: BinaryOp) -> bool:
        """Evaluate a run of AND (or of OR) with short-circuiting."""
        op = node.operator
        leftmost, links = binary_chain(node, frozenset({op}))

        value = self._bool_operand(links[0], leftmost)
        for link in links:
            if value is (op is BinaryOperator.OR):
                return value
            value = self._bool_operand(link, link.right)
        return value

    def _bool_operand(self, node: BinaryOp, operand: ASTNode) -> bool:
        value = self.evaluate(operand)
        if not isinstance(value, bool):
            raise _mismatch(
                node,
                f"{node.operator.value} requires boolean operands, got {type_name(value)}",
            )
        return value

    def _equals(self, node: ASTNode, left: Value, right: Value) -> bool:
        """Equality with NULL never equal to anything."""
        result = _equality(left, right)
        if result is None:
            raise _mismatch(
                node, f"Cannot compare {type_name(left)} with {type_name(right)}"
            )
        return result

    def _compare(self, node: ASTNode, left: Value, right: Value) -> int | None:
        """Compare two values, returning -1, 0 or 1, or None if either is NULL."""
        if left is None or right is None:
            return None

        left, right = _align_datetimes(left, right)
        left_kind, right_kind = kind_of(left), kind_of(right)

        if left_kind is not right_kind or left_kind not in ORDERED_KINDS:
            raise _mismatch(
                node, f"Cannot order {type_name(left)} and {type_name(right)}"
            )

        if left < right:
            return -1
        if left > right:
            return 1
        return 0

    def _arithmetic(self, node: BinaryOp, left: Value, right: Value) -> Value:
        """Apply + - * / % (NULL operands yield NULL)."""
        op = node.operator

        if left is None or right is None:
            return None

        left_kind, right_kind = kind_of(left), kind_of(right)

        # String concatenation
        if op is BinaryOperator.ADD and left_kind is right_kind is ValueKind.STRING:
            return left + right

        if left_kind is not ValueKind.NUMBER or right_kind is not ValueKind.NUMBER:
            raise _mismatch(
                node,
                f"Cannot apply '{op.value}' to {type_name(left)} and {type_name(right)}",
            )

        if op is BinaryOperator.ADD:
            return left + right
        if op is BinaryOperator.SUB:
            return left - right
        if op is BinaryOperator.MUL:
            return left * right

        if right == 0:
            raise EvaluationError(
                EvalErrorKind.DIVISION_BY_ZERO,
                "Division by zero" if op is BinaryOperator.DIV else "Modulo by zero",
                to_tsl(node),
            )
        if op is BinaryOperator.DIV:
            return left / right
        return math.fmod(left, right)


# -----------------------------------------------------------------------------
# Module helpers
# -----------------------------------------------------------------------------


def _mismatch(node: ASTNode, detail: str) -> EvaluationError:
    return EvaluationError(EvalErrorKind.TYPE_MISMATCH, detail, to_tsl(node))


def _align_datetimes(left: Value, right: Value) -> tuple[Value, Value]:
    """Read a string compared with a datetime as a date literal."""
    if isinstance(left, datetime) and isinstance(right, str):
        return left, _as_datetime(right)
    if isinstance(right, datetime) and isinstance(left, str):
        return _as_datetime(left), right
    return left, right


def _as_datetime(text: str) -> Value:
    try:
        parsed = parse_datetime(text)
    except ValueError:
        return text
    return text if parsed is None else parsed


def _equality(left: Value, right: Value) -> bool | None:
    """Equality of two values; None when their kinds cannot be compared."""
    if left is None or right is None:
        return False

    left, right = _align_datetimes(left, right)
    left_kind, right_kind = kind_of(left), kind_of(right)

    if left_kind is not right_kind:
        return None

    if left_kind is ValueKind.LIST:
        if len(left) != len(right):
            return False
        for left_item, right_item in zip(left, right):
            result = _equality(left_item, right_item)
            if result is not True:
                return result
        return True

    return left == right


@lru_cache(maxsize=256)
def _like_regex(pattern: str, case_insensitive: bool) -> re.Pattern:
    """Translate a LIKE pattern (% any run, _ one char, \\ escape) to a regex."""
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
        i += 1

    flags = re.DOTALL | (re.IGNORECASE if case_insensitive else 0)
    return re.compile("".join(parts), flags)


@lru_cache(maxsize=256)
def _cached_regex(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def _compile_regex(node: ASTNode, pattern: str) -> re.Pattern:
    try:
        return _cached_regex(pattern)
    except re.error as e:
        raise EvaluationError(
            EvalErrorKind.REGEX_COMPILE_ERROR,
            f"Invalid regular expression {pattern!r}: {e}",
            to_tsl(node),
        ) from e


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def evaluate(
    expression: str | ASTNode,
    record: Mapping[str, Any] | None = None,
    strict: bool | None = None,
    config: TSLConfig | None = None,
) -> Value:
    """Evaluate an expression against a record.

    This is the main entry point for expression evaluation.

    Args:
        expression: Expression source, or an AST returned by ``parse``
        record: Field values of the record
        strict: Raise for unknown fields instead of resolving them to NULL
            (defaults to ``config.strict_fields``)
        config: Parser limits and evaluation policy

    Returns:
        The resulting runtime value

    Example:
        result = evaluate(
            "status = 'active' AND count > 0",
            {"status": "active", "count": 5}
        )
        # result = True
    """
    config = config or TSLConfig()
    ast = parse(expression, config) if isinstance(expression, str) else expression
    evaluator = Evaluator(
        EvaluationContext(record=record or {}),
        strict=config.strict_fields if strict is None else strict,
    )
    return evaluator.evaluate(ast)


def evaluate_bool(
    expression: str | ASTNode,
    record: Mapping[str, Any] | None = None,
    strict: bool | None = None,
    config: TSLConfig | None = None,
) -> bool:
    """Evaluate a filter and decide whether the record matches.

    NULL counts as "no match"; any other non-boolean result is an error.
    """
    result = evaluate(expression, record, strict, config)

    if result is None:
        return False
    if isinstance(result, bool):
        return result
    raise EvaluationError(
        EvalErrorKind.TYPE_MISMATCH,
        f"Filter must evaluate to a boolean, got {type_name(result)}",
    )
