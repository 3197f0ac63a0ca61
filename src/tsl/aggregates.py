"""Aggregate function registry for TSL.

Aggregates are callable from expressions (e.g., `LEN(tags) > 0`,
`SUM(scores) >= 10`). Each aggregate is registered with metadata for
documentation, which the CLI exports with `tsl aggregates`.
"""

from dataclasses import dataclass, field
from typing import Any, Callable

from tsl.errors import EvalErrorKind, EvaluationError
from tsl.nodes import AggregateKind
from tsl.values import Value, ValueKind, kind_of, type_name


@dataclass(frozen=True)
class AggregateDefinition:
    """Complete definition of an aggregate function.

    Attributes:
        kind: The aggregate keyword this definition implements
        description: Human-readable description
        parameter_type: Accepted operand kinds, for documentation
        return_type: Kind of the return value
        examples: Example expressions using this aggregate
        implementation: The Python callable, taking one runtime value
    """

    kind: AggregateKind
    description: str
    parameter_type: str
    return_type: str
    implementation: Callable[[Value], Value]
    examples: tuple[str, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation output."""
        return {
            "name": self.name,
            "description": self.description,
            "parameterType": self.parameter_type,
            "returnType": self.return_type,
            "examples": list(self.examples),
        }


class AggregateRegistry:
    """Registry mapping aggregate kinds to their implementations.

    Registries are plain instances so hosts can evaluate with a customised
    copy without touching the shared default.

    Example:
        registry = AggregateRegistry.with_builtins()
        definition = registry.get(AggregateKind.LEN)
        definition.implementation("abc")  # Returns 3.0
    """

    def __init__(self) -> None:
        self._aggregates: dict[AggregateKind, AggregateDefinition] = {}

    @classmethod
    def with_builtins(cls) -> "AggregateRegistry":
        """Create a registry holding LEN, ANY, ALL and SUM."""
        registry = cls()
        for definition in BUILTIN_AGGREGATES:
            registry.register(definition)
        return registry

    def register(self, definition: AggregateDefinition) -> None:
        """Register (or replace) an aggregate definition."""
        self._aggregates[definition.kind] = definition

    def get(self, kind: AggregateKind) -> AggregateDefinition:
        """Get an aggregate definition.

        Raises:
            ValueError: If the aggregate is not registered
        """
        if kind not in self._aggregates:
            raise ValueError(f"Unknown aggregate: {kind.value}")
        return self._aggregates[kind]

    def is_registered(self, kind: AggregateKind) -> bool:
        return kind in self._aggregates

    def list_all(self) -> list[AggregateDefinition]:
        return list(self._aggregates.values())

    def export_documentation(self) -> dict[str, Any]:
        """Export the full registry for documentation."""
        return {
            "aggregates": {
                d.name: d.to_dict() for d in self._aggregates.values()
            },
        }


# -----------------------------------------------------------------------------
# Built-in aggregates
# -----------------------------------------------------------------------------


def _require_list(name: str, value: Value) -> tuple:
    if kind_of(value) is not ValueKind.LIST:
        raise EvaluationError(
            EvalErrorKind.INVALID_AGGREGATE_OPERAND,
            f"{name} requires a list, got {type_name(value)}",
        )
    return value


def _len(value: Value) -> Value:
    """Number of elements of a list, or characters of a string."""
    if value is None:
        return None
    if kind_of(value) in (ValueKind.LIST, ValueKind.STRING):
        return float(len(value))
    raise EvaluationError(
        EvalErrorKind.INVALID_AGGREGATE_OPERAND,
        f"LEN requires a list or string, got {type_name(value)}",
    )


def _sum(value: Value) -> Value:
    if value is None:
        return None
    total = 0.0
    for item in _require_list("SUM", value):
        if kind_of(item) is not ValueKind.NUMBER:
            raise EvaluationError(
                EvalErrorKind.TYPE_MISMATCH,
                f"SUM requires numbers, found {type_name(item)}",
            )
        total += item
    return total


def _bools(name: str, value: tuple) -> list[bool]:
    items = list(_require_list(name, value))
    for item in items:
        if kind_of(item) is not ValueKind.BOOL:
            raise EvaluationError(
                EvalErrorKind.TYPE_MISMATCH,
                f"{name} requires booleans, found {type_name(item)}",
            )
    return items


def _any(value: Value) -> Value:
    if value is None:
        return None
    return any(_bools("ANY", value))


def _all(value: Value) -> Value:
    if value is None:
        return None
    return all(_bools("ALL", value))


BUILTIN_AGGREGATES = (
    AggregateDefinition(
        kind=AggregateKind.LEN,
        description="Returns the number of elements of a list or characters of a string",
        parameter_type="list | string",
        return_type="number",
        implementation=_len,
        examples=("LEN(tags) > 0", "LEN(name) <= 64"),
    ),
    AggregateDefinition(
        kind=AggregateKind.SUM,
        description="Returns the sum of a list of numbers",
        parameter_type="list<number>",
        return_type="number",
        implementation=_sum,
        examples=("SUM(scores) >= 10", "SUM([1, 2, 3]) = 6"),
    ),
    AggregateDefinition(
        kind=AggregateKind.ANY,
        description="Returns true if any element of a list of booleans is true (false when empty)",
        parameter_type="list<bool>",
        return_type="bool",
        implementation=_any,
        examples=("ANY(flags)", "ANY([a > 1, b > 1])"),
    ),
    AggregateDefinition(
        kind=AggregateKind.ALL,
        description="Returns true if every element of a list of booleans is true (true when empty)",
        parameter_type="list<bool>",
        return_type="bool",
        implementation=_all,
        examples=("ALL(checks)", "ALL([x > 0, y > 0])"),
    ),
)
