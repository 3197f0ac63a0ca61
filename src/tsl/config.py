"""Runtime configuration for parsing and evaluation."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TSLConfig:
    """Limits and policies applied by the parser and evaluator.

    Attributes:
        strict_fields: Raise UNDEFINED_FIELD for fields missing from the
            record instead of resolving them to NULL
        max_depth: Maximum nesting of parentheses, lists, aggregates and
            prefix operators accepted by the parser
        max_length: Maximum source length in characters
        log_level: Level name used by the CLI to configure logging
    """

    strict_fields: bool = False
    max_depth: int = 64
    max_length: int = 65536
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> TSLConfig:
        """Create config from environment variables.

        Reads TSL_STRICT_FIELDS, TSL_MAX_DEPTH, TSL_MAX_LENGTH and
        TSL_LOG_LEVEL; unset variables keep their defaults.

        Raises:
            ValueError: If a numeric variable is not a positive integer
        """
        defaults = cls()
        strict = os.environ.get("TSL_STRICT_FIELDS")
        return cls(
            strict_fields=(
                strict.strip().lower() in _TRUE_VALUES
                if strict is not None
                else defaults.strict_fields
            ),
            max_depth=_positive_int("TSL_MAX_DEPTH", defaults.max_depth),
            max_length=_positive_int("TSL_MAX_LENGTH", defaults.max_length),
            log_level=os.environ.get("TSL_LOG_LEVEL", defaults.log_level).upper(),
        )


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value
