"""Restricted comparison expressions for signal rules.

Rules such as ``"value < 25"`` are parsed into a small ``Comparison``
structure and evaluated numerically. The grammar is exactly::

    value <op> <number>      op: <  <=  >  >=  ==  !=

Nothing else is accepted, and nothing is ever handed to ``eval``.
"""

import math
import operator
import re
from dataclasses import dataclass
from typing import Callable

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_EXPRESSION_RE = re.compile(
    r"^\s*value\s*(<=|>=|==|!=|<|>)\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)\s*$"
)


class ExpressionError(ValueError):
    """Raised when a rule expression is outside the supported grammar."""


@dataclass(frozen=True)
class Comparison:
    """Parsed ``value <op> threshold`` expression."""

    operator: str
    threshold: float

    def __post_init__(self) -> None:
        if self.operator not in _OPERATORS:
            raise ExpressionError(f"Unsupported operator: {self.operator!r}")
        if not math.isfinite(self.threshold):
            raise ExpressionError("Threshold must be a finite number")

    def evaluate(self, value: float) -> bool:
        """Apply the comparison to a reading. Non-finite readings never match."""
        if not math.isfinite(value):
            return False
        return _OPERATORS[self.operator](value, self.threshold)

    def __str__(self) -> str:
        return f"value {self.operator} {self.threshold:g}"


def parse_expression(text: str) -> Comparison:
    """
    Parse a rule expression.

    Args:
        text: Expression such as ``"value >= 75"``

    Returns:
        Parsed comparison

    Raises:
        ExpressionError: If the text does not match the grammar
    """
    match = _EXPRESSION_RE.match(text or "")
    if match is None:
        raise ExpressionError(f"Invalid signal expression: {text!r}")
    op, threshold = match.groups()
    return Comparison(operator=op, threshold=float(threshold))
