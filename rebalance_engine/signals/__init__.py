"""Signal clients and rule expressions."""

from .expression import Comparison, ExpressionError, parse_expression
from .provider import SignalClient
from .stub_provider import StubSignalClient

__all__ = [
    "Comparison",
    "ExpressionError",
    "SignalClient",
    "StubSignalClient",
    "parse_expression",
]
