"""
=============================================================================
MIDDLEWARE
=============================================================================

Gates that run before routing, in registration order. Any gate can stop
the chain, in which case its response is sent and no handler runs.

    base.py      GateResult, Middleware, MiddlewareChain
    logging.py   LoggingMiddleware, AccessLogEntry
    auth.py      HeaderAuthMiddleware

=============================================================================
"""

from .base import GateResult, Middleware, FunctionMiddleware, MiddlewareChain
from .logging import LoggingMiddleware, AccessLogEntry
from .auth import HeaderAuthMiddleware

__all__ = [
    # Base classes
    "GateResult",
    "Middleware",
    "FunctionMiddleware",
    "MiddlewareChain",

    # Built-in middleware
    "LoggingMiddleware",
    "AccessLogEntry",
    "HeaderAuthMiddleware",
]
