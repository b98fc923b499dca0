"""
=============================================================================
MIDDLEWARE CHAIN
=============================================================================

Middleware here are GATES: small functions that run before routing and
decide whether the request goes any further.

    request ──► gate 1 ──► gate 2 ──► gate 3 ──► router ──► handler
                  │          │          │
                  └── STOP ──┴── STOP ──┴──► response sent as-is

Each gate receives the same mutable Request and Response. It can:

    - inspect the request (path, headers, cookies)
    - write to the response (headers, status, body)
    - return GateResult.CONTINUE to hand over to the next gate
    - return GateResult.STOP to end processing right there

When a gate stops the chain the router is never consulted. Whatever the
gate left in the response (status, body, headers) is exactly what the
client receives. That is the only way to answer early, e.g. with a 401:

    def require_token(request, response):
        if request.get_header("Authorization") != "secret_token":
            response.status_code = 401
            response.set_body("Unauthorized")
            return GateResult.STOP
        return GateResult.CONTINUE

=============================================================================
RETURN VALUES
=============================================================================

    GateResult.CONTINUE     keep going
    GateResult.STOP         halt, skip routing
    True                    same as CONTINUE
    False                   same as STOP

Plain booleans are accepted so that one-line lambdas work:

    server.use(lambda req, res: req.path != "/blocked")

Gates run one after another on the worker thread that owns the
connection. There is no "after" phase: gates cannot see the handler's
response because it does not exist yet.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Iterator, List, Optional, Union

from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


class GateResult(Enum):
    """Outcome of a single gate."""

    CONTINUE = "continue"
    STOP = "stop"

    @classmethod
    def of(cls, value: Union["GateResult", bool, None]) -> "GateResult":
        """
        Normalize what a gate returned.

        Only STOP and False stop the chain. Anything else, including a
        gate that forgot to return (None), continues.
        """
        if value is cls.STOP or value is False:
            return cls.STOP
        return cls.CONTINUE


GateFunction = Callable[[Request, Response], Union[GateResult, bool, None]]


class Middleware(ABC):
    """
    Base class for class-based gates.

    Subclass when the gate has configuration:

        class BlockPaths(Middleware):
            def __init__(self, paths):
                self.paths = set(paths)

            def __call__(self, request, response):
                if request.path in self.paths:
                    response.status_code = 403
                    return GateResult.STOP
                return GateResult.CONTINUE
    """

    @abstractmethod
    def __call__(self, request: Request, response: Response) -> Union[GateResult, bool]:
        """Inspect the request, optionally write the response, decide."""

    @property
    def name(self) -> str:
        """Name used in log messages."""
        return self.__class__.__name__


class FunctionMiddleware(Middleware):
    """
    Wraps a plain function as a Middleware so the chain can log its name.

    MiddlewareChain.add() does the wrapping automatically; you only need
    this class directly to give a lambda a readable name.
    """

    def __init__(self, func: GateFunction, name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", "gate")

    def __call__(self, request: Request, response: Response) -> Union[GateResult, bool, None]:
        return self._func(request, response)

    @property
    def name(self) -> str:
        return self._name


class MiddlewareChain:
    """
    Ordered list of gates, run before routing.

        chain = MiddlewareChain()
        chain.add(LoggingMiddleware())
        chain.add(HeaderAuthMiddleware(["/secret"]))

        if chain.run(request, response):
            router.dispatch(request, response)
        # else: send response untouched

    The chain is owned by one server instance and is read-only once the
    server is listening.
    """

    def __init__(self):
        self._gates: List[Middleware] = []

    def add(self, gate: Union[Middleware, GateFunction]) -> "MiddlewareChain":
        """
        Append a gate. Gates run in the order they were added.

        Returns:
            Self for chaining: chain.add(a).add(b)
        """
        if not isinstance(gate, Middleware):
            gate = FunctionMiddleware(gate)
        self._gates.append(gate)
        logger.debug(f"Added middleware: {gate.name}")
        return self

    def run(self, request: Request, response: Response) -> bool:
        """
        Run every gate in order until one stops.

        Returns:
            True if routing should proceed, False if a gate stopped the
            chain (the response is then final).
        """
        for gate in self._gates:
            if GateResult.of(gate(request, response)) is GateResult.STOP:
                logger.debug(f"{gate.name} stopped {request.method} {request.path}")
                return False
        return True

    def __len__(self) -> int:
        return len(self._gates)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._gates)
