"""
=============================================================================
HEADER TOKEN AUTHORIZATION
=============================================================================

The simplest useful gate: protect a set of paths with a shared token sent
in a request header.

    server.use(HeaderAuthMiddleware(["/secret"], token="secret_token"))

    GET /secret                                  → 401 Unauthorized
    GET /secret  + "Authorization: secret_token" → handler runs
    GET /public                                  → handler runs

The header name is matched with the exact casing given here, like every
other header lookup in this package.

This is a demonstration gate, not real authentication. The token is a
shared secret compared with hmac.compare_digest, and the protected list
is exact-path only.

=============================================================================
"""

import hmac
import logging
from typing import Iterable

from .base import GateResult, Middleware
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class HeaderAuthMiddleware(Middleware):
    """
    Reject requests to protected paths that lack the expected header value.

    Args:
        paths: Exact request paths to protect.
        token: Value the header must equal.
        header: Header name to read (case-sensitive).
        body: Response body on rejection.
    """

    def __init__(
        self,
        paths: Iterable[str],
        token: str = "secret_token",
        header: str = "Authorization",
        body: str = "Unauthorized",
    ):
        self.paths = set(paths)
        self.token = token
        self.header = header
        self.body = body

    def __call__(self, request: Request, response: Response) -> GateResult:
        if request.path not in self.paths:
            return GateResult.CONTINUE

        supplied = request.get_header(self.header)
        if hmac.compare_digest(supplied.encode("utf-8"), self.token.encode("utf-8")):
            return GateResult.CONTINUE

        logger.info(f"Rejected {request.method} {request.path}: missing or wrong {self.header}")
        response.status_code = HTTPStatus.UNAUTHORIZED
        response.set_body(self.body)
        return GateResult.STOP
