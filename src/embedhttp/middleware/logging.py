"""
=============================================================================
REQUEST LOGGING
=============================================================================

Two pieces live here:

    LoggingMiddleware   a gate that logs every incoming request and tags
                        the response with an X-Request-ID header

    AccessLogEntry      one line per completed request, written by the
                        server after the response has been sent

Gates run before the handler, so a gate alone can never log the final
status code. The server fills in an AccessLogEntry once the response
bytes are on the wire and the request ID set by the gate (if any) ties
the two lines together.

=============================================================================
LOGGERS
=============================================================================

    embedhttp.middleware.logging    incoming request lines (this gate)
    embedhttp.access                completed request lines (the server)

Route them separately if needed:

    logging.getLogger("embedhttp.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

from .base import GateResult, Middleware
from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("embedhttp.access")

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class AccessLogEntry:
    """
    Structured record of one request/response cycle.

    request_id is empty unless LoggingMiddleware ran for the request.
    """

    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    keep_alive: bool
    request_id: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Common-log style: 127.0.0.1 "GET /user/42" 200 11 0.42ms"""
        return (
            f'{self.client_ip or "-"} "{self.method} {self.path}" '
            f"{self.status_code} {self.content_length} {self.duration_ms:.2f}ms"
        )

    def emit(self, log_format: str = "text") -> None:
        """Write the entry to the access logger in the configured format."""
        if log_format == "json":
            access_logger.info(json.dumps(self.to_dict()))
        else:
            access_logger.info(self.to_text())


class LoggingMiddleware(Middleware):
    """
    Gate that logs each request and never stops the chain.

    Put it first so it also sees requests that later gates reject:

        server.use(LoggingMiddleware())
        server.use(HeaderAuthMiddleware(["/secret"]))

    Args:
        log_level: Level for the request line (default INFO).
        include_request_id: Add an X-Request-ID header to the response.
        skip_paths: Paths that are not logged (health checks etc.).
    """

    def __init__(
        self,
        log_level: int = logging.INFO,
        include_request_id: bool = True,
        skip_paths: Optional[list] = None,
    ):
        self.log_level = log_level
        self.include_request_id = include_request_id
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: Request, response: Response) -> GateResult:
        if self.include_request_id:
            response.set_header(REQUEST_ID_HEADER, str(uuid.uuid4())[:8])

        if request.path not in self.skip_paths:
            request_id = response.headers.get(REQUEST_ID_HEADER, "-")
            logger.log(
                self.log_level,
                f"[{request_id}] {request.method} {request.path} from {request.client_address[0] or '-'}",
            )

        return GateResult.CONTINUE
