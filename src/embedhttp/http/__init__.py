"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows what HTTP looks like on the wire, and nothing that
knows about sockets or threads:

    request.py       bytes → Request
    response.py      Response → bytes
    router.py        (method, path) → handler + path params
    status_codes.py  HTTPStatus enum and reason phrases
    mime_types.py    file extension → Content-Type

Because none of these modules touch the network, they can be tested with
plain byte strings.

=============================================================================
"""

from .request import (
    Request,
    RequestParser,
    JSONScalar,
    parse_request,
    parse_url_encoded,
    parse_cookies,
    scan_flat_json,
)
from .response import Response, NOT_FOUND_BODY
from .router import Router, Route, RouteMatch, Handler
from .status_codes import HTTPStatus, reason_phrase
from .mime_types import get_mime_type

__all__ = [
    # Request parsing
    "Request",
    "RequestParser",
    "JSONScalar",
    "parse_request",
    "parse_url_encoded",
    "parse_cookies",
    "scan_flat_json",

    # Response
    "Response",
    "NOT_FOUND_BODY",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "Handler",

    # Status codes
    "HTTPStatus",
    "reason_phrase",

    # MIME types
    "get_mime_type",
]
