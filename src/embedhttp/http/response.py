"""
=============================================================================
HTTP RESPONSE
=============================================================================

Handlers and middleware never build bytes themselves. They receive a
mutable Response, fill it in, and the connection handler serializes it
exactly once when the request cycle is over:

    handler(request, response)          response.to_bytes(keep_alive)
    ───────────────────────────   →     ─────────────────────────────
    response.send("User ID: 42")        HTTP/1.1 200 OK\\r\\n
    response.set_cookie("a", "1")       Content-Type: text/html\\r\\n
                                        Server: embedhttp/0.1.0\\r\\n
                                        Content-Length: 11\\r\\n
                                        Connection: keep-alive\\r\\n
                                        Set-Cookie: a=1\\r\\n
                                        \\r\\n
                                        User ID: 42

=============================================================================
WIRE LAYOUT (fixed order)
=============================================================================

    1. Status line       HTTP/1.1 <code> OK
    2. Content-Type      response.content_type
    3. Server            config.server_name
    4. Content-Length    len(body) in BYTES, never characters
    5. Connection        keep-alive | close
    6. Custom headers    response.headers, one line each
    7. Set-Cookie        one line per response.cookies entry
    8. Blank line
    9. Body              verbatim

The reason phrase is "OK" for every status code unless the caller asks
for standard phrases (see status_codes.py).

=============================================================================
"""

import json as jsonlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union

from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)


NOT_FOUND_BODY = "<h1>404 Not Found</h1>"
FILE_NOT_FOUND_BODY = "<h1>404 File Not Found</h1>"
TEMPLATE_NOT_FOUND_BODY = "<h1>404 Template Not Found</h1>"

DEFAULT_SERVER_NAME = "embedhttp"


@dataclass
class Response:
    """
    The response a handler builds.

    Defaults describe an empty 200 HTML page, so a handler that only
    sets the body is already complete.

    Attributes:
        body:         Response payload as bytes
        status_code:  Integer status (200 unless changed)
        content_type: Value of the Content-Type header
        headers:      Extra headers written after the fixed ones
        cookies:      Pending Set-Cookie values, in the order they were set
    """

    body: bytes = b""
    status_code: int = HTTPStatus.OK
    content_type: str = "text/html"
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: List[str] = field(default_factory=list)

    # =========================================================================
    # MUTATORS
    # =========================================================================

    def set_header(self, name: str, value: str) -> "Response":
        """
        Set a custom header. Setting the same name twice keeps the last value.

        Returns self so calls can be chained:
            response.set_header("X-A", "1").set_header("X-B", "2")
        """
        self.headers[name] = value
        return self

    def set_cookie(self, name: str, value: str, options: str = "") -> "Response":
        """
        Queue a Set-Cookie header.

        Args:
            name: Cookie name
            value: Cookie value (sent as-is)
            options: Attribute string appended after "; "
                     e.g. "Path=/; HttpOnly; Max-Age=3600"

        Unlike headers, cookies accumulate: two calls produce two
        Set-Cookie lines, even for the same name.
        """
        cookie = f"{name}={value}"
        if options:
            cookie += f"; {options}"
        self.cookies.append(cookie)
        return self

    def set_body(self, body: Union[str, bytes]) -> "Response":
        """Set the body, encoding str as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    # =========================================================================
    # CONVENIENCE SETTERS
    # =========================================================================
    # Each one resets status and content type as well as the body, so a
    # handler can call them without worrying about what middleware did.

    def send(self, text: Union[str, bytes]) -> "Response":
        """200 text/html with the given body."""
        self.set_body(text)
        self.status_code = HTTPStatus.OK
        self.content_type = "text/html"
        return self

    def json(self, data: Any) -> "Response":
        """
        200 application/json.

        A str is taken to be JSON text already and sent verbatim. Any
        other value is serialized with json.dumps.
        """
        if isinstance(data, (str, bytes)):
            self.set_body(data)
        else:
            self.set_body(jsonlib.dumps(data, ensure_ascii=False))
        self.status_code = HTTPStatus.OK
        self.content_type = "application/json"
        return self

    def redirect(self, url: str) -> "Response":
        """302 Found with a Location header and an empty body."""
        self.status_code = HTTPStatus.FOUND
        self.set_header("Location", url)
        self.body = b""
        return self

    def send_file(self, filepath: str) -> "Response":
        """
        Serve a file from disk.

        On success: 200 with the file's bytes and extension-based MIME
        type. On a missing or unreadable file: 404 with a fixed page.
        """
        from ..handlers.static import read_static_file

        try:
            content, mime_type = read_static_file(filepath)
        except FileNotFoundError:
            logger.debug(f"File not found: {filepath}")
            self.status_code = HTTPStatus.NOT_FOUND
            self.set_body(FILE_NOT_FOUND_BODY)
            return self

        self.body = content
        self.content_type = mime_type
        self.status_code = HTTPStatus.OK
        return self

    def render(self, filepath: str, data: Mapping[str, str]) -> "Response":
        """
        Render an HTML template, replacing every {{key}} with data[key].

        On a missing template: 404 with a fixed page.
        """
        from ..handlers.templates import render_template

        try:
            content = render_template(filepath, data)
        except FileNotFoundError:
            logger.debug(f"Template not found: {filepath}")
            self.status_code = HTTPStatus.NOT_FOUND
            self.set_body(TEMPLATE_NOT_FOUND_BODY)
            return self

        self.set_body(content)
        self.content_type = "text/html"
        self.status_code = HTTPStatus.OK
        return self

    def not_found(self) -> "Response":
        """The fixed 404 page sent when no route matches."""
        self.status_code = HTTPStatus.NOT_FOUND
        self.content_type = "text/html"
        self.set_body(NOT_FOUND_BODY)
        return self

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def status_line(self, reason_phrases: bool = False) -> str:
        """
        "HTTP/1.1 404 OK" by default, "HTTP/1.1 404 Not Found" with
        reason_phrases=True.
        """
        phrase = reason_phrase(self.status_code) if reason_phrases else "OK"
        return f"HTTP/1.1 {int(self.status_code)} {phrase}"

    def to_bytes(
        self,
        keep_alive: bool = True,
        server_name: str = DEFAULT_SERVER_NAME,
        reason_phrases: bool = False,
    ) -> bytes:
        """
        Serialize the response for socket.sendall().

        Args:
            keep_alive: Value of the Connection header (decided per request
                        by the connection handler).
            server_name: Value of the Server header.
            reason_phrases: Use standard reason phrases in the status line.

        Returns:
            Header block (UTF-8) followed by the body bytes.
        """
        lines = [
            self.status_line(reason_phrases),
            f"Content-Type: {self.content_type}",
            f"Server: {server_name}",
            f"Content-Length: {len(self.body)}",
            f"Connection: {'keep-alive' if keep_alive else 'close'}",
        ]

        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")

        for cookie in self.cookies:
            lines.append(f"Set-Cookie: {cookie}")

        # Trailing "" gives the final CRLF before the blank line
        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        return header_bytes + self.body
