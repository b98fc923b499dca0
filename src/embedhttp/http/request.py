"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

This module turns the raw bytes of one recv() call into a Request object.

    b"POST /login?next=/home HTTP/1.1\\r\\n"          ← request line
    b"Content-Type: application/x-www-form-urlencoded\\r\\n"
    b"Cookie: theme=dark; lang=en\\r\\n"             ← headers
    b"\\r\\n"                                         ← blank line
    b"user=ada&pass=secret"                          ← body

                            │
                            ▼

    Request(
        method="POST",
        path="/login",
        query={"next": "/home"},
        headers={"Content-Type": "...", "Cookie": "..."},
        cookies={"theme": "dark", "lang": "en"},
        form={"user": "ada", "pass": "secret"},
        body=b"user=ada&pass=secret",
    )

=============================================================================
A DELIBERATELY SMALL DIALECT
=============================================================================

The parser handles a practical subset of HTTP/1.1, not the full RFC
grammar. The rules below are the contract handlers can rely on:

    1. NEVER RAISES
       Garbage in gives an empty method and path, which no route matches,
       so the client gets a well-formed 404.

    2. HEADERS ARE CASE-SENSITIVE
       Keys are stored exactly as the client sent them. A client that
       sends "content-type" will NOT be found by get_header("Content-Type").
       This is intentional and part of the external behavior; do not add
       .lower() here without changing every caller.

    3. NO PERCENT-DECODING
       "?q=hello%20world" gives {"q": "hello%20world"}. The raw text is
       passed through for the handler to decode if it cares.

    4. LAST ONE WINS
       Repeated query keys, form keys, cookies and headers overwrite.

    5. FLAT JSON ONLY
       A JSON body is scanned for top-level "key": value pairs. Nested
       objects and arrays are not supported; the scanner walks past them
       without failing.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union


logger = logging.getLogger(__name__)


# A JSON body value after scanning. The scanner only understands scalars.
JSONScalar = Union[str, int, float, bool, None]

HEADER_TERMINATOR = b"\r\n\r\n"

_NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")
_JSON_LITERALS = {"true": True, "false": False, "null": None}


@dataclass
class Request:
    """
    A parsed HTTP request.

    The parser fills everything except `params`, which the router sets
    once when a templated route matches. Handlers receive the request
    after that and should treat it as read-only.

    Attributes:
        method:   Request method as sent ("GET", "POST", ...)
        path:     Request path without the query string
        query:    Query string pairs (raw, not percent-decoded)
        headers:  Header name → value, names kept verbatim
        body:     Everything after the blank line, as bytes
        form:     url-encoded body pairs (only for non-JSON bodies)
        json:     Flat JSON body fields (only for application/json bodies)
        params:   Path parameters from a templated route (:id → "42")
        cookies:  Pairs from the Cookie header
        client_address: (ip, port) of the peer, for logging
    """

    method: str = ""
    path: str = ""
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    form: Dict[str, str] = field(default_factory=dict)
    json: Dict[str, JSONScalar] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    client_address: Tuple[str, int] = ("", 0)

    # =========================================================================
    # ACCESSORS - return "" instead of raising on a missing key
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """
        Get a header value by its EXACT name.

        Lookups are case-sensitive (see module docstring):

            request.get_header("Authorization")   # matches "Authorization: x"
            request.get_header("authorization")   # does not
        """
        return self.headers.get(name, default)

    def get_cookie(self, name: str, default: str = "") -> str:
        return self.cookies.get(name, default)

    def get_query(self, name: str, default: str = "") -> str:
        return self.query.get(name, default)

    def get_form(self, name: str, default: str = "") -> str:
        return self.form.get(name, default)

    def get_param(self, name: str, default: str = "") -> str:
        return self.params.get(name, default)

    def get_json(self, name: str, default: JSONScalar = None) -> JSONScalar:
        """Get a top-level JSON body field (str, int, float, bool or None)."""
        return self.json.get(name, default)

    @property
    def content_type(self) -> str:
        """Raw Content-Type header value, or "" if the client sent none."""
        return self.headers.get("Content-Type", "")

    @property
    def is_json(self) -> bool:
        return "application/json" in self.content_type

    @property
    def wants_keep_alive(self) -> bool:
        """
        Should the connection stay open after this request?

        Only an exact "Connection: close" ends it. Everything else,
        including a missing header or HTTP/1.0, keeps the connection open.
        """
        return self.headers.get("Connection") != "close"


class RequestParser:
    """
    Parses raw request bytes into Request objects.

        ┌───────────────────────────────────────────────────────────────┐
        │  parse(data)                                                  │
        ├───────────────────────────────────────────────────────────────┤
        │                                                               │
        │  1. Split at first \\r\\n\\r\\n  → header block | body           │
        │     (no terminator: everything is headers, body is empty)     │
        │                                                               │
        │  2. Request line       → method, path, query                  │
        │                                                               │
        │  3. Header lines       → headers (+ cookies from "Cookie")    │
        │     stop at the first blank line                              │
        │                                                               │
        │  4. Body (if any)      → json   (Content-Type has JSON)       │
        │                          form   (anything else)               │
        │                                                               │
        └───────────────────────────────────────────────────────────────┘

    The parser is stateless, so one instance is shared by every worker.
    """

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> Request:
        """
        Parse one request worth of bytes.

        Args:
            data: Bytes from a single socket read.
            client_address: Peer (ip, port), copied onto the request.

        Returns:
            A Request. Malformed input produces a Request with an empty
            method and path instead of an exception.
        """
        request = Request(client_address=client_address)

        # ─────────────────────────────────────────────────────────────────
        # STEP 1: Header block vs body
        # ─────────────────────────────────────────────────────────────────
        # A read that was cut short before the blank line is treated as
        # headers only. The request is still dispatched.
        header_end = data.find(HEADER_TERMINATOR)
        if header_end == -1:
            header_bytes = data
        else:
            header_bytes = data[:header_end]
            request.body = data[header_end + len(HEADER_TERMINATOR):]

        header_section = header_bytes.decode("utf-8", errors="replace")
        lines = [_strip_cr(line) for line in header_section.split("\n")]

        # ─────────────────────────────────────────────────────────────────
        # STEP 2: Request line
        # ─────────────────────────────────────────────────────────────────
        self._parse_request_line(lines[0], request)

        # ─────────────────────────────────────────────────────────────────
        # STEP 3: Headers
        # ─────────────────────────────────────────────────────────────────
        self._parse_headers(lines[1:], request)

        # ─────────────────────────────────────────────────────────────────
        # STEP 4: Body
        # ─────────────────────────────────────────────────────────────────
        if request.body:
            text = request.body.decode("utf-8", errors="replace")
            if request.is_json:
                request.json = scan_flat_json(text)
            else:
                request.form = parse_url_encoded(text)

        return request

    def _parse_request_line(self, line: str, request: Request) -> None:
        """
        "GET /users?page=2 HTTP/1.1" → method, path and query.

        The line is split on any whitespace. The HTTP version token is
        read past and ignored.
        """
        tokens = line.split()
        if not tokens:
            logger.debug("Request without a request line")
            return

        request.method = tokens[0]
        target = tokens[1] if len(tokens) > 1 else ""

        path, sep, raw_query = target.partition("?")
        request.path = path
        if sep:
            request.query = parse_url_encoded(raw_query)

    def _parse_headers(self, lines: list, request: Request) -> None:
        """
        "Name: value" lines up to the first blank line.

        Only ONE leading space is removed from the value, matching what
        clients actually send. Lines with no colon are skipped.
        """
        for line in lines:
            if not line:
                break

            name, sep, value = line.partition(":")
            if not sep:
                continue

            if value.startswith(" "):
                value = value[1:]

            request.headers[name] = value

            # Exact name match, like every other header lookup
            if name == "Cookie":
                request.cookies.update(parse_cookies(value))


# =============================================================================
# PAIR PARSERS
# =============================================================================

def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def parse_url_encoded(raw: str) -> Dict[str, str]:
    """
    Split "a=1&b=2" into {"a": "1", "b": "2"}.

    Used for both query strings and form bodies:
        - pairs are separated by "&", empty pieces are skipped
        - key and value split on the FIRST "=" ("a=b=c" → {"a": "b=c"})
        - a piece with no "=" is dropped ("flag&a=1" → {"a": "1"})
        - values are NOT percent-decoded
        - a repeated key keeps the last value
    """
    pairs: Dict[str, str] = {}
    for piece in raw.split("&"):
        if not piece:
            continue
        key, sep, value = piece.partition("=")
        if sep:
            pairs[key] = value
    return pairs


def parse_cookies(header_value: str) -> Dict[str, str]:
    """
    Split a Cookie header value into pairs.

        "session_id=12345; theme=dark" → {"session_id": "12345", "theme": "dark"}
    """
    cookies: Dict[str, str] = {}
    for segment in header_value.split(";"):
        key, sep, value = segment.partition("=")
        if sep:
            cookies[key.strip()] = value.strip()
    return cookies


# =============================================================================
# FLAT JSON SCANNER
# =============================================================================

def scan_flat_json(text: str) -> Dict[str, JSONScalar]:
    """
    Extract top-level "key": value pairs from a JSON object.

    This is a scanner, not a parser. It hops from one quoted key to the
    next and reads the value that follows the colon:

        {"name": "Ada", "age": 36, "admin": true, "team": null}
          ────    ───    ───  ──    ─────   ────   ────   ────
          key     str    key  int   key     bool   key    None

    Value rules:
        "..."        → str, quotes removed, escapes NOT interpreted
        36, -1.5e3   → int / float
        true/false   → bool
        null         → None
        anything else that is a bare word stays a str

    Limitations (known, not bugs):
        - A value starting with { or [ is recorded as "", and the scan
          carries on from there, so keys inside nested structures can
          surface at the top level.
        - A string containing an escaped quote ends early.

    Never raises. Input that is not JSON at all yields {}.
    """
    fields: Dict[str, JSONScalar] = {}
    length = len(text)
    pos = 0

    while pos < length:
        key_start = text.find('"', pos)
        if key_start == -1:
            break
        key_end = text.find('"', key_start + 1)
        if key_end == -1:
            break
        key = text[key_start + 1:key_end]

        colon = text.find(":", key_end)
        if colon == -1:
            break

        value_start = colon + 1
        while value_start < length and text[value_start].isspace():
            value_start += 1
        if value_start >= length:
            break

        if text[value_start] == '"':
            value_end = text.find('"', value_start + 1)
            if value_end == -1:
                break
            fields[key] = text[value_start + 1:value_end]
            pos = value_end + 1
        else:
            value_end = value_start
            while value_end < length and (text[value_end].isalnum() or text[value_end] in ".-+"):
                value_end += 1
            literal = text[value_start:value_end]
            # { or [ gives an empty literal: the key is kept with ""
            fields[key] = _coerce_literal(literal) if literal else ""
            pos = value_end

    return fields


def _coerce_literal(literal: str) -> JSONScalar:
    """Turn a bare JSON token into the matching Python scalar."""
    if literal in _JSON_LITERALS:
        return _JSON_LITERALS[literal]

    if _NUMBER_PATTERN.match(literal):
        if "." in literal or "e" in literal or "E" in literal:
            return float(literal)
        return int(literal)

    return literal


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
) -> Request:
    """
    Convenience function: parse with a throwaway RequestParser.

    Use a shared RequestParser when parsing many requests.
    """
    return RequestParser().parse(data, client_address)
