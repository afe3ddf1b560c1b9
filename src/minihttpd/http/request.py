"""
=============================================================================
HTTP REQUEST READER
=============================================================================

Reads the head of an HTTP/1.1 request (request line + headers) straight off
a buffered socket stream and turns it into a ParsedRequest.

=============================================================================
WHAT WE ACCEPT
=============================================================================

Only the minimal subset both server modes need:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │  POST /upload.txt HTTP/1.1\r\n       ← request line: EXACTLY 3      │
    │  ─┬── ─────┬───── ────┬───              whitespace-separated fields │
    │   │        │          │                                              │
    │ Method   Target    Version            (version is NOT validated)    │
    │                                                                      │
    │  Host: localhost:8080\r\n            ← "Key: Value", both trimmed   │
    │  Content-Length: 5\r\n               ← required for POST            │
    │  \r\n                                ← bare CRLF ends the head      │
    │                                                                      │
    │  hello                               ← body: NOT read here          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No chunked bodies, no keep-alive, no pipelining. A body is always exactly
Content-Length bytes.

=============================================================================
BYTE-EXACT READING
=============================================================================

The usual approach of "recv() until \\r\\n\\r\\n is in the buffer"
over-reads: the last recv() usually pulls in part of the body too. Here
that would break both modes:

    - Static POST must copy EXACTLY content_length bytes from the stream
      into the file.
    - Proxy mode forwards the head it read, unmodified.

So the reader works line by line on a buffered stream (socket.makefile).
readline() stops at the LF, and whatever follows stays in the stream's
buffer for the handler to read:

        stream: POST /a HTTP/1.1\\r\\nContent-Length: 5\\r\\n\\r\\nhello
                └────────────── read here ──────────────┘└ handler ┘

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Dict, Optional

from .errors import (
    MalformedRequestLine,
    HeaderTooLarge,
    MissingOrInvalidContentLength,
)


class Method(str, Enum):
    """
    The methods the server distinguishes.

    Anything that isn't GET or POST collapses to OTHER; handlers answer
    OTHER with 501 Not Implemented. The original token is kept on the
    ParsedRequest for logging.
    """
    GET = "GET"
    POST = "POST"
    OTHER = "OTHER"

    @classmethod
    def from_token(cls, token: str) -> "Method":
        if token == "GET":
            return cls.GET
        if token == "POST":
            return cls.POST
        return cls.OTHER


@dataclass
class ParsedRequest:
    """
    The parsed head of one request.

    Created by RequestReader.read(), consumed once by a mode handler, and
    dropped when the connection closes.

        method:          GET, POST or OTHER
        method_token:    Method exactly as sent ("PUT", "get", ...)
        target:          Request target ("/index.html", "http://host/x")
        version:         Version field as sent, not validated
        headers:         Header name (lowercase) → value
        content_length:  Body size, POST only. None when not extracted
        raw_head:        Every byte consumed from the stream, request line
                         through the blank line. Proxy mode forwards this.
    """

    method: Method
    target: str
    version: str = "HTTP/1.1"
    method_token: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    content_length: Optional[int] = None
    raw_head: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        if not self.method_token:
            self.method_token = self.method.value

    @property
    def host(self) -> str:
        """Get the Host header value."""
        return self.headers.get("host", "")

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive lookup)."""
        return self.headers.get(name.lower(), default)


class RequestReader:
    """
    Reads one request head from a buffered binary stream.

    ==========================================================================
    READER FLOW
    ==========================================================================

        stream (socket.makefile("rb"))
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Read request line ──────────────────────────────────────────►│
        │     │  EOF / no LF / != 3 fields → MalformedRequestLine (400)    │
        │     │  longer than max_line_size → HeaderTooLarge (431)          │
        │     ▼                                                             │
        │  2. Read header lines until bare CRLF (or EOF) ─────────────────►│
        │     │  "Key: Value" → headers["key"] = "Value"                    │
        │     │  too many / too long lines → HeaderTooLarge (431)          │
        │     ▼                                                             │
        │  3. POST only: extract Content-Length ──────────────────────────►│
        │     │  missing / not a non-negative int → 411                    │
        │     ▼                                                             │
        │  4. Build ParsedRequest (body is NOT read) ─────────────────────►│
        └───────────────────────────────────────────────────────────────────┘

    ==========================================================================
    """

    def __init__(
        self,
        max_line_size: int = 8192,
        max_header_lines: int = 100,
        require_length_for_post: bool = True,
    ):
        """
        Args:
            max_line_size: Longest accepted request or header line, in bytes,
                           including the line terminator.
            max_header_lines: Most header lines accepted in one request.
            require_length_for_post: Extract and validate Content-Length for
                           POST. Proxy mode turns this off: it rejects POST
                           with 501 anyway and never reads a body.
        """
        self.max_line_size = max_line_size
        self.max_header_lines = max_header_lines
        self.require_length_for_post = require_length_for_post

    def read(self, stream: BinaryIO) -> ParsedRequest:
        """
        Read and parse one request head from the stream.

        Returns:
            ParsedRequest. The stream is positioned at the first body byte.

        Raises:
            MalformedRequestLine, HeaderTooLarge, MissingOrInvalidContentLength.
            OSError from the underlying socket (including timeouts) is not
            caught here.
        """
        raw = bytearray()

        # ─────────────────────────────────────────────────────────────────
        # STEP 1: Request line
        # ─────────────────────────────────────────────────────────────────
        line = self._read_line(stream)
        if not line.endswith(b"\n"):
            # EOF before the terminator (includes the empty stream)
            raise MalformedRequestLine("Incomplete request line")
        raw += line

        method_token, target, version = self.parse_request_line(line)
        method = Method.from_token(method_token)

        # ─────────────────────────────────────────────────────────────────
        # STEP 2: Header block
        # ─────────────────────────────────────────────────────────────────
        headers = self._read_headers(stream, raw)

        # ─────────────────────────────────────────────────────────────────
        # STEP 3: Body length (POST only)
        # ─────────────────────────────────────────────────────────────────
        content_length = None
        if method is Method.POST and self.require_length_for_post:
            content_length = self.parse_content_length(headers)

        return ParsedRequest(
            method=method,
            method_token=method_token,
            target=target,
            version=version,
            headers=headers,
            content_length=content_length,
            raw_head=bytes(raw),
        )

    @staticmethod
    def parse_request_line(line: bytes) -> tuple[str, str, str]:
        """
        Split a request line into (method, target, version).

        Splits on any run of whitespace, so "GET  /a\\tHTTP/1.1" is fine,
        but the field count must be exactly 3:

            b"GET\\r\\n"                    → MalformedRequestLine
            b"GET /a HTTP/1.1 extra\\r\\n"  → MalformedRequestLine
        """
        # latin-1 maps every byte to a code point, so decoding never fails
        fields = line.decode("latin-1").split()
        if len(fields) != 3:
            raise MalformedRequestLine(
                f"Request line has {len(fields)} fields, expected 3"
            )
        method, target, version = fields
        return method, target, version

    @staticmethod
    def parse_content_length(headers: Dict[str, str]) -> int:
        """
        Extract Content-Length as a non-negative integer.

        Duplicate headers were comma-joined while reading ("5, 5"), which
        fails the digit check. Conflicting lengths are a smuggling vector,
        so that is the intended outcome.
        """
        value = headers.get("content-length")
        if value is None:
            raise MissingOrInvalidContentLength("Missing Content-Length")

        if not (value.isascii() and value.isdigit()):
            raise MissingOrInvalidContentLength(f"Invalid Content-Length: {value!r}")

        return int(value)

    def _read_line(self, stream: BinaryIO) -> bytes:
        # readline(limit) returns at most `limit` bytes; a full-length result
        # without a terminator means the line is longer than we allow.
        line = stream.readline(self.max_line_size)
        if len(line) >= self.max_line_size and not line.endswith(b"\n"):
            raise HeaderTooLarge(f"Line exceeds {self.max_line_size} bytes")
        return line

    def _read_headers(self, stream: BinaryIO, raw: bytearray) -> Dict[str, str]:
        """
        Read "Key: Value" lines until a blank line or EOF.

        Header names are lowercased (HTTP header names are case-insensitive),
        both sides are trimmed. Lines without a colon are skipped. Repeated
        headers are joined with ", " per RFC 7230.
        """
        headers: Dict[str, str] = {}
        count = 0

        while True:
            line = self._read_line(stream)
            raw += line

            if not line:
                break  # EOF ends the header block
            if line in (b"\r\n", b"\n"):
                break  # Blank line ends the header block

            count += 1
            if count > self.max_header_lines:
                raise HeaderTooLarge(f"More than {self.max_header_lines} header lines")

            text = line.decode("latin-1")
            name, sep, value = text.partition(":")
            if not sep:
                continue  # Not a header line (lenient parsing)

            name = name.strip().lower()
            value = value.strip()
            if not name:
                continue

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def read_request(stream: BinaryIO, **kwargs) -> ParsedRequest:
    """
    Read one request head with a throwaway RequestReader.

    Use RequestReader directly to reuse the same limits across connections.
    """
    return RequestReader(**kwargs).read(stream)
