"""
=============================================================================
FORWARD PROXY HANDLER
=============================================================================

Relays a client's GET to whatever host the request names and sends the
upstream's response back, byte for byte.

=============================================================================
ONE SHOT
=============================================================================

    client                    proxy                         upstream
      │  GET http://h/x ──►     │                               │
      │                         │  create_connection(h, 80) ──► │
      │                         │  raw request head ──────────► │
      │                         │  ◄──────────── full response  │
      │  ◄── full response      │                               │
      ▼  close                  ▼  close                        ▼

One request, one upstream connection, one response. Nothing is retried,
nothing is reused.

The request head is forwarded EXACTLY as the client sent it: no header
rewriting, no Via, no hop-by-hop filtering.

=============================================================================
READING THE UPSTREAM RESPONSE
=============================================================================

The response is buffered completely before a single byte goes to the client.
Any upstream failure can still become a clean 502 that way; the client never
sees half a body followed by an error.

Where the body ends (RFC 7230 §3.3.3, the subset that applies to GET):

    ┌─────────────────────────────────────┬─────────────────────────────────┐
    │  Status 1xx, 204, 304               │  no body                        │
    │  Transfer-Encoding: ...chunked      │  chunks until the 0-size chunk  │
    │                                     │  + trailers, framing kept as-is │
    │  Content-Length: N                  │  exactly N bytes                │
    │  none of the above                  │  until the upstream closes      │
    └─────────────────────────────────────┴─────────────────────────────────┘

Interim heads (100 Continue, 102, 103) are read and dropped; only the
final response is relayed. 101 counts as final.

More than max_response_size bytes in total is a 502 as well.

=============================================================================
"""

import socket
import logging
from typing import BinaryIO, Dict, Optional, Tuple
from urllib.parse import urlsplit

from ..core.connection import Connection
from ..http.errors import (
    DialFailure,
    UpstreamWriteFailure,
    UpstreamReadFailure,
    UnsupportedMethod,
)
from ..http.request import Method, ParsedRequest
from .base import ModeHandler


logger = logging.getLogger(__name__)

# Longest status, header, or chunk-size line accepted from an upstream
MAX_UPSTREAM_LINE = 64 * 1024

NO_BODY_STATUSES = (204, 304)

# Informational heads that precede the real response; 101 is final
INTERIM_STATUSES = (100, 102, 103)

HEX_DIGITS = b"0123456789abcdefABCDEF"


class ProxyHandler(ModeHandler):
    """
    Forward proxy for plain-HTTP GET requests.

    Usage:
        proxy = ProxyHandler(connect_timeout=10.0)
        proxy.handle(conn, request)
    """

    name = "proxy"
    requires_body_length = False

    def __init__(
        self,
        connect_timeout: Optional[float] = None,
        max_response_size: int = 64 * 1024 * 1024,
        buffer_size: int = 8192,
        default_port: int = 80,
    ):
        """
        Args:
            connect_timeout: Deadline for the upstream dial and for every
                             upstream read/write. None waits forever.
            max_response_size: Largest upstream response relayed, in bytes.
            buffer_size: Read buffer for the upstream stream.
            default_port: Port used when the request names none.
        """
        self.connect_timeout = connect_timeout
        self.max_response_size = max_response_size
        self.buffer_size = buffer_size
        self.default_port = default_port

    def resolve_upstream(self, request: ParsedRequest) -> Tuple[str, int]:
        """
        Work out which host:port the request is for.

        Absolute-form targets win over the Host header:

            GET http://example.com:8080/x HTTP/1.1   → ("example.com", 8080)
            GET /x HTTP/1.1  + Host: example.com     → ("example.com", 80)

        Raises:
            DialFailure: No host anywhere, a malformed authority, or a
                         port that isn't a number.
        """
        target = request.target
        authority = request.host
        try:
            if target.lower().startswith("http://"):
                authority = urlsplit(target).netloc

            # "//" makes urlsplit treat the whole thing as host[:port],
            # including bracketed IPv6 literals
            parts = urlsplit("//" + authority.strip())
            host = parts.hostname
            port = parts.port or self.default_port
        except ValueError:
            raise DialFailure(f"Invalid upstream address: {authority!r}")

        if not host:
            raise DialFailure("Request names no upstream host")

        return host, port

    def handle(self, conn: Connection, request: ParsedRequest) -> None:
        if request.method is not Method.GET:
            raise UnsupportedMethod(f"Method {request.method_token} not supported by proxy")

        host, port = self.resolve_upstream(request)

        # ValueError includes the UnicodeError raised for hosts IDNA rejects
        try:
            upstream = socket.create_connection((host, port), timeout=self.connect_timeout)
        except (OSError, ValueError) as e:
            logger.info(f"[{conn.id}] Dial {host}:{port} failed: {e}")
            raise DialFailure(f"Could not connect to {host}:{port}")

        with upstream:
            try:
                upstream.sendall(request.raw_head)
            except OSError as e:
                raise UpstreamWriteFailure(f"Write to {host}:{port} failed: {e}")

            stream = upstream.makefile("rb", buffering=self.buffer_size)
            with stream:
                try:
                    status, response = read_upstream_response(stream, self.max_response_size)
                except OSError as e:
                    raise UpstreamReadFailure(f"Read from {host}:{port} failed: {e}")

        logger.debug(f"[{conn.id}] {host}:{port} answered {status} ({len(response)} bytes)")

        conn.response_status = status
        # A failed client write is already logged by send(); nothing else to do
        conn.send(response)


# =============================================================================
# UPSTREAM RESPONSE READER
# =============================================================================

def read_upstream_response(stream: BinaryIO, max_size: int) -> Tuple[int, bytes]:
    """
    Read one complete HTTP response from an upstream stream.

    Returns:
        (status_code, raw_bytes): raw_bytes is the response exactly as the
        upstream sent it, head, framing and all.

    Raises:
        UpstreamReadFailure: Malformed head, truncated body, bad chunk
                             framing, or more than max_size bytes.
        OSError: Socket errors are left to the caller.
    """
    buf = bytearray()

    def append(data: bytes):
        buf.extend(data)
        if len(buf) > max_size:
            raise UpstreamReadFailure(f"Upstream response exceeds {max_size} bytes")

    def read_exact(n: int) -> bytes:
        if len(buf) + n > max_size:
            raise UpstreamReadFailure(f"Upstream response exceeds {max_size} bytes")
        data = stream.read(n)
        if len(data) < n:
            raise UpstreamReadFailure(f"Upstream body truncated ({len(data)} of {n} bytes)")
        return data

    # ─────────────────────────────────────────────────────────────────────
    # HEAD (interim 1xx heads are read and dropped)
    # ─────────────────────────────────────────────────────────────────────
    while True:
        status, headers = _read_head(stream, append)
        if status not in INTERIM_STATUSES:
            break
        buf.clear()

    # ─────────────────────────────────────────────────────────────────────
    # BODY
    # ─────────────────────────────────────────────────────────────────────
    if 100 <= status < 200 or status in NO_BODY_STATUSES:
        return status, bytes(buf)

    transfer_encoding = headers.get("transfer-encoding", "")
    if transfer_encoding:
        codings = [c.strip().lower() for c in transfer_encoding.split(",")]
        if codings[-1] != "chunked":
            raise UpstreamReadFailure(f"Unsupported Transfer-Encoding: {transfer_encoding}")
        _relay_chunked(stream, append, read_exact)
        return status, bytes(buf)

    content_length = headers.get("content-length")
    if content_length is not None:
        if not (content_length.isascii() and content_length.isdigit()):
            raise UpstreamReadFailure(f"Invalid upstream Content-Length: {content_length!r}")
        append(read_exact(int(content_length)))
        return status, bytes(buf)

    # No framing at all: the body ends when the upstream closes
    while True:
        chunk = stream.read1(64 * 1024)
        if not chunk:
            break
        append(chunk)

    return status, bytes(buf)


def _read_head(stream: BinaryIO, append) -> Tuple[int, Dict[str, str]]:
    """Read a status line and its header block, passing each line to append."""
    line = _read_line(stream)
    status = _parse_status_line(line)
    append(line)

    headers: Dict[str, str] = {}
    while True:
        line = _read_line(stream)
        append(line)
        if line in (b"\r\n", b"\n"):
            return status, headers

        name, sep, value = line.decode("latin-1").partition(":")
        if not sep:
            raise UpstreamReadFailure("Malformed upstream header line")
        name = name.strip().lower()
        value = value.strip()
        if name in headers:
            headers[name] += ", " + value
        else:
            headers[name] = value


def _relay_chunked(stream: BinaryIO, append, read_exact) -> None:
    """
    Copy a chunked body, framing included, up to and including the
    trailer section's blank line.
    """
    while True:
        size_line = _read_line(stream)
        append(size_line)

        size_text = size_line.split(b";", 1)[0].strip()
        # int(x, 16) alone would also take "-1", "0x10" and "1_0"
        if not size_text or size_text.strip(HEX_DIGITS):
            raise UpstreamReadFailure(f"Bad chunk size: {size_text!r}")
        size = int(size_text, 16)

        if size == 0:
            # Trailers, then the terminating blank line
            while True:
                line = _read_line(stream)
                append(line)
                if line in (b"\r\n", b"\n"):
                    return

        append(read_exact(size))
        terminator = _read_line(stream)
        if terminator not in (b"\r\n", b"\n"):
            raise UpstreamReadFailure("Chunk not followed by CRLF")
        append(terminator)


def _read_line(stream: BinaryIO) -> bytes:
    line = stream.readline(MAX_UPSTREAM_LINE)
    if not line.endswith(b"\n"):
        if len(line) >= MAX_UPSTREAM_LINE:
            raise UpstreamReadFailure("Upstream line too long")
        raise UpstreamReadFailure("Upstream closed mid-response")
    return line


def _parse_status_line(line: bytes) -> int:
    """
    Extract the status code from "HTTP/1.1 200 OK\\r\\n".

    The reason phrase is optional; the version must start with HTTP/.
    """
    parts = line.split(None, 2)
    if len(parts) < 2 or not parts[0].startswith(b"HTTP/"):
        raise UpstreamReadFailure(f"Malformed upstream status line: {line[:80]!r}")

    code = parts[1]
    if len(code) != 3 or not code.isdigit():
        raise UpstreamReadFailure(f"Malformed upstream status code: {code!r}")

    return int(code)
