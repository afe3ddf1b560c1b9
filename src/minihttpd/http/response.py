"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Builds the responses the server itself originates: file heads, upload
acknowledgements and error replies. Proxied responses never pass through
here; they are relayed as raw bytes.

=============================================================================
RESPONSE ANATOMY
=============================================================================

    HTTP/1.1 404 Not Found\\r\\n            ← Status line
    Connection: close\\r\\n                 ← Always: one request per connection
    Content-Type: text/plain; charset=utf-8\\r\\n
    Content-Length: 15\\r\\n                ← Auto-calculated from body
    Date: Wed, 01 Jan 2026 12:00:00 GMT\\r\\n
    Server: minihttpd/1.0\\r\\n
    \\r\\n                                  ← Empty line (separator)
    File not found\\n                      ← Body

For static GET the body is streamed straight from the file after the head,
so head_bytes() is used with an explicit Content-Length instead of
to_bytes().

=============================================================================
ERROR RESPONSES AND CLOSING
=============================================================================

write_error() writes the reply and returns. It NEVER closes the
connection: closing belongs to the worker's teardown, which runs for
every connection whether it ended in success, an error reply, or an
exception. One place closes, in both modes.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union, TYPE_CHECKING

from .status_codes import HTTPStatus

if TYPE_CHECKING:
    from ..core.connection import Connection


DEFAULT_SERVER_NAME = "minihttpd/1.0"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

        HTTPResponse(                 to_bytes()          conn.send(...)
          status=404,        ─────►   b"HTTP/1.1 404 ..."  ─────►  socket
          headers={...},
          body=b"..."
        )
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body, encoding strings as UTF-8."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def head_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the status line and headers, up to and including the
        blank line.

        Content-Length is filled in from the body unless already set. That
        is what lets a caller stream a file body after the head: it sets
        Content-Length to the file size and leaves body empty.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1") + b"\r\n"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """Serialize the complete response (head + body)."""
        return self.head_bytes(server_name) + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format datetime as HTTP-date (RFC 7231).

        Wed, 15 Jun 2024 10:00:00 GMT

    Built by hand instead of strftime("%a %b") because those are
    locale-dependent and HTTP dates must be English.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================

def ok(content_type: str = "text/plain; charset=utf-8", content_length: int = 0) -> HTTPResponse:
    """
    Create a bodiless 200 OK head.

    Used for upload acknowledgements (content_length=0) and, with the
    file size, as the head in front of a streamed file.
    """
    return HTTPResponse(
        status=HTTPStatus.OK,
        headers={
            "Connection": "close",
            "Content-Type": content_type,
            "Content-Length": str(content_length),
        },
    )


def error_response(status: HTTPStatus, message: str = "") -> HTTPResponse:
    """
    Create an error response with a one-line text body.

        >>> error_response(HTTPStatus.NOT_FOUND, "No such file").status_line
        'HTTP/1.1 404 Not Found'
    """
    return HTTPResponse(
        status=status,
        headers={
            "Connection": "close",
            "Content-Type": "text/plain; charset=utf-8",
        },
        body=f"{message or status.phrase}\n".encode("utf-8"),
    )


def write_error(
    conn: "Connection",
    status: HTTPStatus,
    message: str = "",
    server_name: str = DEFAULT_SERVER_NAME,
) -> bool:
    """
    Write an error response to the client connection.

    The single error primitive for both modes. It records the status on the
    connection for the access log and does NOT close the connection.

    Returns:
        True if the bytes were sent, False if the peer was already gone.
    """
    conn.response_status = int(status)
    return conn.send(error_response(status, message).to_bytes(server_name))
