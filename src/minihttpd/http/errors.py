"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure a single connection can hit is an HTTPError subclass that
carries the status code sent back to the peer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHERE EACH ERROR COMES FROM                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   RequestReader        MalformedRequestLine ............... 400     │
    │                        HeaderTooLarge ..................... 431     │
    │                        MissingOrInvalidContentLength ...... 411     │
    │                                                                      │
    │   any ModeHandler      UnsupportedMethod .................. 501     │
    │                                                                      │
    │   ProxyHandler         DialFailure          ┐                       │
    │                        UpstreamWriteFailure ├─ BadGateway .. 502     │
    │                        UpstreamReadFailure  ┘                       │
    │                                                                      │
    │   StaticFileHandler    UnsupportedFileType ................ 400     │
    │                        PathOutsideRoot .................... 400     │
    │                        FileNotFound ....................... 404     │
    │                        PayloadTooLarge .................... 413     │
    │                        FileCreateFailure .................. 500     │
    │                        BodyCopyFailure .................... 500     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Errors are raised before any response byte is written and caught once, in
Server._process_connection, which turns them into a write_error() call.
None of them ever crosses a connection boundary.

Gate rejection is NOT an exception: ConnectionGate.try_acquire() just
returns False and the listener drops the socket without a reply.

=============================================================================
"""

from typing import Optional

from .status_codes import HTTPStatus


class HTTPError(Exception):
    """
    Base class for failures that map to an HTTP error response.

    Subclasses pin the status code as a class attribute; the message
    defaults to the reason phrase.
    """

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None, status: Optional[HTTPStatus] = None):
        if status is not None:
            self.status = status
        self.message = message or self.status.phrase
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return int(self.status)


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST READING
# ═══════════════════════════════════════════════════════════════════════════

class MalformedRequestLine(HTTPError):
    """Request line missing, unterminated, or not exactly 3 fields."""
    status = HTTPStatus.BAD_REQUEST


class HeaderTooLarge(HTTPError):
    """A request line or header block went past the configured limits."""
    status = HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE


class MissingOrInvalidContentLength(HTTPError):
    """POST without a non-negative integer Content-Length."""
    status = HTTPStatus.LENGTH_REQUIRED


class UnsupportedMethod(HTTPError):
    status = HTTPStatus.NOT_IMPLEMENTED


# ═══════════════════════════════════════════════════════════════════════════
# PROXY MODE
# ═══════════════════════════════════════════════════════════════════════════

class BadGateway(HTTPError):
    status = HTTPStatus.BAD_GATEWAY


class DialFailure(BadGateway):
    """Outbound TCP connection to the origin could not be opened."""


class UpstreamWriteFailure(BadGateway):
    """Forwarding the client's request to the origin failed."""


class UpstreamReadFailure(BadGateway):
    """The origin's response could not be read or parsed."""


# ═══════════════════════════════════════════════════════════════════════════
# STATIC MODE
# ═══════════════════════════════════════════════════════════════════════════

class UnsupportedFileType(HTTPError):
    status = HTTPStatus.BAD_REQUEST


class PathOutsideRoot(HTTPError):
    """Target resolves to somewhere outside the served root directory."""
    status = HTTPStatus.BAD_REQUEST


class FileNotFound(HTTPError):
    status = HTTPStatus.NOT_FOUND


class PayloadTooLarge(HTTPError):
    status = HTTPStatus.PAYLOAD_TOO_LARGE


class FileCreateFailure(HTTPError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR


class BodyCopyFailure(HTTPError):
    """Upload body was short or could not be written to disk."""
    status = HTTPStatus.INTERNAL_SERVER_ERROR
