"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The closed set of status codes this server can put on the wire.

=============================================================================
WHICH CODES, AND WHEN
=============================================================================

    ┌──────┬──────────────────────────┬────────────────────────────────────┐
    │ Code │ Phrase                   │ Emitted when                       │
    ├──────┼──────────────────────────┼────────────────────────────────────┤
    │ 200  │ OK                       │ GET served / POST stored           │
    │ 400  │ Bad Request              │ Bad request line, bad file type,   │
    │      │                          │ path escaping the root             │
    │ 404  │ Not Found                │ Whitelisted file cannot be opened  │
    │ 411  │ Length Required          │ POST without usable Content-Length │
    │ 413  │ Payload Too Large        │ POST body above the upload limit   │
    │ 431  │ Request Header Fields    │ Request line / header block too    │
    │      │ Too Large                │ long                               │
    │ 500  │ Internal Server Error    │ Upload could not be written        │
    │ 501  │ Not Implemented          │ Method the mode does not support   │
    │ 502  │ Bad Gateway              │ Upstream dial / write / read failed│
    └──────┴──────────────────────────┴────────────────────────────────────┘

A proxied response is relayed byte-for-byte, so its status code never
passes through this enum.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.BAD_GATEWAY.phrase
        'Bad Gateway'
    """

    # 2xx SUCCESS
    OK = 200

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400                        # Malformed request / bad path
    NOT_FOUND = 404                          # File doesn't exist
    LENGTH_REQUIRED = 411                    # Missing Content-Length header
    PAYLOAD_TOO_LARGE = 413                  # Upload body too large
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431    # Request head too large

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500              # Upload failed
    NOT_IMPLEMENTED = 501                    # Method not supported by the mode
    BAD_GATEWAY = 502                        # Upstream server failed

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx (success) status code."""
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx (client error) status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx (server error) status code."""
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.LENGTH_REQUIRED: "Length Required",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
}
