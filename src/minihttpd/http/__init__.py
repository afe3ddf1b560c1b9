"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

The wire-level pieces shared by both server modes:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py - RequestReader                                           │
    │                                                                      │
    │   stream ──► request line + headers ──► ParsedRequest                │
    │   (never reads past the blank line; the body stays in the stream)    │
    ├─────────────────────────────────────────────────────────────────────┤
    │ response.py - HTTPResponse, write_error                              │
    │                                                                      │
    │   status + headers + body ──► bytes                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │ errors.py - HTTPError and subclasses                                 │
    │                                                                      │
    │   every per-connection failure, each with its status code            │
    ├─────────────────────────────────────────────────────────────────────┤
    │ status_codes.py - HTTPStatus                                         │
    │ mime_types.py - extension whitelist + Content-Type lookup            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .errors import HTTPError
from .request import Method, ParsedRequest, RequestReader, read_request
from .response import HTTPResponse, error_response, write_error
from .status_codes import HTTPStatus
from .mime_types import MIME_TYPES, get_mime_type, get_content_type, is_supported

__all__ = [
    # Errors
    "HTTPError",

    # Request reading
    "Method",
    "ParsedRequest",
    "RequestReader",
    "read_request",

    # Response writing
    "HTTPResponse",
    "error_response",
    "write_error",

    # Status codes
    "HTTPStatus",

    # File types
    "MIME_TYPES",
    "get_mime_type",
    "get_content_type",
    "is_supported",
]
