"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves files out of one root directory (GET) and stores uploads into it
(POST).

=============================================================================
WHAT IT SERVES
=============================================================================

Only whitelisted extensions are readable; everything else is a 400 whether
or not the file exists:

    ┌───────────────┬──────────────────────────────┐
    │  Extension    │  Content-Type                │
    ├───────────────┼──────────────────────────────┤
    │  .html        │  text/html; charset=utf-8    │
    │  .txt         │  text/plain; charset=utf-8   │
    │  .css         │  text/css; charset=utf-8     │
    │  .gif         │  image/gif                   │
    │  .jpg, .jpeg  │  image/jpeg                  │
    └───────────────┴──────────────────────────────┘

Uploads have no extension check: any path inside the root can be written.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /../../etc/passwd HTTP/1.1
    GET /%2e%2e/%2e%2e/etc/passwd HTTP/1.1      ← same thing, encoded

Both resolve outside the root. The protection is the same for every
method:

    full_path = (root_dir / decoded_path).resolve()   # follows .. and symlinks
    full_path.relative_to(root_dir)                   # ValueError if outside

An escape is answered with 400 Bad Request. Decoding happens BEFORE the
check, so encoded dots can't sneak past it.

=============================================================================
STATUS CODES
=============================================================================

    GET   bad extension ──────────────────────► 400
          can't open as a regular file ───────► 404
          ok ─────────────────────────────────► 200 + file (sendfile)

    POST  Content-Length > max_upload_size ───► 413 (nothing touched)
          can't create/truncate the file ─────► 500
          body shorter than Content-Length ───► 500 (partial file stays)
          ok ─────────────────────────────────► 200, empty body

    other methods ────────────────────────────► 501

=============================================================================
"""

import os
import stat
import logging
from pathlib import Path
from typing import BinaryIO, Mapping
from urllib.parse import unquote, urlsplit

from ..core.connection import Connection
from ..http.errors import (
    UnsupportedFileType,
    PathOutsideRoot,
    FileNotFound,
    PayloadTooLarge,
    FileCreateFailure,
    BodyCopyFailure,
    UnsupportedMethod,
)
from ..http.mime_types import MIME_TYPES, get_content_type
from ..http.request import Method, ParsedRequest, RequestReader
from ..http.response import DEFAULT_SERVER_NAME, ok
from ..http.status_codes import HTTPStatus
from .base import ModeHandler


logger = logging.getLogger(__name__)


class StaticFileHandler(ModeHandler):
    """
    Handler for serving and storing static files.

    =========================================================================
    FLOW
    =========================================================================

        Request: GET /css/style.css?v=3

        0. Absolute form (http://h/css/...) keeps only the path
        1. Drop the query string, percent-decode  → "/css/style.css"
        2. Join under root_dir and resolve        → /srv/files/css/style.css
        3. Security check: still inside root_dir?
        4. Extension in the whitelist?
        5. Open, send head, sendfile() the body

    =========================================================================
    USAGE
    =========================================================================

        static = StaticFileHandler(root_dir="files")
        static.handle(conn, request)

    =========================================================================
    """

    name = "static"
    requires_body_length = True

    def __init__(
        self,
        root_dir: str | Path = "files",
        mime_types: Mapping[str, str] = MIME_TYPES,
        max_upload_size: int = 10 * 1024 * 1024,
        chunk_size: int = 64 * 1024,
        server_name: str = DEFAULT_SERVER_NAME,
    ):
        """
        Initialize static file handler.

        Args:
            root_dir: Directory all reads and writes are confined to.
            mime_types: Extension whitelist and Content-Type table.
            max_upload_size: Largest accepted POST body, in bytes.
            chunk_size: Read size used while copying an upload to disk.
            server_name: Value of the Server response header.

        Raises:
            ValueError: If root_dir is not an existing directory.
        """
        # Resolve once; every request path is compared against this
        self.root_dir = Path(root_dir).resolve()
        self.mime_types = mime_types
        self.max_upload_size = max_upload_size
        self.chunk_size = chunk_size
        self.server_name = server_name

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def resolve(self, target: str) -> Path:
        """
        Map a request target to a filesystem path inside the root.

        Raises:
            PathOutsideRoot: The decoded path escapes root_dir (or can't
                             be a filesystem path at all).
        """
        path = target
        if not path.startswith("/"):
            # Absolute form: http://host:port/path?query
            try:
                path = urlsplit(path).path
            except ValueError:
                raise PathOutsideRoot(f"Invalid path: {target}")

        path = unquote(path.split("?", 1)[0]).lstrip("/")
        if "\x00" in path:
            raise PathOutsideRoot(f"Invalid path: {target}")

        try:
            full_path = (self.root_dir / path).resolve()
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {target!r}")
            raise PathOutsideRoot(f"Path outside served directory: {target}")

        return full_path

    def handle(self, conn: Connection, request: ParsedRequest) -> None:
        if request.method is Method.GET:
            self.handle_get(conn, request)
        elif request.method is Method.POST:
            self.handle_post(conn, request)
        else:
            raise UnsupportedMethod(f"Method {request.method_token} not supported")

    # =========================================================================
    # GET
    # =========================================================================

    def handle_get(self, conn: Connection, request: ParsedRequest) -> None:
        """
        Serve one whitelisted file.

        The head carries the exact file size, then the body is streamed
        with sendfile(); the file is never loaded into memory.
        """
        path = self.resolve(request.target)

        content_type = get_content_type(path, self.mime_types)
        if content_type is None:
            raise UnsupportedFileType(f"Unsupported file type: {path.suffix or '(none)'}")

        # Anything but a regular file (directory, FIFO, device) is a 404;
        # checked before open() since opening a FIFO blocks
        try:
            info = os.stat(path)
        except OSError:
            raise FileNotFound(f"File not found: {request.target}")
        if not stat.S_ISREG(info.st_mode):
            raise FileNotFound(f"Not a regular file: {request.target}")

        try:
            file = open(path, "rb")
        except OSError:
            raise FileNotFound(f"File not found: {request.target}")

        with file:
            # Re-checked on the open descriptor in case the path changed
            info = os.fstat(file.fileno())
            if not stat.S_ISREG(info.st_mode):
                raise FileNotFound(f"Not a regular file: {request.target}")

            size = info.st_size
            head = ok(content_type=content_type, content_length=size)

            conn.response_status = int(HTTPStatus.OK)
            if not conn.send(head.head_bytes(self.server_name)):
                return
            if not conn.send_file(file, size):
                logger.warning(f"[{conn.id}] Short send for {path.name}")
                return

        logger.debug(f"[{conn.id}] Served {path} ({size} bytes)")

    # =========================================================================
    # POST
    # =========================================================================

    def handle_post(self, conn: Connection, request: ParsedRequest) -> None:
        """
        Store the request body at the target path.

        Exactly Content-Length bytes are read from the connection's stream,
        continuing right where the header reader stopped.
        """
        path = self.resolve(request.target)

        length = request.content_length
        if length is None:
            length = RequestReader.parse_content_length(request.headers)

        # Checked before the file is created, so an oversize upload
        # leaves nothing behind
        if length > self.max_upload_size:
            raise PayloadTooLarge(
                f"Upload of {length} bytes exceeds limit of {self.max_upload_size}"
            )

        try:
            file = open(path, "wb")
        except OSError as e:
            logger.error(f"[{conn.id}] Cannot create {path}: {e}")
            raise FileCreateFailure("Could not create file")

        with file:
            self._copy_body(conn.reader, file, length)

        conn.response_status = int(HTTPStatus.OK)
        conn.send(ok().head_bytes(self.server_name))
        logger.debug(f"[{conn.id}] Stored {length} bytes at {path}")

    def _copy_body(self, source: BinaryIO, dest: BinaryIO, length: int) -> None:
        """
        Copy exactly `length` bytes from source to dest.

        Raises:
            BodyCopyFailure: Peer closed early, or a read/write failed.
        """
        remaining = length
        try:
            while remaining > 0:
                chunk = source.read(min(self.chunk_size, remaining))
                if not chunk:
                    raise BodyCopyFailure(
                        f"Body ended after {length - remaining} of {length} bytes"
                    )
                dest.write(chunk)
                remaining -= len(chunk)
        except OSError as e:
            raise BodyCopyFailure(f"Body copy failed: {e}")
