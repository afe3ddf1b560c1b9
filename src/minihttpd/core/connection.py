"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket for the lifetime of a single request.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries:

    Client sends:                     Server recv() might return:
        send("POST /a HTTP/1.1\\r\\n")     "POST /a HT"
        send("Content-Length: 5\\r\\n")    "TP/1.1\\r\\nContent-Length: 5\\r\\n\\r\\nhel"
        send("\\r\\nhello")                "lo"

Reading the request head with raw recv() calls would either stop short
or pull body bytes into the header buffer. The Connection therefore
exposes the socket as a buffered binary stream (socket.makefile("rb")):

    conn.reader.readline()   → exactly one line, however it was chunked
    conn.reader.read(n)      → up to n bytes, continuing where readline stopped

The request reader and the handlers share that ONE stream object, so
nothing read into its buffer is ever lost between them.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

One request per connection, no keep-alive, no state is ever revisited:

    ACCEPTED ──► PARSING ──► DISPATCHING ──► RESPONDING ──► CLOSED
                    │              │              ▲
                    │              │              │
                    └──────────────┴──── error ───┘

Any parse or dispatch failure jumps straight to RESPONDING (with an error
reply) and then CLOSED.

=============================================================================
"""

import socket
import struct
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid


logger = logging.getLogger(__name__)

# How long close() waits for leftover client bytes, and how many it reads
# at most, before giving up on a graceful FIN.
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class ConnectionState(Enum):
    """Connection lifecycle states."""
    ACCEPTED = "accepted"        # Admitted by the gate, nothing read yet
    PARSING = "parsing"          # Reading the request head
    DISPATCHING = "dispatching"  # Mode handler is working
    RESPONDING = "responding"    # Sending response bytes
    CLOSED = "closed"            # Socket released


def reset_socket(sock: socket.socket) -> None:
    """
    Close a raw socket with an RST instead of a FIN.

    SO_LINGER with a zero timeout makes close() discard unsent data and
    abort the connection. The peer sees "connection reset" with no bytes.
    This is how the listener turns away connections the gate refused.
    """
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
    except OSError:
        pass  # Already dead; a plain close is all that's left
    try:
        sock.close()
    except OSError:
        pass


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. BUFFERED READING                                                 │
    │     └── reader: one buffered stream shared by parser and handler    │
    │                                                                      │
    │  2. WRITING                                                          │
    │     └── send(): sendall() with error handling                        │
    │     └── send_file(): zero-copy socket.sendfile()                     │
    │                                                                      │
    │  3. STATE + ACCOUNTING                                               │
    │     └── state, response_status, bytes_sent for the access log        │
    │                                                                      │
    │  4. CLOSE                                                            │
    │     └── FIN, short drain, release the file descriptor                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique id used in log lines.
        state: Current ConnectionState.
        timeout: Per-operation socket deadline in seconds. None blocks
                 forever, which lets a silent peer hold its gate slot
                 indefinitely.
        response_status: Status code sent (or relayed), None if none was.
        bytes_sent: Bytes written to the client so far.
    """

    # Required parameters
    socket: socket.socket
    address: tuple[str, int]

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    # Configuration (passed from ServerConfig)
    buffer_size: int = 8192
    timeout: Optional[float] = None

    # Accounting
    response_status: Optional[int] = None
    bytes_sent: int = 0

    _reader: Optional[BinaryIO] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        # settimeout(None) puts the socket in plain blocking mode
        self.socket.settimeout(self.timeout)
        self._reader = self.socket.makefile("rb", buffering=self.buffer_size)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def reader(self) -> BinaryIO:
        """Buffered binary stream over the socket's receive side."""
        return self._reader

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Uses sendall(), which blocks until every byte is handed to the
        kernel. A plain send() may write only part of the buffer.

        Returns:
            True if the send succeeded, False if the connection is gone.
        """
        self.state = ConnectionState.RESPONDING

        try:
            self.socket.sendall(data)
            self.bytes_sent += len(data)
            return True
        except OSError as e:
            # Reset, broken pipe, timeout: the client is gone either way
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def send_file(self, file: BinaryIO, count: Optional[int] = None) -> bool:
        """
        Stream an open file to the client.

        socket.sendfile() uses os.sendfile() where available, so the bytes
        go kernel-to-kernel without passing through Python.

        Returns:
            True if the whole file (or `count` bytes) was sent.
        """
        self.state = ConnectionState.RESPONDING

        try:
            sent = self.socket.sendfile(file, 0, count)
            self.bytes_sent += sent
            return count is None or sent == count
        except OSError as e:
            logger.warning(f"[{self.id}] File send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN, "we're done sending"
        2. Drain briefly: closing with unread data in the kernel buffer
           makes the OS send RST, which can destroy a response the client
           hasn't read yet (e.g. a 411 sent before the body arrived).
        3. close(): release the stream and the file descriptor.

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(DRAIN_TIMEOUT)
            drained = 0
            while drained < DRAIN_LIMIT:
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Timeout or reset, we're closing anyway

        self._release()
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def abort(self):
        """Close with an RST and no further bytes."""
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self._reader.close()
        except OSError:
            pass
        reset_socket(self.socket)
        self.state = ConnectionState.CLOSED

    def _release(self):
        try:
            self._reader.close()
        except OSError:
            pass
        try:
            self.socket.close()
        except OSError:
            pass
        self.state = ConnectionState.CLOSED

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Ensure the connection is closed."""
        self.close()
        return False  # Don't suppress exceptions
