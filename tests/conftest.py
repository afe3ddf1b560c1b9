"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
from pathlib import Path
from typing import Generator, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttpd import Server, ServerConfig
from minihttpd.core import Connection


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /index.html HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"hello world"
    return (
        b"POST /upload.txt HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: text/plain\r\n"
        b"Content-Length: %d\r\n"
        b"\r\n" % len(body)
    ) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    """A served directory with a few sample files."""
    root = tmp_path / "files"
    root.mkdir()
    (root / "index.html").write_bytes(b"<h1>hello</h1>\n")
    (root / "notes.txt").write_bytes(b"plain text\n")
    (root / "style.css").write_bytes(b"body { color: red; }\n")
    (root / "cat.gif").write_bytes(b"GIF89a\x01\x00\x01\x00\x00\x00\x00;")
    (root / "photo.jpg").write_bytes(b"\xff\xd8\xff\xe0fakejpeg")
    (root / "script.js").write_bytes(b"alert(1);\n")
    (root / "sub").mkdir()
    (root / "sub" / "page.html").write_bytes(b"<p>nested</p>\n")
    (tmp_path / "secret.txt").write_bytes(b"outside the root\n")
    return root


def make_connection(data: bytes = b"", **kwargs) -> "FakeConnection":
    """Build a Connection-like object around in-memory bytes."""
    return FakeConnection(data, **kwargs)


class FakeConnection:
    """
    Stand-in for Connection in handler unit tests.

    reader serves the given bytes; everything sent is collected in `sent`.
    """

    def __init__(self, data: bytes = b"", fail_send: bool = False):
        self.id = "test0001"
        self.address = ("127.0.0.1", 50000)
        self.reader = io.BufferedReader(io.BytesIO(data))
        self.sent = bytearray()
        self.response_status: Optional[int] = None
        self.bytes_sent = 0
        self.fail_send = fail_send
        self.aborted = False

    @property
    def client_ip(self) -> str:
        return self.address[0]

    def send(self, data: bytes) -> bool:
        if self.fail_send:
            return False
        self.sent += data
        self.bytes_sent += len(data)
        return True

    def send_file(self, file, count=None) -> bool:
        data = file.read() if count is None else file.read(count)
        return self.send(data)

    def abort(self):
        self.aborted = True


@pytest.fixture
def fake_connection():
    return make_connection


@pytest.fixture
def socket_pair() -> Generator:
    """
    A connected (Connection, client socket) pair without a listener.
    """
    server_side, client_side = socket.socketpair()
    conn = Connection(socket=server_side, address=("127.0.0.1", 50000), timeout=5.0)
    client_side.settimeout(5.0)

    yield conn, client_side

    client_side.close()
    conn.close()


class RunningServer:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: Server):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "RunningServer":
        """Bind in the calling thread, serve in a background thread."""
        self.server.bind()
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock

    def request(self, raw: bytes) -> bytes:
        """Send raw bytes, return everything the server sends back."""
        with self.connect() as sock:
            sock.sendall(raw)
            return recv_all(sock)

    def receive(self, sock: socket.socket) -> bytes:
        """Read everything the server sends on an already open socket."""
        return recv_all(sock)


def recv_all(sock: socket.socket) -> bytes:
    """Read until the peer closes. A reset ends the read like EOF."""
    chunks = []
    while True:
        try:
            chunk = sock.recv(65536)
        except ConnectionResetError:
            break
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def start_server() -> Generator:
    """
    Factory fixture: start_server(**config_overrides) → RunningServer.

    Every server started is stopped at teardown.
    """
    started = []

    def _start(handler=None, **overrides) -> RunningServer:
        overrides.setdefault("host", "127.0.0.1")
        overrides.setdefault("port", 0)
        overrides.setdefault("timeout", 5.0)
        overrides.setdefault("log_level", "WARNING")
        server = Server(ServerConfig(**overrides), handler=handler)
        running = RunningServer(server).start()
        started.append(running)
        return running

    yield _start

    for running in started:
        running.stop()
