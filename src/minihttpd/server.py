"""
=============================================================================
SERVER
=============================================================================

Ties the pieces together: config, connection gate, listener, request reader
and the mode handler.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │     Server      │                          │
    │                        │  (Orchestrator) │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            │                    │                    │              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │RequestReader │    │ ModeHandler  │        │
    │    │  + Gate      │    │  (parsing)   │    │ static/proxy │        │
    │    └──────────────┘    └──────────────┘    └──────────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE (one connection, one request)
=============================================================================

    1. ACCEPT        listener accepts; gate admits or the socket is reset
    2. PARSE         RequestReader reads the request line + headers
    3. DISPATCH      mode handler does the work and writes the response
    4. ERROR         any HTTPError from 2/3 becomes an error response
    5. TEARDOWN      worker closes the connection, releases the gate slot
    6. ACCESS LOG    one line per connection

There is no keep-alive: every response carries "Connection: close".

=============================================================================
"""

import logging
import time
from typing import Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionGate, ConnectionState
from .handlers import ModeHandler, create_handler
from .http import HTTPError, RequestReader, write_error
from .http.request import ParsedRequest


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("minihttpd.access")


class Server:
    """
    One running instance of the service.

    =========================================================================
    USAGE
    =========================================================================

        # Blocking, from the CLI
        Server(ServerConfig(mode="static", port=8080)).run()

        # Embedded / tests: bind first, serve on a thread
        server = Server(ServerConfig(port=0, root_dir=str(tmp)))
        host, port = server.bind()
        threading.Thread(target=server.serve_forever, daemon=True).start()
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, handler: Optional[ModeHandler] = None):
        """
        Args:
            config: Server configuration. Defaults are used if not provided.
            handler: Mode handler to use instead of the one config.mode names.

        Raises:
            ValueError: Invalid config, or a static root that doesn't exist.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self.handler = handler or create_handler(self.config)
        self.gate = ConnectionGate(self.config.max_connections)

        self._reader = RequestReader(
            max_line_size=self.config.max_line_size,
            max_header_lines=self.config.max_header_lines,
            require_length_for_post=self.handler.requires_body_length,
        )
        self._socket_server = SocketServer(self.config, self.gate)

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """The bound (host, port), None before bind()."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def bind(self) -> Tuple[str, int]:
        """Bind the listening socket. Returns the bound address."""
        return self._socket_server.bind()

    def serve_forever(self):
        """
        Accept and serve connections until shutdown().

        Signal handlers are installed only when this runs on the main
        thread.
        """
        self._socket_server.serve_forever(self._process_connection)

    def run(self):
        """
        Start the server (blocking): logging, bind, banner, serve.

        Raises:
            OSError: If the listening socket can't be bound.
        """
        self._setup_logging()
        self.bind()
        self._print_startup_banner()

        try:
            self.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            logger.info(f"Server stopped (peak connections: {self.gate.peak})")

    def shutdown(self):
        """Stop accepting connections. Safe to call from any thread."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_for_shutdown(timeout)

    def _print_startup_banner(self):
        """Print server startup information."""
        host, port = self.address
        print()
        print(f"  {self.config.server_name} ({self.handler.name} mode)")
        print(f"  http://{host}:{port}")
        if self.handler.name == "static":
            print(f"  Serving files from: {self.handler.root_dir}")
        print(f"  Max connections: {self.config.max_connections}")
        print("  Press Ctrl+C to stop")
        print()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("minihttpd").setLevel(level)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _process_connection(self, conn: Connection):
        """
        Serve one connection (runs in its worker thread).

        Never lets an exception out. Protocol errors get an error response
        and a normal close from the listener's worker wrapper; client I/O
        errors and unexpected exceptions abort the connection with an RST.

            PARSING ──► DISPATCHING ──► (handler responds)
               │             │
               ├─ HTTPError ─┴──► write_error()
               └─ other ─────────► abort()
        """
        started = time.monotonic()
        request: Optional[ParsedRequest] = None

        try:
            conn.state = ConnectionState.PARSING
            request = self._reader.read(conn.reader)

            conn.state = ConnectionState.DISPATCHING
            self.handler.handle(conn, request)

        except HTTPError as e:
            if e.status_code >= 500:
                logger.warning(f"[{conn.id}] {e.status_code} {e.message}")
            else:
                logger.info(f"[{conn.id}] {e.status_code} {e.message}")
            write_error(conn, e.status, e.message, self.config.server_name)

        except OSError as e:
            # Client went away or timed out; nothing useful can be sent
            logger.debug(f"[{conn.id}] Connection error: {e}")
            conn.abort()

        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            conn.abort()

        finally:
            self._log_access(conn, request, started)

    def _log_access(self, conn: Connection, request: Optional[ParsedRequest], started: float):
        """
        Write the access log line:

            127.0.0.1 - "GET /index.html" 200 1234 3.1ms
        """
        duration_ms = (time.monotonic() - started) * 1000
        request_line = f"{request.method_token} {request.target}" if request else "-"
        status = conn.response_status if conn.response_status is not None else "-"

        access_logger.info(
            f'{conn.client_ip} - "{request_line}" {status} {conn.bytes_sent} {duration_ms:.1f}ms'
        )
