"""
=============================================================================
LISTENER LOOP
=============================================================================

Owns the listening socket: binds it, accepts connections one after another,
asks the ConnectionGate for a slot, and hands every admitted connection to
its own worker thread.

=============================================================================
ACCEPT → ADMIT → SPAWN
=============================================================================

    ┌───────────────────┐
    │  Listening Socket │  bound once at startup, never reads or writes
    └─────────┬─────────┘
              │ accept()
              ▼
    ┌───────────────────┐   False   ┌──────────────────────────────────┐
    │ gate.try_acquire()│─────────► │ reset_socket(): RST, zero bytes  │
    └─────────┬─────────┘           └──────────────────────────────────┘
              │ True
              ▼
    ┌───────────────────┐
    │ Connection(...)   │
    │ Thread(worker)    │──► handler(conn)
    └─────────┬─────────┘    finally: conn.close(); gate.release()
              │
              └──► back to accept() right away (never joins the worker)

The loop never waits on a worker, so a slow client cannot stall accepting.
The gate is what bounds the number of workers alive at once.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Lets a restarted server bind while old connections sit in TIME_WAIT.
    It does NOT let two live listeners share a port, so binding a port
    that is already taken still fails with "Address already in use".

TCP_NODELAY:
    Disables Nagle's algorithm. Accepted sockets inherit it on Linux, so
    a small response head goes out immediately instead of waiting to be
    coalesced with the body.

Accept timeout (1 s):
    accept() blocks forever by default. With a timeout the loop wakes up
    once a second to check whether shutdown() was called:

        while running:
            try:
                accept()          # at most 1 second
            except timeout:
                continue          # re-check the flag

=============================================================================
SIGNAL HANDLING
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd, kill) trigger shutdown().
Python only allows installing signal handlers from the main thread, so when
the listener runs on a background thread (tests, embedding) it leaves the
process's handlers alone.

=============================================================================
"""

import socket
import signal
import logging
import threading
import time
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection, reset_socket
from .gate import ConnectionGate


logger = logging.getLogger(__name__)

# Pause after a failed accept() so a persistent error (e.g. EMFILE) doesn't
# turn the loop into a busy spin.
ACCEPT_ERROR_BACKOFF = 0.05

ConnectionHandler = Callable[[Connection], None]


class SocketServer:
    """
    TCP listener with per-connection worker threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    bind()              socket() + options + bind() + listen()        │
    │        │                                                             │
    │        ▼                                                             │
    │    serve_forever(h)    Main loop (blocks here!)                      │
    │        │                                                             │
    │        ├──► _setup_signals()   main thread only                      │
    │        └──► _accept_loop()                                           │
    │                 └──► _admit(sock, addr)                              │
    │                          ├──► gate full: reset_socket()             │
    │                          └──► Thread(_run_worker, conn)             │
    │                                                                      │
    │    shutdown()          Flip the running flag, wake waiters           │
    │    _cleanup()          Restore signals, close the listener           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        def handle(conn: Connection):
            ...

        server = SocketServer(config, ConnectionGate(config.max_connections))
        server.bind()
        server.serve_forever(handle)   # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig, gate: ConnectionGate):
        """
        Args:
            config: Supplies host, port, backlog, buffer_size and timeout.
            gate: Admission control shared with nothing outside this server.

        Nothing touches the network until bind().
        """
        self.config = config
        self.gate = gate

        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None

        self._running = False
        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()

        # Restored on exit, in case we're embedded in a larger app
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        """Check if the accept loop is running."""
        return self._running

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """
        The address actually bound, None before bind().

        With port 0 in the config this holds the port the OS picked.
        """
        return self._address

    # =========================================================================
    # BIND
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        """Create the listening socket with its options set."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Bind and listen on the configured host and port.

        Returns:
            The bound (host, port).

        Raises:
            OSError: Address in use, permission denied, bad host. Logged
                     here, then re-raised; a server that can't bind is fatal.
        """
        if self._socket is not None:
            return self._address

        sock = self._create_socket()

        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        self._socket = sock
        self._address = sock.getsockname()[:2]
        self._shutdown_event.clear()
        self._ready_event.set()

        logger.info(f"Listening on {self._address[0]}:{self._address[1]}")
        return self._address

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers that call shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # SERVE
    # =========================================================================

    def serve_forever(self, handler: ConnectionHandler, install_signals: bool = True):
        """
        Accept connections until shutdown() is called.

        Binds first if bind() hasn't been called. Always closes the
        listening socket on the way out.

        Args:
            handler: Called on a worker thread with each admitted Connection.
                     It must not close the connection; the worker does.
            install_signals: Install SIGINT/SIGTERM handlers (main thread only).
        """
        self.bind()

        self._running = True
        if install_signals:
            self._setup_signals()

        try:
            self._accept_loop(handler)
        finally:
            self._cleanup()

    def start(self, handler: ConnectionHandler):
        """Bind and serve, blocking. Same as serve_forever() with signals."""
        self.serve_forever(handler)

    def _accept_loop(self, handler: ConnectionHandler):
        """
        Accept, admit, spawn; repeat.

        An accept() failure is logged and the loop goes on: only
        shutdown() ends it.
        """
        while self._running and not self._shutdown_event.is_set():
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # Listener closed under us by shutdown()
                logger.error(f"Accept error: {e}")
                time.sleep(ACCEPT_ERROR_BACKOFF)
                continue

            self._admit(client_socket, client_address, handler)

    def _admit(self, client_socket: socket.socket, client_address, handler: ConnectionHandler):
        """Claim a gate slot for a fresh socket, or reset it."""
        if not self.gate.try_acquire():
            logger.warning(
                f"Connection limit ({self.gate.max_connections}) reached, "
                f"rejecting {client_address[0]}:{client_address[1]}"
            )
            reset_socket(client_socket)
            return

        try:
            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
            )
            worker = threading.Thread(
                target=self._run_worker,
                args=(conn, handler),
                name=f"conn-{conn.id}",
                daemon=True,
            )
            worker.start()
        except Exception:
            # No worker will ever release this slot, so do it here
            logger.exception(f"Failed to start worker for {client_address[0]}:{client_address[1]}")
            reset_socket(client_socket)
            self.gate.release()
            return

        logger.debug(f"[{conn.id}] Accepted {client_address[0]}:{client_address[1]}")

    def _run_worker(self, conn: Connection, handler: ConnectionHandler):
        """
        Worker thread body.

        The finally block is the ONLY place a connection is closed and its
        slot released, whatever the handler did.
        """
        try:
            handler(conn)
        except Exception:
            logger.exception(f"[{conn.id}] Unhandled error in connection handler")
        finally:
            conn.close()
            self.gate.release()

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self):
        """
        Stop the accept loop.

        Safe to call more than once and from any thread (or a signal
        handler). The loop notices within one accept timeout. In-flight
        workers are daemon threads and are not waited for.
        """
        if self._shutdown_event.is_set():
            return
        logger.info("Shutting down listener...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        """Clean up resources on shutdown."""
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

        self._ready_event.clear()
        self._shutdown_event.set()
        logger.info("Listener stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait until the listener is bound. Returns False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the server to shut down.

        Returns:
            True if shutdown completed, False if timeout.
        """
        return self._shutdown_event.wait(timeout)
