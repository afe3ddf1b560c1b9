"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing shared by both server modes:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Binds the listening socket, runs the accept() loop               │
    │  • Asks the gate for a slot for every accepted socket               │
    │  • One daemon worker thread per admitted connection                 │
    │  • SIGINT / SIGTERM → shutdown()                                    │
    └─────────────────────────────────────────────────────────────────────┘
                    │                                 │
                    │ try_acquire() / release()       │ wraps client socket
                    ▼                                 ▼
    ┌──────────────────────────────────┐  ┌──────────────────────────────┐
    │          CONNECTION GATE         │  │          CONNECTION          │
    │  ──────────────────────────────  │  │  ──────────────────────────  │
    │  • Bounded in-flight counter     │  │  • Buffered reader stream    │
    │  • Full → socket reset, no bytes │  │  • send() / send_file()      │
    │  • Lock-guarded, per server      │  │  • State + access-log data   │
    └──────────────────────────────────┘  └──────────────────────────────┘

=============================================================================
"""

from .gate import ConnectionGate
from .connection import Connection, ConnectionState, reset_socket
from .socket_server import SocketServer

__all__ = [
    "ConnectionGate",   # Admission control - bounds in-flight connections
    "Connection",       # Wrapper for client socket - handles I/O
    "ConnectionState",  # Enum for connection lifecycle states
    "reset_socket",     # Silent rejection (RST, no bytes)
    "SocketServer",     # Listener loop - accepts and spawns workers
]
