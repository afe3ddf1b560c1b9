"""
=============================================================================
MINIHTTPD - Concurrency-Limited Static File Server and Forward Proxy
=============================================================================

A small TCP service that runs in one of two modes, built directly on
sockets and threads:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   STATIC MODE                                                        │
    │      - GET streams whitelisted files (.html .txt .css .gif .jpg)    │
    │      - POST stores the request body at the target path              │
    │      - Everything confined to one root directory                    │
    │                                                                      │
    │   PROXY MODE                                                         │
    │      - GET forwarded verbatim to the host the request names         │
    │      - Upstream response relayed back byte for byte                 │
    │                                                                      │
    │   BOTH MODES                                                         │
    │      - One request per connection, always "Connection: close"       │
    │      - At most max_connections served at once; the rest are         │
    │        reset without a response                                      │
    │      - One thread per admitted connection                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttpd/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m minihttpd)
    ├── server.py            # Server: wires everything together
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Networking
    │   ├── gate.py          # ConnectionGate (admission control)
    │   ├── socket_server.py # Listener loop, worker threads
    │   └── connection.py    # Connection wrapper
    ├── http/                # Protocol
    │   ├── request.py       # Request line + header reader
    │   ├── response.py      # Response writer, write_error
    │   ├── errors.py        # HTTPError hierarchy
    │   ├── status_codes.py  # HTTPStatus
    │   └── mime_types.py    # Extension whitelist
    └── handlers/            # Modes
        ├── base.py          # ModeHandler interface
        ├── static.py        # StaticFileHandler
        └── proxy.py         # ProxyHandler

=============================================================================
QUICK START
=============================================================================

    $ minihttpd static 8080 --root ./files
    $ minihttpd proxy 8888

    >>> from minihttpd import Server, ServerConfig
    >>> Server(ServerConfig(mode="static", port=8080)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import Server
from .config import ServerConfig

__all__ = ["Server", "ServerConfig", "__version__"]
