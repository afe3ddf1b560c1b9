"""
=============================================================================
MODE HANDLERS
=============================================================================

The server runs in exactly one mode, chosen at startup:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  static  │ StaticFileHandler                                        │
    │          │   GET  → stream a whitelisted file from root_dir         │
    │          │   POST → store the body at the target path               │
    ├──────────┼──────────────────────────────────────────────────────────┤
    │  proxy   │ ProxyHandler                                             │
    │          │   GET  → forward to the named host, relay the response   │
    └─────────────────────────────────────────────────────────────────────┘

Both implement ModeHandler.handle(conn, request): write a full response,
or raise an HTTPError before writing anything.

=============================================================================
"""

from typing import TYPE_CHECKING

from .base import ModeHandler
from .static import StaticFileHandler
from .proxy import ProxyHandler, read_upstream_response

if TYPE_CHECKING:
    from ..config import ServerConfig


MODES = ("static", "proxy")


def create_handler(config: "ServerConfig") -> ModeHandler:
    """
    Build the mode handler named by config.mode.

    Raises:
        ValueError: Unknown mode, or (static) a root_dir that isn't a directory.
    """
    if config.mode == "static":
        return StaticFileHandler(
            root_dir=config.root_dir,
            max_upload_size=config.max_upload_size,
            server_name=config.server_name,
        )

    if config.mode == "proxy":
        return ProxyHandler(
            connect_timeout=config.connect_timeout,
            max_response_size=config.max_response_size,
            buffer_size=config.buffer_size,
        )

    raise ValueError(f"Unknown mode: {config.mode!r}. Must be one of {', '.join(MODES)}.")


__all__ = [
    "ModeHandler",
    "StaticFileHandler",
    "ProxyHandler",
    "read_upstream_response",
    "create_handler",
    "MODES",
]
