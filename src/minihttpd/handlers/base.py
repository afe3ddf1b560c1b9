"""
Mode handler interface.

A mode handler gets one admitted connection plus its parsed request head and
is responsible for everything after that: reading the body (if any), doing
the work, and writing the response. It never closes the connection.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.connection import Connection
    from ..http.request import ParsedRequest


class ModeHandler(ABC):
    """
    Base class for the server's operating modes.

    Contract for handle():

        success  → the handler wrote a complete response itself
        failure  → the handler raises an HTTPError subclass BEFORE writing
                   anything; the server turns it into an error reply

    Attributes:
        name: Mode name, used in logs and the startup banner.
        requires_body_length: Whether the request reader must extract and
            validate Content-Length for POST before dispatching.
    """

    name: str = "base"
    requires_body_length: bool = False

    @abstractmethod
    def handle(self, conn: "Connection", request: "ParsedRequest") -> None:
        """Serve one request on the connection."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
