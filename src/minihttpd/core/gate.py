"""
=============================================================================
CONNECTION GATE (ADMISSION CONTROL)
=============================================================================

Bounds how many connections the server works on at the same time.

=============================================================================
HOW IT WORKS
=============================================================================

The gate is a counter of "slots in use" with a fixed ceiling:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   max_connections = 3                                                │
    │                                                                      │
    │   accept #1  try_acquire() → True    in_use: 0 → 1   worker starts  │
    │   accept #2  try_acquire() → True    in_use: 1 → 2   worker starts  │
    │   accept #3  try_acquire() → True    in_use: 2 → 3   worker starts  │
    │   accept #4  try_acquire() → False   in_use: 3       socket dropped │
    │                                                                      │
    │   worker #2 finishes → release()     in_use: 3 → 2                   │
    │                                                                      │
    │   accept #5  try_acquire() → True    in_use: 2 → 3   worker starts  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A rejected connection gets no bytes at all: the listener resets it. There
is no queue and no "503 busy" reply.

=============================================================================
WHY CHECK-THEN-INCREMENT MUST BE ONE CRITICAL SECTION
=============================================================================

    Thread A                      Thread B
    ────────                      ────────
    read in_use (2) < 3 ✓
                                  read in_use (2) < 3 ✓
    in_use = 3
                                  in_use = 4      ← over the limit!

With the lock held across both the check and the increment, the second
caller sees 3 and is refused. release() takes the same lock, so the
counter is never torn.

=============================================================================
INTERVIEW QUESTIONS ABOUT ADMISSION CONTROL
=============================================================================

Q: "Why not threading.BoundedSemaphore?"
A: "acquire(blocking=False) would work for the admit path, but a semaphore
   can't report how many slots are in use or the high-water mark, and
   tests and logs want both. A Lock plus an int is just as small."

Q: "What happens if a worker crashes?"
A: "release() lives in the worker's finally block, so the slot comes
   back whether the handler returned, raised, or the peer vanished."

=============================================================================
"""

import threading


class ConnectionGate:
    """
    Thread-safe bounded counter of in-flight connections.

    One gate per server instance; nothing here is module-global, so any
    number of servers can run side by side (e.g. in tests).

    Invariant: 0 <= in_use <= max_connections, at all times.

    Usage:
        gate = ConnectionGate(max_connections=10)

        if not gate.try_acquire():
            drop(sock)              # silent rejection
            return
        try:
            serve(sock)
        finally:
            gate.release()          # exactly once per successful acquire
    """

    def __init__(self, max_connections: int):
        if max_connections < 1:
            raise ValueError(f"max_connections must be >= 1, got {max_connections}")

        self._max_connections = max_connections
        self._in_use = 0
        self._peak = 0
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        """
        Claim a slot if one is free.

        Returns:
            True if a slot was claimed (in_use incremented).
            False if the gate is full; nothing changes.
        """
        with self._lock:
            if self._in_use >= self._max_connections:
                return False

            self._in_use += 1
            if self._in_use > self._peak:
                self._peak = self._in_use
            return True

    def release(self) -> None:
        """
        Give back a slot claimed by try_acquire().

        Raises:
            RuntimeError: If no slot is held. That is an acquire/release
                          imbalance bug in the caller.
        """
        with self._lock:
            if self._in_use <= 0:
                raise RuntimeError("ConnectionGate released more times than acquired")
            self._in_use -= 1

    @property
    def max_connections(self) -> int:
        return self._max_connections

    @property
    def in_use(self) -> int:
        """Slots currently held."""
        with self._lock:
            return self._in_use

    @property
    def available(self) -> int:
        """Slots currently free."""
        with self._lock:
            return self._max_connections - self._in_use

    @property
    def peak(self) -> int:
        """Highest in_use value ever observed."""
        with self._lock:
            return self._peak

    def __repr__(self) -> str:
        return f"ConnectionGate(in_use={self.in_use}, max_connections={self._max_connections})"
