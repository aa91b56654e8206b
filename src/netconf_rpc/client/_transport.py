"""Transport protocol for NETCONF clients."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

TransportStreams = tuple[MemoryObjectReceiveStream[bytes | Exception], MemoryObjectSendStream[bytes]]


class Transport(Protocol):
    """Protocol for NETCONF transports.

    `connect()` returns an async context manager that yields a read stream of
    inbound bytes (or the exception that ended the connection) and a write
    stream for outbound bytes.
    """

    def connect(self) -> AbstractAsyncContextManager[TransportStreams]: ...
