from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from netconf_rpc.shared.exceptions import ConnectionClosed, RequestTimeout, SessionNotEstablished
from netconf_rpc.shared.framing import encode_end_of_message
from netconf_rpc.shared.messages import render_hello
from netconf_rpc.shared.session import BaseSession
from netconf_rpc.types import CLIENT_CAPABILITIES, Capability, Hello, Request, RpcReply, SessionState

logger = logging.getLogger(__name__)


class ClientSession(BaseSession):
    """The client side of a NETCONF session.

    Runs the hello exchange and exposes the generic protocol operations.

    Example:
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            reply = await session.get_config()
    """

    session_id: int | None
    capabilities: list[Capability]

    def __init__(
        self,
        read_stream: MemoryObjectReceiveStream[bytes | Exception],
        write_stream: MemoryObjectSendStream[bytes],
        read_timeout_seconds: timedelta | None = None,
        raw: bool = False,
        preserve_attributes: bool = True,
        client_capabilities: list[Capability] | None = None,
    ) -> None:
        super().__init__(
            read_stream,
            write_stream,
            read_timeout_seconds=read_timeout_seconds,
            raw=raw,
            preserve_attributes=preserve_attributes,
        )
        self._client_capabilities = client_capabilities or list(CLIENT_CAPABILITIES)
        self.session_id = None
        self.capabilities = []
        self._hello_sent = False
        self._close_requested = False

    @property
    def connected(self) -> bool:
        return self._state is SessionState.ESTABLISHED

    async def initialize(self, timeout: float | None = None) -> Hello:
        """Exchange hello messages with the device.

        Raises:
            SessionNotEstablished: If the device hello carries no valid session-id
                or no capabilities.
            RequestTimeout: If no hello arrives within `timeout` seconds.
            ConnectionClosed: If the transport ends before the hello.
        """
        if self._hello_sent:
            raise RuntimeError("Session is already initialized")
        self._hello_sent = True
        if self._state is SessionState.DISCONNECTED:
            self._state = SessionState.AWAITING_HELLO

        try:
            await self._send_frame(encode_end_of_message(render_hello(self._client_capabilities)))
        except ConnectionClosed:
            # The receive loop has ended; it reports the cause as the hello outcome.
            logger.debug("Transport closed before the client hello was sent")

        try:
            with anyio.fail_after(timeout):
                outcome = await self._hello_receive.receive()
        except TimeoutError:
            self._state = SessionState.FAILED
            raise RequestTimeout(f"No hello received after {timeout} seconds")
        except anyio.EndOfStream:
            self._state = SessionState.FAILED
            raise ConnectionClosed("Connection closed before hello")

        if isinstance(outcome, Exception):
            self._state = SessionState.FAILED
            raise outcome

        session_id = outcome.session_id
        if isinstance(session_id, bool) or not isinstance(session_id, int) or session_id <= 0:
            self._state = SessionState.FAILED
            raise SessionNotEstablished("NETCONF session not established")
        if not outcome.capabilities:
            self._state = SessionState.FAILED
            raise SessionNotEstablished("Device hello lists no capabilities")

        self.session_id = session_id
        self.capabilities = list(outcome.capabilities)
        self._state = SessionState.ESTABLISHED
        logger.info("NETCONF session %d established", session_id)
        logger.debug("Device capabilities: %s", self.capabilities)
        return outcome

    async def rpc(self, request: Request, timeout: float | None = None) -> RpcReply:
        """Send an operation and wait for its reply.

        `request` is either an operation name or an xmltodict-style tree of the
        `<rpc>` body (keys starting with `@` become `<rpc>` attributes).
        """
        return await self.send_rpc(
            request,
            request_read_timeout_seconds=timedelta(seconds=timeout) if timeout is not None else None,
        )

    @property
    def close_requested(self) -> bool:
        """Whether close-session has been acknowledged by the device."""
        return self._close_requested

    async def close_session(self, timeout: float | None = None) -> RpcReply:
        reply = await self.rpc("close-session", timeout=timeout)
        self._close_requested = True
        return reply

    async def get_config(self, source: str = "running", filter: Any = None) -> RpcReply:
        body: dict[str, Any] = {"source": {source: None}}
        if filter is not None:
            body["filter"] = filter
        return await self.rpc({"get-config": body})

    async def get(self, filter: Any = None) -> RpcReply:
        return await self.rpc({"get": {"filter": filter} if filter is not None else None})
