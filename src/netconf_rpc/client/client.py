"""Unified NETCONF client that wraps ClientSession with transport management."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any

from netconf_rpc.client._transport import Transport
from netconf_rpc.client.session import ClientSession
from netconf_rpc.client.ssh import SSHAlgorithms, SSHServerParameters, SSHTransport
from netconf_rpc.client.vendors.ios import IOSOperations
from netconf_rpc.client.vendors.junos import JunosOperations
from netconf_rpc.settings import NetconfSettings
from netconf_rpc.shared.exceptions import ConnectionClosed
from netconf_rpc.types import Capability, Hello, Request, RpcReply, SessionState
from netconf_rpc.utilities.logging import configure_logging

logger = logging.getLogger(__name__)


class Client:
    """A high-level NETCONF client.

    Examples:
        ```python
        async with Client("router1", "admin", password="secret") as client:
            reply = await client.get_config()
            facts = await client.junos.facts()

        # Explicit lifecycle
        client = Client("switch1", "admin", private_key=key_material)
        await client.open()
        try:
            await client.rpc("get-chassis-inventory")
        finally:
            await client.ios.close()
            await client.close()
        ```
    """

    def __init__(
        self,
        host: str,
        username: str,
        *,
        port: int | None = None,
        password: str | None = None,
        private_key: str | bytes | None = None,
        passphrase: str | None = None,
        algorithms: SSHAlgorithms | dict[str, list[str]] | None = None,
        known_hosts: str | None = None,
        debug: bool | None = None,
        read_timeout_seconds: float | None = None,
        raw: bool | None = None,
        preserve_attributes: bool | None = None,
        transport: Transport | None = None,
        settings: NetconfSettings | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            host: Device hostname or address.
            username: Login name.
            port: SSH port; defaults to the configured port (22).
            password: Password authentication.
            private_key: Private key material for public key authentication.
            passphrase: Passphrase of `private_key`.
            algorithms: SSH algorithm preferences.
            known_hosts: known_hosts file used to verify the device; None skips
                verification.
            debug: Log at DEBUG level, including asyncssh protocol traces.
            read_timeout_seconds: Default bound on every RPC.
            raw: Attach the original XML text to every reply.
            preserve_attributes: Keep XML attributes in decoded replies.
            transport: Use this transport instead of SSH.
            settings: Defaults for every argument left unset.
        """
        self.settings = settings or NetconfSettings()
        self.host = host
        self.username = username
        self.port = port if port is not None else self.settings.port
        self.debug = debug if debug is not None else self.settings.debug

        if transport is None:
            if isinstance(algorithms, dict):
                algorithms = SSHAlgorithms(**algorithms)
            transport = SSHTransport(
                SSHServerParameters(
                    host=host,
                    username=username,
                    port=self.port,
                    password=password,
                    private_key=private_key,
                    passphrase=passphrase,
                    algorithms=algorithms or SSHAlgorithms(),
                    known_hosts=known_hosts,
                    debug=self.debug,
                )
            )
        self._transport = transport

        if read_timeout_seconds is None:
            read_timeout_seconds = self.settings.rpc_timeout
        self._read_timeout_seconds = read_timeout_seconds
        self._raw = raw if raw is not None else self.settings.raw
        self._preserve_attributes = (
            preserve_attributes if preserve_attributes is not None else self.settings.preserve_attributes
        )

        self._state = SessionState.DISCONNECTED
        self._session: ClientSession | None = None
        self._exit_stack: AsyncExitStack | None = None

        configure_logging("DEBUG" if self.debug else self.settings.log_level)

    async def __aenter__(self) -> Client:
        await self.open()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self.close()

    async def open(self) -> Hello:
        """Connect, open the netconf subsystem and exchange hello messages."""
        if self._session is not None:
            raise RuntimeError("Client is already open")

        self._state = SessionState.CONNECTING
        async with AsyncExitStack() as exit_stack:
            try:
                read_stream, write_stream = await exit_stack.enter_async_context(self._transport.connect())
            except Exception:
                self._state = SessionState.FAILED
                raise

            session = await exit_stack.enter_async_context(
                ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=timedelta(seconds=self._read_timeout_seconds)
                    if self._read_timeout_seconds is not None
                    else None,
                    raw=self._raw,
                    preserve_attributes=self._preserve_attributes,
                )
            )
            self._session = session
            try:
                hello = await session.initialize(timeout=self.settings.hello_timeout)
            except Exception:
                self._session = None
                self._state = session.state
                raise

            # Transfer ownership to self for close() to handle
            self._exit_stack = exit_stack.pop_all()
            logger.info("Connected to %s:%d as %s", self.host, self.port, self.username)
            return hello

    async def close(self) -> None:
        """Send close-session when still connected, then tear down the transport."""
        session = self._session
        if session is None:
            return
        try:
            if session.connected and not session.close_requested:
                await session.close_session(timeout=self.settings.close_timeout)
        except ConnectionClosed as exc:
            logger.debug("Device disconnected during close-session: %s", exc)
        finally:
            self._state = SessionState.CLOSED
            self._session = None
            if self._exit_stack is not None:  # pragma: no branch
                await self._exit_stack.aclose()
                self._exit_stack = None

    @property
    def session(self) -> ClientSession:
        """Get the underlying ClientSession.

        Raises:
            RuntimeError: If accessed before the client is opened.
        """
        if self._session is None:
            raise RuntimeError("Client is not open")
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is not None:
            return self._session.state
        return self._state

    @property
    def connected(self) -> bool:
        return self._session is not None and self._session.connected

    @property
    def session_id(self) -> int | None:
        return self._session.session_id if self._session is not None else None

    @property
    def capabilities(self) -> list[Capability]:
        return self._session.capabilities if self._session is not None else []

    @property
    def raw(self) -> bool:
        return self._raw

    @raw.setter
    def raw(self, value: bool) -> None:
        self._raw = value
        if self._session is not None:
            self._session.raw = value

    @property
    def preserve_attributes(self) -> bool:
        return self._preserve_attributes

    @preserve_attributes.setter
    def preserve_attributes(self, value: bool) -> None:
        self._preserve_attributes = value
        if self._session is not None:
            self._session.preserve_attributes = value

    @property
    def junos(self) -> JunosOperations:
        return JunosOperations(self.session)

    @property
    def ios(self) -> IOSOperations:
        return IOSOperations(self.session, close_timeout=self.settings.close_timeout)

    async def rpc(self, request: Request, timeout: float | None = None) -> RpcReply:
        return await self.session.rpc(request, timeout=timeout)

    async def get_config(self, source: str = "running", filter: Any = None) -> RpcReply:
        return await self.session.get_config(source=source, filter=filter)

    async def get(self, filter: Any = None) -> RpcReply:
        return await self.session.get(filter=filter)
