"""
SSH Transport Module

Connects to a device over SSH with asyncssh and opens the `netconf`
subsystem. The subsystem channel is exposed as a pair of byte streams.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import anyio
import anyio.lowlevel
import asyncssh
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from pydantic import BaseModel, Field

from netconf_rpc.client._transport import TransportStreams
from netconf_rpc.shared._exception_utils import open_task_group
from netconf_rpc.shared.exceptions import TransportError
from netconf_rpc.utilities.logging import redact_sensitive_data

logger = logging.getLogger(__name__)

NETCONF_SUBSYSTEM = "netconf"

READ_CHUNK_SIZE = 65536


class SSHAlgorithms(BaseModel):
    """Algorithm preferences; None keeps the asyncssh defaults."""

    kex: list[str] | None = None
    encryption: list[str] | None = None
    mac: list[str] | None = None
    server_host_key: list[str] | None = None
    compression: list[str] | None = None


class SSHServerParameters(BaseModel):
    host: str
    """Hostname or address of the device."""

    username: str

    port: int = 22

    password: str | None = None

    private_key: str | bytes | None = None
    """Private key material (not a path)."""

    passphrase: str | None = None
    """Passphrase protecting `private_key`."""

    algorithms: SSHAlgorithms = Field(default_factory=SSHAlgorithms)

    known_hosts: str | None = None
    """
    Path of a known_hosts file used to verify the device key.

    If not specified, host keys are not verified.
    """

    connect_timeout: float | None = None

    debug: bool = False
    """Enable asyncssh protocol debugging output."""


def connect_options(params: SSHServerParameters) -> dict[str, Any]:
    """Translate `params` into keyword arguments for `asyncssh.connect`."""
    options: dict[str, Any] = {
        "port": params.port,
        "username": params.username,
        "password": params.password,
        "known_hosts": params.known_hosts,
    }
    if params.private_key is not None:
        try:
            key = asyncssh.import_private_key(params.private_key, params.passphrase)
        except (asyncssh.KeyImportError, ValueError) as exc:
            raise TransportError(f"Cannot load private key: {exc}") from exc
        options["client_keys"] = [key]
    if params.connect_timeout is not None:
        options["connect_timeout"] = params.connect_timeout

    algorithms = params.algorithms
    for name, value in (
        ("kex_algs", algorithms.kex),
        ("encryption_algs", algorithms.encryption),
        ("mac_algs", algorithms.mac),
        ("server_host_key_algs", algorithms.server_host_key),
        ("compression_algs", algorithms.compression),
    ):
        if value is not None:
            options[name] = value
    return options


@asynccontextmanager
async def ssh_client(params: SSHServerParameters) -> AsyncGenerator[TransportStreams, None]:
    """
    Client transport for NETCONF over SSH.

    This will:
    1. Connect and authenticate to the device
    2. Open the netconf subsystem
    3. Relay subsystem bytes through a pair of memory object streams

    Raises:
        TransportError: If the connection, authentication or subsystem request fails
    """
    read_stream: MemoryObjectReceiveStream[bytes | Exception]
    read_stream_writer: MemoryObjectSendStream[bytes | Exception]

    write_stream: MemoryObjectSendStream[bytes]
    write_stream_reader: MemoryObjectReceiveStream[bytes]

    if params.debug:
        asyncssh.set_log_level(logging.DEBUG)
        asyncssh.set_debug_level(2)

    options = connect_options(params)
    logger.debug("Connecting to %s with %s", params.host, redact_sensitive_data(options))

    try:
        conn = await asyncssh.connect(params.host, **options)
    except (OSError, asyncssh.Error) as exc:
        raise TransportError(f"Cannot connect to {params.host}:{params.port}: {exc}") from exc

    try:
        writer, reader, _ = await conn.open_session(subsystem=NETCONF_SUBSYSTEM, encoding=None)
    except (OSError, asyncssh.Error) as exc:
        conn.close()
        raise TransportError(f"Cannot open the {NETCONF_SUBSYSTEM} subsystem: {exc}") from exc

    logger.info("Opened %s subsystem on %s:%d", NETCONF_SUBSYSTEM, params.host, params.port)

    read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

    async def channel_reader():
        try:
            async with read_stream_writer:
                while True:
                    try:
                        data = await reader.read(READ_CHUNK_SIZE)
                    except (OSError, asyncssh.Error) as exc:
                        logger.error("SSH channel error: %s", exc)
                        await read_stream_writer.send(TransportError(str(exc)))
                        return
                    if not data:
                        logger.debug("SSH channel closed by %s", params.host)
                        return
                    await read_stream_writer.send(data)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            await anyio.lowlevel.checkpoint()

    async def channel_writer():
        try:
            async with write_stream_reader:
                async for data in write_stream_reader:
                    writer.write(data)
                    await writer.drain()
        except anyio.ClosedResourceError:
            await anyio.lowlevel.checkpoint()
        except (OSError, asyncssh.Error) as exc:
            logger.error("SSH channel write failed: %s", exc)
            try:
                await read_stream_writer.send(TransportError(str(exc)))
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                await anyio.lowlevel.checkpoint()

    try:
        async with open_task_group() as tg:
            tg.start_soon(channel_reader)
            tg.start_soon(channel_writer)
            try:
                yield read_stream, write_stream
            finally:
                tg.cancel_scope.cancel()
    finally:
        await read_stream.aclose()
        await write_stream.aclose()
        writer.close()
        conn.close()
        with anyio.CancelScope(shield=True):
            await conn.wait_closed()
        logger.info("Disconnected from %s", params.host)


class SSHTransport:
    """Transport that reaches the device over SSH."""

    def __init__(self, params: SSHServerParameters) -> None:
        self.params = params

    def connect(self):
        return ssh_client(self.params)
