from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import anyio
import pytest
import xmltodict

from netconf_rpc.client.session import ClientSession
from netconf_rpc.shared.framing import FrameDecoder, FramingMode, encode_chunked, encode_end_of_message
from netconf_rpc.types import BASE_1_1, NETCONF_BASE_NS


@pytest.fixture
def anyio_backend():
    return "asyncio"


class MockDevice:
    """A scripted NETCONF peer speaking real framing over memory streams."""

    def __init__(self) -> None:
        self.to_client, self.client_read = anyio.create_memory_object_stream[bytes | Exception](100)
        self.client_write, self.from_client = anyio.create_memory_object_stream[bytes](100)
        self._decoder = FrameDecoder(FramingMode.END_OF_MESSAGE)
        self._queued: list[str] = []
        self.received: list[str] = []

    @property
    def streams(self):
        return self.client_read, self.client_write

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[Any]:
        yield self.streams

    @staticmethod
    def hello_xml(session_id: Any = 7, capabilities: tuple[str, ...] = (BASE_1_1,)) -> str:
        caps = "".join(f"<capability>{c}</capability>" for c in capabilities)
        session = "" if session_id is None else f"<session-id>{session_id}</session-id>"
        return f'<hello xmlns="{NETCONF_BASE_NS}"><capabilities>{caps}</capabilities>{session}</hello>'

    @staticmethod
    def reply_xml(message_id: Any, body: str = "<ok/>") -> str:
        return f'<rpc-reply xmlns="{NETCONF_BASE_NS}" message-id="{message_id}">{body}</rpc-reply>'

    @staticmethod
    def error_xml(message_id: Any, message: str = "syntax error") -> str:
        return MockDevice.reply_xml(
            message_id,
            "<rpc-error><error-type>protocol</error-type><error-tag>operation-failed</error-tag>"
            f"<error-severity>error</error-severity><error-message>{message}</error-message></rpc-error>",
        )

    async def send_hello(self, session_id: Any = 7, capabilities: tuple[str, ...] = (BASE_1_1,)) -> None:
        await self.to_client.send(encode_end_of_message(self.hello_xml(session_id, capabilities)))

    async def send_raw(self, data: bytes) -> None:
        await self.to_client.send(data)

    async def reply(self, xml: str) -> None:
        await self.to_client.send(encode_chunked(xml))

    async def fail(self, error: Exception) -> None:
        await self.to_client.send(error)

    async def hang_up(self) -> None:
        await self.to_client.aclose()

    async def receive(self) -> str:
        """Next message sent by the client; switches to chunked framing after its hello."""
        while not self._queued:
            data = await self.from_client.receive()
            self._decoder.feed(data)
            for message in self._decoder.messages():
                self._queued.append(message)
                self._decoder.mode = FramingMode.CHUNKED
        message = self._queued.pop(0)
        self.received.append(message)
        return message

    async def receive_rpc(self) -> tuple[int, dict[str, Any]]:
        """Next rpc as (message-id, body) with xmltodict's default names; hellos are skipped."""
        while True:
            document = xmltodict.parse(await self.receive())
            if "rpc" in document:
                rpc = document["rpc"]
                return int(rpc["@message-id"]), rpc

    @asynccontextmanager
    async def session(
        self,
        handler: Callable[[int, dict[str, Any]], Awaitable[str | None] | str | None] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ClientSession]:
        """An established ClientSession whose rpcs are answered by `handler`."""
        async with anyio.create_task_group() as tg:
            async with ClientSession(*self.streams, **kwargs) as session:
                await self.send_hello()
                await session.initialize(timeout=5)
                if handler is not None:
                    tg.start_soon(self.serve, handler)
                yield session
            tg.cancel_scope.cancel()

    async def serve(self, handler: Callable[[int, dict[str, Any]], Awaitable[str | None] | str | None]) -> None:
        """Answer rpcs until the client goes away; handler returns reply XML or None."""
        try:
            while True:
                message_id, rpc = await self.receive_rpc()
                reply = handler(message_id, rpc)
                if isinstance(reply, Awaitable):
                    reply = await reply
                if reply is not None:
                    await self.reply(reply)
        except (anyio.EndOfStream, anyio.ClosedResourceError, anyio.BrokenResourceError):
            pass


@pytest.fixture
def device() -> MockDevice:
    return MockDevice()
