import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from types import TracebackType

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from typing_extensions import Self

from netconf_rpc.shared._exception_utils import open_task_group
from netconf_rpc.shared.exceptions import (
    ConnectionClosed,
    DecodeError,
    FramingError,
    RequestTimeout,
    RpcError,
    SessionNotEstablished,
)
from netconf_rpc.shared.framing import FrameDecoder, FramingMode, encode_chunked
from netconf_rpc.shared.messages import MessageDecoder, find_message_id, render_rpc
from netconf_rpc.types import (
    FIRST_MESSAGE_ID,
    Hello,
    MessageId,
    Request,
    RpcErrorReply,
    RpcReply,
    SessionState,
)

logger = logging.getLogger(__name__)

Outcome = RpcReply | RpcErrorReply | Exception


@dataclass
class PendingRequest:
    """A request waiting for its reply; resolved at most once."""

    message_id: MessageId
    send_stream: MemoryObjectSendStream[Outcome]
    receive_stream: MemoryObjectReceiveStream[Outcome]
    issued_at: float = field(default_factory=time.monotonic)


class PendingRequests:
    """Maps message ids to one-shot streams carrying the eventual outcome."""

    _requests: dict[MessageId, PendingRequest]

    def __init__(self) -> None:
        self._requests = {}

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._requests

    def __len__(self) -> int:
        return len(self._requests)

    def new_request(self, message_id: MessageId) -> PendingRequest:
        if message_id in self._requests:
            raise RuntimeError(f"Request {message_id} is already pending")
        send_stream, receive_stream = anyio.create_memory_object_stream[Outcome](1)
        pending = PendingRequest(message_id, send_stream, receive_stream)
        self._requests[message_id] = pending
        return pending

    async def receive_response(self, message_id: MessageId, timeout: float | None = None) -> Outcome:
        pending = self._requests.get(message_id)
        if pending is None:
            raise RuntimeError(f"Unknown request {message_id}")

        try:
            with anyio.fail_after(timeout):
                return await pending.receive_stream.receive()
        except anyio.EndOfStream:
            raise ConnectionClosed("Connection closed")
        except TimeoutError:
            elapsed = time.monotonic() - pending.issued_at
            raise RequestTimeout(f"No reply to message {message_id} after {elapsed:.1f} seconds")

    def handle_response(self, message_id: MessageId, outcome: Outcome) -> bool:
        pending = self._requests.get(message_id)
        if pending is None:
            return False
        try:
            pending.send_stream.send_nowait(outcome)
        except anyio.WouldBlock:
            logger.warning("Ignoring duplicate reply to message %s", message_id)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug("Reply to message %s arrived after it was abandoned", message_id)
        return True

    async def close_request(self, message_id: MessageId) -> bool:
        pending = self._requests.pop(message_id, None)
        if pending is None:
            return False
        pending.send_stream.close()
        pending.receive_stream.close()
        return True

    async def close(self, error: Exception | None = None) -> None:
        """Fail every outstanding request with `error` (or ConnectionClosed)."""
        for message_id, pending in self._requests.copy().items():
            outcome = error if error is not None else ConnectionClosed("Connection closed")
            try:
                pending.send_stream.send_nowait(outcome)
            except (anyio.WouldBlock, anyio.ClosedResourceError, anyio.BrokenResourceError):
                # Already resolved or abandoned
                pass
            finally:
                pending.send_stream.close()
                self._requests.pop(message_id, None)


class BaseSession:
    """
    Implements NETCONF message exchange on top of byte read/write streams:
    framing, message-id allocation and reply correlation.

    This class is an async context manager that starts reading from the
    transport when entered. The first inbound message is expected to be the
    peer's hello, framed with the end-of-message delimiter; everything after
    it is chunk framed.
    """

    def __init__(
        self,
        read_stream: MemoryObjectReceiveStream[bytes | Exception],
        write_stream: MemoryObjectSendStream[bytes],
        # If none, reading will never time out
        read_timeout_seconds: timedelta | None = None,
        raw: bool = False,
        preserve_attributes: bool = True,
    ) -> None:
        self._read_stream = read_stream
        self._write_stream = write_stream
        self._session_read_timeout_seconds = read_timeout_seconds
        self._decoder = FrameDecoder(FramingMode.END_OF_MESSAGE)
        self._message_decoder = MessageDecoder(raw=raw, preserve_attributes=preserve_attributes)
        self._pending = PendingRequests()
        self._last_message_id = FIRST_MESSAGE_ID - 1
        self._state = SessionState.DISCONNECTED
        self._hello_send, self._hello_receive = anyio.create_memory_object_stream[Hello | Exception](1)
        self._hello_delivered = False

    async def __aenter__(self) -> Self:
        self._task_group_cm = open_task_group()
        self._task_group = await self._task_group_cm.__aenter__()
        self._task_group.start_soon(self._receive_loop)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        # Leaving the session must not block on the reader, so cancel it.
        self._task_group.cancel_scope.cancel()
        return await self._task_group_cm.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def raw(self) -> bool:
        return self._message_decoder.raw

    @raw.setter
    def raw(self, value: bool) -> None:
        self._message_decoder.raw = value

    @property
    def preserve_attributes(self) -> bool:
        return self._message_decoder.preserve_attributes

    @preserve_attributes.setter
    def preserve_attributes(self, value: bool) -> None:
        self._message_decoder.preserve_attributes = value

    @property
    def last_message_id(self) -> int:
        return self._last_message_id

    def _next_message_id(self) -> int:
        self._last_message_id += 1
        return self._last_message_id

    def _check_established(self) -> None:
        if self._state in (SessionState.CLOSED, SessionState.FAILED):
            raise ConnectionClosed(f"Session is {self._state.value}")
        if self._state is not SessionState.ESTABLISHED:
            raise SessionNotEstablished("NETCONF session not established")

    async def _send_frame(self, data: bytes) -> None:
        logger.debug("Sending %d bytes", len(data))
        try:
            await self._write_stream.send(data)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
            raise ConnectionClosed("Transport is closed") from exc

    async def send_rpc(
        self,
        request: Request,
        request_read_timeout_seconds: timedelta | None = None,
    ) -> RpcReply:
        """
        Sends an RPC and waits for the matching reply. Raises RpcError if the
        reply contains an rpc-error. If a request read timeout is provided, it
        takes precedence over the session read timeout.
        """
        self._check_established()
        message_id = self._next_message_id()
        payload = render_rpc(request, message_id)

        timeout = None
        if request_read_timeout_seconds is not None:
            timeout = request_read_timeout_seconds.total_seconds()
        elif self._session_read_timeout_seconds is not None:
            timeout = self._session_read_timeout_seconds.total_seconds()

        self._pending.new_request(message_id)
        try:
            await self._send_frame(encode_chunked(payload))
            outcome = await self._pending.receive_response(message_id, timeout)
        finally:
            await self._pending.close_request(message_id)

        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, RpcErrorReply):
            raise RpcError(outcome)
        return outcome

    async def _receive_loop(self) -> None:
        error: Exception | None = None
        async with (
            self._read_stream,
            self._write_stream,
        ):
            try:
                async for data in self._read_stream:
                    if isinstance(data, Exception):
                        logger.error("Transport error: %s", data)
                        error = data
                        break
                    logger.debug("Received %d bytes", len(data))
                    self._decoder.feed(data)
                    for text in self._decoder.messages():
                        await self._handle_message(text)
            except anyio.ClosedResourceError:
                logger.debug("Read stream closed")
            except FramingError as exc:
                logger.error("Lost message framing: %s", exc)
                error = exc
            finally:
                self._connection_lost(error)
                await self._pending.close(error)

    async def _handle_message(self, text: str) -> None:
        if self._decoder.mode is FramingMode.END_OF_MESSAGE:
            self._handle_hello(text)
            return

        try:
            reply = self._message_decoder.parse(text)
        except DecodeError as exc:
            message_id = find_message_id(text)
            if message_id is None or not self._pending.handle_response(message_id, exc):
                logger.warning("Discarding undecodable message: %s", exc)
            return

        if isinstance(reply, Hello):
            logger.warning("Ignoring unexpected hello (session-id %s)", reply.session_id)
            return
        if reply.message_id is None or not self._pending.handle_response(reply.message_id, reply):
            logger.warning("Received reply with an unknown message-id: %s", reply.message_id)

    def _handle_hello(self, text: str) -> None:
        outcome: Hello | Exception
        try:
            reply = self._message_decoder.parse(text)
        except DecodeError as exc:
            outcome = exc
        else:
            if isinstance(reply, Hello):
                outcome = reply
                self._decoder.mode = FramingMode.CHUNKED
            else:
                outcome = DecodeError(f"Expected hello, received {reply.kind}")
        self._deliver_hello(outcome)

    def _deliver_hello(self, outcome: Hello | Exception) -> None:
        try:
            self._hello_send.send_nowait(outcome)
        except (anyio.WouldBlock, anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning("Discarding message received before the session was established")
        else:
            self._hello_delivered = True
            self._hello_send.close()

    def _connection_lost(self, error: Exception | None) -> None:
        if not self._hello_delivered:
            self._deliver_hello(error if error is not None else ConnectionClosed("Connection closed before hello"))
        if self._state is not SessionState.FAILED:
            self._state = SessionState.FAILED if error is not None else SessionState.CLOSED
        logger.info("Session %s", self._state.value)
