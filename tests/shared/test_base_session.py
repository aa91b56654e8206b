import anyio
import pytest

from netconf_rpc.shared.exceptions import ConnectionClosed, RequestTimeout, SessionNotEstablished, TransportError
from netconf_rpc.shared.session import BaseSession, PendingRequests
from netconf_rpc.types import FIRST_MESSAGE_ID, RpcReply, SessionState


def _reply(message_id: int) -> RpcReply:
    return RpcReply(message_id=message_id, data={"rpc_reply": {"ok": None}})


@pytest.mark.anyio
async def test_pending_request_resolves_once():
    pending = PendingRequests()
    pending.new_request(101)

    first, second = _reply(101), _reply(101)
    assert pending.handle_response(101, first)
    # Duplicate replies are dropped
    assert pending.handle_response(101, second)

    assert await pending.receive_response(101) is first
    assert await pending.close_request(101)
    assert 101 not in pending
    assert not pending.handle_response(101, _reply(101))


@pytest.mark.anyio
async def test_pending_request_rejects_reused_id():
    pending = PendingRequests()
    pending.new_request(101)
    with pytest.raises(RuntimeError):
        pending.new_request(101)


@pytest.mark.anyio
async def test_pending_request_timeout():
    pending = PendingRequests()
    pending.new_request(101)

    with pytest.raises(RequestTimeout, match="101"):
        await pending.receive_response(101, timeout=0.05)


@pytest.mark.anyio
async def test_close_fails_every_pending_request():
    pending = PendingRequests()
    first = pending.new_request(101)
    second = pending.new_request(102)

    error = TransportError("connection reset")
    await pending.close(error)

    assert len(pending) == 0
    assert await first.receive_stream.receive() is error
    assert await second.receive_stream.receive() is error
    with pytest.raises(anyio.EndOfStream):
        await first.receive_stream.receive()


@pytest.mark.anyio
async def test_close_without_error_reports_connection_closed():
    pending = PendingRequests()
    request = pending.new_request(101)
    await pending.close()
    assert isinstance(await request.receive_stream.receive(), ConnectionClosed)


@pytest.mark.anyio
async def test_send_rpc_requires_established_session(device):
    session = BaseSession(*device.streams)

    assert session.state is SessionState.DISCONNECTED
    with pytest.raises(SessionNotEstablished):
        await session.send_rpc("get")
    assert session.last_message_id == FIRST_MESSAGE_ID - 1


@pytest.mark.anyio
async def test_end_of_input_closes_session(device):
    async with BaseSession(*device.streams) as session:
        await device.hang_up()
        with anyio.fail_after(1):
            while session.state is not SessionState.CLOSED:
                await anyio.sleep(0.01)

        with pytest.raises(ConnectionClosed):
            await session.send_rpc("get")


@pytest.mark.anyio
async def test_transport_error_fails_session(device):
    async with BaseSession(*device.streams) as session:
        await device.fail(TransportError("connection reset"))
        with anyio.fail_after(1):
            while session.state is not SessionState.FAILED:
                await anyio.sleep(0.01)


@pytest.mark.anyio
async def test_decoder_options_are_adjustable(device):
    session = BaseSession(*device.streams, raw=True, preserve_attributes=False)
    assert session.raw
    assert not session.preserve_attributes

    session.raw = False
    session.preserve_attributes = True
    assert not session.raw
    assert session.preserve_attributes
