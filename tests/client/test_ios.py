from typing import Any

import pytest
import xmltodict

from netconf_rpc.client.vendors.ios import IOSOperations
from netconf_rpc.types import SessionState


def _close_requests(device) -> int:
    return sum(1 for m in device.received if m.startswith("<rpc") and "close-session" in xmltodict.parse(m)["rpc"])


@pytest.mark.anyio
async def test_close_sends_close_session_twice(device):
    async with device.session(lambda message_id, rpc: device.reply_xml(message_id)) as session:
        reply = await IOSOperations(session, close_timeout=1).close()

        assert reply is not None
        assert reply.ok
        assert reply.message_id == 102
        assert session.close_requested

    assert _close_requests(device) == 2


@pytest.mark.anyio
async def test_close_tolerates_unanswered_second_request(device):
    answered: list[int] = []

    def handler(message_id: int, rpc: dict[str, Any]) -> str | None:
        if answered:
            return None
        answered.append(message_id)
        return device.reply_xml(message_id)

    async with device.session(handler) as session:
        reply = await IOSOperations(session, close_timeout=0.05).close()

    assert reply is not None
    assert reply.message_id == answered[0]


@pytest.mark.anyio
async def test_close_tolerates_disconnect(device):
    async def handler(message_id: int, rpc: dict[str, Any]) -> str | None:
        if message_id == 101:
            return device.reply_xml(message_id)
        await device.hang_up()
        return None

    async with device.session(handler) as session:
        reply = await IOSOperations(session, close_timeout=1).close()

        assert reply is not None
        assert reply.message_id == 101
        assert session.state is SessionState.CLOSED
