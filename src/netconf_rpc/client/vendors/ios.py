"""Cisco IOS operations."""

from __future__ import annotations

import logging

from netconf_rpc.client.session import ClientSession
from netconf_rpc.shared.exceptions import ConnectionClosed, RequestTimeout
from netconf_rpc.types import RpcReply

logger = logging.getLogger(__name__)


class IOSOperations:
    def __init__(self, session: ClientSession, close_timeout: float | None = None) -> None:
        self._session = session
        self._close_timeout = close_timeout

    async def close(self) -> RpcReply | None:
        """Close the session, then send close-session once more.

        Some IOS releases never disconnect after close-session; the second
        request prompts them to. It may go unanswered, so it is bounded by the
        close timeout and a lost connection is expected.
        """
        reply: RpcReply | None = await self._session.close_session()
        try:
            reply = await self._session.close_session(timeout=self._close_timeout)
        except (ConnectionClosed, RequestTimeout) as exc:
            logger.debug("Trailing close-session ended with: %s", exc)
        return reply
