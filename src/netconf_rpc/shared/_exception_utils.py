"""Helpers for unwrapping the exception groups raised by anyio task groups.

anyio task groups always raise a ``BaseExceptionGroup``, even when the only
error is the one raised by the body of the ``async with`` block. Callers of the
session expect that error itself (``SessionNotEstablished``,
``TransportError``, ...), so groups holding a single real error are collapsed.
Groups with several real errors are preserved unchanged.
"""

from __future__ import annotations

import contextlib
import sys
from collections.abc import AsyncIterator

import anyio
import anyio.abc

if sys.version_info < (3, 11):  # pragma: no cover
    from exceptiongroup import BaseExceptionGroup


def collapse_exception_group(eg: BaseExceptionGroup, cancelled_type: type[BaseException]) -> BaseException:
    """Extract the single real error from `eg` if there is one.

    Returns:
        * The single non-cancelled exception if exactly one exists.
        * A filtered group (cancellations stripped) if several real errors exist.
        * A single cancellation if every exception is one.
    """
    # split(type) matches leaf exceptions, not the group itself.
    _, non_cancelled = eg.split(cancelled_type)

    if non_cancelled is None:
        return eg.exceptions[0]

    if len(non_cancelled.exceptions) == 1:
        return non_cancelled.exceptions[0]

    return non_cancelled if non_cancelled is not eg else eg


@contextlib.asynccontextmanager
async def open_task_group() -> AsyncIterator[anyio.abc.TaskGroup]:
    """Drop-in replacement for ``anyio.create_task_group()`` that raises a lone
    error directly, with the original group attached as ``__cause__``."""
    try:
        async with anyio.create_task_group() as tg:
            yield tg
    except BaseExceptionGroup as eg:
        collapsed = collapse_exception_group(eg, cancelled_type=anyio.get_cancelled_exc_class())
        if collapsed is not eg:
            raise collapsed from eg
        raise
