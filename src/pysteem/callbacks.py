"""Adapter for callback-style callers.

Every client operation is a coroutine.  Code written against the
``callback(error, result)`` convention can wrap any of them::

    with_callback(client.get_block(123), on_block)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Callback = Callable[[BaseException | None, Any], None]


def with_callback(awaitable: Awaitable[T], callback: Callback) -> asyncio.Future[T]:
    """Schedule *awaitable* and call ``callback(error, result)`` when it settles.

    A cancelled operation reports :class:`asyncio.CancelledError` as the
    error.  The returned future can still be awaited or cancelled.
    """
    future = asyncio.ensure_future(awaitable)

    def _done(fut: asyncio.Future[T]) -> None:
        try:
            if fut.cancelled():
                callback(asyncio.CancelledError(), None)
                return
            error = fut.exception()
            if error is not None:
                callback(error, None)
            else:
                callback(None, fut.result())
        except Exception:
            _logger.exception("Result callback failed")

    future.add_done_callback(_done)
    return future
