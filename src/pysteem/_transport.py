"""WebSocket transport carrying JSON-RPC text frames."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import aiohttp

from pysteem._subscription import Subscription
from pysteem.exceptions import SteemTransportError

_logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], None]
CloseHandler = Callable[[SteemTransportError], None]


class Connection(Protocol):
    """Structural connection interface used by the dispatcher.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`WebSocketConnection`) concrete.
    """

    async def send(self, message: str) -> None:
        ...

    def subscribe(self, on_message: MessageHandler, on_close: CloseHandler | None = None) -> Subscription:
        ...

    async def close(self) -> None:
        ...


ConnectionFactory = Callable[[str], Awaitable[Connection]]


class WebSocketConnection:
    """One persistent WebSocket to a node, fanning inbound JSON objects out to subscribers."""

    def __init__(
        self,
        url: str,
        http_session: aiohttp.ClientSession,
        *,
        heartbeat: float | None = None,
    ) -> None:
        self._url = url
        self._http = http_session
        self._heartbeat = heartbeat
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._tokens = itertools.count()
        self._subscribers: dict[int, tuple[MessageHandler, CloseHandler | None]] = {}
        self._closed = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed and not self._closed

    async def open(self) -> None:
        """Connect and start the background reader."""
        if self._ws is not None:
            return
        try:
            self._ws = await self._http.ws_connect(self._url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, OSError, RuntimeError) as exc:
            raise SteemTransportError(f"Could not connect to {self._url}: {exc}", url=self._url) from exc
        _logger.debug("Opened WS connection with %s", self._url)
        self._reader = asyncio.create_task(self._read_loop(self._ws))

    async def send(self, message: str) -> None:
        ws = self._ws
        if ws is None or ws.closed or self._closed:
            raise SteemTransportError(f"Connection to {self._url} is not open", url=self._url)
        _logger.debug("Sending %d byte frame to %s", len(message), self._url)
        try:
            await ws.send_str(message)
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise SteemTransportError(f"Send to {self._url} failed: {exc}", url=self._url) from exc

    def subscribe(self, on_message: MessageHandler, on_close: CloseHandler | None = None) -> Subscription:
        token = next(self._tokens)
        self._subscribers[token] = (on_message, on_close)
        _logger.debug("Added inbound subscriber %d", token)

        def _release() -> None:
            if self._subscribers.pop(token, None) is not None:
                _logger.debug("Removed inbound subscriber %d", token)

        return Subscription(_release)

    async def close(self) -> None:
        ws = self._ws
        reader = self._reader
        self._reader = None
        if ws is not None and not ws.closed:
            await ws.close()
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        self._notify_closed(SteemTransportError(f"Connection to {self._url} closed", url=self._url))

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        error: BaseException | None = None
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = ws.exception()
                    break
        except aiohttp.ClientError as exc:
            error = exc
        finally:
            if error is not None:
                _logger.debug("WS connection with %s failed: %s", self._url, error)
                reason = f"Connection to {self._url} failed: {error}"
            else:
                _logger.debug("Closed WS connection with %s", self._url)
                reason = f"Connection to {self._url} closed"
            self._notify_closed(SteemTransportError(reason, url=self._url))

    def _handle_text(self, text: str) -> None:
        _logger.debug("Received message %s", text[:512])
        try:
            message = json.loads(text)
        except json.JSONDecodeError:
            _logger.warning("Dropped non-JSON frame from %s: %s", self._url, text[:64])
            return
        if not isinstance(message, dict):
            _logger.warning("Dropped non-object frame from %s", self._url)
            return
        for on_message, _on_close in list(self._subscribers.values()):
            try:
                on_message(message)
            except Exception:
                _logger.exception("Inbound message handler failed")

    def _notify_closed(self, error: SteemTransportError) -> None:
        if self._closed:
            return
        self._closed = True
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for _on_message, on_close in subscribers:
            if on_close is None:
                continue
            try:
                on_close(error)
            except Exception:
                _logger.exception("Connection close handler failed")


async def open_websocket(
    url: str,
    http_session: aiohttp.ClientSession,
    *,
    heartbeat: float | None = None,
) -> WebSocketConnection:
    """Open a :class:`WebSocketConnection` to *url*."""
    connection = WebSocketConnection(url, http_session, heartbeat=heartbeat)
    await connection.open()
    return connection
