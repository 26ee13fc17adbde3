"""Request correlation and flow control over a single connection.

The dispatcher owns three pieces of per-client state:

* the identity counter used for outbound ``call`` messages,
* the registry of pending requests, keyed by identity,
* the in-flight budget (``in_flight``), capped at ``max_in_flight``.

Writes are serialized through an ``asyncio.Lock`` so frames reach the
connection in ``send`` call order.  Admission is a polling gate evaluated
inside that lock, which makes admission FIFO: only the head-of-line sender
re-checks the budget.  Responses are matched by identity in whatever order
the node returns them.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pysteem._constants import ADMISSION_INTERVAL, MAX_IN_FLIGHT, RPC_METHOD
from pysteem._redact import redact_rpc_payload
from pysteem._subscription import Subscription
from pysteem._transport import Connection
from pysteem.exceptions import (
    SteemMismatchedResponseError,
    SteemProtocolError,
    SteemResponseDroppedError,
    SteemStaleResponseError,
    SteemTimeoutError,
    SteemTransportError,
)

_logger = logging.getLogger(__name__)

DroppedHandler = Callable[[SteemResponseDroppedError], None]


@dataclass(slots=True)
class PendingRequest:
    """A transmitted request waiting for the response with its identity."""

    request_id: int
    issued_at: int
    api_id: int
    method: str
    future: asyncio.Future[Any]


class RequestDispatcher:
    """Assigns identities, enforces the in-flight cap and matches responses."""

    def __init__(
        self,
        *,
        first_id: int = 0,
        max_in_flight: int = MAX_IN_FLIGHT,
        admission_interval: float = ADMISSION_INTERVAL,
        request_timeout: float | None = None,
        on_dropped: DroppedHandler | None = None,
    ) -> None:
        self._next_id = first_id
        self._max_in_flight = max_in_flight
        self._admission_interval = admission_interval
        self._request_timeout = request_timeout
        self._on_dropped = on_dropped
        self._issued = itertools.count()
        self._pending: dict[int, PendingRequest] = {}
        self._reserved: set[int] = set()
        self._in_flight = 0
        self._write_lock = asyncio.Lock()
        self._connection: Connection | None = None
        self._inbound: Subscription | None = None

    @property
    def in_flight(self) -> int:
        """Requests transmitted and not yet answered."""
        return self._in_flight

    @property
    def max_in_flight(self) -> int:
        return self._max_in_flight

    @property
    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    @property
    def is_attached(self) -> bool:
        return self._connection is not None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def attach(self, connection: Connection) -> None:
        """Start routing inbound messages from *connection* to pending requests."""
        self.detach()
        self._connection = connection
        self._inbound = connection.subscribe(self._on_message, self._on_close)

    def detach(self, reason: str = "Connection detached") -> None:
        """Stop using the current connection and fail every pending request."""
        inbound = self._inbound
        self._inbound = None
        self._connection = None
        if inbound is not None:
            inbound.cancel()
        self.fail_all(SteemTransportError(reason))

    def fail_all(self, error: SteemTransportError) -> None:
        """Reject every pending request with *error* and release their budget."""
        pending = list(self._pending.values())
        if pending:
            _logger.debug("Failing %d pending request(s): %s", len(pending), error)
        for request in pending:
            self._release(request.request_id)
            if not request.future.done():
                request.future.set_exception(error)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(
        self,
        api_id: int,
        method: str,
        params: list[Any],
        *,
        request_id: int | None = None,
    ) -> Any:
        """Send ``call(api_id, method, params)`` and return the node's result.

        Raises
        ------
        SteemProtocolError
            The node answered with an error payload.
        SteemTransportError
            No connection is attached, transmission failed, or the
            connection closed before the response arrived.
        SteemTimeoutError
            ``request_timeout`` elapsed without a response.
        """
        request_id = self._reserve_id(request_id)
        try:
            request = await self._transmit(api_id, method, params, request_id)
        finally:
            self._reserved.discard(request_id)
        return await self._wait_for_response(request)

    async def _transmit(self, api_id: int, method: str, params: list[Any], request_id: int) -> PendingRequest:
        async with self._write_lock:
            await self._wait_for_slot()
            connection = self._connection
            if connection is None:
                raise SteemTransportError("No connection attached")

            payload = {
                "id": request_id,
                "method": RPC_METHOD,
                "params": [api_id, method, params],
            }
            request = PendingRequest(
                request_id=request_id,
                issued_at=next(self._issued),
                api_id=api_id,
                method=method,
                future=asyncio.get_running_loop().create_future(),
            )
            self._reserved.discard(request_id)
            self._register(request)
            if _logger.isEnabledFor(logging.DEBUG):
                _logger.debug("Sending request %s", redact_rpc_payload(payload))
            try:
                await connection.send(json.dumps(payload, separators=(",", ":")))
            except BaseException:
                self._release(request_id)
                raise
        return request

    def _reserve_id(self, request_id: int | None) -> int:
        """Claim *request_id*, or the next free counter value, until it is sent."""
        if request_id is None:
            request_id = self._next_id
            while request_id in self._pending or request_id in self._reserved:
                request_id += 1
            self._next_id = request_id + 1
        elif request_id in self._pending or request_id in self._reserved:
            raise ValueError(f"Request id {request_id} is already in use")
        self._reserved.add(request_id)
        return request_id

    async def _wait_for_slot(self) -> None:
        while self._in_flight >= self._max_in_flight:
            await asyncio.sleep(self._admission_interval)

    async def _wait_for_response(self, request: PendingRequest) -> Any:
        if self._request_timeout is None:
            return await request.future
        try:
            return await asyncio.wait_for(request.future, self._request_timeout)
        except TimeoutError as exc:
            current = self._pending.get(request.request_id)
            if current is request:
                self._release(request.request_id)
            raise SteemTimeoutError(
                f"No response to {request.method} (id={request.request_id}) "
                f"within {self._request_timeout}s",
                request_id=request.request_id,
            ) from exc

    def _register(self, request: PendingRequest) -> None:
        self._pending[request.request_id] = request
        self._in_flight += 1

    def _release(self, request_id: int) -> PendingRequest | None:
        request = self._pending.pop(request_id, None)
        if request is not None:
            self._in_flight -= 1
        return request

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def _on_message(self, message: dict[str, Any]) -> None:
        request_id = message.get("id")
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            _logger.debug("Ignored message without request id: %s", message.get("method", "<none>"))
            return

        request = self._release(request_id)
        if request is None:
            self._drop(request_id, message)
            return

        future = request.future
        if future.done():
            _logger.debug("Discarded response to abandoned request %d", request_id)
            return

        error = message.get("error")
        if error is not None:
            _logger.debug("Rejected %d: %s", request_id, error)
            future.set_exception(SteemProtocolError.from_payload(error, request_id=request_id))
            return

        _logger.debug("Resolved %d", request_id)
        future.set_result(message.get("result"))

    def _drop(self, request_id: int, message: dict[str, Any]) -> None:
        dropped: SteemResponseDroppedError
        if not self._pending or request_id < min(self._pending):
            _logger.debug("Old message was dropped: id=%d", request_id)
            dropped = SteemStaleResponseError(
                f"Stale response id={request_id}",
                request_id=request_id,
                payload=message,
            )
        else:
            _logger.debug("Response matching no pending request was dropped: id=%d", request_id)
            dropped = SteemMismatchedResponseError(
                f"Mismatched response id={request_id}",
                request_id=request_id,
                payload=message,
            )
        if self._on_dropped is not None:
            try:
                self._on_dropped(dropped)
            except Exception:
                _logger.debug("on_dropped callback failed", exc_info=True)

    def _on_close(self, error: SteemTransportError) -> None:
        self._inbound = None
        self._connection = None
        self.fail_all(error)
