from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from pysteem._dispatcher import RequestDispatcher
from pysteem._subscription import Subscription
from pysteem.exceptions import (
    SteemMismatchedResponseError,
    SteemProtocolError,
    SteemResponseDroppedError,
    SteemStaleResponseError,
    SteemTimeoutError,
    SteemTransportError,
)


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self._subscribers: dict[int, tuple[Callable[..., None], Callable[..., None] | None]] = {}
        self._next_token = 0

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    def subscribe(self, on_message: Callable[..., None], on_close: Callable[..., None] | None = None) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = (on_message, on_close)
        return Subscription(lambda: self._subscribers.pop(token, None))

    async def close(self) -> None:
        self.fail("closed")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def deliver(self, message: dict[str, Any]) -> None:
        for on_message, _on_close in list(self._subscribers.values()):
            on_message(message)

    def fail(self, reason: str = "connection lost") -> None:
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for _on_message, on_close in subscribers:
            if on_close is not None:
                on_close(SteemTransportError(reason))


async def _wait_until(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


def _make(**kwargs: Any) -> tuple[RequestDispatcher, FakeConnection, list[SteemResponseDroppedError]]:
    dropped: list[SteemResponseDroppedError] = []
    kwargs.setdefault("admission_interval", 0.001)
    dispatcher = RequestDispatcher(on_dropped=dropped.append, **kwargs)
    connection = FakeConnection()
    dispatcher.attach(connection)
    return dispatcher, connection, dropped


@pytest.mark.asyncio
async def test_send_writes_call_payload() -> None:
    dispatcher, connection, _dropped = _make()

    task = asyncio.create_task(dispatcher.send(0, "get_block", [42]))
    await _wait_until(lambda: len(connection.sent) == 1)

    assert connection.sent[0] == {"id": 0, "method": "call", "params": [0, "get_block", [42]]}
    connection.deliver({"id": 0, "result": {"previous": "00"}})
    assert await task == {"previous": "00"}
    assert dispatcher.in_flight == 0


@pytest.mark.asyncio
async def test_out_of_order_responses_resolve_their_own_requests() -> None:
    dispatcher, connection, dropped = _make(first_id=5)

    task5 = asyncio.create_task(dispatcher.send(0, "get_block", [1]))
    task6 = asyncio.create_task(dispatcher.send(0, "get_block", [2]))
    await _wait_until(lambda: len(connection.sent) == 2)
    assert [msg["id"] for msg in connection.sent] == [5, 6]

    connection.deliver({"id": 6, "result": "six"})
    assert await task6 == "six"
    assert not task5.done()
    assert dispatcher.in_flight == 1

    connection.deliver({"id": 5, "result": "five"})
    assert await task5 == "five"
    assert dispatcher.in_flight == 0
    assert dropped == []


@pytest.mark.asyncio
async def test_stale_response_is_dropped_without_touching_budget() -> None:
    dispatcher, connection, dropped = _make(first_id=10)

    task = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(connection.sent) == 1)

    connection.deliver({"id": 3, "result": "old"})
    await asyncio.sleep(0)

    assert not task.done()
    assert dispatcher.in_flight == 1
    assert len(dropped) == 1
    assert isinstance(dropped[0], SteemStaleResponseError)
    assert dropped[0].request_id == 3

    connection.deliver({"id": 10, "result": "fresh"})
    assert await task == "fresh"


@pytest.mark.asyncio
async def test_response_with_nothing_pending_is_stale() -> None:
    _dispatcher, connection, dropped = _make()

    connection.deliver({"id": 99, "result": None})

    assert len(dropped) == 1
    assert isinstance(dropped[0], SteemStaleResponseError)


@pytest.mark.asyncio
async def test_mismatched_response_keeps_requests_registered() -> None:
    dispatcher, connection, dropped = _make(first_id=10)

    task10 = asyncio.create_task(dispatcher.send(0, "get_config", []))
    task12 = asyncio.create_task(dispatcher.send(0, "get_config", [], request_id=12))
    await _wait_until(lambda: len(connection.sent) == 2)

    connection.deliver({"id": 11, "result": "stray"})
    await asyncio.sleep(0)

    assert len(dropped) == 1
    assert isinstance(dropped[0], SteemMismatchedResponseError)
    assert dispatcher.pending_ids == [10, 12]
    assert dispatcher.in_flight == 2

    connection.deliver({"id": 12, "result": "twelve"})
    connection.deliver({"id": 10, "result": "ten"})
    assert await task10 == "ten"
    assert await task12 == "twelve"


@pytest.mark.asyncio
async def test_in_flight_never_exceeds_cap() -> None:
    dispatcher, connection, _dropped = _make()
    tasks = [asyncio.create_task(dispatcher.send(0, "get_block", [n])) for n in range(15)]

    await _wait_until(lambda: len(connection.sent) == 10)
    await asyncio.sleep(0.02)
    assert len(connection.sent) == 10
    assert dispatcher.in_flight == 10

    answered = 0
    while answered < 15:
        assert dispatcher.in_flight <= 10
        await _wait_until(lambda: len(connection.sent) > answered)
        connection.deliver({"id": connection.sent[answered]["id"], "result": answered})
        answered += 1
        await asyncio.sleep(0.002)

    results = await asyncio.gather(*tasks)
    assert results == list(range(15))
    assert dispatcher.in_flight == 0


@pytest.mark.asyncio
async def test_writes_follow_call_order() -> None:
    dispatcher, connection, _dropped = _make(max_in_flight=2)
    tasks = [asyncio.create_task(dispatcher.send(0, "get_block", [n])) for n in range(6)]

    for expected in range(6):
        await _wait_until(lambda: len(connection.sent) > expected)
        connection.deliver({"id": connection.sent[expected]["id"], "result": None})

    await asyncio.gather(*tasks)
    assert [msg["params"][2] for msg in connection.sent] == [[n] for n in range(6)]
    assert [msg["id"] for msg in connection.sent] == list(range(6))


@pytest.mark.asyncio
async def test_error_payload_rejects_only_its_request() -> None:
    dispatcher, connection, _dropped = _make()

    failing = asyncio.create_task(dispatcher.send(0, "get_block", ["x"]))
    other = asyncio.create_task(dispatcher.send(0, "get_block", [1]))
    await _wait_until(lambda: len(connection.sent) == 2)

    connection.deliver(
        {"id": 0, "error": {"code": -32000, "message": "Bad Cast", "data": {"name": "bad_cast_exception"}}}
    )

    with pytest.raises(SteemProtocolError) as exc_info:
        await failing
    assert exc_info.value.code == -32000
    assert exc_info.value.request_id == 0
    assert exc_info.value.data == {"name": "bad_cast_exception"}
    assert str(exc_info.value) == "Bad Cast"
    assert not other.done()
    assert dispatcher.in_flight == 1

    connection.deliver({"id": 1, "result": "ok"})
    assert await other == "ok"


@pytest.mark.asyncio
async def test_connection_failure_rejects_all_pending_and_frees_budget() -> None:
    dispatcher, connection, _dropped = _make()

    first = asyncio.create_task(dispatcher.send(0, "get_config", []))
    second = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(connection.sent) == 2)

    connection.fail()

    with pytest.raises(SteemTransportError):
        await first
    with pytest.raises(SteemTransportError):
        await second
    assert dispatcher.in_flight == 0
    assert not dispatcher.is_attached

    fresh = FakeConnection()
    dispatcher.attach(fresh)
    task = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(fresh.sent) == 1)
    fresh.deliver({"id": fresh.sent[0]["id"], "result": "again"})
    assert await task == "again"


@pytest.mark.asyncio
async def test_send_without_connection_raises_transport_error() -> None:
    dispatcher = RequestDispatcher()

    with pytest.raises(SteemTransportError):
        await dispatcher.send(0, "get_config", [])
    assert dispatcher.in_flight == 0


@pytest.mark.asyncio
async def test_explicit_identity_is_used_and_skipped_by_counter() -> None:
    dispatcher, connection, _dropped = _make()

    explicit = asyncio.create_task(dispatcher.send(0, "get_config", [], request_id=1))
    auto_a = asyncio.create_task(dispatcher.send(0, "get_config", []))
    auto_b = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(connection.sent) == 3)

    assert [msg["id"] for msg in connection.sent] == [1, 0, 2]

    with pytest.raises(ValueError):
        await dispatcher.send(0, "get_config", [], request_id=2)

    for msg in connection.sent:
        connection.deliver({"id": msg["id"], "result": msg["id"]})
    assert await explicit == 1
    assert await auto_a == 0
    assert await auto_b == 2


@pytest.mark.asyncio
async def test_request_timeout_releases_budget_and_drops_late_response() -> None:
    dispatcher, connection, dropped = _make(request_timeout=0.01)

    with pytest.raises(SteemTimeoutError) as exc_info:
        await dispatcher.send(0, "get_config", [])
    assert exc_info.value.request_id == 0
    assert dispatcher.in_flight == 0

    connection.deliver({"id": 0, "result": "late"})
    assert len(dropped) == 1
    assert isinstance(dropped[0], SteemStaleResponseError)


@pytest.mark.asyncio
async def test_abandoned_request_releases_budget_when_response_arrives() -> None:
    dispatcher, connection, dropped = _make()

    task = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(connection.sent) == 1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert dispatcher.in_flight == 1
    connection.deliver({"id": 0, "result": "ignored"})
    assert dispatcher.in_flight == 0
    assert dropped == []


@pytest.mark.asyncio
async def test_detach_unsubscribes_from_connection() -> None:
    dispatcher, connection, _dropped = _make()
    assert connection.subscriber_count == 1

    dispatcher.detach()

    assert connection.subscriber_count == 0
    assert not dispatcher.is_attached


@pytest.mark.asyncio
async def test_messages_without_id_are_ignored() -> None:
    dispatcher, connection, dropped = _make()

    task = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(connection.sent) == 1)
    connection.deliver({"method": "notice", "params": [0, []]})
    await asyncio.sleep(0)

    assert dropped == []
    assert not task.done()
    connection.deliver({"id": 0, "result": True})
    assert await task is True


@pytest.mark.asyncio
async def test_empty_error_payload_still_rejects_request() -> None:
    dispatcher, connection, _dropped = _make()

    task = asyncio.create_task(dispatcher.send(0, "get_config", []))
    await _wait_until(lambda: len(connection.sent) == 1)
    connection.deliver({"id": 0, "error": {}})

    with pytest.raises(SteemProtocolError) as exc_info:
        await task
    assert exc_info.value.request_id == 0
    assert exc_info.value.code is None
    assert dispatcher.in_flight == 0
