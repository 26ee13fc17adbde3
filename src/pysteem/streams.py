"""Polling stream pipeline: block numbers -> blocks -> transactions -> operations.

Each layer exposes ``subscribe(on_next, on_error=None)`` and returns a
:class:`~pysteem._subscription.Subscription`.  Every ``subscribe`` call
builds a fresh chain down to its own chain-head poller, so independent
subscriptions never share state.  Cancelling a subscription cancels every
layer beneath it; an error at a layer is delivered to that layer's caller
and cancels the same chain.

Usage::

    async with SteemClient() as client:
        operations = OperationSplitter(
            TransactionSplitter(BlockFetcher(client, BlockNumberWatcher(client)))
        )
        async for op in iterate(operations):
            print(op.name)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from pysteem._constants import STREAM_INTERVAL
from pysteem._subscription import Subscription
from pysteem.exceptions import SteemStreamError
from pysteem.models.block import SignedBlock
from pysteem.models.chain import DynamicGlobalProperties
from pysteem.models.transaction import Operation, Transaction

_logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
S = TypeVar("S")

ErrorHandler = Callable[[SteemStreamError], None]


class ChainReader(Protocol):
    """The two queries the pipeline needs; :class:`~pysteem.client.SteemClient` implements both."""

    async def get_dynamic_global_properties(self) -> DynamicGlobalProperties:
        ...

    async def get_block(self, block_num: int) -> SignedBlock | None:
        ...


class StreamSource(Protocol[T_co]):
    def subscribe(self, on_next: Callable[[T_co], None], on_error: ErrorHandler | None = None) -> Subscription:
        ...


def _emit(on_next: Callable[[T], None], item: T, layer: str) -> None:
    try:
        on_next(item)
    except Exception:
        _logger.exception("%s stream callback failed", layer)


def _fail(subscription: Subscription, on_error: ErrorHandler | None, error: SteemStreamError) -> None:
    """Stop *subscription* and hand *error* to its caller, once."""
    if subscription.cancelled:
        return
    subscription.cancel()
    if on_error is None:
        _logger.warning("%s stream stopped: %s", error.layer, error)
        return
    try:
        on_error(error)
    except Exception:
        _logger.exception("%s stream error callback failed", error.layer)


@dataclass
class _WatcherState:
    last_seen: int | None


@dataclass
class _FetcherState:
    last_fetched: int | None = None


class BlockNumberWatcher:
    """Emits the chain head block number each time it changes.

    Polls ``get_dynamic_global_properties`` every *interval* seconds.  With
    *start_block* set, that number counts as already seen.  The first failed
    query ends the stream.
    """

    layer = "block_number"

    def __init__(
        self,
        reader: ChainReader,
        *,
        interval: float = STREAM_INTERVAL,
        start_block: int | None = None,
    ) -> None:
        self._reader = reader
        self._interval = interval
        self._start_block = start_block

    def subscribe(self, on_next: Callable[[int], None], on_error: ErrorHandler | None = None) -> Subscription:
        state = _WatcherState(last_seen=self._start_block)
        subscription = Subscription()

        async def _poll() -> None:
            while not subscription.cancelled:
                try:
                    props = await self._reader.get_dynamic_global_properties()
                except Exception as exc:
                    error = SteemStreamError(f"Chain head query failed: {exc}", layer=self.layer)
                    error.__cause__ = exc
                    _fail(subscription, on_error, error)
                    return
                if subscription.cancelled:
                    return
                head = props.head_block_number
                if head != state.last_seen:
                    state.last_seen = head
                    _emit(on_next, head, self.layer)
                await asyncio.sleep(self._interval)

        task = asyncio.get_running_loop().create_task(_poll())
        subscription.add(task.cancel)
        return subscription


class BlockFetcher:
    """Fetches and emits the block for each new head number from *source*.

    A number equal to the last one fetched is skipped.  Fetches run one at
    a time in the order numbers arrive; a block the node reports as missing
    ends the stream.
    """

    layer = "block"

    def __init__(self, reader: ChainReader, source: StreamSource[int]) -> None:
        self._reader = reader
        self._source = source

    def subscribe(self, on_next: Callable[[SignedBlock], None], on_error: ErrorHandler | None = None) -> Subscription:
        state = _FetcherState()
        subscription = Subscription()
        queue: asyncio.Queue[int] = asyncio.Queue()

        def _on_block_number(block_num: int) -> None:
            if subscription.cancelled or block_num == state.last_fetched:
                return
            state.last_fetched = block_num
            queue.put_nowait(block_num)

        async def _fetch() -> None:
            while not subscription.cancelled:
                block_num = await queue.get()
                try:
                    block = await self._reader.get_block(block_num)
                except Exception as exc:
                    error = SteemStreamError(f"Fetching block {block_num} failed: {exc}", layer=self.layer)
                    error.__cause__ = exc
                    _fail(subscription, on_error, error)
                    return
                if subscription.cancelled:
                    return
                if block is None:
                    _fail(subscription, on_error, SteemStreamError(f"Block {block_num} not found", layer=self.layer))
                    return
                _emit(on_next, block, self.layer)

        task = asyncio.get_running_loop().create_task(_fetch())
        subscription.add(task.cancel)
        upstream = self._source.subscribe(_on_block_number, lambda exc: _fail(subscription, on_error, exc))
        subscription.add(upstream.cancel)
        return subscription


class _Splitter(Generic[S, T]):
    """Emits every child item of each item from *source*, in order."""

    layer = ""

    def __init__(self, source: StreamSource[S]) -> None:
        self._source = source

    def _split(self, item: S) -> Iterable[T]:
        raise NotImplementedError

    def subscribe(self, on_next: Callable[[T], None], on_error: ErrorHandler | None = None) -> Subscription:
        subscription = Subscription()

        def _on_item(item: S) -> None:
            for child in self._split(item):
                if subscription.cancelled:
                    return
                _emit(on_next, child, self.layer)

        upstream = self._source.subscribe(_on_item, lambda exc: _fail(subscription, on_error, exc))
        subscription.add(upstream.cancel)
        return subscription


class TransactionSplitter(_Splitter[SignedBlock, Transaction]):
    """Emits each transaction of each block."""

    layer = "transaction"

    def _split(self, item: SignedBlock) -> Iterable[Transaction]:
        return item.transactions


class OperationSplitter(_Splitter[Transaction, Operation]):
    """Emits each operation of each transaction."""

    layer = "operation"

    def _split(self, item: Transaction) -> Iterable[Operation]:
        return item.operations


async def iterate(source: StreamSource[T]) -> AsyncIterator[T]:
    """Consume *source* as an async iterator.

    Raises the stream's :class:`SteemStreamError` when it fails.  Closing the
    iterator (for example with :func:`contextlib.aclosing`) cancels the
    subscription.
    """
    queue: asyncio.Queue[tuple[Any, SteemStreamError | None]] = asyncio.Queue()
    subscription = source.subscribe(
        lambda item: queue.put_nowait((item, None)),
        lambda exc: queue.put_nowait((None, exc)),
    )
    try:
        while True:
            item, error = await queue.get()
            if error is not None:
                raise error
            yield item
    finally:
        subscription.cancel()
