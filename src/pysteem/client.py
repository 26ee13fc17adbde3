"""High-level async client for a Steem node's WebSocket JSON-RPC API."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import aiohttp

from pysteem import streams as _streams
from pysteem._client import calls as _calls
from pysteem._constants import API_LOOKUP_API, API_LOOKUP_METHOD
from pysteem._dispatcher import DroppedHandler, RequestDispatcher
from pysteem._methods import METHODS_BY_NAME
from pysteem._subscription import Subscription
from pysteem._transport import Connection, ConnectionFactory, open_websocket
from pysteem.config import SteemConfig
from pysteem.exceptions import SteemConfigError, SteemProtocolError, SteemTransportError
from pysteem.models.block import BlockHeader, SignedBlock
from pysteem.models.chain import DynamicGlobalProperties
from pysteem.models.transaction import Operation, Transaction

_logger = logging.getLogger(__name__)


class SteemClient:
    """Async client for a Steem node.

    Usage::

        async with SteemClient() as client:
            props = await client.get_dynamic_global_properties()
            subscription = client.stream_operations(print)

    The connection opens lazily on the first call (or explicitly with
    :meth:`start`).  Every client owns its own connection, identity
    counter and in-flight budget.
    """

    def __init__(
        self,
        config: SteemConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        connection_factory: ConnectionFactory | None = None,
        on_dropped: DroppedHandler | None = None,
    ) -> None:
        self._config = config if config is not None else SteemConfig()
        self._external_session = session is not None
        self._http_session = session
        self._connection_factory = connection_factory
        self._api_ids: dict[str, int | None] = dict(self._config.api_ids)
        self._dispatcher = RequestDispatcher(
            first_id=self._config.id,
            max_in_flight=self._config.max_in_flight,
            admission_interval=self._config.admission_interval,
            request_timeout=self._config.request_timeout,
            on_dropped=on_dropped,
        )
        self._connection: Connection | None = None
        self._start_lock = asyncio.Lock()
        self._streams: set[Subscription] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SteemClient:
        if self._http_session is None and self._connection_factory is None:
            self._http_session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Cancel the client's streams, stop the connection and release an owned HTTP session.

        A closed client does not reconnect; later calls raise
        :class:`~pysteem.exceptions.SteemTransportError`.
        """
        self._closed = True
        for subscription in list(self._streams):
            subscription.cancel()
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @property
    def config(self) -> SteemConfig:
        return self._config

    @property
    def api_ids(self) -> dict[str, int | None]:
        """Current API name to id mapping (copy)."""
        return dict(self._api_ids)

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    @property
    def is_started(self) -> bool:
        return self._connection is not None and self._dispatcher.is_attached

    async def start(self) -> None:
        """Connect and resolve API ids; concurrent and repeated calls share one start."""
        async with self._start_lock:
            if self.is_started:
                return
            stale = self._connection
            self._connection = None
            if stale is not None:
                await stale.close()

            connection = await self._open_connection(self._config.url)
            if self._closed:
                await connection.close()
                raise SteemTransportError("Client closed", url=self._config.url)
            self._connection = connection
            self._dispatcher.attach(connection)
            _logger.debug("Connected to %s", self._config.url)
            if self._config.resolve_api_ids:
                await self._resolve_api_ids()

    async def stop(self) -> None:
        """Close the connection and fail every pending request."""
        connection = self._connection
        self._connection = None
        self._dispatcher.detach("Client stopped")
        if connection is not None:
            await connection.close()

    async def reconnect(self, url: str | None = None) -> None:
        """Discard the current connection (optionally switching *url*); the next call reconnects."""
        if url is not None and url != self._config.url:
            self._config = dataclasses.replace(self._config, url=url)
        await self.stop()

    async def _open_connection(self, url: str) -> Connection:
        if self._closed:
            raise SteemTransportError("Client closed", url=url)
        if self._connection_factory is not None:
            return await self._connection_factory(url)
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
            self._external_session = False
        return await open_websocket(url, self._http_session, heartbeat=self._config.heartbeat)

    async def _resolve_api_ids(self) -> None:
        names = list(self._api_ids)
        results = await asyncio.gather(
            *(self._send(API_LOOKUP_API, API_LOOKUP_METHOD, [name]) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results, strict=True):
            _logger.debug("Syncing API IDs %s", name)
            if isinstance(result, SteemProtocolError):
                _logger.debug("API ID lookup for %s failed: %s", name, result)
                continue
            if isinstance(result, BaseException):
                raise result
            if isinstance(result, int) and not isinstance(result, bool):
                self._api_ids[name] = result
            else:
                _logger.debug("Dropped null API ID for %s", name)

    # ------------------------------------------------------------------
    # Generic calls
    # ------------------------------------------------------------------

    async def call(
        self,
        api: str,
        method: str,
        params: Sequence[Any] | None = None,
        *,
        request_id: int | None = None,
    ) -> Any:
        """Call *method* on sub-API *api* with positional *params*."""
        await self.start()
        return await self._send(api, method, list(params or []), request_id=request_id)

    async def call_with(
        self,
        method: str,
        options: Mapping[str, Any] | None = None,
        *,
        request_id: int | None = None,
    ) -> Any:
        """Call a known *method*, taking its params by name from *options*.

        Missing options are sent as ``null``.
        """
        descriptor = METHODS_BY_NAME.get(method)
        if descriptor is None:
            raise SteemConfigError(f"Unknown method {method!r}")
        options = options or {}
        params = [options.get(name) for name in descriptor.params]
        return await self.call(descriptor.api, descriptor.method, params, request_id=request_id)

    async def _send(
        self,
        api: str,
        method: str,
        params: list[Any],
        *,
        request_id: int | None = None,
    ) -> Any:
        api_id = self._api_ids.get(api)
        if api_id is None:
            raise SteemConfigError(f"API {api!r} has no known id")
        return await self._dispatcher.send(api_id, method, params, request_id=request_id)

    # ------------------------------------------------------------------
    # Typed calls
    # ------------------------------------------------------------------

    async def get_dynamic_global_properties(self) -> DynamicGlobalProperties:
        """Fetch chain state, including the head block number."""
        return await _calls.get_dynamic_global_properties(self)

    async def get_block(self, block_num: int) -> SignedBlock | None:
        """Fetch a block; ``None`` when the node does not have it."""
        return await _calls.get_block(self, block_num)

    async def get_block_header(self, block_num: int) -> BlockHeader | None:
        return await _calls.get_block_header(self, block_num)

    async def get_ops_in_block(self, block_num: int, only_virtual: bool = False) -> list[Any]:
        return await _calls.get_ops_in_block(self, block_num, only_virtual)

    async def get_transaction(self, trx_id: str) -> Transaction:
        return await _calls.get_transaction(self, trx_id)

    async def get_config(self) -> dict[str, Any]:
        return await _calls.get_config(self)

    async def get_chain_properties(self) -> dict[str, Any]:
        return await _calls.get_chain_properties(self)

    async def get_hardfork_version(self) -> str:
        return await _calls.get_hardfork_version(self)

    async def get_accounts(self, names: Sequence[str]) -> list[dict[str, Any]]:
        return await _calls.get_accounts(self, names)

    async def lookup_accounts(self, lower_bound_name: str, limit: int) -> list[str]:
        return await _calls.lookup_accounts(self, lower_bound_name, limit)

    async def get_account_count(self) -> int:
        return await _calls.get_account_count(self)

    async def get_account_history(self, account: str, start: int, limit: int) -> list[Any]:
        """Fetch up to *limit* history entries of *account* ending at sequence *start*."""
        return await _calls.get_account_history(self, account, start, limit)

    async def get_content(self, author: str, permlink: str) -> dict[str, Any]:
        return await _calls.get_content(self, author, permlink)

    async def get_content_replies(self, parent: str, parent_permlink: str) -> list[dict[str, Any]]:
        return await _calls.get_content_replies(self, parent, parent_permlink)

    async def get_active_votes(self, author: str, permlink: str) -> list[dict[str, Any]]:
        return await _calls.get_active_votes(self, author, permlink)

    async def get_discussions_by_trending(self, query: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await _calls.get_discussions_by_trending(self, query)

    async def get_discussions_by_created(self, query: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await _calls.get_discussions_by_created(self, query)

    async def get_active_witnesses(self) -> list[str]:
        return await _calls.get_active_witnesses(self)

    async def get_witness_by_account(self, account_name: str) -> dict[str, Any] | None:
        return await _calls.get_witness_by_account(self, account_name)

    async def get_current_median_history_price(self) -> dict[str, Any]:
        return await _calls.get_current_median_history_price(self)

    async def get_followers(
        self,
        following: str,
        start_follower: str,
        follow_type: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        return await _calls.get_followers(self, following, start_follower, follow_type, limit)

    async def get_following(
        self,
        follower: str,
        start_following: str,
        follow_type: str,
        limit: int,
    ) -> list[dict[str, Any]]:
        return await _calls.get_following(self, follower, start_following, follow_type, limit)

    async def get_api_by_name(self, api_name: str) -> int | None:
        """Ask the node for the numeric id of *api_name*."""
        result = await self.call_with("get_api_by_name", {"api_name": api_name})
        return result if isinstance(result, int) else None

    async def login(self, username: str, password: str) -> bool:
        return await _calls.login(self, username, password)

    async def broadcast_transaction(self, trx: Mapping[str, Any]) -> Any:
        """Forward an already signed transaction."""
        return await _calls.broadcast_transaction(self, trx)

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def _track(self, subscription: Subscription) -> Subscription:
        """Hold *subscription* until it is cancelled, so :meth:`close` can cancel it."""
        if self._closed:
            subscription.cancel()
            return subscription
        self._streams.add(subscription)
        subscription.add(lambda: self._streams.discard(subscription))
        return subscription

    def _watcher(self, interval: float | None, start_block: int | None) -> _streams.BlockNumberWatcher:
        return _streams.BlockNumberWatcher(
            self,
            interval=interval if interval is not None else self._config.stream_interval,
            start_block=start_block,
        )

    def stream_block_number(
        self,
        on_next: Callable[[int], None],
        on_error: _streams.ErrorHandler | None = None,
        *,
        interval: float | None = None,
        start_block: int | None = None,
    ) -> Subscription:
        """Emit the head block number whenever it changes."""
        return self._track(self._watcher(interval, start_block).subscribe(on_next, on_error))

    def stream_blocks(
        self,
        on_next: Callable[[SignedBlock], None],
        on_error: _streams.ErrorHandler | None = None,
        *,
        interval: float | None = None,
        start_block: int | None = None,
    ) -> Subscription:
        """Emit each new head block."""
        fetcher = _streams.BlockFetcher(self, self._watcher(interval, start_block))
        return self._track(fetcher.subscribe(on_next, on_error))

    def stream_transactions(
        self,
        on_next: Callable[[Transaction], None],
        on_error: _streams.ErrorHandler | None = None,
        *,
        interval: float | None = None,
        start_block: int | None = None,
    ) -> Subscription:
        """Emit each transaction of each new head block."""
        splitter = _streams.TransactionSplitter(_streams.BlockFetcher(self, self._watcher(interval, start_block)))
        return self._track(splitter.subscribe(on_next, on_error))

    def stream_operations(
        self,
        on_next: Callable[[Operation], None],
        on_error: _streams.ErrorHandler | None = None,
        *,
        interval: float | None = None,
        start_block: int | None = None,
    ) -> Subscription:
        """Emit each operation of each transaction of each new head block."""
        splitter = _streams.OperationSplitter(
            _streams.TransactionSplitter(_streams.BlockFetcher(self, self._watcher(interval, start_block)))
        )
        return self._track(splitter.subscribe(on_next, on_error))
