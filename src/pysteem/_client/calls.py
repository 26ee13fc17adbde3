"""Typed node calls for :class:`pysteem.client.SteemClient`.

Each function maps its arguments onto the method's descriptor params via
``client.call_with`` and parses the result.  Keeping them here keeps
`client.py` small without changing the public API.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from pysteem.exceptions import SteemResponseError
from pysteem.models.block import BlockHeader, SignedBlock
from pysteem.models.chain import DynamicGlobalProperties
from pysteem.models.transaction import Transaction

if TYPE_CHECKING:
    from pysteem.client import SteemClient

M = TypeVar("M", bound=BaseModel)


def _parse(model: type[M], result: Any, method: str) -> M:
    try:
        return model.model_validate(result)
    except ValidationError as exc:
        raise SteemResponseError(f"Unexpected {method} result: {exc}", method=method) from exc


# ----------------------------------------------------------------------
# Chain state
# ----------------------------------------------------------------------


async def get_dynamic_global_properties(client: SteemClient) -> DynamicGlobalProperties:
    result = await client.call_with("get_dynamic_global_properties")
    return _parse(DynamicGlobalProperties, result, "get_dynamic_global_properties")


async def get_block(client: SteemClient, block_num: int) -> SignedBlock | None:
    result = await client.call_with("get_block", {"block_num": block_num})
    if result is None:
        return None
    return _parse(SignedBlock, result, "get_block")


async def get_block_header(client: SteemClient, block_num: int) -> BlockHeader | None:
    result = await client.call_with("get_block_header", {"block_num": block_num})
    if result is None:
        return None
    return _parse(BlockHeader, result, "get_block_header")


async def get_ops_in_block(client: SteemClient, block_num: int, only_virtual: bool = False) -> list[Any]:
    return await client.call_with("get_ops_in_block", {"block_num": block_num, "only_virtual": only_virtual})


async def get_transaction(client: SteemClient, trx_id: str) -> Transaction:
    result = await client.call_with("get_transaction", {"trx_id": trx_id})
    return _parse(Transaction, result, "get_transaction")


async def get_config(client: SteemClient) -> dict[str, Any]:
    return await client.call_with("get_config")


async def get_chain_properties(client: SteemClient) -> dict[str, Any]:
    return await client.call_with("get_chain_properties")


async def get_hardfork_version(client: SteemClient) -> str:
    return str(await client.call_with("get_hardfork_version"))


# ----------------------------------------------------------------------
# Accounts and content
# ----------------------------------------------------------------------


async def get_accounts(client: SteemClient, names: Sequence[str]) -> list[dict[str, Any]]:
    return await client.call_with("get_accounts", {"names": list(names)})


async def lookup_accounts(client: SteemClient, lower_bound_name: str, limit: int) -> list[str]:
    return await client.call_with("lookup_accounts", {"lower_bound_name": lower_bound_name, "limit": limit})


async def get_account_count(client: SteemClient) -> int:
    return int(await client.call_with("get_account_count"))


async def get_account_history(client: SteemClient, account: str, start: int, limit: int) -> list[Any]:
    return await client.call_with("get_account_history", {"account": account, "from": start, "limit": limit})


async def get_content(client: SteemClient, author: str, permlink: str) -> dict[str, Any]:
    return await client.call_with("get_content", {"author": author, "permlink": permlink})


async def get_content_replies(client: SteemClient, parent: str, parent_permlink: str) -> list[dict[str, Any]]:
    return await client.call_with("get_content_replies", {"parent": parent, "parent_permlink": parent_permlink})


async def get_active_votes(client: SteemClient, author: str, permlink: str) -> list[dict[str, Any]]:
    return await client.call_with("get_active_votes", {"author": author, "permlink": permlink})


async def get_discussions_by_trending(client: SteemClient, query: Mapping[str, Any]) -> list[dict[str, Any]]:
    return await client.call_with("get_discussions_by_trending", {"query": dict(query)})


async def get_discussions_by_created(client: SteemClient, query: Mapping[str, Any]) -> list[dict[str, Any]]:
    return await client.call_with("get_discussions_by_created", {"query": dict(query)})


# ----------------------------------------------------------------------
# Witnesses, market, follow
# ----------------------------------------------------------------------


async def get_active_witnesses(client: SteemClient) -> list[str]:
    return await client.call_with("get_active_witnesses")


async def get_witness_by_account(client: SteemClient, account_name: str) -> dict[str, Any] | None:
    return await client.call_with("get_witness_by_account", {"account_name": account_name})


async def get_current_median_history_price(client: SteemClient) -> dict[str, Any]:
    return await client.call_with("get_current_median_history_price")


async def get_followers(
    client: SteemClient,
    following: str,
    start_follower: str,
    follow_type: str,
    limit: int,
) -> list[dict[str, Any]]:
    return await client.call_with(
        "get_followers",
        {"following": following, "start_follower": start_follower, "follow_type": follow_type, "limit": limit},
    )


async def get_following(
    client: SteemClient,
    follower: str,
    start_following: str,
    follow_type: str,
    limit: int,
) -> list[dict[str, Any]]:
    return await client.call_with(
        "get_following",
        {"follower": follower, "start_following": start_following, "follow_type": follow_type, "limit": limit},
    )


# ----------------------------------------------------------------------
# Login and broadcast
# ----------------------------------------------------------------------


async def login(client: SteemClient, username: str, password: str) -> bool:
    return bool(await client.call_with("login", {"username": username, "password": password}))


async def broadcast_transaction(client: SteemClient, trx: Mapping[str, Any]) -> Any:
    """Forward an already signed transaction to the node."""
    return await client.call_with("broadcast_transaction", {"trx": dict(trx)})
