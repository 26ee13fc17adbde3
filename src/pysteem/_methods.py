"""Static table of node methods and their ordered parameter names.

The table drives :meth:`pysteem.client.SteemClient.call_with`, which maps
keyword options onto positional params in descriptor order.
"""

from __future__ import annotations

from pysteem.models.descriptor import MethodDescriptor

METHODS: tuple[MethodDescriptor, ...] = (
    # database_api: chain state
    MethodDescriptor("database_api", "get_dynamic_global_properties"),
    MethodDescriptor("database_api", "get_config"),
    MethodDescriptor("database_api", "get_chain_properties"),
    MethodDescriptor("database_api", "get_hardfork_version"),
    MethodDescriptor("database_api", "get_next_scheduled_hardfork"),
    MethodDescriptor("database_api", "get_block_header", ("block_num",)),
    MethodDescriptor("database_api", "get_block", ("block_num",)),
    MethodDescriptor("database_api", "get_ops_in_block", ("block_num", "only_virtual")),
    MethodDescriptor("database_api", "get_transaction", ("trx_id",)),
    MethodDescriptor("database_api", "get_transaction_hex", ("trx",)),
    # database_api: accounts
    MethodDescriptor("database_api", "get_accounts", ("names",)),
    MethodDescriptor("database_api", "lookup_account_names", ("account_names",)),
    MethodDescriptor("database_api", "lookup_accounts", ("lower_bound_name", "limit")),
    MethodDescriptor("database_api", "get_account_count"),
    MethodDescriptor("database_api", "get_account_history", ("account", "from", "limit")),
    MethodDescriptor("database_api", "get_key_references", ("keys",)),
    # database_api: content
    MethodDescriptor("database_api", "get_content", ("author", "permlink")),
    MethodDescriptor("database_api", "get_content_replies", ("parent", "parent_permlink")),
    MethodDescriptor("database_api", "get_active_votes", ("author", "permlink")),
    MethodDescriptor("database_api", "get_discussions_by_trending", ("query",)),
    MethodDescriptor("database_api", "get_discussions_by_created", ("query",)),
    MethodDescriptor("database_api", "get_discussions_by_hot", ("query",)),
    MethodDescriptor("database_api", "get_trending_tags", ("after_tag", "limit")),
    MethodDescriptor("database_api", "get_state", ("path",)),
    # database_api: witnesses and market
    MethodDescriptor("database_api", "get_active_witnesses"),
    MethodDescriptor("database_api", "get_witness_by_account", ("account_name",)),
    MethodDescriptor("database_api", "get_witnesses_by_vote", ("from", "limit")),
    MethodDescriptor("database_api", "get_witness_count"),
    MethodDescriptor("database_api", "get_current_median_history_price"),
    MethodDescriptor("database_api", "get_feed_history"),
    MethodDescriptor("database_api", "get_order_book", ("limit",)),
    # login_api
    MethodDescriptor("login_api", "login", ("username", "password")),
    MethodDescriptor("login_api", "get_api_by_name", ("api_name",)),
    MethodDescriptor("login_api", "get_version"),
    # follow_api
    MethodDescriptor("follow_api", "get_followers", ("following", "start_follower", "follow_type", "limit")),
    MethodDescriptor("follow_api", "get_following", ("follower", "start_following", "follow_type", "limit")),
    MethodDescriptor("follow_api", "get_follow_count", ("account",)),
    # network_broadcast_api
    MethodDescriptor("network_broadcast_api", "broadcast_transaction", ("trx",)),
    MethodDescriptor("network_broadcast_api", "broadcast_transaction_synchronous", ("trx",)),
)

METHODS_BY_NAME: dict[str, MethodDescriptor] = {descriptor.method: descriptor for descriptor in METHODS}
