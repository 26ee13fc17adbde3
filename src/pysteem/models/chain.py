"""Chain-level state models."""

from __future__ import annotations

from pysteem.models._base import SteemBaseModel, SteemTimestamp


class DynamicGlobalProperties(SteemBaseModel):
    """Result of ``database_api.get_dynamic_global_properties``.

    Only ``head_block_number`` is needed by the block streams; the other
    fields are the ones most callers read.  Everything else stays in
    ``raw``.
    """

    head_block_number: int
    head_block_id: str = ""
    time: SteemTimestamp = None
    current_witness: str = ""
    last_irreversible_block_num: int | None = None
    current_supply: str | None = None
    current_sbd_supply: str | None = None
    total_vesting_fund_steem: str | None = None
    total_vesting_shares: str | None = None
