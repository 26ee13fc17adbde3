"""Block models."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pysteem.models._base import SteemBaseModel, SteemTimestamp
from pysteem.models.transaction import Transaction


class BlockHeader(SteemBaseModel):
    """Result of ``database_api.get_block_header``."""

    previous: str = ""
    timestamp: SteemTimestamp = None
    witness: str = ""
    transaction_merkle_root: str = ""
    extensions: list[Any] = Field(default_factory=list)


class SignedBlock(BlockHeader):
    """Result of ``database_api.get_block``."""

    witness_signature: str = ""
    transactions: list[Transaction] = Field(default_factory=list)
    block_id: str = ""
    signing_key: str = ""
    transaction_ids: list[str] = Field(default_factory=list)
