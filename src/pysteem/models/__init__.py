"""Data models for Steem node responses."""

from pysteem.models._base import SteemBaseModel, SteemTimestamp, parse_steem_timestamp
from pysteem.models.block import BlockHeader, SignedBlock
from pysteem.models.chain import DynamicGlobalProperties
from pysteem.models.descriptor import MethodDescriptor
from pysteem.models.transaction import Operation, Transaction

__all__ = [
    "BlockHeader",
    "DynamicGlobalProperties",
    "MethodDescriptor",
    "Operation",
    "SignedBlock",
    "SteemBaseModel",
    "SteemTimestamp",
    "Transaction",
    "parse_steem_timestamp",
]
