"""Transaction and operation models."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from pysteem.models._base import SteemBaseModel, SteemTimestamp


class Operation(SteemBaseModel):
    """One operation of a transaction.

    The node serializes operations as ``[name, {payload}]`` pairs; the
    ``{"type": name, "value": {payload}}`` object form is accepted too.
    """

    name: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            if len(value) != 2 or not isinstance(value[0], str):
                raise ValueError(f"operation must be a [name, payload] pair, got {value!r}")
            name, payload = value
            return {"name": name, "payload": payload or {}, "raw": {"name": name, "payload": payload}}
        if isinstance(value, dict) and "type" in value and "name" not in value:
            return {"name": value["type"], "payload": value.get("value") or {}, "raw": dict(value)}
        return value


class Transaction(SteemBaseModel):
    """A signed transaction as embedded in a block."""

    ref_block_num: int = 0
    ref_block_prefix: int = 0
    expiration: SteemTimestamp = None
    operations: list[Operation] = Field(default_factory=list)
    extensions: list[Any] = Field(default_factory=list)
    signatures: list[str] = Field(default_factory=list)
