"""Base model for Steem node responses.

Every response model inherits from :class:`SteemBaseModel` which
provides:

* frozen instances that ignore keys the model does not declare,
* a ``raw`` dict that captures the original payload,
* :data:`SteemTimestamp`, which reads the node's zone-less ISO strings
  (``"2016-03-24T16:05:00"``) as UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


def parse_steem_timestamp(value: Any) -> datetime | None:
    """Convert a node timestamp string to a UTC datetime.

    Returns ``None`` for ``None`` and empty strings.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


SteemTimestamp = Annotated[datetime | None, BeforeValidator(parse_steem_timestamp)]
"""Annotated type that coerces node ISO timestamps to UTC datetimes."""


class SteemBaseModel(BaseModel):
    """Base for node response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original node response dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        # Keep the caller's raw= when constructing with keyword arguments.
        if not isinstance(values, dict) or "raw" in values:
            return values
        return {**values, "raw": dict(values)}
