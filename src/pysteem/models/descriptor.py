"""Method descriptor model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MethodDescriptor:
    """One node method: the sub-API it lives on and its ordered parameter names."""

    api: str
    method: str
    params: tuple[str, ...] = ()
