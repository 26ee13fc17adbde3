"""Helpers for safe debug logging.

Outbound payloads can carry account credentials (``login_api.login``) and
signed transactions can be large.  This module redacts sensitive fields and
truncates long strings before payloads reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "wif",
        "private_key",
        "privatekey",
        "memo_key",
        "token",
        "authorization",
        "cookie",
    }
)

# Methods whose positional params are credentials.
_SENSITIVE_METHODS: frozenset[str] = frozenset({"login"})


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def redact_rpc_payload(payload: Mapping[str, Any], *, max_string: int = 512) -> Any:
    """Redact an outbound ``call`` payload, hiding params of credential methods."""
    params = payload.get("params")
    if (
        isinstance(params, Sequence)
        and not isinstance(params, str)
        and len(params) == 3
        and params[1] in _SENSITIVE_METHODS
    ):
        payload = {**payload, "params": [params[0], params[1], "<redacted>"]}
    return redact_for_log(payload, max_string=max_string)
