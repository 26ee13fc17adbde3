"""Custom exception hierarchy for pysteem."""

from __future__ import annotations

from typing import Any


class SteemError(Exception):
    """Base exception for all pysteem errors."""


class SteemConfigError(SteemError):
    """Invalid or missing configuration."""


class SteemTransportError(SteemError):
    """Connection-level failure (connect, send, read, or close)."""

    def __init__(self, message: str, *, url: str = "") -> None:
        self.url = url
        super().__init__(message)


class SteemTimeoutError(SteemTransportError):
    """No response arrived within ``SteemConfig.request_timeout``."""

    def __init__(self, message: str, *, request_id: int, url: str = "") -> None:
        self.request_id = request_id
        super().__init__(message, url=url)


class SteemProtocolError(SteemError):
    """The node answered a correlated request with an error payload."""

    def __init__(
        self,
        message: str,
        *,
        request_id: int,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        self.request_id = request_id
        self.code = code
        self.data = data
        super().__init__(message)

    @classmethod
    def from_payload(cls, error: Any, *, request_id: int) -> SteemProtocolError:
        """Build an error from the ``error`` field of an inbound message."""
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message") or "Node returned an error"
            return cls(
                str(message),
                request_id=request_id,
                code=code if isinstance(code, int) else None,
                data=error.get("data"),
            )
        return cls(str(error), request_id=request_id, data=error)


class SteemResponseDroppedError(SteemError):
    """An inbound message that no waiting request claimed.

    Never raised to callers. Instances are handed to the client's
    ``on_dropped`` observer so the drop can be counted or logged.
    """

    def __init__(self, message: str, *, request_id: Any, payload: dict[str, Any]) -> None:
        self.request_id = request_id
        self.payload = payload
        super().__init__(message)


class SteemStaleResponseError(SteemResponseDroppedError):
    """Response identity is older than every pending request."""


class SteemMismatchedResponseError(SteemResponseDroppedError):
    """Response identity matches none of the pending requests."""


class SteemStreamError(SteemError):
    """A stream layer's underlying query failed; the stream has stopped."""

    def __init__(self, message: str, *, layer: str) -> None:
        self.layer = layer
        super().__init__(message)


class SteemResponseError(SteemError):
    """A result came back in a shape the response model could not parse."""

    def __init__(self, message: str, *, method: str = "") -> None:
        self.method = method
        super().__init__(message)
