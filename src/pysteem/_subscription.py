"""Idempotent cancellation handles."""

from __future__ import annotations

from collections.abc import Callable


class Subscription:
    """Handle returned by every subscribe/stream operation.

    Calling :meth:`cancel` (or the handle itself) runs the registered
    cancel callbacks once; later calls are no-ops.  Callbacks added after
    cancellation run immediately.
    """

    __slots__ = ("_callbacks", "_cancelled")

    def __init__(self, *on_cancel: Callable[[], object]) -> None:
        self._callbacks: list[Callable[[], object]] = list(on_cancel)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add(self, callback: Callable[[], object]) -> None:
        """Register *callback* to run on cancellation."""
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def __call__(self) -> None:
        self.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<Subscription {state}>"
