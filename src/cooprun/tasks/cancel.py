# src/cooprun/tasks/cancel.py

"""
Cooperative cancellation.

A CancellationToken is a plain flag. Nothing interrupts the code holding it:
long-running loops are expected to check `cancelled` (or call
`ensure_active()`) at their own boundaries.

Tokens form a tree. Requesting cancellation on a token cancels every token
derived from it, which is how cancelling a runner scope reaches all tasks
launched inside it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.errors import CancellationFailure

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._cancel_requested = False
        self._children: list[CancellationToken] = []
        self._callbacks: list[Callable[[], None]] = []
        if parent is not None:
            parent._adopt(self)

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    def child(self) -> CancellationToken:
        """Create a token cancelled together with this one."""
        return CancellationToken(parent=self)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run callback when cancellation is requested (immediately if it already was)."""
        if self._cancel_requested:
            callback()
            return
        self._callbacks.append(callback)

    def request_cancel(self) -> None:
        if self._cancel_requested:
            return
        self._cancel_requested = True

        callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            try:
                cb()
            except Exception:
                logger.exception("cancel callback failed")

        for child in list(self._children):
            child.request_cancel()

    def ensure_active(self) -> None:
        if self._cancel_requested:
            raise CancellationFailure("cancellation requested")

    def release(self, child: CancellationToken) -> None:
        """Forget a finished child so long-lived scopes do not accumulate tokens."""
        try:
            self._children.remove(child)
        except ValueError:
            pass

    def _adopt(self, child: CancellationToken) -> None:
        if self._cancel_requested:
            child.request_cancel()
            return
        self._children.append(child)
