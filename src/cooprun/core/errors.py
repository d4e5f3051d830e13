# src/cooprun/core/errors.py

"""
Error taxonomy shared by the runner and the channels.

Everything derives from CoopRunError so callers can catch library failures
with one clause without also catching asyncio.CancelledError.
"""

from __future__ import annotations


class CoopRunError(RuntimeError):
    """Base class for all cooprun failures."""


class CancellationFailure(CoopRunError):
    """Raised when awaiting a cancelled task, or when a cancelled token is checked."""


class ClosedChannelFailure(CoopRunError):
    """Raised on use of a closed channel."""


class ClosedSendChannelFailure(ClosedChannelFailure):
    """Raised when sending to a closed channel."""


class ClosedReceiveChannelFailure(ClosedChannelFailure):
    """Raised when receiving from a channel that is closed and drained."""


class TimeoutFailure(CoopRunError):
    """Raised when a bounded wait expires. The timed-out task has been cancelled."""

    def __init__(self, seconds: float) -> None:
        super().__init__(f"timed out after {seconds:g}s")
        self.seconds = seconds
