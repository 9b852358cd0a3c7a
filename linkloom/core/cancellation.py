"""
Run cancellation.

The scheduler has no run-level cancel of its own. A caller that wants to
stop a run shares one token with every unit operation; units that have not
started when the token is cancelled resolve to a ``cancelled`` failure
instead of doing any work. Units already in flight finish normally.
"""

import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """Shared flag checked by unit operations before they start."""

    def __init__(self):
        self._cancelled = False
        self.reason = ""

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Run cancelled") -> None:
        if not self._cancelled:
            logger.info(f"Cancellation requested: {reason}")
        self._cancelled = True
        self.reason = reason


__all__ = ["CancellationToken"]
