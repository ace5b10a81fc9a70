"""In-memory cancellation signal for a single plan execution."""

from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class CancellationToken:
    """
    Externally settable cancellation flag.

    The executor polls ``is_cancelled`` at each wave boundary. Steps already
    running are left to finish; steps in waves not yet dispatched are
    recorded as cancelled.
    """

    def __init__(self):
        self._cancelled = False
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason
            logger.info("Cancellation requested", reason=reason)

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    async def is_cancelled(self) -> bool:
        return self._cancelled
