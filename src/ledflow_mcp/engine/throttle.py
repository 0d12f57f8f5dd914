"""
Stream throttler - rate gate for continuous interactive edits.

While a control is being dragged every CHANGED report replaces the pending
write and restarts the quiescence window; older payloads are dropped,
never queued. ENDED cancels whatever is pending and writes at once, so the
last thing the device sees is where the user let go.

Windows:
- single control: 60ms
- dual A/B gradient edits: 150ms (two streams share one device)
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

Dispatch = Callable[[str, Any], Awaitable[Any]]


class EditPhase(Enum):
    CHANGED = "changed"
    ENDED = "ended"


class StreamThrottler:
    """Per-control trailing debounce in front of a dispatch coroutine."""

    def __init__(self, dispatch: Dispatch, single_window: float = 0.060, dual_window: float = 0.150):
        """
        Args:
            dispatch: async callable(control_id, payload) performing the write
            single_window: quiescence window for a single control (seconds)
            dual_window: quiescence window for dual A/B edits (seconds)
        """
        self._dispatch = dispatch
        self.single_window = single_window
        self.dual_window = dual_window
        self._pending: Dict[str, asyncio.Task] = {}
        self.dispatched = 0
        self.failed = 0

    def window_for(self, dual: bool) -> float:
        return self.dual_window if dual else self.single_window

    async def report(self, control_id: str, phase: EditPhase, payload: Any, dual: bool = False) -> bool:
        """
        Report an edit.

        Returns True only when an ENDED write was sent and succeeded;
        CHANGED reports return False because nothing was written yet.
        """
        self.cancel(control_id)
        if phase is EditPhase.ENDED:
            return await self._send(control_id, payload)

        window = self.window_for(dual)
        self._pending[control_id] = asyncio.create_task(self._send_after(control_id, payload, window))
        return False

    async def _send_after(self, control_id: str, payload: Any, window: float) -> None:
        await asyncio.sleep(window)
        # Leave the pending map before writing so a newer report never cancels an in-flight write
        if self._pending.get(control_id) is asyncio.current_task():
            del self._pending[control_id]
        await self._send(control_id, payload)

    async def _send(self, control_id: str, payload: Any) -> bool:
        try:
            await self._dispatch(control_id, payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.warning("[Throttle] Write for %s failed: %s", control_id, e)
            return False
        self.dispatched += 1
        return True

    def cancel(self, control_id: str) -> bool:
        """Drop the pending write for a control. Returns True if one was pending."""
        task = self._pending.pop(control_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_prefix(self, prefix: str) -> int:
        """Drop every pending write whose control id starts with prefix."""
        doomed = [cid for cid in self._pending if cid.startswith(prefix)]
        for cid in doomed:
            self.cancel(cid)
        if doomed:
            logger.debug("[Throttle] Cancelled %d pending write(s) for %s", len(doomed), prefix)
        return len(doomed)

    def pending(self) -> List[str]:
        return sorted(self._pending)

    async def aclose(self) -> None:
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
