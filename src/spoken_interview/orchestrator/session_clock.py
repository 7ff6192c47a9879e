"""Per-question countdown and optional whole-session cap."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ExpiryCallback = Callable[[], None]


class SessionClock:
    """
    Owns one countdown for the active question plus an optional session cap.

    Expiry callbacks run on the event loop. Each ``arm`` bumps a generation
    counter and the expiry wrapper only calls through when its generation is
    still current, so a ``cancel`` issued at the same loop iteration as the
    expiry always wins even if the timer handle was already queued.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._generation = 0
        self._handle: asyncio.TimerHandle | None = None
        self._deadline: float | None = None
        self._cap_handle: asyncio.TimerHandle | None = None
        self._cap_armed = False

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def armed(self) -> bool:
        """Check if a question countdown is pending."""
        return self._handle is not None

    @property
    def generation(self) -> int:
        """Get the generation of the most recent arm or cancel."""
        return self._generation

    def remaining_s(self) -> float | None:
        """Seconds left on the question countdown, or None when not armed."""
        if self._handle is None or self._deadline is None:
            return None
        return max(0.0, self._deadline - self._get_loop().time())

    def arm(self, duration_s: float, on_expire: ExpiryCallback) -> int:
        """
        Schedule exactly one expiry for the current question.

        Re-arming cancels any pending countdown first.

        Args:
            duration_s: Seconds until expiry.
            on_expire: Called once on expiry, unless cancelled first.

        Returns:
            The generation assigned to this countdown.
        """
        if duration_s < 0:
            raise ValueError("duration_s must be non-negative")
        self.cancel()
        loop = self._get_loop()
        generation = self._generation

        def _fire() -> None:
            if generation != self._generation or self._handle is None:
                logger.debug(f"Clock generation {generation} fired after cancel; ignored")
                return
            self._handle = None
            self._deadline = None
            self._generation += 1
            on_expire()

        self._deadline = loop.time() + duration_s
        self._handle = loop.call_later(duration_s, _fire)
        return generation

    def cancel(self) -> None:
        """Cancel the question countdown. Safe to call at any time."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._deadline = None
        self._generation += 1

    def arm_session_cap(self, duration_s: float, on_expire: ExpiryCallback) -> None:
        """Schedule a one-shot cap on the whole session."""
        self.cancel_session_cap()
        self._cap_armed = True

        def _fire() -> None:
            if not self._cap_armed:
                return
            self._cap_armed = False
            self._cap_handle = None
            on_expire()

        self._cap_handle = self._get_loop().call_later(duration_s, _fire)

    def cancel_session_cap(self) -> None:
        """Cancel the session cap if armed."""
        self._cap_armed = False
        if self._cap_handle is not None:
            self._cap_handle.cancel()
            self._cap_handle = None

    def cancel_all(self) -> None:
        """Release every timer owned by this clock."""
        self.cancel()
        self.cancel_session_cap()
