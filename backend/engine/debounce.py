from __future__ import annotations

import asyncio
from typing import Callable


class Debouncer:
    """
    Runs a callback once input has been quiet for `delay_s`.

    Each `schedule()` replaces the pending call; `cancel()` drops it. Timers live on the
    running asyncio loop; called outside one, the callback runs straight away.
    """

    def __init__(self, delay_s: float) -> None:
        self.delay_s = max(0.0, float(delay_s))
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, callback: Callable[[], None]) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback()
            return

        def fire() -> None:
            self._handle = None
            callback()

        self._handle = loop.call_later(self.delay_s, fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
