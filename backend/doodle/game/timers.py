from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TimerHandle:
    """Revocable handle for one delayed callback."""

    def __init__(self, delay: float, label: str = ""):
        self.delay = delay
        self.label = label
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired

    def __repr__(self) -> str:
        return f"TimerHandle(label={self.label!r}, delay={self.delay}, cancelled={self.cancelled}, fired={self.fired})"


class BackgroundScheduler:
    """Runs delayed callbacks as Socket.IO background tasks.

    Uses ``socketio.sleep`` so it cooperates with eventlet as well as the
    threading async mode.
    """

    def __init__(self, socketio):
        self._socketio = socketio

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any, label: str = "") -> TimerHandle:
        handle = TimerHandle(delay, label=label)

        def _runner() -> None:
            self._socketio.sleep(delay)
            if handle.cancelled:
                logger.debug("[timer-skip] %s cancelled before firing", label or callback.__name__)
                return
            handle.fired = True
            try:
                callback(*args)
            except Exception:
                logger.exception("[timer-error] %s raised", label or callback.__name__)

        self._socketio.start_background_task(_runner)
        return handle
