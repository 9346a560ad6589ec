"""Cancellation token: fired at most once, by the transport closing."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], Any]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        """Run callback on cancel (immediately if already cancelled)."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def cancel(self) -> bool:
        """Fire callbacks synchronously. Returns False if the token was already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True


async def destroy_stream(stream: Any) -> bool:
    """
    Stop a result stream early: destroy(), else aclose(), else close().
    Returns False when the stream offers none of them.
    """
    for name in ("destroy", "aclose", "close"):
        hook = getattr(stream, name, None)
        if callable(hook):
            logger.debug("destroying result stream via %s()", name)
            result = hook()
            if inspect.isawaitable(result):
                await result
            return True
    return False
