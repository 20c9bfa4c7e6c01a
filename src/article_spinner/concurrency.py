from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Callable


async def call_collaborator(func: Callable[..., Any], *args: Any) -> Any:
    """Await ``func(*args)``; blocking callables run in a worker thread."""
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    result = await asyncio.to_thread(func, *args)
    if inspect.isawaitable(result):
        return await result
    return result


class CancellationToken:
    """Cooperative cancellation flag, checked between articles and stages."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
