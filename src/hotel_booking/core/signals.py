# src/hotel_booking/core/signals.py

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Generic, List, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observable(Generic[T]):
    """
    Holds the latest value and pushes every change to subscribers.

    A new subscriber is called immediately with the current value.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for callback in list(self._subscribers):
            callback(value)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._subscribers.append(callback)
        callback(self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class StageScope:
    """
    Task scope tied to the lifetime of a screen.

    Once closed, pending tasks are cancelled and stages must not apply
    any late result (check `active` before mutating state).
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed

    def launch(self, coro: Coroutine[Any, Any, T]) -> Optional["asyncio.Task[T]"]:
        if self._closed:
            coro.close()
            logger.debug("Scope closed, dropping launch")
            return None

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def close(self) -> None:
        self._closed = True
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Cancelled %d in-flight request(s)", len(pending))
