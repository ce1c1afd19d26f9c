"""
Explicit event channels.

Each subscriber gets its own queue; closing the subscription drops the
registration so no further events are delivered to it, and ends any
iteration once the events already queued are consumed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

_CLOSED = object()


class SubscriptionClosed(Exception):
    """Raised when reading from a closed subscription with no events left."""


class Subscription(Generic[T]):
    def __init__(self, channel: EventChannel[T]):
        self._channel = channel
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: T) -> None:
        self._queue.put_nowait(event)

    def _unwrap(self, event: Any) -> T:
        if event is _CLOSED:
            # keep the marker queued for any other reader
            self._queue.put_nowait(_CLOSED)
            raise SubscriptionClosed(f"Subscription to {self._channel.name} is closed")
        return event

    async def get(self) -> T:
        return self._unwrap(await self._queue.get())

    def get_nowait(self) -> T:
        return self._unwrap(self._queue.get_nowait())

    def pending(self) -> int:
        return self._queue.qsize() - (1 if self.closed else 0)

    def close(self) -> None:
        """Stop delivery; a reader waiting for the next event is woken and stops."""
        if not self.closed:
            self.closed = True
            self._channel._remove(self)
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                event = await self.get()
            except SubscriptionClosed:
                return
            yield event


class EventChannel(Generic[T]):
    """
    Broadcast channel. When `replay_last` is set, a new subscriber
    immediately receives the most recent event.
    """

    def __init__(self, name: str, replay_last: bool = False):
        self.name = name
        self.replay_last = replay_last
        self._subscribers: list[Subscription[T]] = []
        self._last: T | None = None
        self._has_last = False

    def subscribe(self) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self)
        self._subscribers.append(sub)
        if self.replay_last and self._has_last:
            sub._deliver(self._last)  # type: ignore[arg-type]
        return sub

    def publish(self, event: T) -> None:
        self._last = event
        self._has_last = True
        logger.debug(f"Event on {self.name} -> {len(self._subscribers)} subscriber(s)")
        for sub in list(self._subscribers):
            sub._deliver(event)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _remove(self, sub: Subscription[T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
