# gateway/api/pubsub.py
"""Publish/subscribe used to feed GraphQL subscriptions."""
from collections import Counter
from typing import Any, AsyncIterator

from broadcaster import Broadcast

STUDENT_CREATED = "studentCreated"


class Broadcaster:
    """
    Thin wrapper over ``broadcaster.Broadcast``. The default ``memory://``
    backend keeps messages in process; a ``redis://`` or ``postgres://``
    url fans them out across workers.
    """

    def __init__(self, url: str = "memory://"):
        self.url = url
        self._broadcast = Broadcast(url)
        self._subscribers: Counter = Counter()

    async def connect(self) -> None:
        await self._broadcast.connect()

    async def disconnect(self) -> None:
        await self._broadcast.disconnect()

    def subscriber_count(self, channel: str) -> int:
        return self._subscribers[channel]

    async def publish(self, channel: str, message: Any) -> None:
        await self._broadcast.publish(channel=channel, message=message)

    async def subscribe(self, channel: str) -> AsyncIterator[Any]:
        async with self._broadcast.subscribe(channel=channel) as subscriber:
            self._subscribers[channel] += 1
            try:
                async for event in subscriber:
                    yield event.message
            finally:
                self._subscribers[channel] -= 1
