"""Chat lifecycle events and the in-process event bus."""

import asyncio
import logging
from typing import Annotated, AsyncIterator, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)


class StartEvent(BaseModel):
    """Generation started."""
    type: Literal["start"] = "start"
    owner_id: str


class TokenEvent(BaseModel):
    """An incremental piece of the answer."""
    type: Literal["token"] = "token"
    text: str
    owner_id: str


class EndEvent(BaseModel):
    """Generation finished."""
    type: Literal["end"] = "end"
    owner_id: str


class ErrorEvent(BaseModel):
    """Generation failed; no further tokens follow."""
    type: Literal["error"] = "error"
    error: str
    owner_id: str


ChatEvent = Annotated[
    Union[StartEvent, TokenEvent, EndEvent, ErrorEvent],
    Field(discriminator="type"),
]

chat_event_adapter: TypeAdapter[ChatEvent] = TypeAdapter(ChatEvent)


def parse_event(data: str | bytes) -> ChatEvent:
    """Parse a JSON-encoded chat event."""
    return chat_event_adapter.validate_json(data)


class Subscription:
    """One subscriber's view of the bus, filtered to a single owner.

    Iterate it with ``async for`` to receive events. Closing the
    subscription detaches it from the bus and ends iteration.
    """

    _CLOSED = object()

    def __init__(self, bus: "EventBus", owner_id: str, maxsize: int):
        self.bus = bus
        self.owner_id = owner_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, event: ChatEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                f"Subscriber queue full for owner {self.owner_id}, dropping {event.type} event"
            )
            return False
        return True

    async def get(self, timeout: Optional[float] = None) -> Optional[ChatEvent]:
        """Wait for the next event.

        Returns:
            The event, or None if the subscription is closed

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        if self._closed and self._queue.empty():
            return None

        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is self._CLOSED:
            return None
        return item

    def close(self) -> None:
        """Detach from the bus and wake any pending reader."""
        if self._closed:
            return
        self._closed = True
        self.bus.unsubscribe(self)

        # Drop undelivered events so the sentinel always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ChatEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChatEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Subscription(owner_id={self.owner_id!r}, closed={self._closed})"


class EventBus:
    """In-process multicast channel of chat events.

    ``publish`` never blocks: each subscription has its own bounded queue
    and an event that does not fit is dropped for that subscriber only.
    Nothing is retained for subscribers that join later.

    Example:
        ```python
        bus = EventBus()
        async with bus.subscribe("u1") as events:
            async for event in events:
                ...
        ```
    """

    def __init__(self, queue_size: int = 256):
        """Initialize the bus.

        Args:
            queue_size: Per-subscription queue bound
        """
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        self.queue_size = queue_size
        self._subscriptions: list[Subscription] = []

    def subscribe(self, owner_id: str) -> Subscription:
        """Start receiving events for ``owner_id``."""
        subscription = Subscription(self, owner_id, self.queue_size)
        self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to chat events for owner {owner_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a subscription. Safe to call more than once."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(f"Unsubscribed from chat events for owner {subscription.owner_id}")
        if not subscription.closed:
            subscription.close()

    def publish(self, event: ChatEvent) -> int:
        """Deliver an event to every subscription of its owner.

        Returns:
            Number of subscriptions the event was delivered to
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.owner_id != event.owner_id:
                continue
            if subscription._deliver(event):
                delivered += 1
        return delivered

    def subscriber_count(self, owner_id: Optional[str] = None) -> int:
        if owner_id is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.owner_id == owner_id)
