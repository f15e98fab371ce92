"""
Server-sent event framing of chat events.
"""

import logging
from typing import TYPE_CHECKING, AsyncIterator, Optional

from notechat.events import ChatEvent, EventBus

if TYPE_CHECKING:
    from notechat.chat import ChatOrchestrator

logger = logging.getLogger(__name__)

SSE_EVENT_NAME = "chat"


def format_sse(event: ChatEvent, name: str = SSE_EVENT_NAME) -> str:
    """Render one chat event as an SSE frame."""
    return f"event: {name}\ndata: {event.model_dump_json()}\n\n"


async def sse_events(
    bus: EventBus,
    owner_id: str,
    orchestrator: Optional["ChatOrchestrator"] = None,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for every chat event of one owner.

    The subscription is released as soon as the consumer stops iterating
    (closes the generator or is cancelled). When ``orchestrator`` is given
    and this was the owner's last open subscription, the owner's in-flight
    generations are cancelled too; other open tabs keep receiving them.

    Args:
        bus: Event bus to subscribe to
        owner_id: Authenticated owner the stream belongs to
        orchestrator: Orchestrator whose generations die with the owner's
            last stream
    """
    subscription = bus.subscribe(owner_id)
    logger.info(f"SSE stream opened for owner {owner_id}")

    try:
        async for event in subscription:
            yield format_sse(event)
    finally:
        subscription.close()
        if orchestrator is not None and bus.subscriber_count(owner_id) == 0:
            await orchestrator.cancel(owner_id)
        logger.info(f"SSE stream closed for owner {owner_id}")
