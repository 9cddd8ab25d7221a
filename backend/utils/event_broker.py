"""
Event broker for the status update stream.
Fans status events out to the SSE clients connected to this worker process.
"""

import asyncio
from typing import AsyncIterator, Dict, Optional
from uuid import uuid4

from config import settings
from models.events import StatusEvent, StreamMessage
from utils.logging import get_logger

logger = get_logger("event_broker")

KEEPALIVE_FRAME = ": keep-alive\n\n"


class EventBroker:
    """Keeps one bounded queue per SSE subscriber and broadcasts events to all of them."""

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self.subscribers: Dict[str, asyncio.Queue] = {}
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self.subscribers)

    async def subscribe(self, client_id: Optional[str] = None) -> str:
        """Register a subscriber and return its client ID."""
        client_id = client_id or str(uuid4())
        async with self._lock:
            self.subscribers[client_id] = asyncio.Queue(maxsize=self.max_queue_size)

        logger.info(
            f"SSE client connected: {client_id}",
            extra={"data": {"client_id": client_id, "total_subscribers": len(self.subscribers)}}
        )
        return client_id

    async def unsubscribe(self, client_id: str):
        async with self._lock:
            self.subscribers.pop(client_id, None)

        logger.info(
            f"SSE client disconnected: {client_id}",
            extra={"data": {"client_id": client_id, "total_subscribers": len(self.subscribers)}}
        )

    async def broadcast_event(self, event: StatusEvent) -> int:
        """Queue ``event`` for every subscriber. Returns the number of deliveries."""
        message = StreamMessage.from_status_event(event)

        async with self._lock:
            queues = list(self.subscribers.items())

        delivered = 0
        for client_id, queue in queues:
            if queue.full():
                # Slow consumer: drop its oldest message
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning(
                    f"SSE client {client_id} is lagging, dropped oldest message",
                    extra={"data": {"client_id": client_id}}
                )
            queue.put_nowait(message)
            delivered += 1

        logger.debug(
            "Broadcast event to SSE clients",
            extra={"data": {"event_id": event.id, "event_type": event.type, "delivered": delivered}}
        )
        return delivered

    async def stream(
        self, client_id: Optional[str] = None, keepalive_seconds: Optional[float] = None
    ) -> AsyncIterator[str]:
        """Yield SSE frames until the consumer stops iterating.

        The client is subscribed when the first frame is requested, unless
        ``client_id`` is already subscribed. A stream that is never iterated
        leaves no queue behind.
        """
        keepalive = keepalive_seconds if keepalive_seconds is not None else settings.SSE_KEEPALIVE_SECONDS
        if client_id not in self.subscribers:
            client_id = await self.subscribe(client_id)
        queue = self.subscribers[client_id]

        try:
            yield ": connected\n\n"
            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield KEEPALIVE_FRAME
                    continue
                yield message.to_sse()
        finally:
            await self.unsubscribe(client_id)

    def get_connection_info(self) -> Dict[str, int]:
        return {
            "active_subscribers": len(self.subscribers),
            "queued_messages": sum(q.qsize() for q in self.subscribers.values()),
        }


# Global event broker instance
event_broker = EventBroker()


async def publish_status_event(event: StatusEvent) -> bool:
    """Publish through Redis so every worker sees the event; deliver locally if Redis is down.

    Returns True when the event went out over Redis.
    """
    from utils.redis_manager import publish

    if await publish(event):
        return True
    await event_broker.broadcast_event(event)
    return False
