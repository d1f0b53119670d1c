"""
Conversation Event Publishing

The controller publishes an event after every state transition so that a UI
(or the SSE endpoint) can follow a run without polling.

Two kinds of subscribers are supported:
- callbacks, invoked synchronously in publish order
- asyncio.Queue subscribers, fed with ``put_nowait`` for streaming

A failing callback or a full queue never affects the run; the failure is
logged and publishing continues.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Set

from convolib.utils import utc_now_iso

logger = logging.getLogger(__name__)


class ConversationEventType(str, Enum):
    """Types of events emitted by the conversation controller."""
    STATE_CHANGED = "state_changed"            # full snapshot after a transition
    HISTORY_COMMITTED = "history_committed"    # a history entry was finalized


@dataclass
class ConversationEvent:
    event_type: ConversationEventType
    session_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {
            "event_type": self.event_type.value,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }


EventCallback = Callable[[ConversationEvent], None]


class ConversationEventPublisher:

    def __init__(self):
        self._callbacks: List[EventCallback] = []
        self._queues: Set[asyncio.Queue] = set()

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """
        Register a callback for every event.

        Returns:
            A function that removes the subscription.
        """
        self._callbacks.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def subscribe_queue(self, queue: asyncio.Queue) -> None:
        self._queues.add(queue)
        logger.debug(f"Queue subscribed (total: {len(self._queues)})")

    def unsubscribe_queue(self, queue: asyncio.Queue) -> None:
        """Safe to call even if the queue was never subscribed."""
        self._queues.discard(queue)

    def publish(self, event: ConversationEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Event subscriber failed on {event.event_type.value}: {e}")

        if not self._queues:
            return
        event_dict = event.to_dict()
        for q in list(self._queues):
            try:
                q.put_nowait(event_dict)
            except asyncio.QueueFull:
                logger.debug("Dropping event for slow queue subscriber")

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks) + len(self._queues)
