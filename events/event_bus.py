"""
Central event bus for broadcasting auction client events
"""

import logging
import time
import threading
from typing import Dict, Any, List, Callable, Optional
from queue import Queue, Empty
from collections import defaultdict
from datetime import datetime
import uuid

logger = logging.getLogger(__name__)


class SystemEvent:
    """Represents a system event"""

    def __init__(self, event_type: str, data: Dict[str, Any], source: str = None):
        self.id = str(uuid.uuid4())
        self.type = event_type
        self.data = data
        self.source = source or "system"
        self.timestamp = time.time()
        self.datetime = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
            "datetime": self.datetime
        }


class EventBus:
    """
    Process-wide publish/subscribe bus.

    With threaded=True events are queued and delivered in order by a single
    daemon thread, so listeners never run concurrently with each other.
    With threaded=False emit() delivers inline on the caller's thread.
    """

    def __init__(self, threaded: bool = True, max_history: int = 1000):
        self.listeners: Dict[str, List[Callable]] = defaultdict(list)
        self.event_queue = Queue()
        self.event_history: List[SystemEvent] = []
        self.max_history = max_history
        self.threaded = threaded
        self._running = threaded
        self._processor_thread: Optional[threading.Thread] = None
        if threaded:
            self._processor_thread = threading.Thread(
                target=self._process_events, daemon=True, name="EventBusThread"
            )
            self._processor_thread.start()

        self.event_counts = defaultdict(int)

    def emit(self, event_type: str, data: Dict[str, Any], source: str = None):
        """Emit an event to the bus"""
        event = SystemEvent(event_type, data, source)
        if self.threaded:
            self.event_queue.put(event)
        else:
            self._dispatch(event)

    def on(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Register a listener for specific event type"""
        self.listeners[event_type].append(callback)

    def on_all(self, callback: Callable[[SystemEvent], None]):
        """Register a listener for all events"""
        self.listeners["*"].append(callback)

    def off(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Remove a listener"""
        if callback in self.listeners[event_type]:
            self.listeners[event_type].remove(callback)

    def _process_events(self):
        """Process events from the queue"""
        while self._running:
            try:
                event = self.event_queue.get(timeout=0.1)
            except Empty:
                continue
            self._dispatch(event)

    def _dispatch(self, event: SystemEvent):
        self.event_counts[event.type] += 1

        self.event_history.append(event)
        if len(self.event_history) > self.max_history:
            self.event_history.pop(0)

        for listener in list(self.listeners.get(event.type, [])) + list(self.listeners.get("*", [])):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Error in event listener for {event.type}")

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics"""
        return {
            "total_events": sum(self.event_counts.values()),
            "event_counts": dict(self.event_counts),
            "queue_size": self.event_queue.qsize(),
            "history_size": len(self.event_history),
            "listener_counts": {
                event_type: len(listeners)
                for event_type, listeners in self.listeners.items()
            }
        }

    def get_recent_events(self, count: int = 50, event_type: str = None) -> List[Dict[str, Any]]:
        """Get recent events from history"""
        events = self.event_history[-count:]

        if event_type:
            events = [e for e in events if e.type == event_type]

        return [e.to_dict() for e in events]

    def shutdown(self):
        """Shutdown the event bus"""
        self._running = False
        if self._processor_thread and self._processor_thread.is_alive():
            self._processor_thread.join(timeout=2.0)


# Global event bus instance
event_bus = EventBus()


# Event type constants
class EventTypes:
    # Connection events
    CONNECTION_STATUS_CHANGED = "connection.status_changed"
    CONNECTION_RECONNECT_SCHEDULED = "connection.reconnect_scheduled"

    # Auction view events
    AUCTION_VIEW_UPDATED = "auction.view_updated"
    AUCTION_LISTING_CHANGED = "auction.listing_changed"
    AUCTION_SOLD = "auction.sold"
    AUCTION_SERVER_ERROR = "auction.server_error"

    # Intent events
    INTENT_SENT = "intent.sent"
    INTENT_DROPPED = "intent.dropped"
    INTENT_REJECTED = "intent.rejected"

    # System events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"
