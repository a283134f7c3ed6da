"""
Connection manager for the persistent WebSocket session to the auction
authority.

One logical session is live at a time. Every transport callback is bound
to the id of the session that created it, and callbacks from a superseded
session are dropped. Closures and errors share one path: mark the session
disconnected, close its transport and schedule a single reconnect. There is
no retry limit. Status listeners and bus events are notified after the
lock is released.

send() is fire-and-forget with at-most-once delivery: payloads offered
while not connected are dropped, never queued.
"""

import itertools
import random
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import websocket

from config import RECONNECT_CONFIG, SERVER_CONFIG
from core.logging_config import get_logger
from events import EventTypes, event_bus as default_event_bus


class ConnectionStatus(Enum):
    """Connectivity of the live session"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# (old_status, new_status, session_id), published once the lock is released
StatusChange = Tuple[ConnectionStatus, ConnectionStatus, Optional[int]]


@dataclass
class ReconnectPolicy:
    """
    Delay before each reconnect attempt.

    Delays grow by `multiplier` per consecutive failure up to `max_delay`,
    with +/- `jitter` (fraction of the delay) of randomness. The defaults
    give a fixed 3 second delay.
    """
    initial_delay: float = 3.0
    multiplier: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.0

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> 'ReconnectPolicy':
        config = config if config is not None else RECONNECT_CONFIG
        return cls(
            initial_delay=float(config.get("initial_delay", 3.0)),
            multiplier=float(config.get("multiplier", 1.0)),
            max_delay=float(config.get("max_delay", 30.0)),
            jitter=float(config.get("jitter", 0.0)),
        )

    def next_base_delay(self, current: float) -> float:
        """Base delay for the attempt after one that waited `current`"""
        return min(current * self.multiplier, self.max_delay)

    def with_jitter(self, delay: float) -> float:
        if self.jitter <= 0:
            return delay
        spread = delay * self.jitter
        return max(0.0, delay + random.uniform(-spread, spread))


@dataclass
class Session:
    """One connection attempt; superseded wholesale on reconnect"""
    id: int
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    retry_delay: float = 0.0
    created_at: float = field(default_factory=time.time)
    connected_at: Optional[float] = None
    transport: Any = field(default=None, repr=False)


def create_websocket_app(url: str, on_open, on_message, on_error, on_close):
    """Default transport factory"""
    return websocket.WebSocketApp(
        url,
        on_open=on_open,
        on_message=on_message,
        on_error=on_error,
        on_close=on_close,
    )


class ConnectionManager:
    """Owns the lifecycle of the session to the auction authority"""

    def __init__(self,
                 url: Optional[str] = None,
                 reconnect_policy: Optional[ReconnectPolicy] = None,
                 transport_factory: Optional[Callable[..., Any]] = None,
                 timer_factory: Optional[Callable[[float, Callable[[], None]], Any]] = None,
                 run_in_thread: bool = True,
                 event_bus=None):
        """
        Initialize connection manager

        Args:
            url: Authority WebSocket address (defaults to SERVER_CONFIG["url"])
            reconnect_policy: Delay policy between attempts
            transport_factory: Builds a transport with run_forever/send/close
                from (url, on_open, on_message, on_error, on_close)
            timer_factory: Builds a startable, cancellable timer from (delay, fn)
            run_in_thread: Run each transport's run_forever on a daemon thread
            event_bus: Bus for status events (defaults to the global bus)
        """
        self.logger = get_logger(__name__)
        self.url = url or SERVER_CONFIG["url"]
        self.reconnect_policy = reconnect_policy or ReconnectPolicy.from_config()
        self.transport_factory = transport_factory or create_websocket_app
        self.timer_factory = timer_factory or threading.Timer
        self.run_in_thread = run_in_thread
        self.event_bus = event_bus or default_event_bus

        self.lock = threading.RLock()
        self._session_ids = itertools.count(1)
        self.session: Optional[Session] = None
        self._status = ConnectionStatus.DISCONNECTED
        self._retry_delay = self.reconnect_policy.initial_delay
        self._reconnect_timer = None
        self._shutting_down = False
        self._threads: List[threading.Thread] = []

        # Subscribers
        self.message_listeners: List[Callable[[Union[str, bytes]], None]] = []
        self.status_listeners: List[Callable[[ConnectionStatus, ConnectionStatus], None]] = []

        # Stats
        self.connect_attempts = 0
        self.successful_connections = 0
        self.reconnects_scheduled = 0
        self.messages_sent = 0
        self.messages_dropped = 0
        self.messages_received = 0
        self.stale_events_ignored = 0

    @property
    def status(self) -> ConnectionStatus:
        with self.lock:
            return self._status

    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    def add_message_listener(self, listener: Callable[[Union[str, bytes]], None]):
        self.message_listeners.append(listener)

    def remove_message_listener(self, listener: Callable[[Union[str, bytes]], None]):
        if listener in self.message_listeners:
            self.message_listeners.remove(listener)

    def add_status_listener(self, listener: Callable[[ConnectionStatus, ConnectionStatus], None]):
        """Add listener called with (old_status, new_status)"""
        self.status_listeners.append(listener)

    def remove_status_listener(self, listener: Callable[[ConnectionStatus, ConnectionStatus], None]):
        if listener in self.status_listeners:
            self.status_listeners.remove(listener)

    def connect(self) -> Session:
        """
        Open a session to the authority.

        While connecting or connected this is a no-op returning the live
        session. Otherwise any pending reconnect is cancelled and a fresh
        session supersedes the old one.
        """
        with self.lock:
            if self.session and self._status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
                return self.session

            self._shutting_down = False
            self._cancel_reconnect_timer()
            session = self._open_session()
            change = self._set_status(ConnectionStatus.CONNECTING)

        self._publish_status(change)
        self._start_transport(session)
        return session

    def _open_session(self) -> Session:
        session_id = next(self._session_ids)
        session = Session(id=session_id, retry_delay=self._retry_delay)

        session.transport = self.transport_factory(
            self.url,
            on_open=lambda ws: self._on_open(session_id, ws),
            on_message=lambda ws, message: self._on_message(session_id, ws, message),
            on_error=lambda ws, error: self._on_error(session_id, ws, error),
            on_close=lambda ws, code, msg: self._on_close(session_id, ws, code, msg),
        )

        self.session = session
        self.connect_attempts += 1
        self.logger.info(f"Connecting to auction server (session {session_id})",
                         extra={"extra_data": {"url": self.url, "session_id": session_id}})
        return session

    def _start_transport(self, session: Session):
        if self.run_in_thread:
            thread = threading.Thread(
                target=self._run_transport, args=(session,),
                daemon=True, name=f"AuctionWSThread-{session.id}"
            )
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
            thread.start()
        else:
            self._run_transport(session)

    def _run_transport(self, session: Session):
        try:
            session.transport.run_forever(ping_interval=SERVER_CONFIG.get("ping_interval", 0))
        except Exception as e:
            self.logger.error(f"Transport loop for session {session.id} failed: {e}", exc_info=True)
            self._handle_loss(session.id, f"transport failure: {e}")

    def _is_live(self, session_id: int) -> bool:
        if self.session is None or self.session.id != session_id:
            self.stale_events_ignored += 1
            self.logger.debug(f"Ignoring event from stale session {session_id}")
            return False
        return True

    def _on_open(self, session_id: int, ws):
        with self.lock:
            if not self._is_live(session_id):
                return
            self.session.status = ConnectionStatus.CONNECTED
            self.session.connected_at = time.time()
            self._retry_delay = self.reconnect_policy.initial_delay
            self.successful_connections += 1
            self.logger.info(f"Connected to auction server (session {session_id})")
            change = self._set_status(ConnectionStatus.CONNECTED)

        self._publish_status(change)

    def _on_message(self, session_id: int, ws, message):
        with self.lock:
            if not self._is_live(session_id):
                return
            self.messages_received += 1
            listeners = list(self.message_listeners)

        for listener in listeners:
            try:
                listener(message)
            except Exception:
                self.logger.exception("Error in message listener")

    def _on_error(self, session_id: int, ws, error):
        self._handle_loss(session_id, f"error: {error}")

    def _on_close(self, session_id: int, ws, close_status_code, close_msg):
        self._handle_loss(session_id, f"closed (code={close_status_code}, message={close_msg})")

    def _handle_loss(self, session_id: int, reason: str):
        """Shared path for error and close: drop the transport and schedule one retry"""
        retry = None
        with self.lock:
            if not self._is_live(session_id):
                return
            session = self.session
            if session.status == ConnectionStatus.DISCONNECTED:
                # websocket-client reports on_error then on_close for one failure
                return

            session.status = ConnectionStatus.DISCONNECTED
            self.logger.warning(f"Session {session_id} lost: {reason}")
            change = self._set_status(ConnectionStatus.DISCONNECTED)

            if not self._shutting_down:
                retry = self._schedule_reconnect()

        # on_error is not always followed by on_close, so release the socket here
        self._close_transport(session)
        self._publish_status(change)
        if retry:
            self.event_bus.emit(EventTypes.CONNECTION_RECONNECT_SCHEDULED, retry, source="ConnectionManager")

    def _close_transport(self, session: Session):
        if session and session.transport:
            try:
                session.transport.close()
            except Exception as e:
                self.logger.debug(f"Error closing transport for session {session.id}: {e}")

    def _schedule_reconnect(self) -> Dict[str, Any]:
        """Arm the reconnect timer; returns the event payload to publish"""
        base_delay = self._retry_delay
        delay = self.reconnect_policy.with_jitter(base_delay)
        self._retry_delay = self.reconnect_policy.next_base_delay(base_delay)

        self._cancel_reconnect_timer()
        self._reconnect_timer = self.timer_factory(delay, self._execute_reconnect)
        if hasattr(self._reconnect_timer, "daemon"):
            self._reconnect_timer.daemon = True
        self._reconnect_timer.start()
        self.reconnects_scheduled += 1

        self.logger.info(f"Reconnecting in {delay:.1f}s (attempt {self.reconnects_scheduled})")
        return {"delay_seconds": delay, "attempt": self.reconnects_scheduled}

    def _execute_reconnect(self):
        with self.lock:
            self._reconnect_timer = None
            if self._shutting_down:
                self.logger.debug("Shutting down, skipping reconnect")
                return
        self.connect()

    def _cancel_reconnect_timer(self):
        if self._reconnect_timer:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _set_status(self, new_status: ConnectionStatus) -> Optional[StatusChange]:
        """
        Record a status change. Must hold the lock; returns the change for
        _publish_status, or None if the status did not move.
        """
        old_status = self._status
        if old_status == new_status:
            return None
        self._status = new_status
        session_id = self.session.id if self.session else None
        self.logger.debug(f"Connection status: {old_status.value} → {new_status.value} (session {session_id})")
        return old_status, new_status, session_id

    def _publish_status(self, change: Optional[StatusChange]):
        """Notify the bus and status listeners. Called without the lock held."""
        if change is None:
            return
        old_status, new_status, session_id = change

        self.event_bus.emit(EventTypes.CONNECTION_STATUS_CHANGED, {
            "from_status": old_status.value,
            "to_status": new_status.value,
            "session_id": session_id,
        }, source="ConnectionManager")

        for listener in list(self.status_listeners):
            try:
                listener(old_status, new_status)
            except Exception:
                self.logger.exception("Error in status listener")

    def send(self, payload: Union[str, bytes]) -> bool:
        """
        Hand a payload to the live transport.

        Returns:
            True if the transport accepted it; False if it was dropped
        """
        with self.lock:
            session = self.session
            if session is None or session.status != ConnectionStatus.CONNECTED:
                self.messages_dropped += 1
                self.logger.debug("Not connected, dropping outbound message")
                return False
            transport = session.transport

        try:
            if isinstance(payload, (bytes, bytearray)):
                transport.send(payload, opcode=websocket.ABNF.OPCODE_BINARY)
            else:
                transport.send(payload)
        except Exception as e:
            self.messages_dropped += 1
            self.logger.warning(f"Send failed on session {session.id}, dropping message: {e}")
            return False

        self.messages_sent += 1
        return True

    def shutdown(self):
        """Stop retrying and close the live transport"""
        with self.lock:
            self._shutting_down = True
            self._cancel_reconnect_timer()
            session = self.session

        self._close_transport(session)

        change = None
        with self.lock:
            if session and session.status != ConnectionStatus.DISCONNECTED:
                session.status = ConnectionStatus.DISCONNECTED
                change = self._set_status(ConnectionStatus.DISCONNECTED)
        self._publish_status(change)

        for thread in self._threads:
            if thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=2.0)
                if thread.is_alive():
                    self.logger.warning(f"Thread {thread.name} did not terminate")

        self.logger.info("Connection manager stopped")

    def get_stats(self) -> Dict[str, Any]:
        """Get connection statistics"""
        with self.lock:
            stats = {
                "status": self._status.value,
                "session_id": self.session.id if self.session else None,
                "connect_attempts": self.connect_attempts,
                "successful_connections": self.successful_connections,
                "reconnects_scheduled": self.reconnects_scheduled,
                "next_retry_delay": self._retry_delay,
                "messages_sent": self.messages_sent,
                "messages_dropped": self.messages_dropped,
                "messages_received": self.messages_received,
                "stale_events_ignored": self.stale_events_ignored,
            }
            if self.session and self.session.connected_at and self._status == ConnectionStatus.CONNECTED:
                stats["connected_seconds"] = time.time() - self.session.connected_at
            return stats
