"""
Auction client: wires the connection manager, wire codec and state machine
together and publishes view changes on the event bus
"""

import random
from typing import Any, Callable, Dict, Optional

from config import AUCTION_CONFIG
from core.connection_manager import ConnectionManager, ConnectionStatus
from core.logging_config import get_logger, log_error_with_context
from events import EventTypes, event_bus as default_event_bus
from .exceptions import IntentError, InvalidIntentError, ProtocolError
from .models import AuctionView, BidIntent, ListingIntent, OutboundIntent, Phase, ServerError
from .protocol import decode_inbound, encode_intent
from .state_machine import AuctionStateMachine


def generate_guest_name(prefix: Optional[str] = None) -> str:
    """Random display name such as Guest-42"""
    prefix = prefix if prefix is not None else AUCTION_CONFIG["guest_prefix"]
    return f"{prefix}{random.randint(0, 999)}"


class AuctionClient:
    """Keeps a local AuctionView in sync with the authority and sends intents"""

    def __init__(self,
                 username: Optional[str] = None,
                 connection: Optional[ConnectionManager] = None,
                 state_machine: Optional[AuctionStateMachine] = None,
                 event_bus=None,
                 on_view_change: Optional[Callable[[AuctionView], None]] = None,
                 on_status_change: Optional[Callable[[ConnectionStatus], None]] = None):
        """
        Initialize auction client

        Args:
            username: Local bidder display name (random guest name if empty)
            connection: Connection manager (built from config if omitted)
            state_machine: Auction state machine (fresh view if omitted)
            event_bus: Bus for auction events (defaults to the global bus)
            on_view_change: Called with the new view after every inbound message
            on_status_change: Called with the new connectivity status
        """
        self.logger = get_logger(__name__)
        self.username = username or AUCTION_CONFIG.get("username") or generate_guest_name()
        self.event_bus = event_bus or default_event_bus
        self.connection = connection or ConnectionManager(event_bus=self.event_bus)
        self.state_machine = state_machine or AuctionStateMachine(
            max_history=AUCTION_CONFIG.get("history_size", 100)
        )
        self.on_view_change = on_view_change
        self.on_status_change = on_status_change

        self.frames_ignored = 0

        self.connection.add_message_listener(self._handle_frame)
        self.connection.add_status_listener(self._handle_status)
        self.state_machine.add_view_listener(self._handle_view)
        self.state_machine.add_listing_listener(self._handle_listing_changed)

    @property
    def view(self) -> AuctionView:
        return self.state_machine.view

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    def is_leading(self) -> bool:
        """True when the local user is the current high bidder"""
        return self.view.high_bidder == self.username

    def start(self):
        """Open the session to the authority"""
        self.logger.info(f"Starting auction client as {self.username}")
        self.event_bus.emit(EventTypes.SYSTEM_START, {"username": self.username}, source="AuctionClient")
        self.connection.connect()

    def stop(self):
        self.connection.shutdown()
        self.event_bus.emit(EventTypes.SYSTEM_STOP, {"username": self.username}, source="AuctionClient")

    # Inbound

    def _handle_frame(self, raw):
        try:
            msg = decode_inbound(raw)
        except ProtocolError as e:
            self.frames_ignored += 1
            log_error_with_context(self.logger, e, "decode_inbound", raw=str(raw)[:200])
            return

        if msg is None:
            self.frames_ignored += 1
            return

        if isinstance(msg, ServerError):
            self.logger.warning(f"Auction server reported an error: {msg.content}")
            self.event_bus.emit(EventTypes.AUCTION_SERVER_ERROR, {"content": msg.content}, source="AuctionClient")

        self.state_machine.apply(msg)

    def _handle_view(self, previous: AuctionView, current: AuctionView):
        self.event_bus.emit(EventTypes.AUCTION_VIEW_UPDATED, current.to_dict(), source="AuctionClient")

        if current.phase == Phase.SOLD and previous.phase != Phase.SOLD:
            self.event_bus.emit(EventTypes.AUCTION_SOLD, {
                "item_name": current.item_name,
                "amount": current.current_amount,
                "winner": current.high_bidder,
                "won": current.high_bidder == self.username,
            }, source="AuctionClient")

        if self.on_view_change:
            try:
                self.on_view_change(current)
            except Exception:
                self.logger.exception("Error in view change callback")

    def _handle_listing_changed(self, current: AuctionView):
        # Commentary and rival-intel collaborators reset on this event
        self.event_bus.emit(EventTypes.AUCTION_LISTING_CHANGED, {
            "item_name": current.item_name,
            "starting_amount": current.current_amount,
        }, source="AuctionClient")

    def _handle_status(self, old_status: ConnectionStatus, new_status: ConnectionStatus):
        if self.on_status_change:
            try:
                self.on_status_change(new_status)
            except Exception:
                self.logger.exception("Error in status change callback")

    # Outbound

    def place_bid(self, amount: int) -> bool:
        """
        Bid an exact amount.

        Returns:
            True if handed to the transport, False if dropped while offline

        Raises:
            BidRejectedError: no live auction
            InvalidIntentError: amount is not a positive integer
        """
        try:
            intent = self.state_machine.submit_bid(amount, self.username)
        except IntentError as e:
            self.logger.info(f"Bid rejected locally: {e}")
            self.event_bus.emit(EventTypes.INTENT_REJECTED, {
                "intent": "bid", "reason": str(e), **e.details
            }, source="AuctionClient")
            raise

        if amount <= self.view.current_amount:
            # The authority ignores bids that do not beat the current price
            self.logger.debug(f"Bid {amount} does not exceed current amount {self.view.current_amount}")

        return self._send(intent)

    def raise_bid(self, increment: int) -> bool:
        """Bid the current amount plus `increment`"""
        if isinstance(increment, bool) or not isinstance(increment, int) or increment <= 0:
            raise InvalidIntentError("increment", f"expected a positive integer, got {increment!r}")
        return self.place_bid(self.view.current_amount + increment)

    def start_listing(self, item_name: str, starting_amount: int) -> bool:
        """
        Ask the authority to start a listing, overwriting any running one.

        Raises:
            InvalidIntentError: empty name or negative price
        """
        intent = self.state_machine.submit_listing(item_name, starting_amount, username=self.username)
        return self._send(intent)

    def _send(self, intent: OutboundIntent) -> bool:
        kind = "bid" if isinstance(intent, BidIntent) else "start"
        sent = self.connection.send(encode_intent(intent))
        data: Dict[str, Any] = {"intent": kind}
        if isinstance(intent, BidIntent):
            data.update(bidder=intent.bidder, amount=intent.amount)
        elif isinstance(intent, ListingIntent):
            data.update(item_name=intent.item_name, amount=intent.starting_amount)

        if sent:
            self.logger.info(f"Sent {kind} intent", extra={"extra_data": data})
            self.event_bus.emit(EventTypes.INTENT_SENT, data, source="AuctionClient")
        else:
            self.logger.warning(f"Dropped {kind} intent while offline", extra={"extra_data": data})
            self.event_bus.emit(EventTypes.INTENT_DROPPED, data, source="AuctionClient")
        return sent

    def get_stats(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "frames_ignored": self.frames_ignored,
            "connection": self.connection.get_stats(),
            "auction": self.state_machine.get_stats(),
        }
