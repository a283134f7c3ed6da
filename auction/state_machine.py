"""
Auction state machine: folds authority messages into an AuctionView and
builds outbound intents gated on the current phase
"""

import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.logging_config import get_logger
from .exceptions import BidRejectedError, InvalidIntentError
from .models import (
    AuctionView, BidIntent, Ended, InboundMessage, ListingIntent, NO_BIDDER,
    Phase, ServerError, Update,
)

logger = get_logger(__name__)


def _carry(new: Optional[Any], old: Any, field: str, msg_type: str) -> Any:
    if new is None:
        logger.debug(f"{msg_type} missing or invalid {field}, keeping previous value")
        return old
    return new


def _replace_bidder(new: Optional[str], old: str, msg_type: str) -> str:
    # An empty username on the wire means nobody has bid yet
    if new is None:
        return _carry(new, old, "username", msg_type)
    return new or NO_BIDDER


def apply_inbound(view: AuctionView, msg: InboundMessage) -> AuctionView:
    """
    Next view after applying one authority message. Never raises.

    Update: LIVE while time remains, otherwise ENDED; item name only
    replaced when supplied. Ended: SOLD with zero time, item name kept.
    ServerError: only the notice changes.
    """
    if isinstance(msg, Update):
        time_remaining = _carry(msg.time_remaining, view.time_remaining, "time_left", "update")
        return view.evolve(
            item_name=msg.item_name or view.item_name,
            current_amount=_carry(msg.amount, view.current_amount, "amount", "update"),
            high_bidder=_replace_bidder(msg.bidder, view.high_bidder, "update"),
            time_remaining=time_remaining,
            phase=Phase.LIVE if time_remaining > 0 else Phase.ENDED,
            notice=msg.content or view.notice,
        )

    if isinstance(msg, Ended):
        return view.evolve(
            current_amount=_carry(msg.amount, view.current_amount, "amount", "end"),
            high_bidder=_replace_bidder(msg.bidder, view.high_bidder, "end"),
            time_remaining=0,
            phase=Phase.SOLD,
            notice=msg.content or view.notice,
        )

    if isinstance(msg, ServerError):
        return view.evolve(notice=msg.content or view.notice)

    logger.warning(f"Ignoring unsupported inbound message: {type(msg).__name__}")
    return view


def listing_changed(previous: AuctionView, current: AuctionView) -> bool:
    """True when the item switched to a new, real listing"""
    return current.has_listing and current.item_name != previous.item_name


class ViewTransition:
    """Represents one applied inbound message"""
    def __init__(self, from_phase: Phase, to_phase: Phase, reason: str = ""):
        self.from_phase = from_phase
        self.to_phase = to_phase
        self.reason = reason
        self.timestamp = time.time()
        self.datetime = datetime.now()

    def __str__(self):
        return f"{self.from_phase.value} → {self.to_phase.value} ({self.reason})"


class AuctionStateMachine:
    """Holds the current AuctionView and validates intents against it"""

    def __init__(self, initial_view: Optional[AuctionView] = None, max_history: int = 100):
        self._view = initial_view or AuctionView()
        self.state_lock = threading.RLock()

        self.transitions: List[ViewTransition] = []
        self.max_history = max_history

        # Listeners
        self.view_listeners: List[Callable[[AuctionView, AuctionView], None]] = []
        self.listing_listeners: List[Callable[[AuctionView], None]] = []

        self.messages_applied = 0
        self.bids_built = 0
        self.bids_rejected = 0
        self.listings_built = 0

    @property
    def view(self) -> AuctionView:
        with self.state_lock:
            return self._view

    def get_view(self) -> AuctionView:
        return self.view

    def apply(self, msg: InboundMessage) -> AuctionView:
        """
        Fold a message into the held view and notify listeners

        Returns:
            The new view
        """
        with self.state_lock:
            previous = self._view
            current = apply_inbound(previous, msg)
            self._view = current
            self.messages_applied += 1

            self.transitions.append(ViewTransition(previous.phase, current.phase, type(msg).__name__))
            if len(self.transitions) > self.max_history:
                self.transitions = self.transitions[-self.max_history:]

        if previous.phase != current.phase:
            logger.info(f"Auction phase: {previous.phase.value} → {current.phase.value}",
                        extra={"extra_data": current.to_dict()})

        # Notify outside the lock
        self._notify_view_listeners(previous, current)
        if listing_changed(previous, current):
            logger.info(f"Listing changed: {previous.item_name!r} → {current.item_name!r}")
            self._notify_listing_listeners(current)

        return current

    def submit_bid(self, amount: int, bidder: str) -> BidIntent:
        """
        Build a bid intent for the running auction.

        The amount is not compared with the current price; the authority
        decides whether the bid wins.

        Raises:
            BidRejectedError: no live auction
            InvalidIntentError: amount is not a positive integer or bidder is empty
        """
        view = self.view
        if not view.is_live:
            self.bids_rejected += 1
            raise BidRejectedError(view.phase, {"amount": amount, "bidder": bidder})

        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidIntentError("amount", f"expected a positive integer, got {amount!r}")
        if not isinstance(bidder, str) or not bidder.strip():
            raise InvalidIntentError("bidder", "must be a non-empty string")

        self.bids_built += 1
        return BidIntent(bidder=bidder, amount=amount)

    def submit_listing(self, item_name: str, starting_amount: int, username: str = "") -> ListingIntent:
        """
        Build a start-listing intent. Allowed in every phase; a running
        auction is overwritten by the authority.

        Raises:
            InvalidIntentError: empty name or negative/non-integer price
        """
        if not isinstance(item_name, str) or not item_name.strip():
            raise InvalidIntentError("item_name", "must be a non-empty string")
        if isinstance(starting_amount, bool) or not isinstance(starting_amount, int) or starting_amount < 0:
            raise InvalidIntentError("starting_amount",
                                     f"expected a non-negative integer, got {starting_amount!r}")

        self.listings_built += 1
        return ListingIntent(item_name=item_name.strip(), starting_amount=starting_amount, username=username)

    def add_view_listener(self, listener: Callable[[AuctionView, AuctionView], None]):
        """Add listener called with (previous, current) after every fold"""
        self.view_listeners.append(listener)

    def remove_view_listener(self, listener: Callable[[AuctionView, AuctionView], None]):
        if listener in self.view_listeners:
            self.view_listeners.remove(listener)

    def add_listing_listener(self, listener: Callable[[AuctionView], None]):
        """Add listener called with the new view when the listing changes"""
        self.listing_listeners.append(listener)

    def remove_listing_listener(self, listener: Callable[[AuctionView], None]):
        if listener in self.listing_listeners:
            self.listing_listeners.remove(listener)

    def _notify_view_listeners(self, previous: AuctionView, current: AuctionView):
        for listener in list(self.view_listeners):
            try:
                listener(previous, current)
            except Exception:
                logger.exception("Error in view listener")

    def _notify_listing_listeners(self, current: AuctionView):
        for listener in list(self.listing_listeners):
            try:
                listener(current)
            except Exception:
                logger.exception("Error in listing listener")

    def get_transition_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get recent view transitions"""
        with self.state_lock:
            recent = self.transitions[-limit:] if self.transitions else []
            return [
                {
                    "from": t.from_phase.value,
                    "to": t.to_phase.value,
                    "reason": t.reason,
                    "timestamp": t.timestamp,
                    "datetime": t.datetime.isoformat()
                }
                for t in recent
            ]

    def get_stats(self) -> Dict[str, Any]:
        """Get state machine statistics"""
        with self.state_lock:
            return {
                "phase": self._view.phase.value,
                "messages_applied": self.messages_applied,
                "bids_built": self.bids_built,
                "bids_rejected": self.bids_rejected,
                "listings_built": self.listings_built,
                "transition_count": len(self.transitions),
            }
