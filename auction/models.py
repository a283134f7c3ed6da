"""
Data models for the auction view, inbound messages and outbound intents
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Any, Union
from enum import Enum

from config import AUCTION_CONFIG


PLACEHOLDER_ITEM = AUCTION_CONFIG["placeholder_item"]
NO_BIDDER = AUCTION_CONFIG["no_bidder"]


class Phase(Enum):
    """Lifecycle stage of the current listing"""
    AWAITING_LISTING = "awaiting_listing"
    LIVE = "live"
    ENDED = "ended"
    SOLD = "sold"


@dataclass(frozen=True)
class AuctionView:
    """Reconciled snapshot of the authority's auction state"""
    item_name: str = PLACEHOLDER_ITEM
    current_amount: int = 0
    high_bidder: str = NO_BIDDER
    time_remaining: int = 0
    phase: Phase = Phase.AWAITING_LISTING
    notice: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.phase == Phase.LIVE

    @property
    def has_listing(self) -> bool:
        return bool(self.item_name) and self.item_name != PLACEHOLDER_ITEM

    def evolve(self, **changes) -> 'AuctionView':
        """Copy of this view with the given fields replaced"""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for event payloads"""
        return {
            "item_name": self.item_name,
            "current_amount": self.current_amount,
            "high_bidder": self.high_bidder,
            "time_remaining": self.time_remaining,
            "phase": self.phase.value,
            "notice": self.notice,
        }


# Inbound messages. None marks a field that was missing or invalid on the wire.

@dataclass(frozen=True)
class Update:
    """Periodic or bid-triggered state push from the authority"""
    amount: Optional[int] = None
    bidder: Optional[str] = None
    time_remaining: Optional[int] = None
    item_name: Optional[str] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class Ended:
    """Final state of a listing; the item is sold"""
    amount: Optional[int] = None
    bidder: Optional[str] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class ServerError:
    """Authority-reported error text"""
    content: str = ""


InboundMessage = Union[Update, Ended, ServerError]


# Outbound intents

@dataclass(frozen=True)
class BidIntent:
    """Request to bid `amount` as `bidder`"""
    bidder: str
    amount: int


@dataclass(frozen=True)
class ListingIntent:
    """Request to start (or overwrite) the running listing"""
    item_name: str
    starting_amount: int
    username: str = ""


OutboundIntent = Union[BidIntent, ListingIntent]
