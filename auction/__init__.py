"""
Live auction synchronization: view reconciliation, intents and wire codec
"""

from .models import (
    AuctionView, Phase, Update, Ended, ServerError, BidIntent, ListingIntent,
    PLACEHOLDER_ITEM, NO_BIDDER,
)
from .exceptions import (
    AuctionClientError, IntentError, BidRejectedError, InvalidIntentError, ProtocolError,
)
from .state_machine import AuctionStateMachine, apply_inbound, listing_changed
from .client import AuctionClient, generate_guest_name

__all__ = [
    "AuctionView", "Phase", "Update", "Ended", "ServerError", "BidIntent", "ListingIntent",
    "PLACEHOLDER_ITEM", "NO_BIDDER",
    "AuctionClientError", "IntentError", "BidRejectedError", "InvalidIntentError", "ProtocolError",
    "AuctionStateMachine", "apply_inbound", "listing_changed",
    "AuctionClient", "generate_guest_name",
]
