"""
Custom exceptions for the auction client
"""

from typing import Optional, Dict, Any


class AuctionClientError(Exception):
    """Base exception for all auction client errors"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class IntentError(AuctionClientError):
    """Raised when an outbound intent cannot be constructed"""
    pass


class BidRejectedError(IntentError):
    """Raised when a bid is submitted while no auction is running"""
    def __init__(self, phase, details: Optional[Dict[str, Any]] = None):
        self.phase = phase
        super().__init__(f"Cannot bid while auction is {phase.value}", details)


class InvalidIntentError(IntentError):
    """Raised when intent fields are malformed (empty names, bad amounts)"""
    def __init__(self, field: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.field = field
        super().__init__(f"Invalid {field}: {message}", details)


class ProtocolError(AuctionClientError):
    """Raised when an inbound frame cannot be decoded"""
    def __init__(self, message: str, raw: Any = None):
        self.raw = raw
        super().__init__(message, {"raw": raw})
