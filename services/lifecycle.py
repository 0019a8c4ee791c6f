"""
Status enums and transition rules for procurement requests, quotes and orders.

Request:  open -> negotiating -> (awarded ->) completed, cancellable until completed
Quote:    pending -> accepted | rejected | countered, countered cycles until terminal
"""

from enum import Enum
from typing import Dict, FrozenSet

from services.exceptions import StateTransitionError


class RequestStatus(str, Enum):
    """Status of a procurement request."""
    OPEN = "open"
    NEGOTIATING = "negotiating"
    AWARDED = "awarded"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuoteStatus(str, Enum):
    """Status of a vendor quote."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    PAID = "paid"
    COMPLETED = "completed"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sender(str, Enum):
    """Author of a negotiation message."""
    BUYER = "buyer"
    VENDOR = "vendor"
    AI_AGENT = "ai-agent"
    AI_BUYER = "ai-buyer"
    AI_VENDOR = "ai-vendor"

    @property
    def display_name(self) -> str:
        return _SENDER_DISPLAY_NAMES[self]

    @property
    def is_ai(self) -> bool:
        return self in (Sender.AI_AGENT, Sender.AI_BUYER, Sender.AI_VENDOR)


_SENDER_DISPLAY_NAMES = {
    Sender.BUYER: "Buyer",
    Sender.VENDOR: "Vendor",
    Sender.AI_AGENT: "AI Agent",
    Sender.AI_BUYER: "AI (Buyer)",
    Sender.AI_VENDOR: "AI (Vendor)",
}


REQUEST_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.OPEN: frozenset({RequestStatus.NEGOTIATING, RequestStatus.CANCELLED}),
    RequestStatus.NEGOTIATING: frozenset(
        {RequestStatus.AWARDED, RequestStatus.COMPLETED, RequestStatus.CANCELLED}
    ),
    RequestStatus.AWARDED: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

QUOTE_TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset(
        {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.COUNTERED}
    ),
    QuoteStatus.COUNTERED: frozenset(
        {QuoteStatus.PENDING, QuoteStatus.COUNTERED, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED}
    ),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
}


def can_transition_request(current: str, target: str) -> bool:
    return RequestStatus(target) in REQUEST_TRANSITIONS[RequestStatus(current)]


def can_transition_quote(current: str, target: str) -> bool:
    return QuoteStatus(target) in QUOTE_TRANSITIONS[QuoteStatus(current)]


def ensure_request_transition(current: str, target: str) -> None:
    if not can_transition_request(current, target):
        raise StateTransitionError(f"Cannot move request from '{current}' to '{target}'")


def ensure_quote_transition(current: str, target: str) -> None:
    if not can_transition_quote(current, target):
        raise StateTransitionError(f"Cannot move quote from '{current}' to '{target}'")


def is_terminal_request(status: str) -> bool:
    return not REQUEST_TRANSITIONS[RequestStatus(status)]


def is_terminal_quote(status: str) -> bool:
    return not QUOTE_TRANSITIONS[QuoteStatus(status)]
