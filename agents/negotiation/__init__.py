"""Procurement Negotiation Agent package."""

from .agent import (
    NEGOTIATION_INSTRUCTIONS,
    NegotiationAgent,
    NegotiationReply,
    create_negotiation_agent,
    parse_negotiation_reply,
)

__all__ = [
    "NEGOTIATION_INSTRUCTIONS",
    "NegotiationAgent",
    "NegotiationReply",
    "create_negotiation_agent",
    "parse_negotiation_reply",
]
