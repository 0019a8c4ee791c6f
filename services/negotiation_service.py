"""
Negotiation Service
Lets the negotiation agent answer a message on the other party's behalf.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.orm import Session

from agents.config import Settings
from agents.negotiation import NegotiationAgent, NegotiationReply
from database.models import NegotiationMessage
from services.exceptions import ValidationError
from services.lifecycle import Sender, is_terminal_quote
from services.quote_service import QuoteService, normalize_proposed_changes

logger = logging.getLogger(__name__)


class NegotiationService:
    """Handles AI-mediated negotiation turns on a quote."""

    def __init__(self, db: Session, agent: NegotiationAgent, settings: Optional[Settings] = None):
        self.db = db
        self.agent = agent
        self.quotes = QuoteService(db, settings)

    async def handle_negotiation(self, quote_id: str, message: str, sender: str) -> NegotiationMessage:
        """
        Record the inbound message and store a generated reply.

        A buyer message is answered as the vendor (`ai-vendor`), a vendor
        message as the buyer's agent (`ai-buyer`). Changes proposed by the
        reply are applied to the quote; unusable ones are dropped. Session
        work runs in a worker thread, only the generation is awaited on the
        event loop.

        Returns:
            The stored reply message
        """
        try:
            sender = Sender(sender)
        except ValueError:
            raise ValidationError(f"Unknown sender '{sender}'")
        if sender not in (Sender.BUYER, Sender.VENDOR):
            raise ValidationError("sender must be 'buyer' or 'vendor'")

        quote, request, vendor, buyer = await asyncio.to_thread(
            self._record_inbound, quote_id, sender, message
        )

        if sender is Sender.BUYER:
            reply = await self.agent.respond_as_vendor(quote, request, vendor, buyer, message)
            reply_sender = Sender.AI_VENDOR
        else:
            reply = await self.agent.respond_as_buyer(quote, request, buyer, message)
            reply_sender = Sender.AI_BUYER

        return await asyncio.to_thread(self._record_reply, quote_id, reply_sender, reply)

    def _record_inbound(self, quote_id: str, sender: Sender, message: str):
        """Store the inbound message and load what the reply prompt needs."""
        quote = self.quotes.require_quote(quote_id)
        self.quotes.record_negotiation_message(quote.id, sender.value, message)

        request = quote.request
        vendor = quote.vendor
        buyer = request.buyer
        for instance in (quote, request, vendor, buyer):
            self.db.refresh(instance)
        return quote, request, vendor, buyer

    def _record_reply(self, quote_id: str, sender: Sender, reply: NegotiationReply) -> NegotiationMessage:
        quote = self.quotes.require_quote(quote_id)

        changes = reply.proposed_changes
        if changes and is_terminal_quote(quote.status):
            logger.warning(f"Quote {quote.id} is {quote.status}; dropping generated changes")
            changes = {}
        if changes:
            try:
                normalize_proposed_changes(changes)
            except ValidationError as e:
                logger.warning(f"Dropping unusable generated changes on quote {quote.id}: {e.message}")
                changes = {}

        return self.quotes.record_negotiation_message(quote.id, sender.value, reply.message, changes)
