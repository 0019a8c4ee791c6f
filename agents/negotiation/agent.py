"""Procurement Negotiation Agent.

Writes vendor outreach letters and answers negotiation messages on either
side of a quote: as the vendor when the buyer writes, as the buyer's agent
when the vendor writes. Generated replies are parsed as JSON; anything the
agent cannot use is replaced by a fixed fallback so a negotiation never fails
because of the text generator.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from agents.config import Settings, settings as default_settings
from agents.text_generator import TextGenerator

logger = logging.getLogger(__name__)


NEGOTIATION_INSTRUCTIONS = """You are a B2B Procurement Negotiation Agent for a procurement marketplace.

You write on behalf of either a vendor or a buyer, as the prompt says.

RULES:
- Professional, concise, friendly tone
- Never invent products, quantities or parties that are not in the prompt
- Only propose changes to: totalPrice, unitPrice, deliveryDate (YYYY-MM-DD), paymentTerms
- Keep price movements within 10-15% of the current quote

RESPONSE FORMAT:
When asked for JSON, reply with a single JSON object and nothing else."""

VENDOR_FALLBACK_MESSAGE = (
    "Thank you for your message. We'll review your request and get back to you shortly."
)
BUYER_FALLBACK_MESSAGE = (
    "Thank you for your quote. We're reviewing all proposals and will respond soon."
)

_FENCED_JSON = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


@dataclass
class NegotiationReply:
    """Structured negotiation turn produced by the agent."""
    message: str
    proposed_changes: Dict[str, Any] = field(default_factory=dict)
    fallback: bool = False


def parse_negotiation_reply(text: Optional[str], fallback_message: str) -> NegotiationReply:
    """
    Parse `{"message": ..., "proposedChanges": {...}}` out of generated text.

    Accepts bare JSON or JSON wrapped in a markdown code fence. Never raises:
    unusable output yields `fallback_message` with no proposed changes.
    """
    fallback = NegotiationReply(message=fallback_message, proposed_changes={}, fallback=True)
    if not text or not isinstance(text, str):
        return fallback

    candidate = text.strip()
    fenced = _FENCED_JSON.match(candidate)
    if fenced:
        candidate = fenced.group(1)

    try:
        data = json.loads(candidate)
    except ValueError:
        logger.warning("Negotiation reply was not valid JSON, using fallback")
        return fallback

    if not isinstance(data, dict):
        return fallback

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return fallback

    changes = data.get("proposedChanges", data.get("proposed_changes"))
    if not isinstance(changes, dict):
        changes = {}

    return NegotiationReply(message=message.strip(), proposed_changes=changes)


def _money(value) -> str:
    return f"${value:,.2f}" if value is not None else "not specified"


def _when(value) -> str:
    return value.isoformat() if value is not None else "flexible"


def build_outreach_prompt(request, vendor, buyer) -> str:
    return f"""Generate a professional B2B procurement outreach message. Context:

BUYER: {buyer.company_name if buyer else 'our client'}
VENDOR: {vendor.name}
PRODUCT NEEDED: {request.product_name}
QUANTITY: {request.quantity} {request.unit}
DELIVERY DATE: {_when(request.delivery_date)}
BUDGET: Up to {_money(request.max_budget)}

Requirements:
- Professional tone
- Clear specifications
- Request for quote
- Mention urgency: {request.urgency}
- Keep under 200 words

Write only the email body, no subject line."""


def build_vendor_reply_prompt(quote, request, vendor, buyer, buyer_message: str) -> str:
    return f"""You are representing {vendor.name}, a B2B vendor. A buyer ({buyer.company_name if buyer else 'a buyer'}) sent this negotiation message:

BUYER MESSAGE: "{buyer_message}"

CURRENT QUOTE:
- Product: {request.product_name}
- Quantity: {request.quantity} {request.unit}
- Current Price: {_money(quote.total_price)}
- Delivery: {_when(quote.delivery_date)}

VENDOR PROFILE:
- Rating: {vendor.rating}/5
- Min Order: {_money(vendor.min_order_value)}
- Payment Terms: {vendor.payment_terms}

As the vendor, respond professionally. You can negotiate price, adjust
delivery dates, modify payment terms, accept or counter-offer.

Respond in JSON format:
{{
  "message": "your response",
  "proposedChanges": {{
    "totalPrice": 950.00,
    "deliveryDate": "2024-01-20"
  }}
}}
Use an empty object for proposedChanges if nothing changes."""


def build_buyer_reply_prompt(quote, request, buyer, vendor_message: str) -> str:
    return f"""You are an AI procurement agent representing {buyer.company_name if buyer else 'the buyer'}. A vendor sent this message:

VENDOR MESSAGE: "{vendor_message}"

PROCUREMENT REQUEST:
- Product: {request.product_name}
- Quantity: {request.quantity} {request.unit}
- Max Budget: {_money(request.max_budget)}
- Urgency: {request.urgency}

CURRENT QUOTE:
- Total Price: {_money(quote.total_price)}
- Delivery: {_when(quote.delivery_date)}

Your goal: get the best deal while keeping a good vendor relationship.

Respond in JSON format:
{{
  "message": "your response",
  "proposedChanges": {{
    "totalPrice": 900.00
  }}
}}
Use an empty object for proposedChanges if nothing changes."""


def fallback_outreach(request, vendor) -> str:
    return (
        f"Dear {vendor.name},\n\n"
        f"We are interested in procuring {request.quantity} {request.unit} of {request.product_name}. "
        f"Please provide your best quote for delivery by {_when(request.delivery_date)}.\n\n"
        f"Thank you."
    )


class NegotiationAgent:
    """Generates outreach and negotiation turns with a bounded wait per call."""

    def __init__(self, generator: TextGenerator, timeout: float = 20.0):
        self.generator = generator
        self.timeout = timeout

    async def _generate(self, prompt: str) -> Optional[str]:
        """Return generated text, or None when the generator fails or stalls."""
        try:
            return await asyncio.wait_for(
                self.generator.generate(prompt, system=NEGOTIATION_INSTRUCTIONS),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Text generation timed out after {self.timeout}s")
        except Exception as e:
            logger.warning(f"Text generation failed: {e}")
        return None

    async def generate_outreach(self, request, vendor, buyer=None) -> str:
        text = await self._generate(build_outreach_prompt(request, vendor, buyer))
        if not text:
            return fallback_outreach(request, vendor)
        return text

    async def respond_as_vendor(self, quote, request, vendor, buyer, buyer_message: str) -> NegotiationReply:
        text = await self._generate(build_vendor_reply_prompt(quote, request, vendor, buyer, buyer_message))
        return parse_negotiation_reply(text, VENDOR_FALLBACK_MESSAGE)

    async def respond_as_buyer(self, quote, request, buyer, vendor_message: str) -> NegotiationReply:
        text = await self._generate(build_buyer_reply_prompt(quote, request, buyer, vendor_message))
        return parse_negotiation_reply(text, BUYER_FALLBACK_MESSAGE)


def create_negotiation_agent(
    generator: TextGenerator,
    settings: Optional[Settings] = None,
) -> NegotiationAgent:
    """Create and configure the Negotiation Agent.

    Args:
        generator: text generation backend
        settings: supplies the per-call timeout

    Returns:
        Configured NegotiationAgent
    """
    settings = settings or default_settings
    return NegotiationAgent(generator, timeout=settings.generation_timeout_seconds)
