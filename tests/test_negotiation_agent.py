import json
from datetime import date
from types import SimpleNamespace

import pytest

from agents.negotiation import NegotiationAgent, parse_negotiation_reply
from agents.negotiation.agent import BUYER_FALLBACK_MESSAGE, VENDOR_FALLBACK_MESSAGE
from agents.text_generator import AzureOpenAITextGenerator, TextGenerator
from services.exceptions import ExternalGenerationError
from tests.conftest import FakeTextGenerator

REQUEST = SimpleNamespace(
    product_name="Ketchup",
    quantity=1000,
    unit="bottles",
    delivery_date=date(2026, 12, 1),
    max_budget=3500.0,
    urgency="high",
)
VENDOR = SimpleNamespace(name="Fresh Ingredients Co", rating=4.5, min_order_value=500.0, payment_terms="NET 30")
BUYER = SimpleNamespace(company_name="McDonald's Corp")
QUOTE = SimpleNamespace(total_price=3000.0, delivery_date=date(2026, 12, 1))


# ========== REPLY PARSING ==========


def test_parse_plain_json():
    reply = parse_negotiation_reply(
        json.dumps({"message": "We can do $2,850.", "proposedChanges": {"totalPrice": 2850}}),
        VENDOR_FALLBACK_MESSAGE,
    )

    assert reply.message == "We can do $2,850."
    assert reply.proposed_changes == {"totalPrice": 2850}
    assert reply.fallback is False


def test_parse_fenced_json():
    text = '```json\n{"message": "Deal.", "proposed_changes": {"deliveryDate": "2026-11-28"}}\n```'

    reply = parse_negotiation_reply(text, VENDOR_FALLBACK_MESSAGE)

    assert reply.message == "Deal."
    assert reply.proposed_changes == {"deliveryDate": "2026-11-28"}


@pytest.mark.parametrize("text", [
    None,
    "",
    "Sure, happy to help!",
    "[1, 2, 3]",
    '{"message": 42}',
    '{"message": "   "}',
    '{"proposedChanges": {"totalPrice": 1}}',
])
def test_parse_falls_back_on_unusable_output(text):
    reply = parse_negotiation_reply(text, BUYER_FALLBACK_MESSAGE)

    assert reply.message == BUYER_FALLBACK_MESSAGE
    assert reply.proposed_changes == {}
    assert reply.fallback is True


def test_parse_ignores_non_object_changes():
    reply = parse_negotiation_reply('{"message": "ok", "proposedChanges": "lower"}', VENDOR_FALLBACK_MESSAGE)

    assert reply.message == "ok"
    assert reply.proposed_changes == {}


# ========== AGENT ==========


@pytest.mark.asyncio
async def test_vendor_reply_uses_generated_json():
    generator = FakeTextGenerator(reply='{"message": "Counter at 2900", "proposedChanges": {"totalPrice": 2900}}')
    agent = NegotiationAgent(generator, timeout=1)

    reply = await agent.respond_as_vendor(QUOTE, REQUEST, VENDOR, BUYER, "Can you do 2800?")

    assert reply.message == "Counter at 2900"
    assert reply.proposed_changes == {"totalPrice": 2900}
    assert "Can you do 2800?" in generator.prompts[0]
    assert "Fresh Ingredients Co" in generator.prompts[0]


@pytest.mark.asyncio
async def test_buyer_reply_falls_back_when_generation_fails():
    agent = NegotiationAgent(FakeTextGenerator(error=ExternalGenerationError("boom")), timeout=1)

    reply = await agent.respond_as_buyer(QUOTE, REQUEST, BUYER, "Our best price is 3000")

    assert reply.message == BUYER_FALLBACK_MESSAGE
    assert reply.proposed_changes == {}


@pytest.mark.asyncio
async def test_slow_generator_times_out_to_fallback():
    agent = NegotiationAgent(FakeTextGenerator(reply='{"message": "late"}', delay=1.0), timeout=0.05)

    reply = await agent.respond_as_vendor(QUOTE, REQUEST, VENDOR, BUYER, "Hello?")

    assert reply.message == VENDOR_FALLBACK_MESSAGE


@pytest.mark.asyncio
async def test_outreach_fallback_letter():
    agent = NegotiationAgent(FakeTextGenerator(reply=None), timeout=1)

    letter = await agent.generate_outreach(REQUEST, VENDOR, BUYER)

    assert letter == (
        "Dear Fresh Ingredients Co,\n\n"
        "We are interested in procuring 1000 bottles of Ketchup. "
        "Please provide your best quote for delivery by 2026-12-01.\n\n"
        "Thank you."
    )


@pytest.mark.asyncio
async def test_outreach_uses_generated_text():
    agent = NegotiationAgent(FakeTextGenerator(reply="Dear team, please quote."), timeout=1)

    assert await agent.generate_outreach(REQUEST, VENDOR, BUYER) == "Dear team, please quote."


@pytest.mark.asyncio
async def test_unconfigured_azure_generator_raises():
    generator = AzureOpenAITextGenerator(
        endpoint=None,
        api_key=None,
        deployment_name="gpt-4o-mini",
        api_version="2024-02-15-preview",
    )

    assert generator.configured is False
    with pytest.raises(ExternalGenerationError):
        await generator.generate("hello")


def test_backend_without_generate_cannot_be_built():
    class SilentGenerator(TextGenerator):
        pass

    with pytest.raises(TypeError):
        SilentGenerator()
