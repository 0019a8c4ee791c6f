"""
Pricing heuristics used to synthesize a believable first offer from a vendor.

In production the vendor would answer through a portal or email; until then
the offer is simulated from a base price table, a volume discount and a
multiplier for the vendor's rating.
"""

import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

BASE_PRICES = {
    'tomato sauce': 2.50,
    'ketchup': 3.00,
    'mustard': 2.80,
    'mayonnaise': 3.20,
    'barbecue sauce': 3.50,
}
DEFAULT_BASE_PRICE = 2.00

# Ordered high to low; first threshold the rating reaches wins
RATING_MULTIPLIERS = [
    (4.8, 1.10),
    (4.5, 1.05),
    (4.0, 1.00),
]
LOW_RATING_MULTIPLIER = 0.95

INTEREST_PRICE_PER_UNIT = 2.5


@dataclass
class PricedOffer:
    """Simulated vendor offer for one procurement request."""
    unit_price: float
    total_price: float
    delivery_date: date
    valid_until: datetime
    interested: bool


def base_price(product_name: Optional[str]) -> float:
    return BASE_PRICES.get((product_name or '').strip().lower(), DEFAULT_BASE_PRICE)


def volume_factor(quantity: int) -> float:
    if quantity > 1000:
        return 0.90
    if quantity > 500:
        return 0.95
    return 1.0


def vendor_multiplier(rating: Optional[float]) -> float:
    """Higher rated vendors can charge more"""
    rating = rating or 0.0
    for threshold, multiplier in RATING_MULTIPLIERS:
        if rating >= threshold:
            return multiplier
    return LOW_RATING_MULTIPLIER


def quote_unit_price(product_name: Optional[str], quantity: int, rating: Optional[float]) -> float:
    return round(base_price(product_name) * volume_factor(quantity) * vendor_multiplier(rating), 2)


def quote_total_price(unit_price: float, quantity: int) -> float:
    return round(unit_price * quantity, 2)


def delivery_date_for(
    requested: Optional[date],
    rating: Optional[float],
    rng: random.Random,
    default_lead_time_days: int = 7,
    today: Optional[date] = None,
) -> date:
    """Top rated vendors meet the requested date, others slip 1-3 days."""
    if requested is None:
        requested = (today or date.today()) + timedelta(days=default_lead_time_days)
    if (rating or 0.0) > 4.5:
        return requested
    return requested + timedelta(days=rng.randint(1, 3))


def is_vendor_interested(quantity: int, min_order_value: Optional[float]) -> bool:
    """Advisory only: the order looks big enough for the vendor's minimum."""
    return quantity * INTEREST_PRICE_PER_UNIT >= (min_order_value or 0)


def _plain_number(value) -> str:
    value = float(value or 0)
    return str(int(value)) if value.is_integer() else str(value)


def vendor_notes(vendor) -> str:
    notes = [
        f"Trusted supplier with {_plain_number(vendor.rating)}/5 rating",
        f"Minimum order value: ${_plain_number(vendor.min_order_value)}",
        f"Payment terms: {vendor.payment_terms}",
        'Verified vendor' if vendor.verified else 'Verification pending',
    ]
    return '. '.join(notes)


def price_offer(
    request,
    vendor,
    rng: Optional[random.Random] = None,
    validity_days: int = 7,
    default_lead_time_days: int = 7,
    now: Optional[datetime] = None,
) -> PricedOffer:
    """Build the simulated offer `vendor` makes against `request`."""
    rng = rng or random.Random()
    now = now or datetime.utcnow()

    unit_price = quote_unit_price(request.product_name, request.quantity, vendor.rating)
    return PricedOffer(
        unit_price=unit_price,
        total_price=quote_total_price(unit_price, request.quantity),
        delivery_date=delivery_date_for(
            request.delivery_date,
            vendor.rating,
            rng,
            default_lead_time_days=default_lead_time_days,
            today=now.date(),
        ),
        valid_until=now + timedelta(days=validity_days),
        interested=is_vendor_interested(request.quantity, vendor.min_order_value),
    )
