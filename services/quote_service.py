"""
Quote service: quote creation, status changes and negotiation messages.

A negotiation message is always written before the quote patch it carries,
and both go out in the same commit.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from agents.config import Settings, settings as default_settings
from database.models import NegotiationMessage, Quote, new_id
from services.exceptions import NotFoundError, StateTransitionError, ValidationError
from services.lifecycle import (
    QuoteStatus,
    Sender,
    ensure_quote_transition,
    is_terminal_quote,
    is_terminal_request,
)
from services.procurement_service import ProcurementService, parse_date, parse_datetime
from services.vendor_service import VendorService

logger = logging.getLogger(__name__)

# Proposed-change keys (camelCase or snake_case) -> Quote attribute
PROPOSABLE_FIELDS = {
    'unitPrice': 'unit_price',
    'unit_price': 'unit_price',
    'totalPrice': 'total_price',
    'total_price': 'total_price',
    'deliveryDate': 'delivery_date',
    'delivery_date': 'delivery_date',
    'validUntil': 'valid_until',
    'valid_until': 'valid_until',
    'paymentTerms': 'payment_terms',
    'payment_terms': 'payment_terms',
    'notes': 'notes',
}

PRICE_FIELDS = ('unit_price', 'total_price')


def _parse_price(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not math.isfinite(price):
        raise ValidationError(f"{key} must be a finite number")
    if price < 0:
        raise ValidationError(f"{key} must not be negative")
    return price


def normalize_proposed_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map proposed changes onto Quote attributes with typed values.

    Unknown keys and empty dates are skipped. Raises ValidationError for
    values that cannot be coerced to the field's type, including prices
    that are negative or not finite.
    """
    updates = {}
    for key, value in (changes or {}).items():
        field = PROPOSABLE_FIELDS.get(key)
        if field is None:
            logger.warning(f"Ignoring unknown proposed change '{key}'")
            continue

        if field in PRICE_FIELDS:
            updates[field] = _parse_price(value, key)
        elif field in ('delivery_date', 'valid_until'):
            parse = parse_date if field == 'delivery_date' else parse_datetime
            parsed = parse(value, key)
            if parsed is None:
                logger.warning(f"Ignoring empty proposed change '{key}'")
                continue
            updates[field] = parsed
        else:
            updates[field] = '' if value is None else str(value)
    return updates


class QuoteService:
    """Service for quotes and the negotiation messages attached to them"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.requests = ProcurementService(db)

    def create_quote(self, data: Dict[str, Any]) -> Quote:
        """
        Store a vendor quote in status `pending`.

        Storing the first quote moves its request from `open` to `negotiating`.
        """
        for field, api_name in (('request_id', 'requestId'), ('vendor_id', 'vendorId'),
                                ('unit_price', 'unitPrice'), ('total_price', 'totalPrice')):
            if data.get(field) in (None, ''):
                raise ValidationError(f"Missing required field: {api_name}")

        request = self.requests.require_request(data['request_id'])
        vendor = VendorService(self.db).require_vendor(data['vendor_id'])

        if is_terminal_request(request.status):
            raise StateTransitionError(f"Request {request.id} is {request.status} and no longer accepts quotes")

        unit_price = _parse_price(data['unit_price'], 'unitPrice')
        total_price = _parse_price(data['total_price'], 'totalPrice')
        valid_until = parse_datetime(data.get('valid_until'), 'validUntil') or (
            datetime.utcnow() + timedelta(days=self.settings.quote_validity_days)
        )

        quote = Quote(
            id=new_id("quote"),
            request_id=request.id,
            vendor_id=vendor.id,
            unit_price=unit_price,
            total_price=total_price,
            original_unit_price=unit_price,
            original_total_price=total_price,
            delivery_date=parse_date(data.get('delivery_date'), 'deliveryDate'),
            payment_terms=data.get('payment_terms') or vendor.payment_terms,
            notes=data.get('notes') or '',
            status=QuoteStatus.PENDING.value,
            valid_until=valid_until,
        )
        self.db.add(quote)
        self.requests.mark_negotiating(request)
        self.db.commit()
        self.db.refresh(quote)

        logger.info(f"Quote created: {quote.id} for request {request.id} from vendor {vendor.id}")
        return quote

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        return self.db.query(Quote).filter(Quote.id == quote_id).first()

    def require_quote(self, quote_id: str) -> Quote:
        quote = self.get_quote(quote_id)
        if not quote:
            raise NotFoundError(f"Quote {quote_id} not found")
        return quote

    def list_quotes(
        self,
        request_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
    ) -> List[Quote]:
        q = self.db.query(Quote)

        if request_id:
            q = q.filter(Quote.request_id == request_id)

        if vendor_id:
            q = q.filter(Quote.vendor_id == vendor_id)

        return q.order_by(Quote.created_at).all()

    def update_quote_status(self, quote_id: str, status: str) -> Quote:
        """Reject, counter or reopen a quote. Acceptance goes through OrderService."""
        quote = self.require_quote(quote_id)
        try:
            target = QuoteStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown quote status '{status}'")

        if target is QuoteStatus.ACCEPTED:
            raise ValidationError("Quotes are accepted by placing an order")

        ensure_quote_transition(quote.status, target.value)
        logger.info(f"Quote {quote.id}: {quote.status} -> {target.value}")
        quote.status = target.value
        quote.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(quote)
        return quote

    def record_negotiation_message(
        self,
        quote_id: str,
        sender: str,
        message: str,
        proposed_changes: Optional[Dict[str, Any]] = None,
    ) -> NegotiationMessage:
        """
        Append a message to the quote's negotiation and apply its proposed changes.

        Empty `proposed_changes` leave the quote untouched. Otherwise each known
        field is overwritten (prices clamped to the allowed drift), the quote
        becomes `countered` and an open request moves to `negotiating`.
        """
        quote = self.require_quote(quote_id)
        try:
            sender = Sender(sender)
        except ValueError:
            raise ValidationError(f"Unknown sender '{sender}'")
        if not message or not str(message).strip():
            raise ValidationError("Missing required field: message")

        changes = dict(proposed_changes or {})
        updates = {}
        if changes:
            if is_terminal_quote(quote.status):
                raise StateTransitionError(f"Quote {quote.id} is {quote.status} and cannot be changed")
            updates = normalize_proposed_changes(changes)

        try:
            negotiation = NegotiationMessage(
                id=new_id("msg"),
                quote_id=quote.id,
                sender=sender.value,
                message=str(message),
                proposed_changes=changes,
                sequence=self._next_sequence(quote.id),
                timestamp=datetime.utcnow(),
            )
            self.db.add(negotiation)
            self.db.flush()

            if updates:
                self._apply_changes(quote, updates)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(negotiation)
        logger.info(
            f"Negotiation message {negotiation.id} on quote {quote.id} from {sender.value}"
            + (f" applied {sorted(updates)}" if updates else "")
        )
        return negotiation

    def list_negotiations(self, quote_id: str) -> List[NegotiationMessage]:
        self.require_quote(quote_id)
        return (
            self.db.query(NegotiationMessage)
            .filter(NegotiationMessage.quote_id == quote_id)
            .order_by(NegotiationMessage.timestamp, NegotiationMessage.sequence)
            .all()
        )

    def _next_sequence(self, quote_id: str) -> int:
        current = (
            self.db.query(func.max(NegotiationMessage.sequence))
            .filter(NegotiationMessage.quote_id == quote_id)
            .scalar()
        )
        return (current or 0) + 1

    def _apply_changes(self, quote: Quote, updates: Dict[str, Any]) -> None:
        for field, value in updates.items():
            if field in PRICE_FIELDS:
                value = self._clamp_price(quote, field, value)
            setattr(quote, field, value)

        ensure_quote_transition(quote.status, QuoteStatus.COUNTERED.value)
        quote.status = QuoteStatus.COUNTERED.value
        quote.updated_at = datetime.utcnow()
        self.requests.mark_negotiating(quote.request)

    def _clamp_price(self, quote: Quote, field: str, value: float) -> float:
        """Keep a proposed price within the allowed drift from the vendor's first offer."""
        original = getattr(quote, f"original_{field}")
        drift = self.settings.max_price_drift_percent
        if not original or drift is None or drift < 0:
            return value

        low = round(original * (1 - drift / 100), 2)
        high = round(original * (1 + drift / 100), 2)
        clamped = min(max(value, low), high)
        if clamped != value:
            logger.warning(
                f"Quote {quote.id}: proposed {field} {value} outside [{low}, {high}], clamped to {clamped}"
            )
        return clamped
