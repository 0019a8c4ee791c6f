"""
Order service: turning an accepted quote into an order.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.models import Order, new_id
from services.exceptions import NotFoundError, StateTransitionError, ValidationError
from services.lifecycle import (
    OrderStatus,
    QuoteStatus,
    RequestStatus,
    ensure_quote_transition,
    is_terminal_request,
)
from services.procurement_service import ProcurementService
from services.quote_service import QuoteService

logger = logging.getLogger(__name__)

# Orders only move forward through these statuses
ORDER_FLOW = [s.value for s in OrderStatus]


class OrderService:
    """Service for managing orders"""

    def __init__(self, db: Session):
        self.db = db

    def accept_quote(self, quote_id: str) -> Order:
        """
        Accept a quote and create its order as one unit of work.

        The order takes the quote's current (possibly negotiated) price,
        delivery date and payment terms. The quote becomes `accepted`, other
        open quotes on the same request are rejected and the request is
        `completed`. Nothing is written if any step fails.

        Raises:
            NotFoundError: quote does not exist
            StateTransitionError: the request is already completed or cancelled,
                or the quote is no longer open
        """
        quote = QuoteService(self.db).require_quote(quote_id)
        request = quote.request

        if is_terminal_request(request.status):
            raise StateTransitionError(f"Request {request.id} is already {request.status}")
        ensure_quote_transition(quote.status, QuoteStatus.ACCEPTED.value)

        requests = ProcurementService(self.db)
        try:
            order = Order(
                id=new_id("order"),
                request_id=request.id,
                quote_id=quote.id,
                buyer_id=request.buyer_id,
                vendor_id=quote.vendor_id,
                final_price=quote.total_price,
                delivery_date=quote.delivery_date,
                payment_terms=quote.payment_terms,
                status=OrderStatus.CONFIRMED.value,
                order_date=datetime.utcnow(),
                tracking_info={},
            )
            self.db.add(order)

            quote.status = QuoteStatus.ACCEPTED.value
            quote.updated_at = datetime.utcnow()
            for sibling in request.quotes:
                if sibling.id != quote.id and sibling.status in (
                    QuoteStatus.PENDING.value, QuoteStatus.COUNTERED.value
                ):
                    sibling.status = QuoteStatus.REJECTED.value
                    sibling.updated_at = datetime.utcnow()

            requests.mark_negotiating(request)
            requests.transition(request, RequestStatus.COMPLETED)

            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise StateTransitionError(f"An order already exists for quote {quote_id}")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            f"Order created: {order.id} for request {order.request_id} "
            f"(quote {order.quote_id}, ${order.final_price:.2f})"
        )
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def require_order(self, order_id: str) -> Order:
        order = self.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def list_orders(
        self,
        buyer_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
    ) -> List[Order]:
        q = self.db.query(Order)

        if buyer_id:
            q = q.filter(Order.buyer_id == buyer_id)

        if vendor_id:
            q = q.filter(Order.vendor_id == vendor_id)

        return q.order_by(Order.order_date.desc()).all()

    def update_order_status(self, order_id: str, status: str) -> Order:
        """Advance an order (confirmed -> shipped -> delivered -> paid -> completed)."""
        if status not in ORDER_FLOW:
            raise ValidationError(f"Invalid status. Must be one of: {ORDER_FLOW}")

        order = self.require_order(order_id)
        if ORDER_FLOW.index(status) <= ORDER_FLOW.index(order.status):
            raise StateTransitionError(f"Cannot move order from '{order.status}' to '{status}'")

        order.status = status
        self.db.commit()
        self.db.refresh(order)

        logger.info(f"Order {order.id} status -> {status}")
        return order

