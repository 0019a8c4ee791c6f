"""
Procurement request service: creation, lookup and request status transitions.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import Order, ProcurementRequest, new_id
from services.buyer_service import BuyerService
from services.exceptions import NotFoundError, StateTransitionError, ValidationError
from services.lifecycle import RequestStatus, Urgency, ensure_request_transition

logger = logging.getLogger(__name__)

# snake_case attribute -> camelCase API name
REQUIRED_REQUEST_FIELDS = {
    'buyer_id': 'buyerId',
    'product_name': 'productName',
    'quantity': 'quantity',
    'unit': 'unit',
}


def parse_date(value: Any, field: str) -> Optional[date]:
    """Accept a date, a datetime or an ISO string."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
        return parse_datetime(value, field).date()
    raise ValidationError(f"{field} must be an ISO date")


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """Accept a datetime, a date or an ISO string; aware values become naive UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"{field} must be an ISO date")
    else:
        raise ValidationError(f"{field} must be an ISO date")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class ProcurementService:
    """Service for procurement requests and their lifecycle"""

    def __init__(self, db: Session):
        self.db = db

    def create_request(self, data: Dict[str, Any]) -> ProcurementRequest:
        """
        Create a new procurement request in status `open`.

        Raises:
            ValidationError: required fields missing, quantity not positive
                or unknown urgency
            NotFoundError: buyer does not exist
        """
        missing = [api_name for field, api_name in REQUIRED_REQUEST_FIELDS.items()
                   if data.get(field) in (None, '')]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        try:
            quantity = int(data['quantity'])
        except (TypeError, ValueError):
            raise ValidationError("quantity must be an integer")
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0")

        urgency = data.get('urgency') or Urgency.MEDIUM.value
        try:
            urgency = Urgency(urgency).value
        except ValueError:
            raise ValidationError(f"urgency must be one of: {', '.join(u.value for u in Urgency)}")

        BuyerService(self.db).require_buyer(data['buyer_id'])

        now = datetime.utcnow()
        request = ProcurementRequest(
            id=new_id("req"),
            buyer_id=data['buyer_id'],
            product_name=data['product_name'],
            category=data.get('category'),
            quantity=quantity,
            unit=data['unit'],
            specifications=dict(data.get('specifications') or {}),
            delivery_date=parse_date(data.get('delivery_date'), 'deliveryDate'),
            delivery_address=data.get('delivery_address'),
            max_budget=data.get('max_budget'),
            status=RequestStatus.OPEN.value,
            urgency=urgency,
            created_at=now,
            updated_at=now,
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)

        logger.info(f"Procurement request created: {request.id} (buyer {request.buyer_id})")
        return request

    def get_request(self, request_id: str) -> Optional[ProcurementRequest]:
        return self.db.query(ProcurementRequest).filter(ProcurementRequest.id == request_id).first()

    def require_request(self, request_id: str) -> ProcurementRequest:
        request = self.get_request(request_id)
        if not request:
            raise NotFoundError(f"Request {request_id} not found")
        return request

    def list_requests(
        self,
        status: Optional[str] = None,
        buyer_id: Optional[str] = None,
    ) -> List[ProcurementRequest]:
        q = self.db.query(ProcurementRequest)

        if buyer_id:
            q = q.filter(ProcurementRequest.buyer_id == buyer_id)

        if status:
            q = q.filter(ProcurementRequest.status == status)

        return q.order_by(ProcurementRequest.created_at.desc()).all()

    def transition(self, request: ProcurementRequest, target: RequestStatus) -> ProcurementRequest:
        """Move `request` to `target`. The caller commits."""
        ensure_request_transition(request.status, target.value)
        logger.info(f"Request {request.id}: {request.status} -> {target.value}")
        request.status = target.value
        request.updated_at = datetime.utcnow()
        return request

    def mark_negotiating(self, request: ProcurementRequest) -> None:
        """First quote or first counter-offer moves an open request to negotiating."""
        if request.status == RequestStatus.OPEN.value:
            self.transition(request, RequestStatus.NEGOTIATING)

    def cancel_request(self, request_id: str) -> ProcurementRequest:
        request = self.require_request(request_id)
        self.transition(request, RequestStatus.CANCELLED)
        self.db.commit()
        self.db.refresh(request)
        return request

    def delete_request(self, request_id: str) -> None:
        """Delete a request with its quotes and negotiation history."""
        request = self.require_request(request_id)

        has_orders = self.db.query(Order).filter(Order.request_id == request_id).count() > 0
        if has_orders:
            raise StateTransitionError(f"Request {request_id} has orders and cannot be deleted")

        self.db.delete(request)
        self.db.commit()
        logger.info(f"Procurement request deleted: {request_id}")
