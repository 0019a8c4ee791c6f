"""
Buyer service. Buyers are not modified after creation.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import Buyer, new_id
from services.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class BuyerService:

    def __init__(self, db: Session):
        self.db = db

    def get_all_buyers(self) -> List[Buyer]:
        return self.db.query(Buyer).order_by(Buyer.company_name).all()

    def get_buyer_by_id(self, buyer_id: str) -> Optional[Buyer]:
        return self.db.query(Buyer).filter(Buyer.id == buyer_id).first()

    def require_buyer(self, buyer_id: str) -> Buyer:
        buyer = self.get_buyer_by_id(buyer_id)
        if not buyer:
            raise NotFoundError(f"Buyer {buyer_id} not found")
        return buyer

    def create_buyer(self, data: Dict[str, Any]) -> Buyer:
        if not data.get('company_name'):
            raise ValidationError("Missing required field: companyName")

        buyer = Buyer(
            id=new_id("buyer"),
            company_name=data['company_name'],
            email=data.get('email'),
            phone=data.get('phone'),
            address=data.get('address'),
            industry=data.get('industry'),
            credit_rating=data.get('credit_rating') or "B",
            payment_history=list(data.get('payment_history') or []),
        )
        self.db.add(buyer)
        self.db.commit()
        self.db.refresh(buyer)

        logger.info(f"Buyer created: {buyer.id} ({buyer.company_name})")
        return buyer
