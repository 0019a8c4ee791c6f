"""
Vendor service for vendor directory operations.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import Vendor, new_id
from services.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class VendorService:
    """Service for managing vendors"""

    def __init__(self, db: Session):
        self.db = db

    def get_all_vendors(self) -> List[Vendor]:
        return self.db.query(Vendor).order_by(Vendor.name).all()

    def get_vendor_by_id(self, vendor_id: str) -> Optional[Vendor]:
        return self.db.query(Vendor).filter(Vendor.id == vendor_id).first()

    def require_vendor(self, vendor_id: str) -> Vendor:
        vendor = self.get_vendor_by_id(vendor_id)
        if not vendor:
            raise NotFoundError(f"Vendor {vendor_id} not found")
        return vendor

    def get_vendors_by_category(self, category: str) -> List[Vendor]:
        """
        Vendors whose category list contains `category` exactly.

        Categories are stored as a JSON list, so the match runs in Python
        to behave the same on SQLite and Postgres.
        """
        return [v for v in self.get_all_vendors() if category in (v.categories or [])]

    def create_vendor(self, data: Dict[str, Any]) -> Vendor:
        if not data.get('name'):
            raise ValidationError("Missing required field: name")

        categories = data.get('categories') or []
        if not all(isinstance(c, str) and c for c in categories):
            raise ValidationError("categories must be a list of non-empty strings")

        vendor = Vendor(
            id=new_id("vendor"),
            name=data['name'],
            email=data.get('email'),
            phone=data.get('phone'),
            address=data.get('address'),
            categories=list(categories),
            rating=data.get('rating') or 0.0,
            verified=bool(data.get('verified')),
            min_order_value=data.get('min_order_value') or 0.0,
            payment_terms=data.get('payment_terms') or "30 days",
        )
        self.db.add(vendor)
        self.db.commit()
        self.db.refresh(vendor)

        logger.info(f"Vendor created: {vendor.id} ({vendor.name})")
        return vendor

