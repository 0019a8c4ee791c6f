"""
Pydantic models for the procurement marketplace API.
JSON field names are camelCase; snake_case is accepted on input as well.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from services.lifecycle import QuoteStatus, Sender


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        allow_inf_nan=False,
    )


# ========== BUYERS & VENDORS ==========


class BuyerCreate(CamelModel):
    company_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    industry: Optional[str] = None
    credit_rating: str = "B"
    payment_history: List[Dict[str, Any]] = []


class BuyerOut(CamelModel):
    id: str
    company_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    industry: Optional[str] = None
    credit_rating: Optional[str] = None
    payment_history: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[datetime] = None


class VendorCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    categories: List[str] = []
    rating: float = Field(0.0, ge=0, le=5)
    verified: bool = False
    min_order_value: float = Field(0.0, ge=0)
    payment_terms: str = "30 days"


class VendorOut(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    categories: List[str] = []
    rating: float = 0.0
    verified: bool = False
    min_order_value: float = 0.0
    payment_terms: Optional[str] = None
    created_at: Optional[datetime] = None


# ========== PROCUREMENT REQUESTS ==========


class ProcurementRequestCreate(CamelModel):
    """Required fields are checked by the service so they surface as 400s."""
    model_config = ConfigDict(extra="ignore")

    buyer_id: Optional[str] = None
    product_name: Optional[str] = None
    category: Optional[str] = None
    quantity: Optional[int] = None
    unit: Optional[str] = None
    specifications: Dict[str, Any] = {}
    delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    max_budget: Optional[float] = None
    urgency: Optional[str] = None


class NegotiationMessageOut(CamelModel):
    id: str
    quote_id: str
    sender: Sender
    message: str
    proposed_changes: Dict[str, Any] = {}
    sequence: int
    timestamp: datetime

    @computed_field(alias="senderDisplayName")
    @property
    def sender_display_name(self) -> str:
        return self.sender.display_name


class QuoteOut(CamelModel):
    id: str
    request_id: str
    vendor_id: str
    unit_price: float
    total_price: float
    original_unit_price: Optional[float] = None
    original_total_price: Optional[float] = None
    delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    status: QuoteStatus
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    vendor: Optional[VendorOut] = None


class QuoteDetail(QuoteOut):
    negotiations: List[NegotiationMessageOut] = []


class ProcurementRequestOut(CamelModel):
    id: str
    buyer_id: str
    product_name: str
    category: Optional[str] = None
    quantity: int
    unit: str
    specifications: Optional[Dict[str, Any]] = None
    delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    max_budget: Optional[float] = None
    status: str
    urgency: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProcurementRequestDetail(ProcurementRequestOut):
    buyer: Optional[BuyerOut] = None
    quotes: List[QuoteOut] = []


# ========== QUOTES & NEGOTIATIONS ==========


class QuoteCreate(CamelModel):
    request_id: str
    vendor_id: str
    unit_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[datetime] = None


class QuoteStatusUpdate(CamelModel):
    status: QuoteStatus


class NegotiationMessageCreate(CamelModel):
    quote_id: str
    sender: Sender
    message: str = Field(..., min_length=1)
    proposed_changes: Dict[str, Any] = {}


class AINegotiateRequest(CamelModel):
    message: str = Field(..., min_length=1)
    sender: Sender


# ========== ORDERS ==========


class OrderCreate(CamelModel):
    """Orders are derived from the referenced quote; other fields are ignored."""
    model_config = ConfigDict(extra="ignore")

    quote_id: str


class OrderStatusUpdate(CamelModel):
    status: str


class OrderOut(CamelModel):
    id: str
    request_id: str
    quote_id: str
    buyer_id: str
    vendor_id: str
    final_price: float
    delivery_date: Optional[date] = None
    payment_terms: Optional[str] = None
    status: str
    order_date: Optional[datetime] = None
    tracking_info: Optional[Dict[str, Any]] = None


# ========== AI ==========


class VendorContactOut(CamelModel):
    vendor: str
    vendor_id: str
    quote_id: Optional[str] = None
    interested: Optional[bool] = None
    outreach_message: Optional[str] = None
    error: Optional[str] = None


class MatchVendorsResponse(CamelModel):
    success: bool
    message: str
    results: List[VendorContactOut]
