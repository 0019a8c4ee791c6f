"""
SQLAlchemy ORM models for the procurement marketplace.
Buyers raise procurement requests, vendors answer with quotes, quotes are
negotiated through messages and an accepted quote becomes an order.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .config import Base


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class Buyer(Base):
    """Organization issuing procurement requests"""

    __tablename__ = "buyers"

    id = Column(String(50), primary_key=True, default=lambda: new_id("buyer"))
    company_name = Column(String(200), nullable=False)

    # Contact Information
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(String(500))
    industry = Column(String(100))  # restaurant, retail, manufacturing

    credit_rating = Column(String(10), default="B")
    payment_history = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)

    requests = relationship("ProcurementRequest", back_populates="buyer")

    def __repr__(self):
        return f"<Buyer {self.id}: {self.company_name}>"


class Vendor(Base):
    """Vendor able to quote in one or more categories"""

    __tablename__ = "vendors"

    id = Column(String(50), primary_key=True, default=lambda: new_id("vendor"))
    name = Column(String(200), nullable=False)

    # Contact Information
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(String(500))

    categories = Column(JSON, default=list)  # e.g. ["food-ingredients", "packaging"]
    rating = Column(Float, default=0.0)  # 0-5
    verified = Column(Boolean, default=False)

    # Business Terms
    min_order_value = Column(Float, default=0.0)
    payment_terms = Column(String(100), default="30 days")

    created_at = Column(DateTime, default=datetime.utcnow)

    quotes = relationship("Quote", back_populates="vendor")

    def __repr__(self):
        return f"<Vendor {self.id}: {self.name}>"


class ProcurementRequest(Base):
    """A buyer's need for a product, quantity and delivery window"""

    __tablename__ = "procurement_requests"

    id = Column(String(50), primary_key=True, default=lambda: new_id("req"))
    buyer_id = Column(String(50), ForeignKey("buyers.id"), nullable=False)

    product_name = Column(String(200), nullable=False)
    category = Column(String(100))
    quantity = Column(Integer, nullable=False)
    unit = Column(String(50), nullable=False)  # kg, liters, pieces
    specifications = Column(JSON, default=dict)

    delivery_date = Column(Date)
    delivery_address = Column(String(500))
    max_budget = Column(Float)

    status = Column(String(20), nullable=False, default="open")  # open, negotiating, awarded, completed, cancelled
    urgency = Column(String(20), nullable=False, default="medium")  # low, medium, high

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    buyer = relationship("Buyer", back_populates="requests")
    quotes = relationship("Quote", back_populates="request", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="request")

    def __repr__(self):
        return f"<ProcurementRequest {self.id}: {self.product_name} ({self.status})>"


class Quote(Base):
    """Vendor's priced offer against a procurement request"""

    __tablename__ = "quotes"

    id = Column(String(50), primary_key=True, default=lambda: new_id("quote"))
    request_id = Column(String(50), ForeignKey("procurement_requests.id"), nullable=False)
    vendor_id = Column(String(50), ForeignKey("vendors.id"), nullable=False)

    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    # First offer, the reference point for clamping negotiated prices
    original_unit_price = Column(Float)
    original_total_price = Column(Float)

    delivery_date = Column(Date)
    payment_terms = Column(String(100))
    notes = Column(Text, default="")
    status = Column(String(20), nullable=False, default="pending")  # pending, accepted, rejected, countered
    valid_until = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    request = relationship("ProcurementRequest", back_populates="quotes")
    vendor = relationship("Vendor", back_populates="quotes")
    negotiations = relationship(
        "NegotiationMessage",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by=lambda: (NegotiationMessage.timestamp, NegotiationMessage.sequence),
    )

    def __repr__(self):
        return f"<Quote {self.id}: ${self.total_price} from {self.vendor_id}>"


class NegotiationMessage(Base):
    """One append-only turn in the negotiation of a quote"""

    __tablename__ = "negotiation_messages"

    id = Column(String(50), primary_key=True, default=lambda: new_id("msg"))
    quote_id = Column(String(50), ForeignKey("quotes.id"), nullable=False, index=True)
    sender = Column(String(20), nullable=False)  # buyer, vendor, ai-agent, ai-buyer, ai-vendor
    message = Column(Text, nullable=False)
    proposed_changes = Column(JSON, default=dict)
    sequence = Column(Integer, nullable=False, default=1)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    quote = relationship("Quote", back_populates="negotiations")

    def __repr__(self):
        return f"<NegotiationMessage {self.id}: {self.sender} on {self.quote_id}>"


class Order(Base):
    """Finalized agreement created from an accepted quote"""

    __tablename__ = "orders"

    id = Column(String(50), primary_key=True, default=lambda: new_id("order"))
    request_id = Column(String(50), ForeignKey("procurement_requests.id"), nullable=False)
    quote_id = Column(String(50), ForeignKey("quotes.id"), nullable=False, unique=True)
    buyer_id = Column(String(50), ForeignKey("buyers.id"), nullable=False)
    vendor_id = Column(String(50), ForeignKey("vendors.id"), nullable=False)

    final_price = Column(Float, nullable=False)
    delivery_date = Column(Date)
    payment_terms = Column(String(100))
    status = Column(String(20), nullable=False, default="confirmed")  # confirmed, shipped, delivered, paid, completed
    order_date = Column(DateTime, default=datetime.utcnow)
    tracking_info = Column(JSON, default=dict)

    # Relationships
    request = relationship("ProcurementRequest", back_populates="orders")
    quote = relationship("Quote")

    def __repr__(self):
        return f"<Order {self.id}: ${self.final_price} ({self.status})>"
