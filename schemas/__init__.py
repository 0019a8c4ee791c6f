"""Schemas package for request/response models."""

from .procurement import (
    CamelModel,
    MatchVendorsResponse,
    NegotiationMessageOut,
    OrderOut,
    ProcurementRequestDetail,
    ProcurementRequestOut,
    QuoteDetail,
    QuoteOut,
    VendorContactOut,
)

__all__ = [
    "CamelModel",
    "MatchVendorsResponse",
    "NegotiationMessageOut",
    "OrderOut",
    "ProcurementRequestDetail",
    "ProcurementRequestOut",
    "QuoteDetail",
    "QuoteOut",
    "VendorContactOut",
]
