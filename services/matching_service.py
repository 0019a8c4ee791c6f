"""
Vendor Matching Service
=======================
Finds the vendors that can serve a procurement request, contacts each with
generated outreach and records their simulated first offer as a quote.

Usage:
    from services.matching_service import VendorMatchingService

    matching = VendorMatchingService(db, agent)
    result = await matching.match_and_contact_vendors(request_id)
"""

import asyncio
import logging
import random
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from agents.config import Settings, settings as default_settings
from agents.negotiation import NegotiationAgent
from database.models import Buyer, ProcurementRequest, Quote, Vendor
from services.exceptions import StateTransitionError
from services.lifecycle import is_terminal_request
from services.pricing import PricedOffer, price_offer, vendor_notes
from services.procurement_service import ProcurementService
from services.quote_service import QuoteService
from services.vendor_service import VendorService

logger = logging.getLogger(__name__)


@dataclass
class VendorContactResult:
    """Outcome of contacting one vendor."""
    vendor_id: str
    vendor_name: str
    quote_id: Optional[str] = None
    outreach_message: Optional[str] = None
    interested: Optional[bool] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MatchResult:
    """Complete matching run for one request."""
    request_id: str
    category: Optional[str]
    results: List[VendorContactResult] = field(default_factory=list)

    @property
    def contacted(self) -> int:
        return len(self.results)

    @property
    def failures(self) -> List[VendorContactResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def quote_ids(self) -> List[str]:
        return [r.quote_id for r in self.results if r.quote_id]

    def to_dict(self) -> dict:
        return asdict(self)


class VendorMatchingService:
    """
    Vendor matching for procurement requests.

    Eligibility is an exact match of the request category against the
    vendor's categories. One vendor failing does not stop the others.
    """

    def __init__(
        self,
        db: Session,
        agent: NegotiationAgent,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.agent = agent
        self.settings = settings or default_settings
        self.rng = rng or random.Random()
        self.requests = ProcurementService(db)
        self.quotes = QuoteService(db, self.settings)
        self.vendors = VendorService(db)

    def find_eligible_vendors(self, request: ProcurementRequest) -> List[Vendor]:
        if not request.category:
            return []
        return self.vendors.get_vendors_by_category(request.category)

    async def match_and_contact_vendors(self, request_id: str) -> MatchResult:
        """
        Contact every eligible vendor and store one quote per vendor.

        Outreach is generated concurrently on the event loop. Session work
        runs in a worker thread so other requests are not stalled, and
        quotes are stored one at a time.

        Raises:
            NotFoundError: request does not exist
            StateTransitionError: request is completed or cancelled
        """
        request, buyer, vendors = await asyncio.to_thread(self._load_request_and_vendors, request_id)

        result = MatchResult(request_id=request.id, category=request.category)
        if not vendors:
            return result

        outreach = await asyncio.gather(
            *(self.agent.generate_outreach(request, vendor, buyer) for vendor in vendors),
            return_exceptions=True,
        )

        await asyncio.to_thread(self._store_quotes, request, vendors, outreach, result)

        logger.info(
            f"Vendor matching complete for {result.request_id}: "
            f"{len(result.quote_ids)} quotes, {len(result.failures)} failures"
        )
        return result

    def _load_request_and_vendors(self, request_id: str) -> Tuple[ProcurementRequest, Optional[Buyer], List[Vendor]]:
        request = self.requests.require_request(request_id)
        if is_terminal_request(request.status):
            raise StateTransitionError(f"Request {request.id} is {request.status}; vendor matching is closed")

        vendors = self.find_eligible_vendors(request)
        logger.info(f"Found {len(vendors)} vendors for category: {request.category}")
        return request, request.buyer, vendors

    def _store_quotes(
        self,
        request: ProcurementRequest,
        vendors: List[Vendor],
        outreach: List,
        result: MatchResult,
    ) -> None:
        for vendor, message in zip(vendors, outreach):
            contact = VendorContactResult(vendor_id=vendor.id, vendor_name=vendor.name)
            result.results.append(contact)

            if isinstance(message, BaseException):
                logger.error(f"Error contacting vendor {vendor.name}: {message}")
                contact.error = str(message) or type(message).__name__
                continue

            contact.outreach_message = message
            try:
                offer = price_offer(
                    request,
                    vendor,
                    rng=self.rng,
                    validity_days=self.settings.quote_validity_days,
                    default_lead_time_days=self.settings.default_lead_time_days,
                )
                quote = self._create_vendor_quote(request, vendor, offer)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Error creating quote for vendor {contact.vendor_name}: {e}", exc_info=True)
                contact.error = str(e) or type(e).__name__
                continue

            contact.quote_id = quote.id
            contact.interested = offer.interested
            logger.info(f"Quote created for vendor {contact.vendor_name}: {quote.id}")

    def _create_vendor_quote(self, request: ProcurementRequest, vendor: Vendor, offer: PricedOffer) -> Quote:
        return self.quotes.create_quote({
            'request_id': request.id,
            'vendor_id': vendor.id,
            'unit_price': offer.unit_price,
            'total_price': offer.total_price,
            'delivery_date': offer.delivery_date,
            'payment_terms': vendor.payment_terms,
            'notes': vendor_notes(vendor),
            'valid_until': offer.valid_until,
        })
