import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from agents.config import Settings, get_settings
from agents.negotiation import NegotiationAgent, create_negotiation_agent
from agents.text_generator import TextGenerator, build_text_generator
from database.config import Database, get_db
from database.seed import seed_sample_data
from schemas.procurement import (
    AINegotiateRequest,
    BuyerCreate,
    BuyerOut,
    MatchVendorsResponse,
    NegotiationMessageCreate,
    NegotiationMessageOut,
    OrderCreate,
    OrderOut,
    OrderStatusUpdate,
    ProcurementRequestCreate,
    ProcurementRequestDetail,
    ProcurementRequestOut,
    QuoteCreate,
    QuoteDetail,
    QuoteOut,
    QuoteStatusUpdate,
    VendorContactOut,
    VendorCreate,
    VendorOut,
)
from services.buyer_service import BuyerService
from services.exceptions import ProcurementError
from services.matching_service import VendorMatchingService
from services.negotiation_service import NegotiationService
from services.order_service import OrderService
from services.procurement_service import ProcurementService
from services.quote_service import QuoteService
from services.vendor_service import VendorService

logger = logging.getLogger(__name__)


# ========== DEPENDENCIES ==========


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_text_generator(request: Request) -> TextGenerator:
    return request.app.state.text_generator


def get_negotiation_agent(
    generator: TextGenerator = Depends(get_text_generator),
    settings: Settings = Depends(get_app_settings),
) -> NegotiationAgent:
    return create_negotiation_agent(generator, settings)


# ========== ERROR HANDLERS ==========


async def procurement_error_handler(request: Request, exc: ProcurementError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(status_code=400, content={"error": "; ".join(problems) or "Invalid request"})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    text_generator: Optional[TextGenerator] = None,
) -> FastAPI:
    """Build the procurement API. Tests pass their own database and generator."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_database = database is None
        db_handle = database or Database(settings.database_url, echo=settings.database_echo)
        app.state.database = db_handle

        logger.info(f"Connecting to database: {db_handle.safe_url}")
        db_handle.create_tables()
        if db_handle.ping():
            logger.info("✓ Database connection established")
        else:
            logger.warning("Database connection test failed - endpoints requiring DB may not work")

        if settings.seed_sample_data:
            session = db_handle.session()
            try:
                seed_sample_data(session)
            finally:
                session.close()

        app.state.text_generator = text_generator or build_text_generator(settings)

        yield

        # Cleanup
        try:
            await app.state.text_generator.close()
        except Exception as e:
            logger.error(f"Cleanup error: {e}")
        if owns_database:
            db_handle.dispose()

    app = FastAPI(title="Procurement Marketplace API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ProcurementError, procurement_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health(request: Request):
        return {
            "status": "ok",
            "timestamp": datetime.utcnow().isoformat(),
            "database": request.app.state.database.ping(),
        }

    # ========== VENDOR ENDPOINTS ==========

    @app.get("/api/vendors", response_model=List[VendorOut])
    def list_vendors(
        category: str = Query(None, description="Only vendors serving this category"),
        db: Session = Depends(get_db),
    ):
        service = VendorService(db)
        vendors = service.get_vendors_by_category(category) if category else service.get_all_vendors()
        return [VendorOut.model_validate(v) for v in vendors]

    @app.get("/api/vendors/{vendor_id}", response_model=VendorOut)
    def get_vendor(vendor_id: str, db: Session = Depends(get_db)):
        return VendorOut.model_validate(VendorService(db).require_vendor(vendor_id))

    @app.post("/api/vendors", response_model=VendorOut, status_code=201)
    def create_vendor(body: VendorCreate, db: Session = Depends(get_db)):
        vendor = VendorService(db).create_vendor(body.model_dump())
        return VendorOut.model_validate(vendor)

    # ========== BUYER ENDPOINTS ==========

    @app.get("/api/buyers", response_model=List[BuyerOut])
    def list_buyers(db: Session = Depends(get_db)):
        return [BuyerOut.model_validate(b) for b in BuyerService(db).get_all_buyers()]

    @app.get("/api/buyers/{buyer_id}", response_model=BuyerOut)
    def get_buyer(buyer_id: str, db: Session = Depends(get_db)):
        return BuyerOut.model_validate(BuyerService(db).require_buyer(buyer_id))

    @app.post("/api/buyers", response_model=BuyerOut, status_code=201)
    def create_buyer(body: BuyerCreate, db: Session = Depends(get_db)):
        return BuyerOut.model_validate(BuyerService(db).create_buyer(body.model_dump()))

    # ========== PROCUREMENT REQUEST ENDPOINTS ==========

    @app.get("/api/requests", response_model=List[ProcurementRequestOut])
    def list_requests(
        status: str = Query(None, description="Filter by request status"),
        buyer_id: str = Query(None, alias="buyerId", description="Filter by buyer"),
        db: Session = Depends(get_db),
    ):
        requests = ProcurementService(db).list_requests(status=status, buyer_id=buyer_id)
        return [ProcurementRequestOut.model_validate(r) for r in requests]

    @app.get("/api/requests/{request_id}", response_model=ProcurementRequestDetail)
    def get_request(request_id: str, db: Session = Depends(get_db)):
        """Request with its buyer and every quote received so far"""
        return ProcurementRequestDetail.model_validate(ProcurementService(db).require_request(request_id))

    @app.post("/api/requests", response_model=ProcurementRequestOut, status_code=201)
    def create_request(body: ProcurementRequestCreate, db: Session = Depends(get_db)):
        request = ProcurementService(db).create_request(body.model_dump())
        return ProcurementRequestOut.model_validate(request)

    @app.post("/api/requests/{request_id}/cancel", response_model=ProcurementRequestOut)
    def cancel_request(request_id: str, db: Session = Depends(get_db)):
        return ProcurementRequestOut.model_validate(ProcurementService(db).cancel_request(request_id))

    @app.delete("/api/requests/{request_id}")
    def delete_request(request_id: str, db: Session = Depends(get_db)):
        ProcurementService(db).delete_request(request_id)
        return {"message": "Procurement request deleted successfully"}

    # ========== QUOTE ENDPOINTS ==========

    @app.get("/api/quotes", response_model=List[QuoteOut])
    def list_quotes(
        request_id: str = Query(None, alias="requestId"),
        vendor_id: str = Query(None, alias="vendorId"),
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_app_settings),
    ):
        quotes = QuoteService(db, settings).list_quotes(request_id=request_id, vendor_id=vendor_id)
        return [QuoteOut.model_validate(q) for q in quotes]

    @app.get("/api/quotes/{quote_id}", response_model=QuoteDetail)
    def get_quote(
        quote_id: str,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_app_settings),
    ):
        return QuoteDetail.model_validate(QuoteService(db, settings).require_quote(quote_id))

    @app.post("/api/quotes", response_model=QuoteOut, status_code=201)
    def create_quote(
        body: QuoteCreate,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_app_settings),
    ):
        quote = QuoteService(db, settings).create_quote(body.model_dump())
        return QuoteOut.model_validate(quote)

    @app.patch("/api/quotes/{quote_id}/status", response_model=QuoteOut)
    def update_quote_status(
        quote_id: str,
        body: QuoteStatusUpdate,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_app_settings),
    ):
        quote = QuoteService(db, settings).update_quote_status(quote_id, body.status.value)
        return QuoteOut.model_validate(quote)

    # ========== NEGOTIATION ENDPOINTS ==========

    @app.get("/api/negotiations/{quote_id}", response_model=List[NegotiationMessageOut])
    def list_negotiations(
        quote_id: str,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_app_settings),
    ):
        messages = QuoteService(db, settings).list_negotiations(quote_id)
        return [NegotiationMessageOut.model_validate(m) for m in messages]

    @app.post("/api/negotiations", response_model=NegotiationMessageOut, status_code=201)
    def create_negotiation_message(
        body: NegotiationMessageCreate,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_app_settings),
    ):
        """Store one message; its proposed changes (if any) update the quote"""
        message = QuoteService(db, settings).record_negotiation_message(
            body.quote_id, body.sender.value, body.message, body.proposed_changes
        )
        return NegotiationMessageOut.model_validate(message)

    # ========== ORDER ENDPOINTS ==========

    @app.get("/api/orders", response_model=List[OrderOut])
    def list_orders(
        buyer_id: str = Query(None, alias="buyerId"),
        vendor_id: str = Query(None, alias="vendorId"),
        db: Session = Depends(get_db),
    ):
        orders = OrderService(db).list_orders(buyer_id=buyer_id, vendor_id=vendor_id)
        return [OrderOut.model_validate(o) for o in orders]

    @app.get("/api/orders/{order_id}", response_model=OrderOut)
    def get_order(order_id: str, db: Session = Depends(get_db)):
        return OrderOut.model_validate(OrderService(db).require_order(order_id))

    @app.post("/api/orders", response_model=OrderOut, status_code=201)
    def create_order(body: OrderCreate, db: Session = Depends(get_db)):
        """Accept the referenced quote and place its order"""
        return OrderOut.model_validate(OrderService(db).accept_quote(body.quote_id))

    @app.patch("/api/orders/{order_id}/status", response_model=OrderOut)
    def update_order_status(order_id: str, body: OrderStatusUpdate, db: Session = Depends(get_db)):
        return OrderOut.model_validate(OrderService(db).update_order_status(order_id, body.status))

    # ========== AI ENDPOINTS ==========

    @app.post("/api/ai/match-vendors/{request_id}", response_model=MatchVendorsResponse)
    async def match_vendors(
        request_id: str,
        db: Session = Depends(get_db),
        agent: NegotiationAgent = Depends(get_negotiation_agent),
        settings: Settings = Depends(get_app_settings),
    ):
        """Contact every vendor in the request's category and collect first quotes"""
        result = await VendorMatchingService(db, agent, settings).match_and_contact_vendors(request_id)
        return MatchVendorsResponse(
            success=True,
            message=f"Contacted {result.contacted} vendors, received {len(result.quote_ids)} quotes",
            results=[
                VendorContactOut(
                    vendor=r.vendor_name,
                    vendor_id=r.vendor_id,
                    quote_id=r.quote_id,
                    interested=r.interested,
                    outreach_message=r.outreach_message,
                    error=r.error,
                )
                for r in result.results
            ],
        )

    @app.post("/api/ai/negotiate/{quote_id}", response_model=NegotiationMessageOut)
    async def ai_negotiate(
        quote_id: str,
        body: AINegotiateRequest,
        db: Session = Depends(get_db),
        agent: NegotiationAgent = Depends(get_negotiation_agent),
        settings: Settings = Depends(get_app_settings),
    ):
        reply = await NegotiationService(db, agent, settings).handle_negotiation(
            quote_id, body.message, body.sender.value
        )
        return NegotiationMessageOut.model_validate(reply)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
