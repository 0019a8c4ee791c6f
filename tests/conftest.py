import asyncio
from datetime import date

import pytest
from fastapi.testclient import TestClient

from agents.config import Settings
from agents.text_generator import TextGenerator
from database.config import Database
from main import create_app
from services.buyer_service import BuyerService
from services.procurement_service import ProcurementService
from services.vendor_service import VendorService


class FakeTextGenerator(TextGenerator):
    """Canned generator. `reply` may be a string or a callable taking the prompt."""

    def __init__(self, reply=None, error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts = []
        self.closed = False

    async def generate(self, prompt, system=None):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply

    async def close(self):
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        seed_sample_data=False,
        azure_openai_endpoint=None,
        azure_openai_api_key=None,
        generation_timeout_seconds=0.5,
        max_price_drift_percent=25.0,
    )


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.drop_tables()
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def client(settings, database, generator):
    """
    A test client bound to the in-memory database and the fake generator.
    """
    app = create_app(settings=settings, database=database, text_generator=generator)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def buyer(db):
    return BuyerService(db).create_buyer({
        'company_name': "McDonald's Corp",
        'email': 'procurement@mcdonalds.com',
        'industry': 'restaurant',
        'credit_rating': 'AAA',
    })


@pytest.fixture
def vendors(db):
    service = VendorService(db)
    return [
        service.create_vendor({
            'name': 'Fresh Ingredients Co',
            'categories': ['food-ingredients', 'condiments'],
            'rating': 4.5,
            'verified': True,
            'min_order_value': 500,
            'payment_terms': 'NET 30',
        }),
        service.create_vendor({
            'name': 'Premium Sauce Suppliers',
            'categories': ['food-ingredients'],
            'rating': 4.8,
            'verified': True,
            'min_order_value': 1000,
            'payment_terms': 'NET 15',
        }),
        service.create_vendor({
            'name': 'Packaging Partners',
            'categories': ['packaging'],
            'rating': 4.0,
            'min_order_value': 200,
        }),
    ]


@pytest.fixture
def procurement_request(db, buyer):
    return ProcurementService(db).create_request({
        'buyer_id': buyer.id,
        'product_name': 'Ketchup',
        'category': 'food-ingredients',
        'quantity': 1000,
        'unit': 'bottles',
        'delivery_date': date(2026, 12, 1),
        'max_budget': 3500.0,
        'urgency': 'high',
    })
