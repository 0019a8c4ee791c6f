"""
Sample vendors and buyer so a fresh database can run the demo flow.
"""

import logging

from sqlalchemy.orm import Session

from .models import Buyer, Vendor

logger = logging.getLogger(__name__)

# Vendor templates by category
VENDORS = [
    {
        'name': 'Fresh Ingredients Co',
        'email': 'sales@freshingredients.com',
        'phone': '+1-555-0101',
        'address': '123 Food Street, Chicago, IL',
        'categories': ['food-ingredients', 'condiments', 'spices'],
        'rating': 4.5,
        'verified': True,
        'min_order_value': 500,
        'payment_terms': 'NET 30',
    },
    {
        'name': 'Premium Sauce Suppliers',
        'email': 'orders@premiumsauce.com',
        'phone': '+1-555-0102',
        'address': '456 Sauce Ave, Los Angeles, CA',
        'categories': ['food-ingredients', 'condiments'],
        'rating': 4.8,
        'verified': True,
        'min_order_value': 1000,
        'payment_terms': 'NET 15',
    },
    {
        'name': 'Bulk Food Solutions',
        'email': 'contact@bulkfood.com',
        'phone': '+1-555-0103',
        'address': '789 Industrial Blvd, Houston, TX',
        'categories': ['food-ingredients', 'packaging', 'bulk-supplies'],
        'rating': 4.2,
        'verified': True,
        'min_order_value': 2000,
        'payment_terms': 'NET 45',
    },
]

BUYERS = [
    {
        'company_name': "McDonald's Corp",
        'email': 'procurement@mcdonalds.com',
        'phone': '+1-555-0201',
        'address': '110 N Carpenter St, Chicago, IL',
        'industry': 'restaurant',
        'credit_rating': 'AAA',
        'payment_history': [],
    },
]


def seed_sample_data(db: Session) -> bool:
    """Insert sample vendors and buyers when the vendor table is empty."""
    if db.query(Vendor).count() > 0:
        logger.info("Sample data already present, skipping seed")
        return False

    for vendor_data in VENDORS:
        db.add(Vendor(**vendor_data))
    for buyer_data in BUYERS:
        db.add(Buyer(**buyer_data))
    db.commit()

    logger.info(f"Sample data initialized: {len(VENDORS)} vendors, {len(BUYERS)} buyers")
    return True
