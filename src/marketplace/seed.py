"""
Demo accounts and listings for fresh databases
"""

import secrets
from typing import Any, Dict, List, Optional

import structlog

from src.auth import hash_password
from src.config import ApiConfig
from src.database import Collections, DatabaseAdapter, email_to_key
from src.listings.dates import add_days, epoch_ms, now_iso, to_iso, utcnow

logger = structlog.get_logger()

SEED_ADMIN_EMAIL = "admin@reride.com"
SEED_SELLER_EMAIL = "seller@reride.com"
SEED_CUSTOMER_EMAIL = "customer@reride.com"


def _seed_password(configured: Optional[str], production: bool) -> str:
    if configured:
        return configured
    if production:
        return secrets.token_urlsafe(16)
    return "password"


def seed_users(config: ApiConfig) -> List[Dict[str, Any]]:
    production = config.is_production
    timestamp = now_iso()
    base = {
        "status": "active",
        "isVerified": True,
        "featuredCredits": 0,
        "usedCertifications": 0,
        "authProvider": "email",
        "createdAt": timestamp,
        "updatedAt": timestamp,
    }
    return [
        {
            **base,
            "email": SEED_ADMIN_EMAIL,
            "name": "ReRide Admin",
            "mobile": "9876543210",
            "role": "admin",
            "location": "Mumbai",
            "subscriptionPlan": "premium",
            "password": hash_password(_seed_password(config.seed_admin_password, production)),
        },
        {
            **base,
            "email": SEED_SELLER_EMAIL,
            "name": "Prestige Motors",
            "mobile": "9876543211",
            "role": "seller",
            "location": "Delhi",
            "dealershipName": "Prestige Motors",
            "subscriptionPlan": "pro",
            "featuredCredits": 2,
            "password": hash_password(_seed_password(config.seed_seller_password, production)),
        },
        {
            **base,
            "email": SEED_CUSTOMER_EMAIL,
            "name": "Test Customer",
            "mobile": "9876543212",
            "role": "customer",
            "location": "Bangalore",
            "subscriptionPlan": "free",
            "password": hash_password(_seed_password(config.seed_customer_password, production)),
        },
    ]


def seed_vehicles(duration_days: int) -> List[Dict[str, Any]]:
    now = utcnow()
    timestamp = to_iso(now)
    expires_at = to_iso(add_days(now, duration_days))
    first_id = epoch_ms(now)
    common = {
        "sellerEmail": SEED_SELLER_EMAIL,
        "status": "published",
        "listingStatus": "active",
        "listingExpiresAt": expires_at,
        "category": "FOUR_WHEELER",
        "isFeatured": False,
        "views": 0,
        "inquiriesCount": 0,
        "certificationStatus": "none",
        "createdAt": timestamp,
        "updatedAt": timestamp,
    }
    return [
        {
            **common,
            "id": first_id,
            "make": "Maruti Suzuki",
            "model": "Swift",
            "variant": "VXi",
            "year": 2021,
            "price": 625000,
            "mileage": 24000,
            "fuelType": "Petrol",
            "transmission": "Manual",
            "city": "Delhi",
            "location": "Delhi",
            "color": "Red",
            "noOfOwners": 1,
            "images": ["https://picsum.photos/800/600?random=11"],
            "description": "Single owner Swift with full service history.",
            "exactLocation": {"lat": 28.6139, "lng": 77.209},
        },
        {
            **common,
            "id": first_id + 1,
            "make": "Hyundai",
            "model": "Verna",
            "variant": "SX",
            "year": 2020,
            "price": 980000,
            "mileage": 36000,
            "fuelType": "Diesel",
            "transmission": "Automatic",
            "city": "Delhi",
            "location": "Delhi",
            "color": "White",
            "noOfOwners": 1,
            "images": ["https://picsum.photos/800/600?random=12"],
            "description": "Verna SX automatic, new tyres, insurance valid.",
            "exactLocation": {"lat": 28.5355, "lng": 77.391},
        },
    ]


async def seed_database(db: DatabaseAdapter, config: ApiConfig) -> Dict[str, int]:
    """
    Insert demo users and listings; existing users are left untouched

    Returns:
        Counts of created users and vehicles
    """
    users_created = 0
    for user in seed_users(config):
        if await db.find_by_email(user["email"]):
            continue
        await db.create(Collections.USERS, user, email_to_key(user["email"]))
        users_created += 1

    vehicles_created = 0
    for vehicle in seed_vehicles(config.listing_duration_days):
        await db.create(Collections.VEHICLES, vehicle, str(vehicle["id"]))
        vehicles_created += 1

    logger.info("database_seeded", users=users_created, vehicles=vehicles_created)
    return {"users": users_created, "vehicles": vehicles_created}
