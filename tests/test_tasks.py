"""
Tests for the background listing sweep
"""

import pytest

from src.database import Collections, email_to_key
from src.marketplace.cache import PUBLISHED_VEHICLES_KEY, get_vehicle_cache
from src.marketplace.tasks import sweep_listings
from tests.factories import ExpiredVehicleFactory, UserFactory, VehicleFactory


@pytest.mark.asyncio
async def test_sweep_expires_listings(db):
    seller = UserFactory(email="seller@example.com", role="seller")
    await db.create(Collections.USERS, seller, email_to_key(seller["email"]))
    expired = ExpiredVehicleFactory()
    fresh = VehicleFactory()
    await db.create(Collections.VEHICLES, expired, str(expired["id"]))
    await db.create(Collections.VEHICLES, fresh, str(fresh["id"]))
    get_vehicle_cache().set(PUBLISHED_VEHICLES_KEY, [expired, fresh])

    assert await sweep_listings(db) == 1

    stored = await db.find_by_id(Collections.VEHICLES, str(expired["id"]))
    assert stored["listingStatus"] == "expired"
    assert (await db.find_by_id(Collections.VEHICLES, str(fresh["id"])))["listingStatus"] == "active"
    assert get_vehicle_cache().get(PUBLISHED_VEHICLES_KEY) is None


@pytest.mark.asyncio
async def test_sweep_nothing_to_do(db):
    vehicle = VehicleFactory()
    await db.create(Collections.VEHICLES, vehicle, str(vehicle["id"]))
    assert await sweep_listings(db) == 0
