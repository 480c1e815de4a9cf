"""
Factory Boy factories for generating test data
"""

import factory

from src.auth import hash_password
from src.listings.dates import add_days, now_iso, to_iso, utcnow

TEST_PASSWORD = "password123"


class UserFactory(factory.DictFactory):
    """Factory for user documents"""

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    name = factory.Sequence(lambda n: f"User {n}")
    mobile = "9876543210"
    role = "customer"
    location = "Delhi"
    status = "active"
    isVerified = False
    subscriptionPlan = "free"
    featuredCredits = 0
    usedCertifications = 0
    authProvider = "email"
    password = factory.LazyFunction(lambda: hash_password(TEST_PASSWORD))
    createdAt = factory.LazyFunction(now_iso)
    updatedAt = factory.LazyFunction(now_iso)


class VehicleFactory(factory.DictFactory):
    """Factory for published vehicle listings"""

    id = factory.Sequence(lambda n: 1700000000000 + n)
    make = "Maruti Suzuki"
    model = "Swift"
    variant = "VXi"
    year = 2021
    price = 600000
    mileage = 20000
    fuelType = "Petrol"
    transmission = "Manual"
    city = "Delhi"
    location = "Delhi"
    sellerEmail = "seller@example.com"
    status = "published"
    listingStatus = "active"
    listingExpiresAt = factory.LazyFunction(lambda: to_iso(add_days(utcnow(), 30)))
    images = factory.LazyFunction(list)
    isFeatured = False
    views = 0
    inquiriesCount = 0
    createdAt = factory.LazyFunction(now_iso)
    updatedAt = factory.LazyFunction(now_iso)


class ExpiredVehicleFactory(VehicleFactory):
    """Published listing whose expiry has passed"""

    listingExpiresAt = factory.LazyFunction(lambda: to_iso(add_days(utcnow(), -1)))


class ConversationFactory(factory.DictFactory):
    """Factory for buyer/seller conversations"""

    id = factory.Sequence(lambda n: f"conv_{n}")
    customerId = "customer@example.com"
    customerName = "Customer"
    sellerId = "seller@example.com"
    vehicleId = 1700000000000
    vehicleName = "2021 Maruti Suzuki Swift"
    messages = factory.LazyFunction(list)
    lastMessageAt = factory.LazyFunction(now_iso)
    isReadBySeller = True
    isReadByCustomer = True
