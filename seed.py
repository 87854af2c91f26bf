"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample riders
  - 4 sample bookings, one per (service type x delivery type), all freshly
    confirmed with a full tracking sequence
"""

import asyncio
from datetime import datetime, timezone

from sqlalchemy import func, select

from src.domain.catalog import initial_tracking
from src.domain.enums import BookingStatus, DeliveryType, ServiceType
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import BookingModel, RiderModel


RIDERS = [
    {"name": "Aarav Sharma", "phone_number": "+919800000001", "email": "aarav@example.com", "total_orders": 42},
    {"name": "Priya Patel", "phone_number": "+919800000002", "email": "priya@example.com", "total_orders": 37},
    {"name": "Rohan Mehta", "phone_number": "+919800000003", "email": "rohan@example.com", "total_orders": 12},
    {"name": "Sneha Gupta", "phone_number": "+919800000004", "email": "sneha@example.com", "total_orders": 58},
    {"name": "Vikram Singh", "phone_number": "+919800000005", "email": None, "total_orders": 3},
    {"name": "Ananya Reddy", "phone_number": "+919800000006", "email": "ananya@example.com", "total_orders": 21},
]

BOOKINGS = [
    {
        "booking_number": "HW-1001",
        "service_type": ServiceType.WATERLESS_WASHING,
        "delivery_type": DeliveryType.DOORSTEP,
        "customer": {"firstName": "Karan", "lastName": "Joshi", "phone": "+919811111111"},
        "address": "12 Hill Road, Bandra West, Mumbai 400050",
        "total": 299,
    },
    {
        "booking_number": "HW-1002",
        "service_type": ServiceType.WATERLESS_WASHING,
        "delivery_type": DeliveryType.MANUAL_PICKUP,
        "customer": {"firstName": "Meera", "lastName": "Nair", "phone": "+919822222222"},
        "address": "4 Carter Road, Khar, Mumbai 400052",
        "total": 199,
    },
    {
        "booking_number": "HR-2001",
        "service_type": ServiceType.HELMET_REPAIR,
        "delivery_type": DeliveryType.DOORSTEP,
        "customer": {"firstName": "Arjun", "lastName": "Kumar", "phone": "+919833333333"},
        "address": "88 Powai Lake Road, Powai, Mumbai 400076",
        "total": 749,
    },
    {
        "booking_number": "HR-2002",
        "service_type": ServiceType.HELMET_REPAIR,
        "delivery_type": DeliveryType.MANUAL_PICKUP,
        "customer": {"firstName": "Diya", "lastName": "Iyer", "phone": "+919844444444"},
        "address": "7 Linking Road, Santacruz, Mumbai 400054",
        "total": 649,
    },
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        existing = await session.scalar(select(func.count()).select_from(RiderModel))
        if existing:
            print("Database already seeded. Skipping.")
            return

        # ── Riders ────────────────────────────────────────────────────
        for r in RIDERS:
            session.add(RiderModel(**r))
        await session.flush()
        print(f"  Created {len(RIDERS)} riders")

        # ── Bookings ──────────────────────────────────────────────────
        now = datetime.now(timezone.utc)
        for b in BOOKINGS:
            tracking = initial_tracking(b["service_type"], b["delivery_type"], now)
            session.add(
                BookingModel(
                    booking_number=b["booking_number"],
                    service_type=b["service_type"].value,
                    delivery_type=b["delivery_type"].value,
                    status=BookingStatus.PENDING.value,
                    tracking=tracking.to_document(),
                    stage_version=0,
                    is_available_for_pickup=True,
                    customer_details=b["customer"],
                    address_details={"fullAddress": b["address"]},
                    helmet_details={"brand": "Studds", "size": "M"},
                    pricing={"totalAmount": b["total"]},
                    schedule={"timeSlot": {"time": "10:00 AM - 12:00 PM"}},
                )
            )
        await session.flush()
        print(f"  Created {len(BOOKINGS)} bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
