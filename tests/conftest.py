"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Notifications go to ``RecordingNotifier``
instead of Redis pub/sub.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Iterable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.catalog import initial_tracking
from src.domain.entities import Booking, Tracking
from src.domain.enums import (
    BookingStatus,
    DeliveryType,
    ServiceType,
    Stage,
    StageStatus,
)
from src.infrastructure.database import Base
from src.infrastructure.models import BookingModel, RiderModel


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

CONFIRMED_AT = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    """Stands in for the Redis publisher and remembers what was sent."""

    def __init__(self):
        self.successes: list[str] = []
        self.errors: list[str] = []
        self.changes: list[tuple[str, str]] = []

    async def notify_success(self, message, **context):
        self.successes.append(message)

    async def notify_error(self, message, **context):
        self.errors.append(message)

    async def booking_changed(self, booking_id, stage):
        self.changes.append((booking_id, stage))


# ── Builders ──────────────────────────────────────────────────────────


def tracking_at(
    service_type: ServiceType,
    delivery_type: DeliveryType,
    stage: Stage = Stage.BOOKING_CONFIRMED,
    drop: Iterable[Stage] = (),
) -> Tracking:
    """A consistent tracking document positioned at *stage*.

    Entries listed in *drop* are removed afterwards to simulate corrupted
    records.
    """
    tracking = initial_tracking(service_type, delivery_type, CONFIRMED_AT)
    position = tracking.index_of(stage)
    assert position is not None, f"{stage} not in sequence"

    for index, entry in enumerate(tracking.stages):
        at = CONFIRMED_AT + timedelta(hours=index)
        if index < position:
            entry.status = StageStatus.COMPLETED
            entry.started_at = at
            entry.completed_at = at + timedelta(minutes=30)
        elif index == position:
            entry.status = StageStatus.IN_PROGRESS
            entry.started_at = at
        else:
            entry.status = StageStatus.PENDING
            entry.started_at = None

    dropped = {s.value for s in drop}
    tracking.stages = [e for e in tracking.stages if e.stage not in dropped]
    tracking.current_stage = stage.value
    return tracking


def make_booking(
    service_type: ServiceType = ServiceType.WATERLESS_WASHING,
    delivery_type: DeliveryType = DeliveryType.DOORSTEP,
    stage: Stage = Stage.BOOKING_CONFIRMED,
    drop: Iterable[Stage] = (),
) -> Booking:
    return Booking(
        id="booking-1",
        booking_number="HW-0001",
        service_type=service_type,
        delivery_type=delivery_type,
        status=BookingStatus.IN_PROGRESS,
        tracking=tracking_at(service_type, delivery_type, stage, drop),
        customer_details={"firstName": "Karan", "lastName": "Joshi"},
        address_details={"fullAddress": "12 Hill Road, Bandra West, Mumbai"},
    )


def assert_stage_invariant(tracking: Tracking) -> None:
    """Entries before the current one are completed, after it pending."""
    position = tracking.index_of(tracking.current_stage)
    assert position is not None
    in_progress = [e for e in tracking.stages if e.status is StageStatus.IN_PROGRESS]
    assert len(in_progress) <= 1
    for entry in tracking.stages[:position]:
        assert entry.status is StageStatus.COMPLETED, entry.stage
    for entry in tracking.stages[position + 1:]:
        assert entry.status is StageStatus.PENDING, entry.stage
    current = tracking.stages[position]
    if in_progress:
        assert in_progress[0] is current
    else:
        assert current.status is StageStatus.COMPLETED


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def add_booking(db_session):
    """Insert a booking positioned at a given stage; returns its id."""
    numbers = itertools.count(1)

    async def _add(
        service_type: ServiceType = ServiceType.WATERLESS_WASHING,
        delivery_type: DeliveryType = DeliveryType.DOORSTEP,
        stage: Stage = Stage.BOOKING_CONFIRMED,
        drop: Iterable[Stage] = (),
        status: BookingStatus = BookingStatus.IN_PROGRESS,
    ) -> str:
        model = BookingModel(
            booking_number=f"HB-{next(numbers):04d}",
            service_type=service_type.value,
            delivery_type=delivery_type.value,
            status=status.value,
            tracking=tracking_at(service_type, delivery_type, stage, drop).to_document(),
            stage_version=0,
            is_available_for_pickup=True,
            customer_details={"firstName": "Karan", "lastName": "Joshi"},
            address_details={"fullAddress": "12 Hill Road, Bandra West, Mumbai"},
            helmet_details={"brand": "Studds"},
            pricing={"totalAmount": 299},
            schedule={"timeSlot": {"time": "10:00 AM - 12:00 PM"}},
        )
        db_session.add(model)
        await db_session.commit()
        return model.id

    return _add


@pytest.fixture
def add_rider(db_session):
    async def _add(
        name: str = "Aarav Sharma",
        phone_number: str = "+919800000001",
        email: Optional[str] = "aarav@example.com",
    ) -> str:
        model = RiderModel(name=name, phone_number=phone_number, email=email, total_orders=0)
        db_session.add(model)
        await db_session.commit()
        return model.id

    return _add
