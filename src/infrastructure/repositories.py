"""
Repository Pattern -- the only read/write path to persisted workflow state.

Each repository receives an ``AsyncSession`` (unit-of-work) and speaks in
domain entities.  Every database failure is re-raised as
``RecordStoreUnavailable`` so callers deal with one error kind for the
store.  Nothing here commits except ``commit()``: services decide where a
unit of work ends.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AdminSettingModel, BookingModel, RiderAssignmentModel, RiderModel
from src.domain.entities import (
    AllotmentConfig,
    Booking,
    Rider,
    RiderAssignment,
    RiderSnapshot,
    Tracking,
)
from src.domain.enums import AssignmentRole, BookingStatus, DeliveryType, ServiceType
from src.domain.errors import (
    BookingNotFound,
    RecordStoreUnavailable,
    RiderNotFound,
    StaleState,
)

logger = logging.getLogger(__name__)

ALLOTMENT_CONFIG_KEY = "allotmentConfig"


def _store_call(method):
    """Translate SQLAlchemy failures into ``RecordStoreUnavailable``."""

    @functools.wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Record store call %s failed: %s", method.__qualname__, exc)
            raise RecordStoreUnavailable() from exc

    return wrapper


@_store_call
async def commit(session: AsyncSession) -> None:
    await session.commit()


# ── Mapping ───────────────────────────────────────────────────────────


def _to_booking(model: BookingModel) -> Booking:
    return Booking(
        id=model.id,
        booking_number=model.booking_number,
        service_type=ServiceType(model.service_type),
        delivery_type=DeliveryType(model.delivery_type),
        status=BookingStatus(model.status),
        tracking=Tracking.from_document(model.tracking or {}),
        pickup_rider=RiderSnapshot.from_document(model.pickup_rider),
        delivery_rider=RiderSnapshot.from_document(model.delivery_rider),
        pickup_rider_id=model.pickup_rider_id,
        delivery_rider_id=model.delivery_rider_id,
        is_available_for_pickup=bool(model.is_available_for_pickup),
        customer_details=dict(model.customer_details or {}),
        address_details=dict(model.address_details or {}),
        helmet_details=dict(model.helmet_details or {}),
        pricing=dict(model.pricing or {}),
        schedule=dict(model.schedule or {}),
        stage_version=model.stage_version or 0,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_rider(model: RiderModel) -> Rider:
    return Rider(
        id=model.id,
        name=model.name,
        phone_number=model.phone_number,
        email=model.email,
        profile_image=model.profile_image,
        total_orders=model.total_orders or 0,
    )


def _to_assignment(model: RiderAssignmentModel) -> RiderAssignment:
    return RiderAssignment(
        id=model.id,
        booking_id=model.booking_id,
        booking_number=model.booking_number,
        rider_id=model.rider_id,
        rider_name=model.rider_name,
        assignment_type=AssignmentRole(model.assignment_type),
        customer_name=model.customer_name or "",
        customer_address=model.customer_address,
        assigned_at=model.assigned_at,
        assigned_by=model.assigned_by,
        status=model.status,
        otp=model.otp,
    )


# ── Repositories ──────────────────────────────────────────────────────


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @_store_call
    async def get(self, booking_id: str) -> Booking:
        """Load the booking straight from the store, replacing cached state."""
        model = await self.session.get(
            BookingModel, booking_id, populate_existing=True
        )
        if model is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return _to_booking(model)

    @_store_call
    async def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        """Replace the given top-level fields in a single UPDATE.

        Nested documents such as ``tracking`` are replaced wholesale.  With
        *expected_version* the update only applies while ``stage_version``
        still has that value; otherwise ``StaleState`` is raised.
        """
        stmt = update(BookingModel).where(BookingModel.id == booking_id)
        if expected_version is not None:
            stmt = stmt.where(BookingModel.stage_version == expected_version)
        stmt = stmt.values(**fields).execution_options(synchronize_session=False)

        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            exists = await self.session.scalar(
                select(BookingModel.id).where(BookingModel.id == booking_id)
            )
            if exists is None:
                raise BookingNotFound(f"Booking {booking_id} not found")
            raise StaleState(
                f"Booking {booking_id} moved past stage version {expected_version}"
            )

    @_store_call
    async def insert_assignment(self, assignment: RiderAssignment) -> RiderAssignment:
        model = RiderAssignmentModel(
            booking_id=assignment.booking_id,
            booking_number=assignment.booking_number,
            rider_id=assignment.rider_id,
            rider_name=assignment.rider_name,
            assignment_type=assignment.assignment_type.value,
            customer_name=assignment.customer_name,
            customer_address=assignment.customer_address,
            assigned_at=assignment.assigned_at,
            assigned_by=assignment.assigned_by,
            status=assignment.status,
            otp=assignment.otp,
        )
        self.session.add(model)
        await self.session.flush()
        return _to_assignment(model)

    @_store_call
    async def list_assignments(self, booking_id: str) -> list[RiderAssignment]:
        result = await self.session.execute(
            select(RiderAssignmentModel)
            .where(RiderAssignmentModel.booking_id == booking_id)
            .order_by(RiderAssignmentModel.assigned_at.desc())
        )
        return [_to_assignment(m) for m in result.scalars().all()]


class RiderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @_store_call
    async def list_all(self) -> list[Rider]:
        result = await self.session.execute(
            select(RiderModel).order_by(RiderModel.name)
        )
        return [_to_rider(m) for m in result.scalars().all()]

    @_store_call
    async def get_by_id(self, rider_id: str) -> Rider:
        model = await self.session.get(RiderModel, rider_id)
        if model is None:
            raise RiderNotFound(f"Rider {rider_id} not found")
        return _to_rider(model)


class AdminSettingsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @_store_call
    async def get_allotment(self) -> AllotmentConfig:
        model = await self.session.get(
            AdminSettingModel, ALLOTMENT_CONFIG_KEY, populate_existing=True
        )
        if model is None:
            return AllotmentConfig()
        return AllotmentConfig(
            same_rider_for_pickup_and_delivery=bool(
                model.same_rider_for_pickup_and_delivery
            ),
            updated_at=model.updated_at,
            updated_by=model.updated_by,
        )

    @_store_call
    async def merge_allotment(
        self, enabled: bool, updated_at: datetime, updated_by: str
    ) -> None:
        """Create the singleton row on first write, else touch only these columns."""
        model = await self.session.get(AdminSettingModel, ALLOTMENT_CONFIG_KEY)
        if model is None:
            model = AdminSettingModel(key=ALLOTMENT_CONFIG_KEY)
            self.session.add(model)
        model.same_rider_for_pickup_and_delivery = enabled
        model.updated_at = updated_at
        model.updated_by = updated_by
        await self.session.flush()
