"""
SQLAlchemy ORM models.

Tables
------
* ``bookings``          -- service orders; tracking and rider snapshots are
  kept as JSON documents so their shape matches what the apps read
* ``riders``            -- courier roster (owned by rider management)
* ``rider_assignments`` -- append-only audit trail of assignments
* ``admin_settings``    -- singleton rows keyed by setting name

Indexes
-------
* **B-Tree** on ``status``, ``pickup_rider_id`` and ``delivery_rider_id``
  so rider apps can look up their jobs without unpacking JSON.
* **B-Tree** on ``rider_assignments.booking_id`` for audit history reads.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_id)
    booking_number = Column(String(32), unique=True, nullable=False)
    service_type = Column(String(32), nullable=False)
    delivery_type = Column(String(16), nullable=False)
    status = Column(String(32), nullable=False, default="pending")

    tracking = Column(JSON, nullable=False)
    stage_version = Column(Integer, nullable=False, default=0)

    # Embedded snapshots plus plain ids for lookup-by-rider queries
    pickup_rider = Column(JSON, nullable=True)
    delivery_rider = Column(JSON, nullable=True)
    pickup_rider_id = Column(String(36), nullable=True)
    delivery_rider_id = Column(String(36), nullable=True)
    is_available_for_pickup = Column(Boolean, nullable=False, default=True)

    # Descriptive documents, read-only for the workflow
    customer_details = Column(JSON, nullable=False, default=dict)
    address_details = Column(JSON, nullable=False, default=dict)
    helmet_details = Column(JSON, nullable=False, default=dict)
    pricing = Column(JSON, nullable=False, default=dict)
    schedule = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_pickup_rider", "pickup_rider_id"),
        Index("idx_bookings_delivery_rider", "delivery_rider_id"),
    )


class RiderModel(Base):
    __tablename__ = "riders"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(120), nullable=False)
    phone_number = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    profile_image = Column(String(512), nullable=True)
    total_orders = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RiderAssignmentModel(Base):
    __tablename__ = "rider_assignments"

    id = Column(String(36), primary_key=True, default=_new_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False)
    booking_number = Column(String(32), nullable=False)
    rider_id = Column(String(36), nullable=False)
    rider_name = Column(String(120), nullable=False)
    assignment_type = Column(String(16), nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_address = Column(String(512), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False)
    assigned_by = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False, default="active")
    otp = Column(String(4), nullable=True)

    __table_args__ = (
        Index("idx_rider_assignments_booking", "booking_id"),
        Index("idx_rider_assignments_rider", "rider_id"),
    )


class AdminSettingModel(Base):
    __tablename__ = "admin_settings"

    key = Column(String(64), primary_key=True)
    same_rider_for_pickup_and_delivery = Column(Boolean, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String(64), nullable=True)
