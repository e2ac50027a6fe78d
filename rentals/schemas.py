"""Pydantic schemas shared by the core and the HTTP services."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import BookingStatus, PaymentStatus, RoleEnum, VehicleType


class TokenData(BaseModel):
    user_id: str
    role: RoleEnum = RoleEnum.CUSTOMER


class Booking(BaseModel):
    """Snapshot of one booking document. Every field is always present."""

    id: str
    vehicle_id: str
    owner_id: str
    start_date: datetime
    end_date: datetime
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    total_price: Decimal = Decimal("0")
    payment_id: Optional[str] = None
    customer_name: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    rescheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Vehicle(BaseModel):
    id: str
    name: str
    type: VehicleType
    hourly_rate: Decimal
    availability_status: bool = True

    model_config = {"from_attributes": True}


class VehicleCreate(BaseModel):
    id: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., max_length=100)
    type: VehicleType
    hourly_rate: Decimal = Field(..., gt=0)


class VehicleUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    type: Optional[VehicleType] = None
    hourly_rate: Optional[Decimal] = Field(None, gt=0)


class VehicleAvailabilityUpdate(BaseModel):
    availability_status: bool


class VehicleRead(Vehicle):
    pass


class BookingCreate(BaseModel):
    # dates stay strings, as in BookingReschedule
    vehicle_id: str
    start_date: str
    end_date: str
    customer_name: Optional[str] = Field(None, max_length=200)


class BookingReschedule(BaseModel):
    # kept as strings so malformed input reaches the lifecycle validation
    start_date: str
    end_date: str


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus
    payment_id: Optional[str] = Field(None, max_length=128)


class BookingRead(Booking):
    display_status: str
    can_modify: bool
    vehicle: Optional[VehicleRead] = None


class AvailabilityRead(BaseModel):
    vehicle_id: str
    start_date: datetime
    end_date: datetime
    available: bool


class SweepFailureRead(BaseModel):
    booking_id: str
    kind: str
    detail: str


class SweepRead(BaseModel):
    checked: int
    corrected: List[Booking]
    failures: List[SweepFailureRead]
