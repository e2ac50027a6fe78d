"""Booking lifecycle: creation, cancellation, reschedule and admin transitions.

Every mutation fetches the current document, validates against that snapshot
and issues one partial update. Nothing is locked between the read and the
write; concurrent cancellations converge on ``cancelled``.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from .availability import AvailabilityChecker
from .clock import Clock, SystemClock, ensure_window, parse_instant, to_utc
from .errors import (
    AlreadyCancelledError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TooLateError,
    ValidationError,
)
from .models import BookingStatus, PaymentStatus
from .repository import BookingRepository
from .rules import (
    STATUS_TRANSITIONS,
    can_modify,
    derive_display_status,
    implied_hourly_rate,
    price_for,
)
from .schemas import Booking, BookingRead, VehicleRead
from .vehicles import VehicleDirectory

logger = logging.getLogger(__name__)

Instant = Union[str, datetime]


class BookingManager:
    def __init__(
        self,
        repository: BookingRepository,
        vehicles: VehicleDirectory,
        clock: Optional[Clock] = None,
    ) -> None:
        self.repository = repository
        self.vehicles = vehicles
        self.clock = clock or SystemClock()
        self.availability = AvailabilityChecker(repository)

    def create(
        self,
        vehicle_id: str,
        owner_id: str,
        start: Instant,
        end: Instant,
        customer_name: Optional[str] = None,
        hourly_rate: Optional[Decimal] = None,
    ) -> Booking:
        if not vehicle_id or not owner_id:
            raise ValidationError("vehicle_id and owner_id are required")
        start_date = parse_instant(start, "start date")
        end_date = parse_instant(end, "end date")
        ensure_window(start_date, end_date)

        rate = hourly_rate if hourly_rate is not None else self.vehicles.hourly_rate(vehicle_id)
        if rate is None:
            raise ValidationError(f"No hourly rate known for vehicle {vehicle_id}")

        if not self.availability.is_available(vehicle_id, start_date, end_date):
            raise ConflictError("Vehicle is not available for the selected dates")

        now = self.clock.now()
        fields: Dict[str, Any] = {
            "vehicle_id": vehicle_id,
            "owner_id": owner_id,
            "start_date": start_date,
            "end_date": end_date,
            "status": BookingStatus.PENDING,
            "payment_status": PaymentStatus.PENDING,
            "total_price": price_for(rate, start_date, end_date),
            "customer_name": customer_name,
            "created_at": now,
        }
        booking_id = self.repository.insert(fields)
        logger.info("Created booking %s for vehicle %s", booking_id, vehicle_id)
        return Booking(id=booking_id, **fields)

    def cancel(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        """Cancel a booking that has not started yet.

        The payment status is left untouched so a paid booking keeps its
        payment record for refund handling.
        """
        booking = self._load(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelledError("Booking is already cancelled")
        now = self.clock.now()
        if booking.start_date <= now:
            raise TooLateError("Cannot cancel a booking that has already started")

        changes: Dict[str, Any] = {
            "status": BookingStatus.CANCELLED,
            "updated_at": now,
            "cancelled_at": now,
        }
        if reason:
            changes["cancellation_reason"] = reason
        return self._apply(booking, changes, "Cancelled")

    def reschedule(self, booking_id: str, new_start: Instant, new_end: Instant) -> Booking:
        booking = self._load(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelledError("Cannot reschedule a cancelled booking")
        now = self.clock.now()
        if booking.start_date <= now:
            raise TooLateError("Cannot reschedule a booking that has already started")

        start_date = parse_instant(new_start, "start date")
        end_date = parse_instant(new_end, "end date")
        ensure_window(start_date, end_date)
        if start_date < now:
            raise ValidationError("New start date cannot be in the past")

        if not self.availability.is_available(
            booking.vehicle_id, start_date, end_date, exclude_booking_id=booking.id
        ):
            raise ConflictError("Vehicle is not available for the selected dates")

        rate = implied_hourly_rate(booking)
        changes: Dict[str, Any] = {
            "start_date": start_date,
            "end_date": end_date,
            "total_price": price_for(rate, start_date, end_date),
            "status": BookingStatus.PENDING,
            "updated_at": now,
            "rescheduled_at": now,
        }
        return self._apply(booking, changes, "Rescheduled")

    def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        booking = self._load(booking_id)
        allowed = STATUS_TRANSITIONS.get(booking.status, frozenset())
        if status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move booking from {booking.status.value} to {status.value}"
            )
        if status == BookingStatus.COMPLETED and booking.payment_status != PaymentStatus.PAID:
            raise InvalidTransitionError("Only paid bookings can be completed")

        now = self.clock.now()
        changes: Dict[str, Any] = {"status": status, "updated_at": now}
        if status == BookingStatus.CANCELLED:
            changes["cancelled_at"] = now
        return self._apply(booking, changes, f"Moved to {status.value}")

    def record_payment(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        payment_id: Optional[str] = None,
    ) -> Booking:
        booking = self._load(booking_id)
        if payment_status == PaymentStatus.PAID and booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelledError("Cannot take payment for a cancelled booking")
        if booking.status == BookingStatus.COMPLETED and payment_status != PaymentStatus.PAID:
            raise InvalidTransitionError("A completed booking must stay paid")

        changes: Dict[str, Any] = {"payment_status": payment_status, "updated_at": self.clock.now()}
        if payment_id and not booking.payment_id:
            changes["payment_id"] = payment_id
        return self._apply(booking, changes, f"Payment {payment_status.value} for")

    def get(self, booking_id: str) -> Booking:
        return self._load(booking_id)

    def describe(self, booking: Booking, now: Optional[datetime] = None) -> BookingRead:
        """Attach the derived display fields and the vehicle, if it still exists."""

        now = to_utc(now) if now else self.clock.now()
        vehicle = self.vehicles.get(booking.vehicle_id)
        return BookingRead(
            **booking.model_dump(),
            display_status=derive_display_status(booking, now).value,
            can_modify=can_modify(booking, now),
            vehicle=VehicleRead.model_validate(vehicle.model_dump()) if vehicle else None,
        )

    def list_for_owner(self, owner_id: str) -> List[BookingRead]:
        now = self.clock.now()
        return [self.describe(b, now) for b in self.repository.list_by_owner(owner_id)]

    def list_all(self) -> List[BookingRead]:
        now = self.clock.now()
        return [self.describe(b, now) for b in self.repository.list_all()]

    def _load(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def _apply(self, booking: Booking, changes: Dict[str, Any], action: str) -> Booking:
        self.repository.update(booking.id, changes)
        logger.info("%s booking %s", action, booking.id)
        return booking.model_copy(update=changes)
