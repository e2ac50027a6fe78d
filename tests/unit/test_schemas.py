"""Unit tests for schema validation."""
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from rentals.models import BookingStatus, PaymentStatus, VehicleType
from rentals.schemas import Booking, BookingCreate, PaymentUpdate, VehicleCreate


class TestBookingSchemas:
    def test_booking_defaults_every_field(self):
        booking = Booking(
            id="b1",
            vehicle_id="car-1",
            owner_id="user-1",
            start_date=datetime(2030, 1, 1, 10),
            end_date=datetime(2030, 1, 1, 12),
        )

        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.payment_id is None
        assert booking.cancellation_reason is None
        assert booking.rescheduled_at is None

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            Booking(
                id="b1",
                vehicle_id="car-1",
                owner_id="user-1",
                start_date=datetime(2030, 1, 1, 10),
                end_date=datetime(2030, 1, 1, 12),
                status="archived",
            )

    def test_booking_create_keeps_raw_dates(self):
        booking_in = BookingCreate(vehicle_id="car-1", start_date="2030-01-01T10:00:00", end_date="not a date")

        assert booking_in.start_date == "2030-01-01T10:00:00"
        assert booking_in.end_date == "not a date"

    def test_payment_update_status_values(self):
        assert PaymentUpdate(payment_status="paid").payment_status == PaymentStatus.PAID
        with pytest.raises(ValidationError):
            PaymentUpdate(payment_status="refunded")


class TestVehicleSchemas:
    def test_vehicle_create_valid(self):
        vehicle = VehicleCreate(name="Toyota Camry", type="car", hourly_rate="45.50")

        assert vehicle.type == VehicleType.CAR
        assert vehicle.hourly_rate == Decimal("45.50")

    def test_rate_must_be_positive(self):
        with pytest.raises(ValidationError):
            VehicleCreate(name="Free Car", type="car", hourly_rate=0)

    def test_type_is_car_or_bike(self):
        with pytest.raises(ValidationError):
            VehicleCreate(name="Boat", type="boat", hourly_rate=10)
