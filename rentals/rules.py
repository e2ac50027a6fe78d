"""Pure booking rules shared by the lifecycle manager and the sweeper."""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Union

from .clock import billable_hours
from .models import TERMINAL_STATUSES, BookingStatus, PaymentStatus
from .schemas import Booking

CENTS = Decimal("0.01")

# admin-driven status changes; terminal statuses have no entry
STATUS_TRANSITIONS: Mapping[BookingStatus, frozenset] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.PENDING, BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
}


class DisplayStatus(str, Enum):
    UPCOMING = "Upcoming"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


def derive_display_status(booking: Booking, now: datetime) -> DisplayStatus:
    """Label shown to customers. Recomputed on every read, never persisted."""

    if booking.status == BookingStatus.CANCELLED:
        return DisplayStatus.CANCELLED
    if now < booking.start_date:
        return DisplayStatus.UPCOMING
    if booking.start_date <= now <= booking.end_date:
        return DisplayStatus.ONGOING
    return DisplayStatus.COMPLETED


def can_modify(booking: Booking, now: datetime) -> bool:
    return booking.status not in TERMINAL_STATUSES and booking.start_date > now


def price_for(hourly_rate: Union[Decimal, int, float, str], start: datetime, end: datetime) -> Decimal:
    return (Decimal(str(hourly_rate)) * billable_hours(start, end)).quantize(CENTS, rounding=ROUND_HALF_UP)


def implied_hourly_rate(booking: Booking) -> Decimal:
    return Decimal(booking.total_price) / billable_hours(booking.start_date, booking.end_date)


def reconciliation_changes(booking: Booking, now: datetime, auto_cancel_reason: str) -> Dict[str, Any]:
    """Field changes that bring ``booking`` in line with ``now`` and its payment state.

    Every rule reads the stored snapshot, not the output of an earlier rule, and
    later rules overwrite fields set by earlier ones. A repaired
    completed/unpaid booking is therefore only re-examined on the next sweep
    unless its start time has already passed, in which case the cancellation
    rule lands in the same pass. Returns an empty dict when nothing is due.
    """
    changes: Dict[str, Any] = {}

    if booking.status == BookingStatus.COMPLETED and booking.payment_status == PaymentStatus.PENDING:
        changes["status"] = BookingStatus.PENDING

    if booking.payment_status == PaymentStatus.PENDING and booking.start_date <= now:
        changes["status"] = BookingStatus.CANCELLED
        changes["payment_status"] = PaymentStatus.CANCELLED
        changes["cancelled_at"] = now
        changes["cancellation_reason"] = auto_cancel_reason

    if (
        booking.payment_status == PaymentStatus.PAID
        and booking.end_date <= now
        and booking.status != BookingStatus.COMPLETED
    ):
        changes["status"] = BookingStatus.COMPLETED

    if changes:
        changes["updated_at"] = now
    return changes
