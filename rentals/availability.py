"""Time-window availability of a vehicle, computed from overlapping bookings."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from .clock import ensure_window
from .models import ACTIVE_STATUSES
from .repository import BookingQuery, BookingRepository
from .schemas import Booking


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Inclusive-bound overlap: windows touching at a single instant conflict."""

    return a_start <= b_end and a_end >= b_start


class AvailabilityChecker:
    def __init__(self, repository: BookingRepository) -> None:
        self._repository = repository

    def conflicts(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Pending or confirmed bookings of ``vehicle_id`` overlapping ``[start, end]``."""

        ensure_window(start, end)
        candidates = self._repository.list_where(
            BookingQuery(
                vehicle_id=vehicle_id,
                status_in=ACTIVE_STATUSES,
                start_lte=end,
                end_gte=start,
                exclude_id=exclude_booking_id,
            )
        )
        # store-side filtering is best effort; re-check every candidate
        return [
            booking
            for booking in candidates
            if booking.status in ACTIVE_STATUSES
            and booking.id != exclude_booking_id
            and overlaps(booking.start_date, booking.end_date, start, end)
        ]

    def is_available(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        # store errors propagate; a failed lookup never reads as "available"
        return not self.conflicts(vehicle_id, start, end, exclude_booking_id)
