"""Periodic reconciliation of stored bookings against the wall clock.

A sweep loads every booking that is not cancelled and writes the corrections
computed by ``rules.reconciliation_changes``:

* completed but unpaid bookings go back to pending,
* unpaid bookings whose start has passed are cancelled (payment too),
* paid bookings whose end has passed are completed.

One booking failing to update does not stop the others; only a failure of
the initial listing query fails the sweep.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .clock import Clock, SystemClock, to_utc
from .errors import BookingError, capture
from .models import BookingStatus
from .repository import BookingQuery, BookingRepository
from .rules import reconciliation_changes
from .schemas import Booking

logger = logging.getLogger(__name__)

DEFAULT_AUTO_CANCEL_REASON = "Auto-cancelled: Payment not received before start time"


@dataclass
class SweepFailure:
    booking_id: str
    error: BookingError


@dataclass
class SweepReport:
    checked: int = 0
    corrected: List[Booking] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)


class Sweeper:
    def __init__(
        self,
        repository: BookingRepository,
        clock: Optional[Clock] = None,
        auto_cancel_reason: str = DEFAULT_AUTO_CANCEL_REASON,
    ) -> None:
        self._repository = repository
        self._clock = clock or SystemClock()
        self._auto_cancel_reason = auto_cancel_reason

    def run(self, now: Optional[datetime] = None) -> SweepReport:
        now = to_utc(now) if now else self._clock.now()
        bookings = self._repository.list_where(
            BookingQuery(status_not_in=(BookingStatus.CANCELLED,))
        )
        report = SweepReport(checked=len(bookings))

        for booking in bookings:
            if booking.status == BookingStatus.CANCELLED:
                continue
            changes = reconciliation_changes(booking, now, self._auto_cancel_reason)
            if not changes:
                continue
            outcome = capture(self._repository.update, booking.id, changes)
            if not outcome.ok:
                logger.error("Failed to reconcile booking %s: %s", booking.id, outcome.error)
                report.failures.append(SweepFailure(booking.id, outcome.error))
                continue
            logger.info(
                "Reconciled booking %s: %s/%s -> %s",
                booking.id,
                booking.status.value,
                booking.payment_status.value,
                {k: getattr(v, "value", v) for k, v in changes.items() if k != "updated_at"},
            )
            report.corrected.append(booking.model_copy(update=changes))

        logger.info("Updated %d bookings out of %d checked", len(report.corrected), report.checked)
        return report

    def sweep(self, now: Optional[datetime] = None) -> List[Booking]:
        return self.run(now).corrected

    def cancelled_unpaid(self, now: Optional[datetime] = None) -> List[Booking]:
        return [b for b in self.sweep(now) if b.status == BookingStatus.CANCELLED]

    def __call__(self) -> List[Booking]:
        return self.sweep()


@dataclass
class SweepHandle:
    task: asyncio.Task
    stop_event: asyncio.Event


async def _sweep_loop(sweeper: Sweeper, interval: float, stop_event: asyncio.Event) -> None:
    while not stop_event.is_set():
        try:
            await asyncio.to_thread(sweeper.run)
        except BookingError as exc:
            logger.warning("Booking sweep failed: %s", exc)
        except Exception:
            logger.exception("Unexpected error during booking sweep")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


def start_sweeping(sweeper: Sweeper, interval: float) -> SweepHandle:
    """Sweep now and then every ``interval`` seconds. Needs a running event loop."""

    if interval <= 0:
        raise ValueError("interval must be positive")
    stop_event = asyncio.Event()
    task = asyncio.create_task(_sweep_loop(sweeper, interval, stop_event))
    return SweepHandle(task=task, stop_event=stop_event)


async def stop_sweeping(handle: SweepHandle) -> None:
    handle.stop_event.set()
    await handle.task
