"""Read/write access to booking documents.

Every call runs in its own session: a single ``update`` is atomic per booking,
but a read followed by a write is not. Callers re-validate what they read.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Sequence

import pydantic
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from .database import store_session
from .errors import NotFoundError, ValidationError
from .models import BookingRecord, BookingStatus
from .schemas import Booking

logger = logging.getLogger(__name__)

_WRITABLE_FIELDS = frozenset(
    column.key for column in BookingRecord.__table__.columns if column.key != "id"
)


@dataclass(frozen=True)
class BookingQuery:
    """Filter predicate understood by ``list_where``. Unset fields do not filter."""

    vehicle_id: Optional[str] = None
    status_in: Optional[Sequence[BookingStatus]] = None
    status_not_in: Optional[Sequence[BookingStatus]] = None
    start_lte: Optional[datetime] = None
    start_gte: Optional[datetime] = None
    end_lte: Optional[datetime] = None
    end_gte: Optional[datetime] = None
    exclude_id: Optional[str] = None


class BookingRepository(Protocol):
    def insert(self, fields: Mapping[str, Any]) -> str: ...

    def get_by_id(self, booking_id: str) -> Optional[Booking]: ...

    def list_by_owner(self, owner_id: str) -> List[Booking]: ...

    def list_all(self) -> List[Booking]: ...

    def list_where(self, query: BookingQuery) -> List[Booking]: ...

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> None: ...


def _column_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - _WRITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown booking fields: {', '.join(sorted(unknown))}")
    return {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}


class SqlBookingRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _session(self, action: str):
        return store_session(self._session_factory, action)

    def insert(self, fields: Mapping[str, Any]) -> str:
        values = _column_values(fields)
        booking_id = uuid.uuid4().hex
        with self._session("insert") as db:
            db.add(BookingRecord(id=booking_id, **values))
            db.commit()
        return booking_id

    def get_by_id(self, booking_id: str) -> Optional[Booking]:
        with self._session("get") as db:
            record = db.get(BookingRecord, booking_id)
            return Booking.model_validate(record) if record else None

    def list_by_owner(self, owner_id: str) -> List[Booking]:
        stmt = (
            select(BookingRecord)
            .where(BookingRecord.owner_id == owner_id)
            .order_by(BookingRecord.created_at.desc())
        )
        return self._fetch(stmt, "list_by_owner")

    def list_all(self) -> List[Booking]:
        stmt = select(BookingRecord).order_by(BookingRecord.created_at.desc())
        return self._fetch(stmt, "list_all")

    def list_where(self, query: BookingQuery) -> List[Booking]:
        stmt = select(BookingRecord)
        if query.vehicle_id is not None:
            stmt = stmt.where(BookingRecord.vehicle_id == query.vehicle_id)
        if query.status_in is not None:
            stmt = stmt.where(BookingRecord.status.in_([s.value for s in query.status_in]))
        if query.status_not_in is not None:
            stmt = stmt.where(BookingRecord.status.not_in([s.value for s in query.status_not_in]))
        if query.start_lte is not None:
            stmt = stmt.where(BookingRecord.start_date <= query.start_lte)
        if query.start_gte is not None:
            stmt = stmt.where(BookingRecord.start_date >= query.start_gte)
        if query.end_lte is not None:
            stmt = stmt.where(BookingRecord.end_date <= query.end_lte)
        if query.end_gte is not None:
            stmt = stmt.where(BookingRecord.end_date >= query.end_gte)
        if query.exclude_id is not None:
            stmt = stmt.where(BookingRecord.id != query.exclude_id)
        return self._fetch(stmt, "list_where")

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> None:
        values = _column_values(fields)
        with self._session("update") as db:
            result = db.execute(
                update(BookingRecord).where(BookingRecord.id == booking_id).values(**values)
            )
            matched = result.rowcount
            db.commit()
        if matched == 0:
            raise NotFoundError(f"Booking {booking_id} not found")

    def _fetch(self, stmt, action: str) -> List[Booking]:
        """Run ``stmt`` and convert the rows. Rows that do not validate are logged and skipped."""

        bookings: List[Booking] = []
        with self._session(action) as db:
            for record in db.scalars(stmt):
                try:
                    bookings.append(Booking.model_validate(record))
                except pydantic.ValidationError as exc:
                    logger.error("Skipping malformed booking %s: %s", record.id, exc.errors()[0]["msg"])
        return bookings
