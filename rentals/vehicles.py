"""Vehicle inventory and the lookup the booking core depends on.

A lookup for an id that no longer exists yields ``None``; bookings may outlive
the vehicle they reference.
"""
from __future__ import annotations

import logging
import threading
import uuid
from decimal import Decimal
from typing import List, Optional

from cachetools import TTLCache
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .clock import Clock, SystemClock
from .database import store_session
from .errors import ConflictError, NotFoundError
from .models import VehicleRecord, VehicleType
from .schemas import Vehicle, VehicleCreate, VehicleUpdate

logger = logging.getLogger(__name__)


class VehicleDirectory:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        cache_ttl: int = 60,
        clock: Optional[Clock] = None,
        cache_size: int = 256,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._cache: TTLCache[str, Vehicle] = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self._lock = threading.Lock()

    def get(self, vehicle_id: str) -> Optional[Vehicle]:
        with self._lock:
            cached = self._cache.get(vehicle_id)
        if cached is not None:
            return cached
        with store_session(self._session_factory, "vehicle lookup") as db:
            record = db.get(VehicleRecord, vehicle_id)
            vehicle = Vehicle.model_validate(record) if record else None
        if vehicle is None:
            logger.info("Vehicle %s not found; continuing without it", vehicle_id)
            return None
        with self._lock:
            self._cache[vehicle_id] = vehicle
        return vehicle

    def list(self, type: Optional[VehicleType] = None, available_only: bool = False) -> List[Vehicle]:
        stmt = select(VehicleRecord).order_by(VehicleRecord.name)
        if type is not None:
            stmt = stmt.where(VehicleRecord.type == type.value)
        if available_only:
            stmt = stmt.where(VehicleRecord.availability_status.is_(True))
        with store_session(self._session_factory, "vehicle list") as db:
            return [Vehicle.model_validate(record) for record in db.scalars(stmt)]

    def add(self, vehicle_in: VehicleCreate) -> Vehicle:
        vehicle_id = vehicle_in.id or f"{vehicle_in.type.value}-{uuid.uuid4().hex[:8]}"
        with store_session(self._session_factory, "vehicle add") as db:
            if db.get(VehicleRecord, vehicle_id) is not None:
                raise ConflictError(f"Vehicle {vehicle_id} already exists")
            record = VehicleRecord(
                id=vehicle_id,
                name=vehicle_in.name,
                type=vehicle_in.type.value,
                hourly_rate=vehicle_in.hourly_rate,
                availability_status=True,
                created_at=self._clock.now(),
            )
            db.add(record)
            db.commit()
            return Vehicle.model_validate(record)

    def update(self, vehicle_id: str, vehicle_update: VehicleUpdate) -> Vehicle:
        data = vehicle_update.model_dump(exclude_unset=True)
        if "type" in data and data["type"] is not None:
            data["type"] = data["type"].value
        return self._patch(vehicle_id, data)

    def set_availability(self, vehicle_id: str, available: bool) -> Vehicle:
        return self._patch(vehicle_id, {"availability_status": available})

    def delete(self, vehicle_id: str) -> None:
        with store_session(self._session_factory, "vehicle delete") as db:
            record = db.get(VehicleRecord, vehicle_id)
            if record is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            db.delete(record)
            db.commit()
        self._invalidate(vehicle_id)

    def hourly_rate(self, vehicle_id: str) -> Optional[Decimal]:
        vehicle = self.get(vehicle_id)
        return vehicle.hourly_rate if vehicle else None

    def _patch(self, vehicle_id: str, data: dict) -> Vehicle:
        with store_session(self._session_factory, "vehicle update") as db:
            record = db.get(VehicleRecord, vehicle_id)
            if record is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            for key, value in data.items():
                setattr(record, key, value)
            record.updated_at = self._clock.now()
            db.commit()
            vehicle = Vehicle.model_validate(record)
        self._invalidate(vehicle_id)
        return vehicle

    def _invalidate(self, vehicle_id: str) -> None:
        with self._lock:
            self._cache.pop(vehicle_id, None)
