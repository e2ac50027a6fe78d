import os
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_rentals.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("SWEEP_ENABLED", "false")

from rentals.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from rentals.auth import create_access_token  # noqa: E402
from rentals.clock import FixedClock  # noqa: E402
from rentals.database import Base, SessionLocal, engine  # noqa: E402
from rentals.dependencies import get_booking_manager, get_sweeper, get_vehicle_directory  # noqa: E402
from rentals.lifecycle import BookingManager  # noqa: E402
from rentals.models import BookingStatus, PaymentStatus, VehicleType  # noqa: E402
from rentals.repository import SqlBookingRepository  # noqa: E402
from rentals.schemas import Booking, Vehicle, VehicleCreate  # noqa: E402
from rentals.sweeper import Sweeper  # noqa: E402
from rentals.vehicles import VehicleDirectory  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.vehicles.app import app as vehicles_app  # noqa: E402

NOW = datetime(2030, 1, 1, 12, 0, 0)


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def repository() -> SqlBookingRepository:
    return SqlBookingRepository(SessionLocal)


@pytest.fixture()
def vehicles(clock: FixedClock) -> VehicleDirectory:
    return VehicleDirectory(SessionLocal, cache_ttl=60, clock=clock)


@pytest.fixture()
def car(vehicles: VehicleDirectory) -> Vehicle:
    return vehicles.add(
        VehicleCreate(id="car-1", name="Toyota Camry", type=VehicleType.CAR, hourly_rate=Decimal("100"))
    )


@pytest.fixture()
def bike(vehicles: VehicleDirectory) -> Vehicle:
    return vehicles.add(
        VehicleCreate(id="bike-1", name="Royal Enfield Classic", type=VehicleType.BIKE, hourly_rate=Decimal("25"))
    )


@pytest.fixture()
def manager(repository: SqlBookingRepository, vehicles: VehicleDirectory, clock: FixedClock) -> BookingManager:
    return BookingManager(repository, vehicles, clock)


@pytest.fixture()
def sweeper(repository: SqlBookingRepository, clock: FixedClock) -> Sweeper:
    return Sweeper(repository, clock)


@pytest.fixture()
def booking_factory(repository: SqlBookingRepository) -> Callable[..., Booking]:
    """Store a booking directly, bypassing lifecycle validation."""

    def factory(**overrides: Any) -> Booking:
        fields: dict[str, Any] = {
            "vehicle_id": "car-1",
            "owner_id": "user-1",
            "start_date": NOW + timedelta(hours=2),
            "end_date": NOW + timedelta(hours=4),
            "status": BookingStatus.PENDING,
            "payment_status": PaymentStatus.PENDING,
            "total_price": Decimal("200"),
            "created_at": NOW - timedelta(days=1),
        }
        fields.update(overrides)
        booking_id = repository.insert(fields)
        stored = repository.get_by_id(booking_id)
        assert stored is not None
        return stored

    return factory


def auth_header(user_id: str, role: str = "customer") -> dict[str, str]:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def customer_headers() -> dict[str, str]:
    return auth_header("user-1")


@pytest.fixture()
def other_customer_headers() -> dict[str, str]:
    return auth_header("user-2")


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return auth_header("admin-1", role="admin")


@pytest.fixture()
def bookings_client(
    manager: BookingManager, vehicles: VehicleDirectory, sweeper: Sweeper
) -> Generator[TestClient, None, None]:
    bookings_app.dependency_overrides[get_booking_manager] = lambda: manager
    bookings_app.dependency_overrides[get_vehicle_directory] = lambda: vehicles
    bookings_app.dependency_overrides[get_sweeper] = lambda: sweeper
    with TestClient(bookings_app) as client:
        yield client
    bookings_app.dependency_overrides.clear()


@pytest.fixture()
def vehicles_client(vehicles: VehicleDirectory) -> Generator[TestClient, None, None]:
    vehicles_app.dependency_overrides[get_vehicle_directory] = lambda: vehicles
    with TestClient(vehicles_app) as client:
        yield client
    vehicles_app.dependency_overrides.clear()
