from contextlib import asynccontextmanager
from typing import List, Optional

from circuitbreaker import circuit
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from rentals.config import get_settings
from rentals.database import Base, engine
from rentals.dependencies import allow_roles, get_vehicle_directory
from rentals.errors import StoreUnavailableError
from rentals.logging_middleware import add_audit_middleware, configure_logging
from rentals.models import RoleEnum, VehicleType
from rentals.rate_limit import apply_rate_limiter, limiter
from rentals.schemas import (
    TokenData,
    Vehicle,
    VehicleAvailabilityUpdate,
    VehicleCreate,
    VehicleRead,
    VehicleUpdate,
)
from rentals.vehicles import VehicleDirectory

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Vehicles Service", version="0.2.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "vehicles")
    return fastapi_app


app = create_app()


@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=StoreUnavailableError)
def _list_vehicles(
    vehicles: VehicleDirectory, type: Optional[VehicleType], available_only: bool
) -> List[Vehicle]:
    return vehicles.list(type=type, available_only=available_only)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "vehicles"}


@app.get("/vehicles", response_model=List[VehicleRead])
@limiter.limit("60/minute")
def list_vehicles(
    request: Request,
    type: Optional[VehicleType] = None,
    available: bool = False,
    vehicles: VehicleDirectory = Depends(get_vehicle_directory),
) -> List[Vehicle]:
    return _list_vehicles(vehicles, type, available)


@app.get("/vehicles/{vehicle_id}", response_model=VehicleRead)
@limiter.limit("60/minute")
def get_vehicle(
    request: Request,
    vehicle_id: str,
    vehicles: VehicleDirectory = Depends(get_vehicle_directory),
) -> Vehicle:
    vehicle = vehicles.get(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle


@app.post("/vehicles", response_model=VehicleRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_vehicle(
    request: Request,
    vehicle_in: VehicleCreate,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    vehicles: VehicleDirectory = Depends(get_vehicle_directory),
) -> Vehicle:
    return vehicles.add(vehicle_in)


@app.put("/vehicles/{vehicle_id}", response_model=VehicleRead)
@limiter.limit("15/minute")
def update_vehicle(
    request: Request,
    vehicle_id: str,
    vehicle_update: VehicleUpdate,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    vehicles: VehicleDirectory = Depends(get_vehicle_directory),
) -> Vehicle:
    return vehicles.update(vehicle_id, vehicle_update)


@app.patch("/vehicles/{vehicle_id}/availability", response_model=VehicleRead)
@limiter.limit("15/minute")
def set_vehicle_availability(
    request: Request,
    vehicle_id: str,
    availability_in: VehicleAvailabilityUpdate,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    vehicles: VehicleDirectory = Depends(get_vehicle_directory),
) -> Vehicle:
    return vehicles.set_availability(vehicle_id, availability_in.availability_status)


@app.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_vehicle(
    request: Request,
    vehicle_id: str,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    vehicles: VehicleDirectory = Depends(get_vehicle_directory),
) -> None:
    vehicles.delete(vehicle_id)
