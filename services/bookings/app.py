from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from rentals.clock import parse_instant
from rentals.config import get_settings
from rentals.database import Base, engine
from rentals.dependencies import allow_roles, get_booking_manager, get_current_principal, get_sweeper
from rentals.lifecycle import BookingManager
from rentals.logging_middleware import add_audit_middleware, configure_logging
from rentals.models import RoleEnum
from rentals.rate_limit import apply_rate_limiter, limiter
from rentals.schemas import (
    AvailabilityRead,
    Booking,
    BookingCancel,
    BookingCreate,
    BookingRead,
    BookingReschedule,
    BookingStatusUpdate,
    PaymentUpdate,
    SweepFailureRead,
    SweepRead,
    TokenData,
)
from rentals.sweeper import Sweeper, start_sweeping, stop_sweeping

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    handle = None
    if settings.sweep_enabled:
        handle = start_sweeping(get_sweeper(), settings.sweep_interval_seconds)
    yield
    if handle is not None:
        await stop_sweeping(handle)


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Bookings Service", version="0.2.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


def _ensure_access(booking: Booking, principal: TokenData) -> None:
    if principal.role != RoleEnum.ADMIN and booking.owner_id != principal.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    principal: TokenData = Depends(get_current_principal),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingRead:
    booking = manager.create(
        vehicle_id=booking_in.vehicle_id,
        owner_id=principal.user_id,
        start=booking_in.start_date,
        end=booking_in.end_date,
        customer_name=booking_in.customer_name,
    )
    return manager.describe(booking)


@app.get("/bookings", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_bookings(
    request: Request,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    manager: BookingManager = Depends(get_booking_manager),
) -> List[BookingRead]:
    return manager.list_all()


@app.get("/bookings/me", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_my_bookings(
    request: Request,
    principal: TokenData = Depends(get_current_principal),
    manager: BookingManager = Depends(get_booking_manager),
) -> List[BookingRead]:
    return manager.list_for_owner(principal.user_id)


@app.get("/bookings/availability", response_model=AvailabilityRead)
@limiter.limit("40/minute")
def check_availability(
    request: Request,
    vehicle_id: str,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    manager: BookingManager = Depends(get_booking_manager),
) -> AvailabilityRead:
    start = parse_instant(start_date)
    end = parse_instant(end_date)
    available = manager.availability.is_available(vehicle_id, start, end)
    return AvailabilityRead(vehicle_id=vehicle_id, start_date=start, end_date=end, available=available)


@app.post("/bookings/recheck", response_model=SweepRead)
@limiter.limit("10/minute")
def recheck_bookings(
    request: Request,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    sweeper: Sweeper = Depends(get_sweeper),
) -> SweepRead:
    report = sweeper.run()
    return SweepRead(
        checked=report.checked,
        corrected=report.corrected,
        failures=[
            SweepFailureRead(booking_id=f.booking_id, kind=f.error.kind.value, detail=f.error.message)
            for f in report.failures
        ],
    )


@app.get("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit("60/minute")
def get_booking(
    request: Request,
    booking_id: str,
    principal: TokenData = Depends(get_current_principal),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingRead:
    booking = manager.get(booking_id)
    _ensure_access(booking, principal)
    return manager.describe(booking)


@app.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
@limiter.limit("20/minute")
def cancel_booking(
    request: Request,
    booking_id: str,
    cancel_in: Optional[BookingCancel] = None,
    principal: TokenData = Depends(get_current_principal),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingRead:
    _ensure_access(manager.get(booking_id), principal)
    return manager.describe(manager.cancel(booking_id, reason=cancel_in.reason if cancel_in else None))


@app.post("/bookings/{booking_id}/reschedule", response_model=BookingRead)
@limiter.limit("20/minute")
def reschedule_booking(
    request: Request,
    booking_id: str,
    reschedule_in: BookingReschedule,
    principal: TokenData = Depends(get_current_principal),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingRead:
    _ensure_access(manager.get(booking_id), principal)
    booking = manager.reschedule(booking_id, reschedule_in.start_date, reschedule_in.end_date)
    return manager.describe(booking)


@app.patch("/bookings/{booking_id}/status", response_model=BookingRead)
@limiter.limit("20/minute")
def update_booking_status(
    request: Request,
    booking_id: str,
    status_in: BookingStatusUpdate,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingRead:
    return manager.describe(manager.update_status(booking_id, status_in.status))


@app.patch("/bookings/{booking_id}/payment", response_model=BookingRead)
@limiter.limit("20/minute")
def update_payment(
    request: Request,
    booking_id: str,
    payment_in: PaymentUpdate,
    _: TokenData = Depends(allow_roles(RoleEnum.ADMIN)),
    manager: BookingManager = Depends(get_booking_manager),
) -> BookingRead:
    booking = manager.record_payment(booking_id, payment_in.payment_status, payment_in.payment_id)
    return manager.describe(booking)
