"""Reusable FastAPI dependencies for auth and the booking core."""
from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .auth import decode_token
from .config import get_settings
from .database import SessionLocal
from .lifecycle import BookingManager
from .models import RoleEnum
from .repository import SqlBookingRepository
from .schemas import TokenData
from .sweeper import Sweeper
from .vehicles import VehicleDirectory

bearer_scheme = HTTPBearer()

_vehicle_directory = VehicleDirectory(SessionLocal, cache_ttl=get_settings().vehicle_cache_ttl)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> TokenData:
    return decode_token(credentials.credentials)


def allow_roles(*roles: RoleEnum) -> Callable[[TokenData], TokenData]:
    def dependency(principal: TokenData = Depends(get_current_principal)) -> TokenData:
        if principal.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return principal

    return dependency


def get_vehicle_directory() -> VehicleDirectory:
    return _vehicle_directory


def get_booking_manager(vehicles: VehicleDirectory = Depends(get_vehicle_directory)) -> BookingManager:
    return BookingManager(SqlBookingRepository(SessionLocal), vehicles)


def get_sweeper() -> Sweeper:
    return Sweeper(SqlBookingRepository(SessionLocal), auto_cancel_reason=get_settings().auto_cancel_reason)
