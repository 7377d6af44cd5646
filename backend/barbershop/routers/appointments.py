# backend/barbershop/routers/appointments.py

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_engine
from ..errors import DataSourceError, InvalidTransition, NotFound, SlotConflict
from ..models.tables import AppointmentStatus
from ..schemas.appointments import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusUpdate,
)
from ..services.engine import BookingEngine

router = APIRouter(prefix="/appointments", tags=["appointments"])

SLOT_TAKEN_DETAIL = "This time is no longer available. Please pick another."


def _storage_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Storage unavailable, the operation was not completed",
    )


@router.get("/", response_model=list[AppointmentRead])
async def list_appointments(
    target_date: date | None = Query(None, alias="date"),
    email: str | None = None,
    appointment_status: AppointmentStatus | None = Query(None, alias="status"),
    engine: BookingEngine = Depends(get_engine),
):
    """Barber daily schedule (?date=) or a client's appointments (?email=)."""
    try:
        return await engine.list_appointments(target_date, appointment_status, email)
    except DataSourceError:
        raise _storage_unavailable()


@router.post("/", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    engine: BookingEngine = Depends(get_engine),
):
    try:
        return await engine.create_appointment(data)
    except SlotConflict:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SLOT_TAKEN_DETAIL)
    except DataSourceError:
        raise _storage_unavailable()


@router.post("/{id}/cancel", response_model=AppointmentRead)
async def cancel_appointment(id: int, engine: BookingEngine = Depends(get_engine)):
    try:
        return await engine.cancel_appointment(id)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    except DataSourceError:
        raise _storage_unavailable()


@router.patch("/{id}/status", response_model=AppointmentRead)
async def update_appointment_status(
    id: int,
    data: AppointmentStatusUpdate,
    engine: BookingEngine = Depends(get_engine),
):
    """Barber-only status change (role is enforced by the auth layer in front)."""
    try:
        return await engine.update_status(id, data.status)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except DataSourceError:
        raise _storage_unavailable()


@router.delete("/{id}")
def delete_not_allowed(id: int):
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
