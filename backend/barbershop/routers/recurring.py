# backend/barbershop/routers/recurring.py
# Barber-managed weekly blocks.

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_engine
from ..errors import DataSourceError, NotFound, SlotConflict
from ..models.tables import RecurringStatus
from ..schemas.recurring import RecurringCreate, RecurringRead, RecurringStatusUpdate
from ..services.engine import BookingEngine

router = APIRouter(prefix="/recurring", tags=["recurring"])


@router.get("/", response_model=list[RecurringRead])
async def list_recurring(
    weekday: int | None = Query(None, ge=0, le=6),
    recurring_status: RecurringStatus | None = Query(None, alias="status"),
    engine: BookingEngine = Depends(get_engine),
):
    try:
        return await engine.list_recurring(weekday, recurring_status)
    except DataSourceError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable")


@router.post("/", response_model=RecurringRead, status_code=status.HTTP_201_CREATED)
async def create_recurring(
    data: RecurringCreate,
    engine: BookingEngine = Depends(get_engine),
):
    try:
        return await engine.create_recurring(data)
    except SlotConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another weekly block or an appointment already takes this time",
        )
    except DataSourceError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable")


@router.patch("/{id}/status", response_model=RecurringRead)
async def update_recurring_status(
    id: int,
    data: RecurringStatusUpdate,
    engine: BookingEngine = Depends(get_engine),
):
    try:
        return await engine.update_recurring_status(id, data.status)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    except SlotConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another weekly block or an appointment already takes this time",
        )
    except DataSourceError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable")


@router.delete("/{id}", response_model=RecurringRead)
async def delete_recurring(id: int, engine: BookingEngine = Depends(get_engine)):
    try:
        return await engine.delete_recurring(id)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    except DataSourceError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage unavailable")
