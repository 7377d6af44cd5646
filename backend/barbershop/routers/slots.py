# backend/barbershop/routers/slots.py
"""
Slots API endpoints.

GET  /slots/initial    - fixed daily grid
GET  /slots/day        - open start times for a service on a day
GET  /slots/check      - availability of one start time
POST /slots/invalidate - drop cached availability (admin)
"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_engine
from ..errors import DataSourceError, ParseError
from ..schemas.slots import (
    CacheInvalidateRequest,
    CacheInvalidateResponse,
    InitialSlotsResponse,
    SlotCheckResponse,
    SlotsDayResponse,
)
from ..services.engine import BookingEngine
from ..services.slots import to_minutes, minutes_to_time_str, weekday_of


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/initial", response_model=InitialSlotsResponse)
def get_initial_slots(engine: BookingEngine = Depends(get_engine)):
    """Business-hours grid, identical for every day."""
    config = engine.config
    return InitialSlotsResponse(
        slots=engine.get_initial_slots(),
        open_time=config.open_time,
        close_time=config.close_time,
        slot_step_minutes=config.slot_step_minutes,
    )


@router.get("/day", response_model=SlotsDayResponse)
async def get_slots_day(
    service: str,
    target_date: date = Query(..., alias="date"),
    weekday: int | None = Query(None, ge=0, le=6),
    engine: BookingEngine = Depends(get_engine),
):
    """Open start times for a service on a day; degraded=True when storage was unreachable."""
    duration = engine.duration_of(service)
    if weekday is None:
        weekday = weekday_of(target_date)

    result = await engine.get_open_slots(target_date, weekday, duration)

    return SlotsDayResponse(
        date=target_date,
        weekday=weekday,
        service_name=service,
        duration_minutes=duration,
        slots=result.slots,
        degraded=result.degraded,
    )


@router.get("/check", response_model=SlotCheckResponse)
async def check_slot(
    service: str,
    time: str,
    target_date: date = Query(..., alias="date"),
    engine: BookingEngine = Depends(get_engine),
):
    try:
        start_time = minutes_to_time_str(to_minutes(time))
    except ParseError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    duration = engine.duration_of(service)
    try:
        available = await engine.check_slot(target_date, start_time, duration)
    except DataSourceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Availability could not be checked, try again shortly",
        )

    return SlotCheckResponse(
        date=target_date,
        time=start_time,
        service_name=service,
        duration_minutes=duration,
        available=available,
    )


@router.post("/invalidate", response_model=CacheInvalidateResponse)
async def invalidate_slots_cache(
    data: CacheInvalidateRequest,
    engine: BookingEngine = Depends(get_engine),
):
    """Invalidate one (date, time) or, without them, the whole cache (admin endpoint)."""
    if data.date is None or data.time is None:
        deleted = await engine.clear_cache()
        return CacheInvalidateResponse(deleted_keys=deleted, scope="all")

    try:
        start_time = minutes_to_time_str(to_minutes(data.time))
    except ParseError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    weekday = data.weekday if data.weekday is not None else weekday_of(data.date)
    deleted = await engine.invalidate_cache(data.date, start_time, weekday)
    return CacheInvalidateResponse(
        deleted_keys=deleted,
        scope=f"{data.date.isoformat()} {start_time}",
    )
