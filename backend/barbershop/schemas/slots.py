# backend/barbershop/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

import datetime as dt
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ServiceRead(BaseModel):
    """A catalog entry."""
    name: str
    duration_minutes: int
    price: Decimal

    model_config = {"from_attributes": True}


class InitialSlotsResponse(BaseModel):
    """Fixed daily grid, before any booking is considered."""
    slots: list[str]
    open_time: str
    close_time: str
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")


class SlotsDayResponse(BaseModel):
    """Open start times for a service on a day."""
    date: date
    weekday: int
    service_name: str
    duration_minutes: int
    slots: list[str]
    degraded: bool = Field(
        False,
        description="True when storage was unreachable and only locally held appointments were checked",
    )


class SlotCheckResponse(BaseModel):
    """Availability of a single start time."""
    date: date
    time: str
    service_name: str
    duration_minutes: int
    available: bool


class CacheInvalidateRequest(BaseModel):
    """Targeted invalidation when date/time/weekday are given, full clear otherwise."""
    date: Optional[dt.date] = None
    time: Optional[str] = None
    weekday: Optional[int] = Field(None, ge=0, le=6)


class CacheInvalidateResponse(BaseModel):
    deleted_keys: int
    scope: str
