# backend/barbershop/schemas/appointments.py

import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..models.tables import AppointmentStatus


def normalize_time(v: str) -> str:
    """Validate "HH:MM" and zero-pad it ("9:00" → "09:00")."""
    from ..services.slots.config import to_minutes, minutes_to_time_str

    return minutes_to_time_str(to_minutes(v))


def normalize_phone(v: str) -> str:
    """Digits only, no leading zeros, Brazilian country code (55) prepended."""
    digits = re.sub(r"\D", "", v).lstrip("0")
    if not digits:
        raise ValueError("Phone must contain digits")
    if not digits.startswith("55"):
        digits = "55" + digits
    return digits


class AppointmentCreate(BaseModel):
    client_name: str = Field(min_length=1)
    phone: str
    service_name: str
    date: date
    start_time: str = Field(description="Start time in HH:MM format")
    email: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        return normalize_time(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v)


class AppointmentRead(BaseModel):
    id: int

    client_name: str
    phone: str
    service_name: str

    date: date
    start_time: str

    status: AppointmentStatus
    email: Optional[str] = None
    created_at: Optional[str] = None

    model_config = {"from_attributes": True}


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
