# backend/barbershop/schemas/recurring.py

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..models.tables import RecurringStatus
from .appointments import normalize_phone, normalize_time


class RecurringCreate(BaseModel):
    client_name: str = Field(min_length=1)
    phone: str
    service_name: str
    weekday: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: str = Field(description="Start time in HH:MM format")

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        return normalize_time(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v)


class RecurringRead(BaseModel):
    id: int

    client_name: str
    phone: str
    service_name: str

    weekday: int
    start_time: str

    status: RecurringStatus
    created_at: Optional[str] = None

    model_config = {"from_attributes": True}


class RecurringStatusUpdate(BaseModel):
    status: RecurringStatus
