# backend/barbershop/services/catalog.py
"""
Static service catalog.

Process-wide constant, read-only after import.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 30  # minutes


@dataclass(frozen=True)
class Service:
    name: str
    duration_minutes: int
    price: Decimal


SERVICES: tuple[Service, ...] = (
    Service("Corte de Cabelo", 30, Decimal("35")),
    Service("Barba", 20, Decimal("25")),
    Service("Corte + Barba", 50, Decimal("55")),
    Service("Acabamento", 15, Decimal("20")),
)

_BY_NAME = {s.name: s for s in SERVICES}


def list_services() -> tuple[Service, ...]:
    return SERVICES


def get_service(name: str) -> Service | None:
    """Exact-name lookup."""
    return _BY_NAME.get(name)


def duration_of(service_name: str, default: int = DEFAULT_DURATION) -> int:
    """
    Duration in minutes for a service name.

    Unknown names fall back to `default` (30 min). The fallback is logged
    since it usually means a typo in stored data.
    """
    service = _BY_NAME.get(service_name)
    if service is None:
        logger.warning(f"Unknown service {service_name!r}, assuming {default} minutes")
        return default
    return service.duration_minutes
