from fastapi import Request

from .services.engine import BookingEngine


def get_engine(request: Request) -> BookingEngine:
    return request.app.state.engine
