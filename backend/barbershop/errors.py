# backend/barbershop/errors.py
"""
Booking engine error taxonomy.

ParseError        malformed "HH:MM" value, fatal to the single call
DataSourceError   storage collaborator unreachable or failing
ConflictError     storage rejected an insert (overlap / unique index)
SlotConflict      authoritative re-check found the slot taken
NotFound          unknown appointment id
InvalidTransition illegal status change
"""


class BookingError(Exception):
    """Base class for all booking engine errors."""


class ParseError(BookingError, ValueError):
    pass


class DataSourceError(BookingError):
    pass


class ConflictError(BookingError):
    pass


class SlotConflict(ConflictError):
    def __init__(self, message: str = "This time is no longer available. Please pick another."):
        super().__init__(message)


class NotFound(BookingError, LookupError):
    pass


class InvalidTransition(BookingError):
    pass
