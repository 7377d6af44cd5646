from enum import Enum as PyEnum

from sqlalchemy import Column, Index, Integer, Text, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()
metadata = Base.metadata


class AppointmentStatus(str, PyEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class RecurringStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        # Storage-level linearization point for concurrent creates:
        # at most one confirmed appointment per (date, start_time).
        Index(
            'uq_appointments_confirmed_slot',
            'date', 'start_time',
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
        Index('ix_appointments_date', 'date'),
        Index('ix_appointments_email', 'email'),
    )

    id = Column(Integer, primary_key=True)
    client_name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    service_name = Column(Text, nullable=False)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)  # HH:MM
    status = Column(Text, nullable=False, server_default=text("'confirmed'"))
    email = Column(Text)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))


class RecurringAppointments(Base):
    __tablename__ = 'recurring_appointments'
    __table_args__ = (
        Index('ix_recurring_weekday_status', 'weekday', 'status'),
    )

    id = Column(Integer, primary_key=True)
    client_name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    service_name = Column(Text, nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(Text, nullable=False)  # HH:MM
    status = Column(Text, nullable=False, server_default=text("'active'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
