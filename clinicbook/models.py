"""
Scheduling models: provider directory data, appointments and their history
"""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique opaque identifier"""
    return str(uuid.uuid4())


class Provider(Base):
    """Provider reference data, owned by the provider directory"""

    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    specialty = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    availability_windows = relationship(
        "AvailabilityWindow", back_populates="provider", order_by="AvailabilityWindow.start_time"
    )


class AvailabilityWindow(Base):
    """Recurring weekly window during which a provider accepts bookings"""

    __tablename__ = "availability_windows"
    __table_args__ = (CheckConstraint("start_time < end_time", name="ck_window_start_before_end"),)

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # 0=Monday .. 6=Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)

    provider = relationship("Provider", back_populates="availability_windows")


class Appointment(Base):
    """Patient appointment and the interval it currently negotiates or occupies"""

    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    patient_id = Column(String(36), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)

    # Patient's original request; end is implied when the patient leaves it open
    requested_start = Column(DateTime, nullable=False)
    requested_end = Column(DateTime, nullable=False)

    # Provider counter-offer awaiting patient confirmation
    proposed_start = Column(DateTime, nullable=True)
    proposed_end = Column(DateTime, nullable=True)

    # Committed, calendar-occupying time (Booked and later)
    booked_start = Column(DateTime, nullable=True, index=True)
    booked_end = Column(DateTime, nullable=True)

    # Status workflow: requested → proposed → booked → arrived → ongoing → completed
    # requested may end in rejected; proposed, booked and arrived may end in cancelled
    status = Column(String(20), default="requested", nullable=False, index=True)
    concern = Column(Text, nullable=False)

    # Patient-side dismiss flag for terminal appointments
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    version = Column(Integer, nullable=False, default=1)

    history = relationship(
        "AppointmentHistory",
        back_populates="appointment",
        order_by="AppointmentHistory.sequence",
    )

    __mapper_args__ = {"version_id_col": version}


class AppointmentHistory(Base):
    """Append-only audit entry written for every lifecycle transition"""

    __tablename__ = "appointment_history"
    __table_args__ = (
        UniqueConstraint("appointment_id", "sequence", name="uq_history_appointment_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    actor_id = Column(String(255), nullable=False)
    actor_role = Column(String(20), nullable=False)
    note = Column(Text, nullable=False)  # System-generated default message
    feedback = Column(Text, nullable=True)  # Optional staff commentary, never merged into note
    related_start = Column(DateTime, nullable=True)
    related_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)

    appointment = relationship("Appointment", back_populates="history")


class ProviderDayLock(Base):
    """Serialization point for bookings of one provider on one date"""

    __tablename__ = "provider_day_locks"

    provider_id = Column(String(36), ForeignKey("providers.id"), primary_key=True)
    day = Column(Date, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
