"""Scheduling schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, field_validator, model_validator

from .lifecycle import AppointmentStatus
from .time_calculator import to_facility_time


# Wall-clock time in the facility zone; offset-aware input is converted
FacilityDateTime = Annotated[datetime, AfterValidator(to_facility_time)]


class IntervalSchema(BaseModel):
    start: datetime
    end: datetime


class AppointmentRequestCreate(BaseModel):
    """Schema for a patient's appointment request"""

    patient_id: str
    provider_id: str
    requested_start: FacilityDateTime
    requested_end: Optional[FacilityDateTime] = None
    concern: str

    @field_validator("concern")
    @classmethod
    def validate_concern(cls, v):
        if not v or not v.strip():
            raise ValueError("Concern is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_interval(self):
        if self.requested_end is not None and self.requested_end <= self.requested_start:
            raise ValueError("End time must be after start time")
        return self


class TransitionRequest(BaseModel):
    """Schema for moving an appointment to another status"""

    target_status: AppointmentStatus
    start: Optional[FacilityDateTime] = None
    end: Optional[FacilityDateTime] = None
    feedback: Optional[str] = None

    @model_validator(mode="after")
    def validate_interval(self):
        if (self.start is None) != (self.end is None):
            raise ValueError("Provide both start and end, or neither")
        if self.start is not None and self.end <= self.start:
            raise ValueError("End time must be after start time")
        return self


class SlotCheckRequest(BaseModel):
    """Schema for a read-only slot validation"""

    start: FacilityDateTime
    end: FacilityDateTime
    exclude_appointment_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_interval(self):
        if self.end <= self.start:
            raise ValueError("End time must be after start time")
        return self


class SlotCheckResponse(BaseModel):
    ok: bool
    message: str
    reason: Optional[str] = None
    hint: Optional[str] = None
    latest_start: Optional[datetime] = None
    conflicting: Optional[IntervalSchema] = None


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    patient_id: str
    provider_id: str
    status: AppointmentStatus
    concern: str
    is_active: bool
    requested: IntervalSchema
    proposed: Optional[IntervalSchema] = None
    booked: Optional[IntervalSchema] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HistoryEntryResponse(BaseModel):
    """Schema for one history entry"""

    sequence: int
    status: AppointmentStatus
    actor_id: str
    actor_role: str
    note: str
    feedback: Optional[str] = None
    related_start: Optional[datetime] = None
    related_end: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DayOverviewResponse(BaseModel):
    """Provider's open intervals and booked intervals for one date"""

    provider_id: str
    day: date
    available: list[IntervalSchema]
    busy: list[IntervalSchema]
