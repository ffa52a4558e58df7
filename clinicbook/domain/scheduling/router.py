"""Scheduling router - FastAPI endpoints for appointments and provider calendars"""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import Appointment
from .errors import SchedulingError
from .lifecycle import ActorRole, AppointmentStatus
from .schemas import (
    AppointmentRequestCreate,
    AppointmentResponse,
    DayOverviewResponse,
    HistoryEntryResponse,
    IntervalSchema,
    SlotCheckRequest,
    SlotCheckResponse,
    TransitionRequest,
)
from .service import Actor, BookingOrchestrator, TransitionPayload, TransitionResult
from .time_calculator import Interval

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
providers_router = APIRouter(prefix="/providers", tags=["Providers"])
patients_router = APIRouter(prefix="/patients", tags=["Patients"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingOrchestrator:
    """Dependency injection for BookingOrchestrator"""
    return BookingOrchestrator(db)


def get_current_actor(
    actor_id: str = Header(..., alias="X-Actor-Id"),
    actor_role: ActorRole = Header(..., alias="X-Actor-Role"),
) -> Actor:
    """Caller identity as asserted by the upstream gateway"""
    return Actor(id=actor_id, role=actor_role)


def _interval_schema(interval: Optional[Interval]) -> Optional[IntervalSchema]:
    if interval is None:
        return None
    return IntervalSchema(start=interval.start, end=interval.end)


def appointment_to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        provider_id=appointment.provider_id,
        status=appointment.status,
        concern=appointment.concern,
        is_active=appointment.is_active,
        requested=_interval_schema(Interval(appointment.requested_start, appointment.requested_end)),
        proposed=_interval_schema(Interval.from_columns(appointment.proposed_start, appointment.proposed_end)),
        booked=_interval_schema(Interval.from_columns(appointment.booked_start, appointment.booked_end)),
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def raise_for(error: SchedulingError):
    raise HTTPException(status_code=error.http_status, detail=error.to_dict())


def unwrap(result: TransitionResult) -> AppointmentResponse:
    if not result.ok:
        raise_for(result.error)
    return appointment_to_response(result.appointment)


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("", response_model=AppointmentResponse, status_code=201)
async def request_appointment(
    data: AppointmentRequestCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    """Submit a new appointment request"""
    result = service.request_appointment(
        actor,
        patient_id=data.patient_id,
        provider_id=data.provider_id,
        start=data.requested_start,
        end=data.requested_end,
        concern=data.concern,
    )
    return unwrap(result)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    service: BookingOrchestrator = Depends(get_booking_service),
):
    try:
        return appointment_to_response(service.get_appointment(appointment_id))
    except SchedulingError as e:
        raise_for(e)


@router.get("/{appointment_id}/history", response_model=list[HistoryEntryResponse])
async def get_appointment_history(
    appointment_id: str,
    order: Literal["asc", "desc"] = Query("asc"),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    """Status timeline of an appointment"""
    try:
        entries = service.get_history(appointment_id, descending=order == "desc")
    except SchedulingError as e:
        raise_for(e)
    return [HistoryEntryResponse.model_validate(entry) for entry in entries]


@router.post("/{appointment_id}/transitions", response_model=AppointmentResponse)
async def transition_appointment(
    appointment_id: str,
    data: TransitionRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    """Move an appointment to another status (propose, book, cancel, ...)"""
    interval = Interval(data.start, data.end) if data.start is not None else None
    result = service.apply_transition(
        appointment_id,
        data.target_status,
        actor,
        TransitionPayload(interval=interval, feedback=data.feedback),
    )
    return unwrap(result)


@router.post("/{appointment_id}/dismiss", response_model=AppointmentResponse)
async def dismiss_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    """Hide a finished appointment from the patient's list"""
    return unwrap(service.dismiss(appointment_id, actor))


# ============================================================================
# PROVIDER CALENDAR
# ============================================================================


@providers_router.get("/{provider_id}/appointments", response_model=list[AppointmentResponse])
async def get_provider_appointments(
    provider_id: str,
    day: Optional[date] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    try:
        appointments = service.list_for_provider(provider_id, day=day, status=status)
    except SchedulingError as e:
        raise_for(e)
    return [appointment_to_response(a) for a in appointments]


@providers_router.get("/{provider_id}/availability", response_model=DayOverviewResponse)
async def get_provider_day_overview(
    provider_id: str,
    day: date = Query(...),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    """Open intervals and booked intervals for one date"""
    try:
        available, busy = service.provider_day_overview(provider_id, day)
    except SchedulingError as e:
        raise_for(e)
    return DayOverviewResponse(
        provider_id=provider_id,
        day=day,
        available=[_interval_schema(i) for i in available],
        busy=[_interval_schema(i) for i in busy],
    )


@providers_router.post("/{provider_id}/slot-check", response_model=SlotCheckResponse)
async def check_slot(
    provider_id: str,
    data: SlotCheckRequest,
    service: BookingOrchestrator = Depends(get_booking_service),
):
    """Validate a candidate time without booking it"""
    try:
        check = service.check_slot(
            provider_id, Interval(data.start, data.end), exclude_id=data.exclude_appointment_id
        )
    except SchedulingError as e:
        raise_for(e)

    if check.ok:
        return SlotCheckResponse(ok=True, message="Time is available")
    rejection = check.rejection
    return SlotCheckResponse(
        ok=False,
        message=rejection.message,
        reason=rejection.reason.value,
        hint=rejection.hint,
        latest_start=rejection.latest_start,
        conflicting=_interval_schema(rejection.conflicting),
    )


# ============================================================================
# PATIENT VIEW
# ============================================================================


@patients_router.get("/{patient_id}/appointments", response_model=list[AppointmentResponse])
async def get_patient_appointments(
    patient_id: str,
    active_only: bool = Query(False),
    service: BookingOrchestrator = Depends(get_booking_service),
):
    appointments = service.list_for_patient(patient_id, active_only=active_only)
    return [appointment_to_response(a) for a in appointments]
