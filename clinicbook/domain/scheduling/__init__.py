"""
Scheduling Domain

Appointment requests, proposals, bookings and the visit lifecycle.

Structure:
```
clinicbook/domain/scheduling/
├── __init__.py
├── schemas.py              # Request/response models
├── errors.py               # Scheduling error taxonomy
├── repository.py           # Appointment queries and provider-day locks
├── time_calculator.py      # Intervals and overlap detection
├── availability_service.py # Provider directory and working hours
├── slot_validator.py       # Candidate time validation
├── lifecycle.py            # Status workflow and role rules
├── history.py              # Append-only status timeline
├── locks.py                # In-process provider-day serialization
├── notifications.py        # Change events (local + Redis pub/sub)
├── service.py              # BookingOrchestrator
└── router.py               # FastAPI endpoints
```
"""

from .router import patients_router, providers_router, router

__all__ = ["router", "providers_router", "patients_router"]
