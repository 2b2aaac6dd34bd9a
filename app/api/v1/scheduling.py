"""Scheduling API endpoints for availability and the appointment lifecycle.

Service errors are not caught here; the handler in ``app.main`` maps each
error kind to its HTTP status.
"""

import math
from datetime import date

from fastapi import APIRouter, Query, status

from app.api.deps import CurrentActor, DbSession
from app.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentPage,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentTransition,
    AppointmentUpdate,
)
from app.schemas.availability import (
    AvailableDateRead,
    BookableDoctorRead,
    PracticeRead,
    SlotList,
    SlotRead,
    WindowRead,
)
from app.schemas.user import DoctorPublicRead, PatientRead
from app.services.availability import AvailabilityService
from app.services.scheduling import SchedulingService

router = APIRouter()


# ============================================================================
# Availability
# ============================================================================


@router.get(
    "/doctors/{doctor_id}/workplaces/{workplace_id}/slots",
    response_model=SlotList,
)
async def get_available_slots(
    doctor_id: str,
    workplace_id: str,
    session: DbSession,
    on_date: date = Query(..., alias="date"),
) -> SlotList:
    """Get free slots for a doctor at a workplace on a date."""
    slots = await AvailabilityService(session).get_available_slots(
        doctor_id, workplace_id, on_date
    )
    return SlotList(
        doctor_id=doctor_id,
        workplace_id=workplace_id,
        date=on_date,
        slots=[SlotRead.model_validate(slot) for slot in slots],
    )


@router.get(
    "/doctors/{doctor_id}/workplaces/{workplace_id}/available-dates",
    response_model=list[AvailableDateRead],
)
async def get_available_dates(
    doctor_id: str,
    workplace_id: str,
    session: DbSession,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[AvailableDateRead]:
    """Get dates on which the doctor has open windows at a workplace."""
    dates = await AvailabilityService(session).get_available_dates(
        doctor_id, workplace_id, start_date=start_date, end_date=end_date
    )
    return [
        AvailableDateRead(
            date=item.date,
            day_of_week=item.day_of_week.value,
            windows=[WindowRead(start_time=start, end_time=end) for start, end in item.windows],
        )
        for item in dates
    ]


@router.get("/doctors", response_model=list[BookableDoctorRead])
async def get_available_doctors(
    session: DbSession,
    specialization: str | None = None,
    workplace_id: str | None = None,
) -> list[BookableDoctorRead]:
    """List active doctors open for booking, with their workplaces and fees."""
    doctors = await AvailabilityService(session).get_available_doctors(
        specialization=specialization, workplace_id=workplace_id
    )
    return [
        BookableDoctorRead(
            id=item.doctor.id,
            first_name=item.doctor.first_name,
            last_name=item.doctor.last_name,
            specialization=item.doctor.specialization,
            workplaces=[
                PracticeRead(
                    workplace_id=practice.workplace_id,
                    name=practice.workplace.name,
                    address=practice.workplace.address,
                    consultation_fee=practice.consultation_fee,
                )
                for practice in item.practices
            ],
        )
        for item in doctors
    ]


# ============================================================================
# Appointments
# ============================================================================


@router.post(
    "/appointments",
    response_model=AppointmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    request: AppointmentCreate,
    actor: CurrentActor,
    session: DbSession,
) -> AppointmentRead:
    """Book an appointment."""
    service = SchedulingService(session)
    appointment = await service.create_appointment(
        actor,
        doctor_id=request.doctor_id,
        workplace_id=request.workplace_id,
        appointment_date=request.appointment_date,
        appointment_time=request.appointment_time,
        reason=request.reason,
        duration_minutes=request.duration_minutes,
        appointment_type=request.appointment_type,
        patient_id=request.patient_id,
        symptoms=request.symptoms,
        patient_notes=request.patient_notes,
    )
    return AppointmentRead.model_validate(appointment)


@router.get("/appointments", response_model=AppointmentPage)
async def list_appointments(
    actor: CurrentActor,
    session: DbSession,
    status_filter: str | None = Query(None, alias="status"),
    start_date: date | None = None,
    end_date: date | None = None,
    doctor_id: str | None = None,
    patient_id: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> AppointmentPage:
    """List appointments visible to the caller."""
    items, total = await SchedulingService(session).list_appointments(
        actor,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        doctor_id=doctor_id,
        patient_id=patient_id,
        page=page,
        limit=limit,
    )
    return AppointmentPage(
        items=[AppointmentRead.model_validate(a) for a in items],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/appointments/{appointment_id}", response_model=AppointmentRead)
async def get_appointment(
    appointment_id: str,
    actor: CurrentActor,
    session: DbSession,
) -> AppointmentRead:
    """Get a single appointment."""
    appointment = await SchedulingService(session).get_appointment(appointment_id, actor)
    return AppointmentRead.model_validate(appointment)


@router.patch("/appointments/{appointment_id}", response_model=AppointmentRead)
async def update_appointment(
    appointment_id: str,
    request: AppointmentUpdate,
    actor: CurrentActor,
    session: DbSession,
) -> AppointmentRead:
    """Update appointment details. Status changes use the transition endpoint."""
    appointment = await SchedulingService(session).update_appointment_details(
        appointment_id, actor, request.model_dump(exclude_unset=True)
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/appointments/{appointment_id}/transition", response_model=AppointmentRead)
async def transition_appointment(
    appointment_id: str,
    request: AppointmentTransition,
    actor: CurrentActor,
    session: DbSession,
) -> AppointmentRead:
    """Move an appointment to a new status."""
    appointment = await SchedulingService(session).transition_appointment(
        appointment_id,
        actor,
        request.status,
        reason=request.reason,
        doctor_notes=request.doctor_notes,
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentRead)
async def cancel_appointment(
    appointment_id: str,
    request: AppointmentCancel,
    actor: CurrentActor,
    session: DbSession,
) -> AppointmentRead:
    """Cancel an appointment."""
    appointment = await SchedulingService(session).cancel_appointment(
        appointment_id, actor, request.reason
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/appointments/{appointment_id}/reschedule", response_model=AppointmentRead)
async def reschedule_appointment(
    appointment_id: str,
    request: AppointmentReschedule,
    actor: CurrentActor,
    session: DbSession,
) -> AppointmentRead:
    """Move a pending appointment to a new slot."""
    appointment = await SchedulingService(session).reschedule_appointment(
        appointment_id,
        actor,
        appointment_date=request.appointment_date,
        appointment_time=request.appointment_time,
        doctor_id=request.doctor_id,
        workplace_id=request.workplace_id,
        reason=request.reason,
        symptoms=request.symptoms,
        patient_notes=request.patient_notes,
    )
    return AppointmentRead.model_validate(appointment)


# ============================================================================
# Directory records
# ============================================================================


@router.get("/patients/{patient_id}", response_model=PatientRead)
async def get_patient(
    patient_id: str,
    actor: CurrentActor,
    session: DbSession,
) -> PatientRead:
    """Get a patient record. Doctors need a confirmed or completed appointment."""
    patient = await SchedulingService(session).get_patient_record(actor, patient_id)
    return PatientRead.model_validate(patient)


@router.get("/doctors/{doctor_id}", response_model=DoctorPublicRead)
async def get_doctor(
    doctor_id: str,
    actor: CurrentActor,
    session: DbSession,
) -> DoctorPublicRead:
    """Get a doctor's public profile."""
    doctor = await SchedulingService(session).get_doctor_profile(actor, doctor_id)
    return DoctorPublicRead.model_validate(doctor)
