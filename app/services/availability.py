"""Slot availability for a doctor at a workplace on a given date."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.intervals import day_of_week, parse_hhmm
from app.booking.slots import BookedInterval, Slot, build_slots, window_bounds
from app.core.config import settings
from app.core.errors import ValidationError
from app.models.scheduling import (
    ACTIVE_STATUSES,
    Appointment,
    AvailabilityWindow,
    DayOfWeek,
    DoctorWorkplace,
)
from app.models.user import User
from app.services.directory import DirectoryService
from app.utils.time import local_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailableDate:
    """A date on which the doctor has at least one open window."""

    date: date
    day_of_week: DayOfWeek
    windows: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class BookableDoctor:
    """An active doctor and the practices a patient can book at."""

    doctor: User
    practices: list[DoctorWorkplace] = field(default_factory=list)


class AvailabilityService:
    """Service for computing bookable slots."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = DirectoryService(session)

    async def get_booked_intervals(
        self,
        doctor_id: str,
        workplace_id: str,
        on_date: date,
        exclude_appointment_id: str | None = None,
    ) -> list[BookedInterval]:
        """Get minute ranges held by active appointments on a date."""
        query = select(Appointment.appointment_time, Appointment.duration_minutes).where(
            Appointment.doctor_id == doctor_id,
            Appointment.workplace_id == workplace_id,
            Appointment.appointment_date == on_date,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        if exclude_appointment_id:
            query = query.where(Appointment.id != exclude_appointment_id)

        result = await self.session.execute(query)
        return [
            BookedInterval(start=parse_hhmm(start), duration=duration)
            for start, duration in result.all()
        ]

    async def get_available_slots(
        self,
        doctor_id: str,
        workplace_id: str,
        on_date: date,
    ) -> list[Slot]:
        """Get free slots for a doctor at a workplace on a date.

        Candidates are enumerated from each available window for the weekday
        in ``slot_unit_minutes`` steps, then any candidate overlapping an
        active appointment is dropped.

        Args:
            doctor_id: Doctor's user id
            workplace_id: Workplace id
            on_date: Local calendar date

        Returns:
            Free slots ordered by start time, each carrying the workplace fee

        Raises:
            NotFoundError: If the doctor or the practice is absent or inactive
        """
        await self.directory.get_doctor(doctor_id)
        practice = await self.directory.get_doctor_workplace(doctor_id, workplace_id)

        windows = await self.directory.get_doctor_availability(
            doctor_id, workplace_id, day=day_of_week(on_date)
        )
        if not windows:
            return []

        booked = await self.get_booked_intervals(doctor_id, workplace_id, on_date)
        slots = build_slots(
            [window_bounds(w.start_time, w.end_time) for w in windows],
            booked,
            settings.slot_unit_minutes,
            practice.consultation_fee,
        )

        logger.debug(
            f"{len(slots)} free slots for doctor {doctor_id} at {workplace_id} on {on_date}"
        )
        return slots

    async def get_available_dates(
        self,
        doctor_id: str,
        workplace_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        today: date | None = None,
    ) -> list[AvailableDate]:
        """Get dates in a range on which the doctor has open windows.

        Past dates are skipped. Booked appointments are not considered here;
        use ``get_available_slots`` for a specific date.

        Raises:
            ValidationError: If the range is inverted or too long
            NotFoundError: If the doctor or the practice is absent or inactive
        """
        today = today or local_today()
        start_date = start_date or today
        end_date = end_date or start_date + timedelta(days=settings.available_dates_horizon_days)

        if end_date < start_date:
            raise ValidationError("End date must not be before start date")
        if (end_date - start_date).days > settings.available_dates_max_range_days:
            raise ValidationError(
                f"Date range cannot exceed {settings.available_dates_max_range_days} days"
            )

        await self.directory.get_doctor(doctor_id)
        await self.directory.get_doctor_workplace(doctor_id, workplace_id)

        windows = await self.directory.get_doctor_availability(doctor_id, workplace_id)
        by_day: dict[DayOfWeek, list[AvailabilityWindow]] = {}
        for window in windows:
            by_day.setdefault(window.day_of_week, []).append(window)

        dates: list[AvailableDate] = []
        current = max(start_date, today)
        while current <= end_date:
            day = day_of_week(current)
            if day in by_day:
                dates.append(AvailableDate(
                    date=current,
                    day_of_week=day,
                    windows=[(w.start_time, w.end_time) for w in by_day[day]],
                ))
            current += timedelta(days=1)

        return dates

    async def get_available_doctors(
        self,
        specialization: str | None = None,
        workplace_id: str | None = None,
    ) -> list[BookableDoctor]:
        """Get active doctors a patient can book, with each practice and its fee."""
        doctors: dict[str, BookableDoctor] = {}
        for doctor, practice in await self.directory.list_bookable_practices(
            specialization=specialization, workplace_id=workplace_id
        ):
            doctors.setdefault(doctor.id, BookableDoctor(doctor=doctor)).practices.append(practice)
        return list(doctors.values())
