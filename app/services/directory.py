"""Directory lookups: actors, doctors, workplaces and weekly availability."""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.scheduling import AvailabilityWindow, DayOfWeek, DoctorWorkplace, Workplace
from app.models.user import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


class DirectoryService:
    """Read access to the people and places a booking refers to."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_actor(self, user_id: str) -> User | None:
        """Load a user by id, whatever the role or status."""
        result = await self.session.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_with_role(self, user_id: str, role: UserRole) -> User:
        """Load a user of the given role.

        Raises:
            NotFoundError: If no such user exists
        """
        user = await self.get_actor(user_id)
        if user is None or user.role != role:
            raise NotFoundError(f"{role.value.capitalize()} not found")
        return user

    async def get_doctor(self, doctor_id: str, active_only: bool = True) -> User:
        """Load a doctor, by default requiring an active account.

        Raises:
            NotFoundError: If the doctor is absent or not active
        """
        doctor = await self.get_user_with_role(doctor_id, UserRole.DOCTOR)
        if active_only and doctor.status != UserStatus.ACTIVE:
            raise NotFoundError("Doctor not found or not active")
        return doctor

    async def get_patient(self, patient_id: str, active_only: bool = False) -> User:
        """Load a patient.

        Raises:
            NotFoundError: If the patient is absent, or not active when required
        """
        patient = await self.get_user_with_role(patient_id, UserRole.PATIENT)
        if active_only and patient.status != UserStatus.ACTIVE:
            raise NotFoundError("Patient not found or not active")
        return patient

    async def find_doctor_workplace(
        self,
        doctor_id: str,
        workplace_id: str,
        lock: bool = False,
    ) -> DoctorWorkplace | None:
        """Find the active practice of a doctor at an active workplace.

        With ``lock`` the row is selected FOR UPDATE so concurrent bookings for
        the same doctor and workplace queue behind one another until commit.
        """
        query = (
            select(DoctorWorkplace)
            .join(Workplace, DoctorWorkplace.workplace_id == Workplace.id)
            .where(
                DoctorWorkplace.doctor_id == doctor_id,
                DoctorWorkplace.workplace_id == workplace_id,
                DoctorWorkplace.is_active.is_(True),
                Workplace.is_active.is_(True),
            )
        )
        if lock:
            query = query.with_for_update(of=DoctorWorkplace)

        result = await self.session.execute(query)
        return result.unique().scalar_one_or_none()

    async def get_doctor_workplace(
        self,
        doctor_id: str,
        workplace_id: str,
        lock: bool = False,
    ) -> DoctorWorkplace:
        """Like ``find_doctor_workplace`` but raising when absent.

        Raises:
            NotFoundError: If the doctor does not practise at the workplace
        """
        practice = await self.find_doctor_workplace(doctor_id, workplace_id, lock=lock)
        if practice is None:
            raise NotFoundError("Doctor does not practise at this workplace")
        return practice

    async def get_doctor_availability(
        self,
        doctor_id: str,
        workplace_id: str,
        day: DayOfWeek | None = None,
    ) -> list[AvailabilityWindow]:
        """Get available weekly windows for a doctor at a workplace.

        Windows flagged unavailable are excluded.
        """
        query = (
            select(AvailabilityWindow)
            .join(DoctorWorkplace, AvailabilityWindow.doctor_workplace_id == DoctorWorkplace.id)
            .where(
                DoctorWorkplace.doctor_id == doctor_id,
                DoctorWorkplace.workplace_id == workplace_id,
                AvailabilityWindow.is_available.is_(True),
            )
            .order_by(AvailabilityWindow.start_time)
        )
        if day is not None:
            query = query.where(AvailabilityWindow.day_of_week == day)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_doctor_fee(self, doctor_id: str, workplace_id: str) -> Decimal:
        """Get the consultation fee a doctor charges at a workplace.

        Raises:
            NotFoundError: If the doctor does not practise at the workplace
        """
        practice = await self.get_doctor_workplace(doctor_id, workplace_id)
        return practice.consultation_fee

    async def list_bookable_practices(
        self,
        specialization: str | None = None,
        workplace_id: str | None = None,
    ) -> list[tuple[User, DoctorWorkplace]]:
        """List active doctors with each active practice at an active workplace.

        Args:
            specialization: Case-insensitive substring of the doctor's specialization
            workplace_id: Restrict to one workplace

        Returns:
            (doctor, practice) pairs ordered by doctor name, then workplace name
        """
        query = (
            select(User, DoctorWorkplace)
            .join(DoctorWorkplace, DoctorWorkplace.doctor_id == User.id)
            .join(Workplace, DoctorWorkplace.workplace_id == Workplace.id)
            .where(
                User.role == UserRole.DOCTOR,
                User.status == UserStatus.ACTIVE,
                DoctorWorkplace.is_active.is_(True),
                Workplace.is_active.is_(True),
            )
            .order_by(User.last_name, User.first_name, User.id, Workplace.name)
        )
        if specialization:
            query = query.where(User.specialization.ilike(f"%{specialization.strip()}%"))
        if workplace_id:
            query = query.where(DoctorWorkplace.workplace_id == workplace_id)

        result = await self.session.execute(query)
        return [(doctor, practice) for doctor, practice in result.unique().all()]
