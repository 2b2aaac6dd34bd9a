"""Create demo scheduling data (actors, a hospital, a practice and weekly windows)."""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from app.db.init_db import create_tables
from app.db.session import AsyncSessionLocal
from app.models.scheduling import AvailabilityWindow, DayOfWeek, DoctorWorkplace, Workplace
from app.models.user import User, UserRole, UserStatus

WEEKDAY_WINDOWS = [
    (DayOfWeek.MONDAY, "09:00", "12:00"),
    (DayOfWeek.MONDAY, "14:00", "17:00"),
    (DayOfWeek.WEDNESDAY, "09:00", "13:00"),
    (DayOfWeek.FRIDAY, "10:00", "16:00"),
]


async def get_or_create_user(session, email: str, role: UserRole, **fields) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        print(f"{role.value.capitalize()} {email} already exists, skipping...")
        return user

    user = User(email=email, role=role, status=UserStatus.ACTIVE, **fields)
    session.add(user)
    await session.flush()
    print(f"Created {role.value} {email} ({user.id})")
    return user


async def create_scheduling_data():
    """Create one doctor practising at one hospital, plus a patient and an admin."""
    await create_tables()

    async with AsyncSessionLocal() as session:
        doctor = await get_or_create_user(
            session,
            "dr.shah@medibook.local",
            UserRole.DOCTOR,
            first_name="Priya",
            last_name="Shah",
            specialization="Cardiology",
        )
        await get_or_create_user(
            session,
            "patient@medibook.local",
            UserRole.PATIENT,
            first_name="Sam",
            last_name="Taylor",
            phone="07700900123",
        )
        await get_or_create_user(
            session,
            "admin@medibook.local",
            UserRole.ADMIN,
            first_name="System",
            last_name="Admin",
        )

        result = await session.execute(select(Workplace).where(Workplace.name == "City Hospital"))
        hospital = result.scalar_one_or_none()
        if not hospital:
            hospital = Workplace(name="City Hospital", address="1 Main Street", is_active=True)
            session.add(hospital)
            await session.flush()
            print(f"Created workplace City Hospital ({hospital.id})")

        result = await session.execute(
            select(DoctorWorkplace).where(
                DoctorWorkplace.doctor_id == doctor.id,
                DoctorWorkplace.workplace_id == hospital.id,
            )
        )
        if result.scalar_one_or_none():
            print("Practice already exists, skipping...")
        else:
            practice = DoctorWorkplace(
                doctor_id=doctor.id,
                workplace_id=hospital.id,
                consultation_fee=Decimal("500"),
                is_active=True,
            )
            session.add(practice)
            await session.flush()

            for day, start, end in WEEKDAY_WINDOWS:
                session.add(AvailabilityWindow(
                    doctor_workplace_id=practice.id,
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                    is_available=True,
                ))
            print(f"Created practice with {len(WEEKDAY_WINDOWS)} weekly windows")

        await session.commit()
        print("\nDone! Doctor ID:", doctor.id, "Workplace ID:", hospital.id)


if __name__ == "__main__":
    asyncio.run(create_scheduling_data())
