"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Generator
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy import NullPool, StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import get_db, serialize_sqlite_writes
from app.main import app
from app.models.scheduling import (
    Appointment,
    AppointmentStatus,
    AvailabilityWindow,
    DayOfWeek,
    DoctorWorkplace,
    Workplace,
)
from app.models.user import User, UserRole, UserStatus


# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def upcoming_monday(weeks_ahead: int = 1) -> date:
    """Monday at least one day in the future."""
    today = date.today()
    days = (7 - today.weekday()) or 7
    return today + timedelta(days=days + 7 * (weeks_ahead - 1))


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )
    serialize_sqlite_writes(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture(scope="function")
def client() -> Generator[TestClient, None, None]:
    """Create FastAPI test client for endpoints that need no database."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
async def api_client(async_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client sharing the test session and event loop."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


async def _add_user(
    session: AsyncSession,
    email: str,
    role: UserRole,
    status: UserStatus = UserStatus.ACTIVE,
    **fields,
) -> User:
    user = User(
        email=email,
        role=role,
        status=status,
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", role.value.capitalize()),
        **fields,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def patient(async_session: AsyncSession) -> User:
    """Create an active patient."""
    return await _add_user(async_session, "patient@medibook.local", UserRole.PATIENT)


@pytest.fixture
async def other_patient(async_session: AsyncSession) -> User:
    """Create a second active patient."""
    return await _add_user(async_session, "other.patient@medibook.local", UserRole.PATIENT)


@pytest.fixture
async def pending_patient(async_session: AsyncSession) -> User:
    """Create a patient awaiting approval."""
    return await _add_user(
        async_session, "pending@medibook.local", UserRole.PATIENT, UserStatus.PENDING
    )


@pytest.fixture
async def blocked_patient(async_session: AsyncSession) -> User:
    """Create a blocked patient."""
    return await _add_user(
        async_session, "blocked@medibook.local", UserRole.PATIENT, UserStatus.BLOCKED
    )


@pytest.fixture
async def doctor(async_session: AsyncSession) -> User:
    """Create an active doctor."""
    return await _add_user(
        async_session,
        "doctor@medibook.local",
        UserRole.DOCTOR,
        specialization="Cardiology",
    )


@pytest.fixture
async def other_doctor(async_session: AsyncSession) -> User:
    """Create a second active doctor."""
    return await _add_user(async_session, "other.doctor@medibook.local", UserRole.DOCTOR)


@pytest.fixture
async def inactive_doctor(async_session: AsyncSession) -> User:
    """Create a deactivated doctor."""
    return await _add_user(
        async_session, "inactive.doctor@medibook.local", UserRole.DOCTOR, UserStatus.INACTIVE
    )


@pytest.fixture
async def admin(async_session: AsyncSession) -> User:
    """Create an active admin."""
    return await _add_user(async_session, "admin@medibook.local", UserRole.ADMIN)


@pytest.fixture
async def workplace(async_session: AsyncSession) -> Workplace:
    """Create an active hospital."""
    place = Workplace(name="City Hospital", address="1 Main Street", is_active=True)
    async_session.add(place)
    await async_session.commit()
    await async_session.refresh(place)
    return place


async def add_practice(
    session: AsyncSession,
    doctor: User,
    workplace: Workplace,
    fee: str = "500",
    windows: list[tuple[DayOfWeek, str, str]] | None = None,
) -> DoctorWorkplace:
    """Attach a doctor to a workplace with weekly windows."""
    practice = DoctorWorkplace(
        doctor_id=doctor.id,
        workplace_id=workplace.id,
        consultation_fee=Decimal(fee),
        is_active=True,
    )
    session.add(practice)
    await session.flush()

    for day, start, end in windows or [(DayOfWeek.MONDAY, "09:00", "11:00")]:
        session.add(AvailabilityWindow(
            doctor_workplace_id=practice.id,
            day_of_week=day,
            start_time=start,
            end_time=end,
            is_available=True,
        ))
    await session.commit()
    return practice


@pytest.fixture
async def practice(async_session: AsyncSession, doctor: User, workplace: Workplace) -> DoctorWorkplace:
    """Doctor at the hospital on Mondays 09:00-11:00, fee 500."""
    return await add_practice(async_session, doctor, workplace)


async def add_appointment(
    session: AsyncSession,
    patient: User,
    doctor: User,
    workplace: Workplace,
    on_date: date,
    at: str,
    duration: int = 30,
    status: AppointmentStatus = AppointmentStatus.PENDING,
) -> Appointment:
    """Insert an appointment directly, bypassing the booking rules."""
    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        workplace_id=workplace.id,
        appointment_date=on_date,
        appointment_time=at,
        duration_minutes=duration,
        status=status,
        reason="Check-up",
        symptoms=[],
        consultation_fee=Decimal("500"),
    )
    session.add(appointment)
    await session.commit()
    await session.refresh(appointment)
    return appointment


def auth_headers(user_id: str) -> dict[str, str]:
    """Create authorization headers for an actor id."""
    token = create_access_token(subject=user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def monday() -> date:
    """Next Monday, a day with the practice's 09:00-11:00 window."""
    return upcoming_monday()


@pytest.fixture
def make_appointment(async_session: AsyncSession):
    """Factory inserting appointments directly."""

    async def _make(patient: User, doctor: User, workplace: Workplace, on_date: date, at: str, **kwargs):
        return await add_appointment(async_session, patient, doctor, workplace, on_date, at, **kwargs)

    return _make


@pytest.fixture
def make_practice(async_session: AsyncSession):
    """Factory attaching a doctor to a workplace."""

    async def _make(doctor: User, workplace: Workplace, **kwargs):
        return await add_practice(async_session, doctor, workplace, **kwargs)

    return _make


@pytest.fixture
def headers_for():
    """Factory for bearer headers."""
    return auth_headers


@pytest.fixture
async def file_engine(tmp_path) -> AsyncGenerator:
    """File-backed engine whose sessions use separate connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}",
        echo=False,
        poolclass=NullPool,
    )
    serialize_sqlite_writes(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def booking_race(file_engine):
    """Two patients and a Monday 09:00-11:00 practice in a shared file database.

    Returns:
        Tuple of (session maker, first patient, second patient, doctor, workplace)
    """
    session_maker = async_sessionmaker(
        file_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        first = await _add_user(session, "first@medibook.local", UserRole.PATIENT)
        second = await _add_user(session, "second@medibook.local", UserRole.PATIENT)
        doctor = await _add_user(session, "race.doctor@medibook.local", UserRole.DOCTOR)
        place = Workplace(name="City Hospital", is_active=True)
        session.add(place)
        await session.commit()
        await add_practice(session, doctor, place)

    return session_maker, first, second, doctor, place
