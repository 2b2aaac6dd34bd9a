"""Pydantic schemas for slot and date availability."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class SlotRead(BaseModel):
    """A bookable slot."""

    time: str
    duration_minutes: int
    fee: Decimal

    model_config = {"from_attributes": True}


class SlotList(BaseModel):
    """Free slots for one doctor, workplace and date."""

    doctor_id: str
    workplace_id: str
    date: date
    slots: list[SlotRead]


class WindowRead(BaseModel):
    start_time: str
    end_time: str


class AvailableDateRead(BaseModel):
    """A date with at least one open availability window."""

    date: date
    day_of_week: str
    windows: list[WindowRead]


class PracticeRead(BaseModel):
    """A workplace where a doctor takes bookings, with its fee."""

    workplace_id: str
    name: str
    address: str | None
    consultation_fee: Decimal


class BookableDoctorRead(BaseModel):
    """An active doctor open for booking."""

    id: str
    first_name: str
    last_name: str
    specialization: str | None
    workplaces: list[PracticeRead]
