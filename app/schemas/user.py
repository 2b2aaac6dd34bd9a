"""Pydantic schemas for directory records."""

from pydantic import BaseModel

from app.models.user import UserStatus


class PatientRead(BaseModel):
    """Patient record visible to the patient, related doctors and admins."""

    id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None
    status: UserStatus

    model_config = {"from_attributes": True, "use_enum_values": True}


class DoctorPublicRead(BaseModel):
    """Public doctor profile."""

    id: str
    first_name: str
    last_name: str
    specialization: str | None

    model_config = {"from_attributes": True}
