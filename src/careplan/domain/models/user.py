from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr


class UserRole(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"


class User(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: UserRole
    # Required for doctors, unused for patients.
    specialization: Optional[str] = None
    # The doctor a patient has selected; always None for doctors.
    doctor_id: Optional[UUID] = None
