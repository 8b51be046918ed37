from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class ClinicalNote(BaseModel):
    """An encrypted clinical note written by a doctor about a patient.

    Notes are append-only: resubmitting creates a new note rather than
    editing an existing one. ``envelope`` holds ``<nonceHex>:<cipherHex>``
    (or plaintext for notes stored before encryption was introduced).
    """

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    envelope: str
    created_at: datetime


class DecryptedNote(BaseModel):
    id: UUID
    doctor_id: UUID
    patient_id: UUID
    note: str
    created_at: datetime
