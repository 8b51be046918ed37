from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class CareRelationship(BaseModel):
    """A (doctor, patient) pairing.

    Scopes both the note encryption key and reminder ownership. Reminder sets
    are replaced per patient, so two relationships sharing a patient share a
    single reminder set.
    """

    model_config = ConfigDict(frozen=True)

    doctor_id: UUID
    patient_id: UUID
