from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID, uuid4

from src.careplan.clock import Clock, system_clock
from src.careplan.domain.models.action_plan import ActionableSteps
from src.careplan.domain.models.care_relationship import CareRelationship
from src.careplan.domain.models.clinical_note import ClinicalNote, DecryptedNote
from src.careplan.domain.models.reminder import Reminder
from src.careplan.domain.models.user import UserRole
from src.careplan.infra.db.repositories import ClinicalNoteRepository
from src.careplan.services.crypto.codec import EncryptionCodec, is_envelope
from src.careplan.services.notes.authoring import NoteAuthoringService
from src.careplan.services.planning.parser import PlanParser
from src.careplan.services.reminders.service import ReminderService
from src.careplan.services.users.service import InMemoryUserService

logger = logging.getLogger("careplan.notes")


class InvalidPatientSelectionError(ValueError):
    """The patient has not selected the requesting doctor."""


@dataclass
class NoteSubmission:
    note: ClinicalNote
    actionable_steps: ActionableSteps
    reminders: List[Reminder]


class ClinicalNoteService:
    """Stores encrypted notes and turns their plans into reminders.

    Submitting a note encrypts it under the doctor/patient key, extracts the
    checklist and plan lines, parses the plan into a schedule and replaces
    the patient's reminders with it.
    """

    def __init__(
        self,
        repository: ClinicalNoteRepository,
        codec: EncryptionCodec,
        *,
        authoring: NoteAuthoringService,
        parser: PlanParser,
        reminders: ReminderService,
        users: InMemoryUserService,
        clock: Optional[Clock] = None,
    ) -> None:
        self._repository = repository
        self._codec = codec
        self._authoring = authoring
        self._parser = parser
        self._reminders = reminders
        self._users = users
        self._clock = clock or system_clock

    def submit_note(self, *, doctor_id: UUID, patient_id: UUID, text: str) -> NoteSubmission:
        doctor = self._users.require_user(doctor_id, UserRole.DOCTOR)
        patient = self._users.require_user(patient_id, UserRole.PATIENT)

        note = ClinicalNote(
            id=uuid4(),
            doctor_id=doctor.id,
            patient_id=patient.id,
            envelope=self._codec.encrypt(text, str(doctor.id), str(patient.id)),
            created_at=self._clock.now(),
        )
        self._repository.add(note)
        logger.info("Doctor %s submitted note %s for patient %s", doctor.id, note.id, patient.id)

        steps = self._authoring.extract_plan(text)
        schedule = self._parser.parse(steps.plan)
        relationship = CareRelationship(doctor_id=doctor.id, patient_id=patient.id)
        reminders = self._reminders.create(relationship, schedule)

        return NoteSubmission(note=note, actionable_steps=steps, reminders=reminders)

    def list_notes(self, *, doctor_id: UUID, patient_id: UUID) -> List[DecryptedNote]:
        """Return the relationship's notes in plaintext, newest first.

        Only the doctor the patient has selected may read them.
        """

        doctor = self._users.require_user(doctor_id, UserRole.DOCTOR)
        patient = self._users.require_user(patient_id, UserRole.PATIENT)
        if patient.doctor_id != doctor.id:
            raise InvalidPatientSelectionError(f"Patient {patient_id} has not selected doctor {doctor_id}")

        return [
            DecryptedNote(
                id=note.id,
                doctor_id=note.doctor_id,
                patient_id=note.patient_id,
                note=self.read_note_text(note),
                created_at=note.created_at,
            )
            for note in self._repository.list_for_relationship(doctor.id, patient.id)
        ]

    def read_note_text(self, note: ClinicalNote) -> str:
        # Values without the envelope delimiter predate encryption.
        if note.envelope and not is_envelope(note.envelope):
            return note.envelope
        return self._codec.decrypt(note.envelope, str(note.doctor_id), str(note.patient_id))
