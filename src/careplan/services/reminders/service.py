from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID, uuid4

from src.careplan.clock import Clock, system_clock
from src.careplan.config import settings
from src.careplan.domain.models.care_relationship import CareRelationship
from src.careplan.domain.models.reminder import Reminder, ReminderStatus
from src.careplan.infra.db.repositories import ReminderRepository

logger = logging.getLogger("careplan.reminders")


class ReminderNotFoundError(LookupError):
    def __init__(self, reminder_id: UUID) -> None:
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id


class ReminderService:
    """Lifecycle operations for reminders.

    A patient's reminder set is always replaced as a whole when a new
    schedule arrives; the repository serializes replacements per patient.
    ``reschedule`` makes a reminder pending again even if it was already
    completed.
    """

    def __init__(
        self,
        repository: ReminderRepository,
        *,
        clock: Optional[Clock] = None,
        message: Optional[str] = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or system_clock
        self._message = message or settings.reminder_message

    def create(self, relationship: CareRelationship, schedule: Iterable[datetime]) -> List[Reminder]:
        """Replace every reminder of the relationship's patient with ``schedule``."""

        now = self._clock.now()
        reminders = [
            Reminder(
                id=uuid4(),
                patient_id=relationship.patient_id,
                doctor_id=relationship.doctor_id,
                message=self._message,
                scheduled_at=scheduled_at,
                status=ReminderStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            for scheduled_at in schedule
        ]

        self._repository.replace_for_patient(relationship.patient_id, reminders)

        logger.info(
            "Scheduled %d reminders for patient %s (doctor %s)",
            len(reminders),
            relationship.patient_id,
            relationship.doctor_id,
        )
        return reminders

    def get(self, reminder_id: UUID) -> Reminder:
        reminder = self._repository.get(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def list_for_patient(self, patient_id: UUID) -> List[Reminder]:
        return self._repository.list_by_patient(patient_id)

    def mark_completed(self, reminder_id: UUID) -> Reminder:
        """Mark a reminder completed. Completing it twice is a no-op."""

        existing = self.get(reminder_id)
        if existing.status == ReminderStatus.COMPLETED:
            return existing

        updated = self._repository.update_status(reminder_id, ReminderStatus.COMPLETED, now=self._clock.now())
        if updated is None:
            raise ReminderNotFoundError(reminder_id)
        return updated

    def reschedule(self, reminder_id: UUID, new_time: datetime) -> Reminder:
        updated = self._repository.update_schedule(reminder_id, new_time, now=self._clock.now())
        if updated is None:
            raise ReminderNotFoundError(reminder_id)
        logger.info("Rescheduled reminder %s to %s", reminder_id, new_time.isoformat())
        return updated
