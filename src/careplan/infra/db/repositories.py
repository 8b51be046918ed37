from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID

from src.careplan.domain.models.clinical_note import ClinicalNote
from src.careplan.domain.models.reminder import Reminder, ReminderStatus


class ReminderRepository(ABC):
    @abstractmethod
    def get(self, reminder_id: UUID) -> Optional[Reminder]:
        raise NotImplementedError

    @abstractmethod
    def list_by_patient(self, patient_id: UUID) -> List[Reminder]:
        """Return the patient's reminders ordered by ``scheduled_at``."""
        raise NotImplementedError

    @abstractmethod
    def insert_many(self, reminders: Iterable[Reminder]) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_by_patient(self, patient_id: UUID) -> int:
        raise NotImplementedError

    @abstractmethod
    def replace_for_patient(self, patient_id: UUID, reminders: Iterable[Reminder]) -> None:
        """Atomically delete the patient's reminders and insert ``reminders``.

        Readers never observe a mix of the old and new sets.
        """
        raise NotImplementedError

    @abstractmethod
    def find_due(self, now: datetime, *, max_attempts: Optional[int] = None) -> List[Reminder]:
        """Return pending reminders with ``scheduled_at <= now``.

        Reminders in retry backoff (``next_attempt_at > now``) and, when
        ``max_attempts`` is given, reminders that used up their delivery
        attempts are excluded.
        """
        raise NotImplementedError

    @abstractmethod
    def update_status(self, reminder_id: UUID, status: ReminderStatus, *, now: datetime) -> Optional[Reminder]:
        raise NotImplementedError

    @abstractmethod
    def update_schedule(self, reminder_id: UUID, scheduled_at: datetime, *, now: datetime) -> Optional[Reminder]:
        """Move a reminder to ``scheduled_at`` and make it pending again.

        Delivery bookkeeping (attempts, backoff, claim, last error) is reset.
        """
        raise NotImplementedError

    @abstractmethod
    def transition(
        self,
        reminder_id: UUID,
        *,
        expected: ReminderStatus,
        target: ReminderStatus,
        now: datetime,
        **changes: Any,
    ) -> Optional[Reminder]:
        """Compare-and-set the status of a reminder.

        Moves the reminder from ``expected`` to ``target`` and applies
        ``changes`` in the same atomic step. Returns the updated reminder, or
        None if the reminder does not exist or is not in ``expected``.
        """
        raise NotImplementedError

    @abstractmethod
    def release_stale_claims(self, claimed_before: datetime, *, now: datetime) -> int:
        """Return in-flight reminders claimed before ``claimed_before`` to pending."""
        raise NotImplementedError


class ClinicalNoteRepository(ABC):
    @abstractmethod
    def get(self, note_id: UUID) -> Optional[ClinicalNote]:
        raise NotImplementedError

    @abstractmethod
    def list_for_relationship(self, doctor_id: UUID, patient_id: UUID) -> List[ClinicalNote]:
        """Return the relationship's notes, newest first."""
        raise NotImplementedError

    @abstractmethod
    def add(self, note: ClinicalNote) -> None:
        raise NotImplementedError
