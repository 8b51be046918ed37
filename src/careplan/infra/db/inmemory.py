from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from src.careplan.domain.models.clinical_note import ClinicalNote
from src.careplan.domain.models.reminder import Reminder, ReminderStatus
from src.careplan.infra.db.repositories import ClinicalNoteRepository, ReminderRepository


class InMemoryReminderRepository(ReminderRepository):
    """Dict-backed reminder store.

    A single lock guards every read-modify-write so that ``transition`` is a
    true compare-and-set across threads. Reminders are copied on the way in
    and out; callers never hold a reference to stored state.
    """

    def __init__(self) -> None:
        self._reminders: Dict[UUID, Reminder] = {}
        self._lock = Lock()

    def get(self, reminder_id: UUID) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            return reminder.model_copy() if reminder is not None else None

    def list_by_patient(self, patient_id: UUID) -> List[Reminder]:
        with self._lock:
            matches = [r.model_copy() for r in self._reminders.values() if r.patient_id == patient_id]
        return sorted(matches, key=lambda r: r.scheduled_at)

    def insert_many(self, reminders: Iterable[Reminder]) -> None:
        with self._lock:
            for reminder in reminders:
                self._reminders[reminder.id] = reminder.model_copy()

    def delete_by_patient(self, patient_id: UUID) -> int:
        with self._lock:
            return self._delete_by_patient_locked(patient_id)

    def replace_for_patient(self, patient_id: UUID, reminders: Iterable[Reminder]) -> None:
        with self._lock:
            self._delete_by_patient_locked(patient_id)
            for reminder in reminders:
                self._reminders[reminder.id] = reminder.model_copy()

    def _delete_by_patient_locked(self, patient_id: UUID) -> int:
        doomed = [rid for rid, r in self._reminders.items() if r.patient_id == patient_id]
        for rid in doomed:
            del self._reminders[rid]
        return len(doomed)

    def find_due(self, now: datetime, *, max_attempts: Optional[int] = None) -> List[Reminder]:
        due: List[Reminder] = []
        with self._lock:
            for reminder in self._reminders.values():
                if reminder.status != ReminderStatus.PENDING or reminder.scheduled_at > now:
                    continue
                if reminder.next_attempt_at is not None and reminder.next_attempt_at > now:
                    continue
                if max_attempts is not None and reminder.attempts >= max_attempts:
                    continue
                due.append(reminder.model_copy())
        return due

    def update_status(self, reminder_id: UUID, status: ReminderStatus, *, now: datetime) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if reminder is None:
                return None
            reminder.status = status
            reminder.updated_at = now
            return reminder.model_copy()

    def update_schedule(self, reminder_id: UUID, scheduled_at: datetime, *, now: datetime) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if reminder is None:
                return None
            reminder.scheduled_at = scheduled_at
            reminder.status = ReminderStatus.PENDING
            reminder.attempts = 0
            reminder.next_attempt_at = None
            reminder.claimed_at = None
            reminder.last_error = None
            reminder.updated_at = now
            return reminder.model_copy()

    def transition(
        self,
        reminder_id: UUID,
        *,
        expected: ReminderStatus,
        target: ReminderStatus,
        now: datetime,
        **changes: Any,
    ) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if reminder is None or reminder.status != expected:
                return None
            updated = reminder.model_copy(update={**changes, "status": target, "updated_at": now})
            self._reminders[reminder_id] = updated
            return updated.model_copy()

    def release_stale_claims(self, claimed_before: datetime, *, now: datetime) -> int:
        released = 0
        with self._lock:
            for reminder in self._reminders.values():
                if reminder.status != ReminderStatus.IN_FLIGHT:
                    continue
                if reminder.claimed_at is not None and reminder.claimed_at >= claimed_before:
                    continue
                reminder.status = ReminderStatus.PENDING
                reminder.claimed_at = None
                reminder.updated_at = now
                released += 1
        return released


class InMemoryClinicalNoteRepository(ClinicalNoteRepository):
    def __init__(self) -> None:
        self._notes: Dict[UUID, ClinicalNote] = {}
        self._lock = Lock()

    def get(self, note_id: UUID) -> Optional[ClinicalNote]:
        with self._lock:
            return self._notes.get(note_id)

    def list_for_relationship(self, doctor_id: UUID, patient_id: UUID) -> List[ClinicalNote]:
        with self._lock:
            matches = [n for n in self._notes.values() if n.doctor_id == doctor_id and n.patient_id == patient_id]
        return sorted(matches, key=lambda n: n.created_at, reverse=True)

    def add(self, note: ClinicalNote) -> None:
        with self._lock:
            self._notes[note.id] = note


reminder_repository: ReminderRepository = InMemoryReminderRepository()
clinical_note_repository: ClinicalNoteRepository = InMemoryClinicalNoteRepository()
