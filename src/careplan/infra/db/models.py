from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime for storage and comparison.

    Some backends (SQLite) drop tzinfo on the way back, so everything is
    stored as UTC and naive values read back are assumed to be UTC.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReminderORM(Base):
    __tablename__ = "reminders"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    patient_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    doctor_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @classmethod
    def from_domain(cls, reminder: "Reminder") -> "ReminderORM":  # type: ignore[name-defined]
        return cls(
            id=reminder.id,
            patient_id=reminder.patient_id,
            doctor_id=reminder.doctor_id,
            message=reminder.message,
            scheduled_at=as_utc(reminder.scheduled_at),
            status=reminder.status.value,
            created_at=as_utc(reminder.created_at),
            updated_at=as_utc(reminder.updated_at),
            attempts=reminder.attempts,
            next_attempt_at=as_utc(reminder.next_attempt_at),
            claimed_at=as_utc(reminder.claimed_at),
            last_error=reminder.last_error,
        )

    def to_domain(self) -> "Reminder":  # type: ignore[name-defined]
        from src.careplan.domain.models.reminder import Reminder, ReminderStatus

        return Reminder(
            id=self.id,
            patient_id=self.patient_id,
            doctor_id=self.doctor_id,
            message=self.message,
            scheduled_at=as_utc(self.scheduled_at),
            status=ReminderStatus(self.status),
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            attempts=self.attempts,
            next_attempt_at=as_utc(self.next_attempt_at),
            claimed_at=as_utc(self.claimed_at),
            last_error=self.last_error,
        )


class ReminderSetORM(Base):
    """One row per patient whose reminders were ever replaced.

    Replacing a patient's reminders locks this row first, so concurrent
    replacements for the same patient run one after another.
    """

    __tablename__ = "reminder_sets"

    patient_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class ClinicalNoteORM(Base):
    __tablename__ = "clinical_notes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    doctor_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    patient_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    # "<nonceHex>:<cipherHex>"; the format is shared with existing data.
    envelope: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, note: "ClinicalNote") -> "ClinicalNoteORM":  # type: ignore[name-defined]
        return cls(
            id=note.id,
            doctor_id=note.doctor_id,
            patient_id=note.patient_id,
            envelope=note.envelope,
            created_at=as_utc(note.created_at),
        )

    def to_domain(self) -> "ClinicalNote":  # type: ignore[name-defined]
        from src.careplan.domain.models.clinical_note import ClinicalNote

        return ClinicalNote(
            id=self.id,
            doctor_id=self.doctor_id,
            patient_id=self.patient_id,
            envelope=self.envelope,
            created_at=as_utc(self.created_at),
        )
