from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from src.careplan.domain.models.reminder import Reminder, ReminderStatus
from src.careplan.infra.db.models import ReminderORM, ReminderSetORM, as_utc
from src.careplan.infra.db.repositories import ReminderRepository
from src.careplan.infra.db.session import SessionFactory


class SqlReminderRepository(ReminderRepository):
    """SQLAlchemy-backed reminder store.

    Status transitions are conditional ``UPDATE`` statements so that a claim
    succeeds for exactly one caller even across service replicas. Replacing a
    patient's reminders first locks that patient's ``reminder_sets`` row, so
    concurrent replacements from different replicas cannot interleave.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, reminder_id: UUID) -> Optional[Reminder]:
        session = self._session_factory()
        try:
            orm = session.get(ReminderORM, reminder_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list_by_patient(self, patient_id: UUID) -> List[Reminder]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(ReminderORM).where(ReminderORM.patient_id == patient_id).order_by(ReminderORM.scheduled_at)
            )
            return [row.to_domain() for row in rows]
        finally:
            session.close()

    def insert_many(self, reminders: Iterable[Reminder]) -> None:
        session = self._session_factory()
        try:
            session.add_all([ReminderORM.from_domain(r) for r in reminders])
            session.commit()
        finally:
            session.close()

    def delete_by_patient(self, patient_id: UUID) -> int:
        session = self._session_factory()
        try:
            result = session.execute(delete(ReminderORM).where(ReminderORM.patient_id == patient_id))
            session.commit()
            return result.rowcount or 0
        finally:
            session.close()

    def replace_for_patient(self, patient_id: UUID, reminders: Iterable[Reminder]) -> None:
        session = self._session_factory()
        try:
            _lock_patient(session, patient_id)
            session.execute(delete(ReminderORM).where(ReminderORM.patient_id == patient_id))
            session.add_all([ReminderORM.from_domain(r) for r in reminders])
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find_due(self, now: datetime, *, max_attempts: Optional[int] = None) -> List[Reminder]:
        now = as_utc(now)
        stmt = select(ReminderORM).where(
            ReminderORM.status == ReminderStatus.PENDING.value,
            ReminderORM.scheduled_at <= now,
            or_(ReminderORM.next_attempt_at.is_(None), ReminderORM.next_attempt_at <= now),
        )
        if max_attempts is not None:
            stmt = stmt.where(ReminderORM.attempts < max_attempts)

        session = self._session_factory()
        try:
            return [row.to_domain() for row in session.scalars(stmt)]
        finally:
            session.close()

    def update_status(self, reminder_id: UUID, status: ReminderStatus, *, now: datetime) -> Optional[Reminder]:
        return self._update(reminder_id, status=status.value, updated_at=as_utc(now))

    def update_schedule(self, reminder_id: UUID, scheduled_at: datetime, *, now: datetime) -> Optional[Reminder]:
        return self._update(
            reminder_id,
            scheduled_at=as_utc(scheduled_at),
            status=ReminderStatus.PENDING.value,
            attempts=0,
            next_attempt_at=None,
            claimed_at=None,
            last_error=None,
            updated_at=as_utc(now),
        )

    def transition(
        self,
        reminder_id: UUID,
        *,
        expected: ReminderStatus,
        target: ReminderStatus,
        now: datetime,
        **changes: Any,
    ) -> Optional[Reminder]:
        values = {key: as_utc(value) if isinstance(value, datetime) else value for key, value in changes.items()}
        values.update(status=target.value, updated_at=as_utc(now))
        return self._update(reminder_id, _expected=expected, **values)

    def release_stale_claims(self, claimed_before: datetime, *, now: datetime) -> int:
        stmt = (
            update(ReminderORM)
            .where(
                ReminderORM.status == ReminderStatus.IN_FLIGHT.value,
                or_(ReminderORM.claimed_at.is_(None), ReminderORM.claimed_at < as_utc(claimed_before)),
            )
            .values(status=ReminderStatus.PENDING.value, claimed_at=None, updated_at=as_utc(now))
            .execution_options(synchronize_session=False)
        )
        session = self._session_factory()
        try:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount or 0
        finally:
            session.close()

    def _update(self, reminder_id: UUID, _expected: Optional[ReminderStatus] = None, **values: Any) -> Optional[Reminder]:
        stmt = update(ReminderORM).where(ReminderORM.id == reminder_id)
        if _expected is not None:
            stmt = stmt.where(ReminderORM.status == _expected.value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        session = self._session_factory()
        try:
            result = session.execute(stmt)
            session.commit()
            if result.rowcount != 1:
                return None
            orm = session.get(ReminderORM, reminder_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()


def _lock_patient(session: Session, patient_id: UUID) -> None:
    """Take the patient's row lock for the rest of the transaction.

    The upsert both creates the row on first use and locks an existing one;
    a second transaction for the same patient blocks here until the first
    commits, then sees its reminders when it deletes.
    """

    dialect = session.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        module = postgresql if dialect == "postgresql" else sqlite
        stmt = (
            module.insert(ReminderSetORM)
            .values(patient_id=patient_id, version=1)
            .on_conflict_do_update(
                index_elements=[ReminderSetORM.patient_id],
                set_={"version": ReminderSetORM.version + 1},
            )
        )
        session.execute(stmt)
        return

    locked = session.execute(
        select(ReminderSetORM.patient_id).where(ReminderSetORM.patient_id == patient_id).with_for_update()
    ).first()
    if locked is None:
        session.execute(insert(ReminderSetORM).values(patient_id=patient_id, version=1))
