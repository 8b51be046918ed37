from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from src.careplan.domain.models.clinical_note import ClinicalNote
from src.careplan.infra.db.models import ClinicalNoteORM
from src.careplan.infra.db.repositories import ClinicalNoteRepository
from src.careplan.infra.db.session import SessionFactory


class SqlClinicalNoteRepository(ClinicalNoteRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, note_id: UUID) -> Optional[ClinicalNote]:
        session = self._session_factory()
        try:
            orm = session.get(ClinicalNoteORM, note_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def list_for_relationship(self, doctor_id: UUID, patient_id: UUID) -> List[ClinicalNote]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(ClinicalNoteORM)
                .where(
                    ClinicalNoteORM.doctor_id == doctor_id,
                    ClinicalNoteORM.patient_id == patient_id,
                )
                .order_by(ClinicalNoteORM.created_at.desc())
            )
            return [row.to_domain() for row in rows]
        finally:
            session.close()

    def add(self, note: ClinicalNote) -> None:
        # Notes are append-only; there is no update path.
        session = self._session_factory()
        try:
            session.add(ClinicalNoteORM.from_domain(note))
            session.commit()
        finally:
            session.close()
