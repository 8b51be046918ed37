from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.careplan.dependencies import get_note_service
from src.careplan.domain.models.clinical_note import DecryptedNote
from src.careplan.domain.models.reminder import Reminder
from src.careplan.domain.models.user import User
from src.careplan.security import ensure_is_doctor, get_api_key, get_current_user
from src.careplan.services.audit.service import audit_service
from src.careplan.services.notes.service import ClinicalNoteService, InvalidPatientSelectionError
from src.careplan.services.users.service import UserNotFoundError, UserRoleError


router = APIRouter(
    prefix="/notes",
    tags=["notes"],
    dependencies=[Depends(get_api_key)],
)


class NoteSubmitRequest(BaseModel):
    patient_id: UUID
    note: str = Field(min_length=1)


class NoteSubmitResponse(BaseModel):
    id: UUID
    patient_id: UUID
    created_at: datetime
    checklist: List[str]
    plan: List[str]
    reminders: List[Reminder]


@router.post("/", response_model=NoteSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_note(
    payload: NoteSubmitRequest,
    current_user: User = Depends(get_current_user),
    note_service: ClinicalNoteService = Depends(get_note_service),
) -> NoteSubmitResponse:
    ensure_is_doctor(current_user)

    try:
        submission = note_service.submit_note(
            doctor_id=current_user.id,
            patient_id=payload.patient_id,
            text=payload.note,
        )
    except (UserNotFoundError, UserRoleError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")

    audit_service.log_event(
        action="submit_note",
        resource_type="clinical_note",
        resource_id=str(submission.note.id),
        extra={
            "doctor_id": str(current_user.id),
            "patient_id": str(payload.patient_id),
            "reminder_count": len(submission.reminders),
        },
    )

    return NoteSubmitResponse(
        id=submission.note.id,
        patient_id=submission.note.patient_id,
        created_at=submission.note.created_at,
        checklist=submission.actionable_steps.checklist,
        plan=submission.actionable_steps.plan,
        reminders=submission.reminders,
    )


@router.get("/{patient_id}", response_model=List[DecryptedNote])
async def list_notes(
    patient_id: UUID,
    current_user: User = Depends(get_current_user),
    note_service: ClinicalNoteService = Depends(get_note_service),
) -> List[DecryptedNote]:
    ensure_is_doctor(current_user)

    try:
        notes = note_service.list_notes(doctor_id=current_user.id, patient_id=patient_id)
    except (UserNotFoundError, UserRoleError, InvalidPatientSelectionError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid patient selection")

    if not notes:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No doctor's notes for this patient")

    audit_service.log_event(
        action="list_notes",
        resource_type="clinical_note",
        extra={"doctor_id": str(current_user.id), "patient_id": str(patient_id), "count": len(notes)},
    )
    return notes
