from __future__ import annotations

from datetime import timezone
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AwareDatetime, BaseModel

from src.careplan.dependencies import get_reminder_service
from src.careplan.domain.models.reminder import Reminder
from src.careplan.domain.models.user import User
from src.careplan.security import (
    ensure_can_modify_reminder,
    ensure_can_view_reminders,
    get_api_key,
    get_current_user,
)
from src.careplan.services.audit.service import audit_service
from src.careplan.services.reminders.service import ReminderNotFoundError, ReminderService


router = APIRouter(
    prefix="/reminders",
    tags=["reminders"],
    dependencies=[Depends(get_api_key)],
)


class RescheduleRequest(BaseModel):
    # Naive timestamps are ambiguous for a scheduler; require an offset.
    new_date: AwareDatetime


def _load_modifiable(reminders: ReminderService, reminder_id: UUID, user: User) -> Reminder:
    try:
        reminder = reminders.get(reminder_id)
    except ReminderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
    ensure_can_modify_reminder(user, reminder)
    return reminder


@router.get("/{patient_id}", response_model=List[Reminder])
async def list_reminders(
    patient_id: UUID,
    current_user: User = Depends(get_current_user),
    reminders: ReminderService = Depends(get_reminder_service),
) -> List[Reminder]:
    ensure_can_view_reminders(current_user, patient_id)
    return reminders.list_for_patient(patient_id)


@router.put("/{reminder_id}/complete", response_model=Reminder)
async def complete_reminder(
    reminder_id: UUID,
    current_user: User = Depends(get_current_user),
    reminders: ReminderService = Depends(get_reminder_service),
) -> Reminder:
    _load_modifiable(reminders, reminder_id, current_user)
    try:
        reminder = reminders.mark_completed(reminder_id)
    except ReminderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")

    audit_service.log_event(
        action="complete_reminder",
        resource_type="reminder",
        resource_id=str(reminder_id),
        extra={"user_id": str(current_user.id), "role": current_user.role.value},
    )
    return reminder


@router.put("/{reminder_id}/reschedule", response_model=Reminder)
async def reschedule_reminder(
    reminder_id: UUID,
    payload: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    reminders: ReminderService = Depends(get_reminder_service),
) -> Reminder:
    _load_modifiable(reminders, reminder_id, current_user)
    try:
        reminder = reminders.reschedule(reminder_id, payload.new_date.astimezone(timezone.utc))
    except ReminderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")

    audit_service.log_event(
        action="reschedule_reminder",
        resource_type="reminder",
        resource_id=str(reminder_id),
        extra={"user_id": str(current_user.id), "role": current_user.role.value},
    )
    return reminder
