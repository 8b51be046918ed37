from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ReminderStatus(str, Enum):
    PENDING = "pending"
    # Claimed by a dispatcher sweep and awaiting the notifier result.
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


class Reminder(BaseModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    message: str
    scheduled_at: datetime
    status: ReminderStatus = ReminderStatus.PENDING
    created_at: datetime
    updated_at: datetime

    # Delivery bookkeeping maintained by the dispatcher.
    attempts: int = 0
    next_attempt_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    last_error: Optional[str] = None
