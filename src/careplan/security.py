from __future__ import annotations

import hashlib
from contextvars import ContextVar
from typing import List, Optional, assert_never
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.careplan.config import settings
from src.careplan.domain.models.reminder import Reminder
from src.careplan.domain.models.user import User, UserRole
from src.careplan.services.users.service import user_service

# API key is expected in this header when ENABLE_API_AUTH is true.
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Context variable storing a stable, non-raw identifier for the current caller
# (e.g., a hashed API key or the user id). This allows downstream consumers
# such as the audit logger to associate events with a subject without
# exposing the raw secret.
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)


def get_current_subject() -> Optional[str]:
    """Return the current subject identifier, if any."""

    return _current_subject.get()


def _parse_api_keys() -> List[str]:
    """Return the configured API keys as a normalized list.

    API_KEYS is treated as a comma-separated list. Whitespace is stripped and
    empty entries are ignored.
    """

    if not settings.api_keys:
        return []
    return [key.strip() for key in settings.api_keys.split(",") if key.strip()]


async def get_api_key(api_key: Optional[str] = Security(_api_key_header)) -> str:
    """FastAPI dependency for simple API-key based authentication.

    - If ENABLE_API_AUTH is false (default for development/tests), this is a
      no-op and always succeeds.
    - If ENABLE_API_AUTH is true, a valid API key must be supplied in the
      X-API-Key header and match the configured API_KEYS list.
    """

    if not settings.enable_api_auth:
        _current_subject.set(None)
        return ""

    allowed_keys = _parse_api_keys()
    if not allowed_keys:
        # Misconfiguration: auth is enabled but no keys are configured.
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API authentication is enabled but no API keys are configured.",
        )

    if not api_key or api_key not in allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )

    subject_id = "api-key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
    _current_subject.set(subject_id)

    return api_key


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    _api_key: str = Depends(get_api_key),
) -> User:
    """Resolve the calling user from the X-User-ID header.

    Sessions and tokens are issued and verified by the gateway in front of
    this service; it forwards the authenticated user's id. Missing,
    malformed or unknown ids are rejected.
    """

    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No user id, authorization denied")

    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User id is not valid")

    user = user_service.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User id is not valid")

    if get_current_subject() is None:
        _current_subject.set(f"user:{user.id}")
    return user


def ensure_is_doctor(user: User) -> None:
    """Raise HTTP 403 unless the user is a doctor."""

    if user.role != UserRole.DOCTOR:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied. Doctors only.")


def can_view_reminders(user: User, patient_id: UUID) -> bool:
    """Doctors may view any patient's reminders; patients only their own."""

    if user.role == UserRole.DOCTOR:
        return True
    elif user.role == UserRole.PATIENT:
        return user.id == patient_id
    else:
        assert_never(user.role)


def can_modify_reminder(user: User, reminder: Reminder) -> bool:
    """Only the authoring doctor or the reminded patient may complete or reschedule."""

    if user.role == UserRole.DOCTOR:
        return reminder.doctor_id == user.id
    elif user.role == UserRole.PATIENT:
        return reminder.patient_id == user.id
    else:
        assert_never(user.role)


def ensure_can_view_reminders(user: User, patient_id: UUID) -> None:
    if not can_view_reminders(user, patient_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized access")


def ensure_can_modify_reminder(user: User, reminder: Reminder) -> None:
    if not can_modify_reminder(user, reminder):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized access")
