from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field

from src.careplan.domain.models.user import User, UserRole
from src.careplan.security import get_api_key, get_current_user
from src.careplan.services.audit.service import audit_service
from src.careplan.services.users.service import (
    DuplicateEmailError,
    UserNotFoundError,
    UserRoleError,
    user_service,
)


router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_api_key)],
)


class UserRegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: UserRole
    specialization: Optional[str] = None


class SelectDoctorRequest(BaseModel):
    doctor_id: UUID


@router.post("/", response_model=User, status_code=status.HTTP_201_CREATED)
async def register_user(payload: UserRegisterRequest) -> User:
    try:
        user = user_service.register(
            name=payload.name,
            email=payload.email,
            role=payload.role,
            specialization=payload.specialization,
        )
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    audit_service.log_event(
        action="register_user",
        resource_type="user",
        resource_id=str(user.id),
        extra={"role": user.role.value},
    )
    return user


@router.post("/select-doctor", response_model=User)
async def select_doctor(
    payload: SelectDoctorRequest,
    current_user: User = Depends(get_current_user),
) -> User:
    if current_user.role != UserRole.PATIENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only patients can select a doctor")

    try:
        updated = user_service.select_doctor(current_user.id, payload.doctor_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    except UserRoleError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Selected user is not a doctor")

    audit_service.log_event(
        action="select_doctor",
        resource_type="user",
        resource_id=str(current_user.id),
        extra={"doctor_id": str(payload.doctor_id)},
    )
    return updated
