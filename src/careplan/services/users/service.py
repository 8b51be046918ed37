from __future__ import annotations

from threading import Lock
from typing import Dict, Optional
from uuid import UUID, uuid4

from src.careplan.domain.models.user import User, UserRole


class UserNotFoundError(LookupError):
    pass


class UserRoleError(ValueError):
    """Raised when a user does not have the role an operation requires."""


class DuplicateEmailError(ValueError):
    pass


class InMemoryUserService:
    """Very small in-memory user directory.

    Account management and credentials live outside this service; it only
    tracks identities, roles and which doctor each patient has selected.
    """

    def __init__(self) -> None:
        self._users: Dict[UUID, User] = {}
        self._lock = Lock()

    def register(
        self,
        *,
        name: str,
        email: str,
        role: UserRole,
        specialization: Optional[str] = None,
    ) -> User:
        if role == UserRole.DOCTOR and not specialization:
            raise ValueError("Specialization is required for doctors")

        with self._lock:
            if any(u.email.lower() == email.lower() for u in self._users.values()):
                raise DuplicateEmailError(f"User with email {email} already exists")
            user = User(
                id=uuid4(),
                name=name,
                email=email,
                role=role,
                specialization=specialization if role == UserRole.DOCTOR else None,
            )
            self._users[user.id] = user
        return user

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self._users.get(user_id)

    def require_user(self, user_id: UUID, role: UserRole) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"{role.value.capitalize()} {user_id} not found")
        if user.role != role:
            raise UserRoleError(f"User {user_id} is not a {role.value}")
        return user

    def select_doctor(self, patient_id: UUID, doctor_id: UUID) -> User:
        """Record ``doctor_id`` as the patient's chosen doctor."""

        patient = self.require_user(patient_id, UserRole.PATIENT)
        self.require_user(doctor_id, UserRole.DOCTOR)
        with self._lock:
            updated = patient.model_copy(update={"doctor_id": doctor_id})
            self._users[patient_id] = updated
        return updated


user_service = InMemoryUserService()
