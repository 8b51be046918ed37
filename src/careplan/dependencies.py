from __future__ import annotations

from functools import lru_cache

from src.careplan.clock import system_clock
from src.careplan.config import settings
from src.careplan.infra.db import inmemory as repos
from src.careplan.services.crypto.codec import EncryptionCodec
from src.careplan.services.notes.authoring import NoteAuthoringService
from src.careplan.services.notes.service import ClinicalNoteService
from src.careplan.services.planning.parser import plan_parser
from src.careplan.services.reminders.dispatcher import ReminderDispatcher
from src.careplan.services.reminders.notifiers import get_notifier_from_env
from src.careplan.services.reminders.service import ReminderService
from src.careplan.services.users.service import user_service


@lru_cache(maxsize=None)
def get_encryption_codec() -> EncryptionCodec:
    return EncryptionCodec.from_settings()


@lru_cache(maxsize=None)
def get_reminder_service() -> ReminderService:
    return ReminderService(repos.reminder_repository, clock=system_clock)


@lru_cache(maxsize=None)
def get_note_service() -> ClinicalNoteService:
    return ClinicalNoteService(
        repos.clinical_note_repository,
        get_encryption_codec(),
        authoring=NoteAuthoringService(),
        parser=plan_parser,
        reminders=get_reminder_service(),
        users=user_service,
        clock=system_clock,
    )


@lru_cache(maxsize=None)
def get_reminder_dispatcher() -> ReminderDispatcher:
    return ReminderDispatcher(
        repos.reminder_repository,
        get_notifier_from_env(),
        clock=system_clock,
        interval_seconds=settings.dispatcher_interval_seconds,
    )


def reset_dependencies() -> None:
    """Drop cached services so they are rebuilt against the current repositories."""

    for getter in (get_encryption_codec, get_reminder_service, get_note_service, get_reminder_dispatcher):
        getter.cache_clear()
