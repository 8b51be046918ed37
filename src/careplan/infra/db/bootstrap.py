from __future__ import annotations

import logging
from typing import Optional

from src.careplan.config import settings
from src.careplan.infra.db import inmemory as inmemory_repos
from src.careplan.infra.db.models import Base
from src.careplan.infra.db.session import create_sqlalchemy_engine, create_sqlalchemy_session_factory
from src.careplan.infra.db.sql_notes import SqlClinicalNoteRepository
from src.careplan.infra.db.sql_reminders import SqlReminderRepository

logger = logging.getLogger("careplan.db")


def init_sql_repositories(database_url: Optional[str] = None, *, force: bool = False) -> bool:
    """Optionally switch in-memory repositories to SQL-backed implementations.

    This helper is intended to be called from an application bootstrap path
    before any service is built. If USE_SQL_REPOS is not enabled (and
    ``force`` is not set) or DATABASE_URL is not configured, this is a no-op
    and the in-memory repositories remain active. Returns True when the SQL
    repositories were installed.
    """

    if not (settings.use_sql_repos or force):
        return False

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; keeping in-memory repositories")
        return False

    engine = create_sqlalchemy_engine(db_url)

    # Create tables if they do not exist. In a real deployment this should be
    # handled by migrations, but this is convenient for early setups.
    Base.metadata.create_all(engine)

    session_factory = create_sqlalchemy_session_factory(engine)

    # Swap repository singletons so that services built afterwards use the
    # database-backed implementations.
    inmemory_repos.reminder_repository = SqlReminderRepository(session_factory)
    inmemory_repos.clinical_note_repository = SqlClinicalNoteRepository(session_factory)

    from src.careplan.dependencies import reset_dependencies

    reset_dependencies()
    logger.info("Using SQL-backed repositories")
    return True
