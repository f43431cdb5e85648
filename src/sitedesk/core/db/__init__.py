"""Database utilities - engine, session, migrations."""

from src.sitedesk.core.db.engine import dispose_engine, get_engine
from src.sitedesk.core.db.session import get_session
from src.sitedesk.core.migrations import run_migrations_sync

__all__ = [
    # Engine
    "dispose_engine",
    "get_engine",
    # Session
    "get_session",
    # Migrations
    "run_migrations_sync",
]
