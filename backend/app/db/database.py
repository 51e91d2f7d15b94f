"""Database setup — SQLite with WAL mode via SQLModel/SQLAlchemy.

Design decisions:
- SQLModel: combines Pydantic v2 + SQLAlchemy in one model class
- SQLite WAL mode: concurrent reads while the scheduler writes
- Persistence is optional; nothing here is imported unless it is enabled

What goes where:
- task_record: every task the orchestrator has accepted
- escalation_record: escalations and their resolutions
"""

from __future__ import annotations

import os
import sqlite3

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from app.config import settings

# Table models must be imported so SQLModel.metadata knows about them
from app.models.escalation import EscalationRow  # noqa: F401
from app.models.task import TaskRecord  # noqa: F401


def get_database_url() -> str:
    """Get database URL, ensuring the data directory exists."""
    url = settings.database_url
    if url.startswith("sqlite:///"):
        db_path = url.replace("sqlite:///", "")
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    return url


# Enable WAL mode for all SQLite connections
@event.listens_for(Engine, "connect")
def set_sqlite_wal(dbapi_connection, connection_record):
    """Enable WAL mode for concurrent reads during scheduling."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
    cursor.execute("PRAGMA busy_timeout=5000")    # 5s wait on lock
    cursor.close()


def create_db_engine(url: str | None = None) -> Engine:
    """Create an engine for `url` (defaults to the configured database)."""
    url = url or get_database_url()
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


def create_db_and_tables(engine: Engine) -> None:
    """Create all tables defined by SQLModel metadata."""
    SQLModel.metadata.create_all(engine)
