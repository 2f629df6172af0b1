"""Database schema and connection management.

Uses SQLite with SQLAlchemy for projects, their child rows, the review
ledger, the audit log and application settings.
"""

import functools
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from dupscan.errors import PersistenceError

log = logging.getLogger(__name__)

Base = declarative_base()


class Investor(Base):
    """Investor owning one or more projects."""

    __tablename__ = 'investors'

    id = Column(String, primary_key=True)
    investor_code = Column(String, nullable=True)
    company_name = Column(String, nullable=True)


class Project(Base):
    """Solar project record with soft-delete columns."""

    __tablename__ = 'projects'

    id = Column(String, primary_key=True)
    project_code = Column(String, nullable=False, default='')
    project_name = Column(String, nullable=False, default='')
    site_code_display = Column(String, nullable=True)
    investor_id = Column(String, ForeignKey('investors.id'), nullable=True)
    intake_year = Column(Integer, nullable=True)
    fiscal_year = Column(Integer, nullable=True)
    seq = Column(Integer, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    district = Column(String, nullable=True)
    capacity_kwp = Column(Float, nullable=True)
    status = Column(String, nullable=False, default='')
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    is_archived = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String, nullable=True)
    delete_reason = Column(Text, nullable=True)


class Document(Base):
    """Document attached to a project."""

    __tablename__ = 'documents'

    id = Column(String, primary_key=True)
    project_id = Column(String, ForeignKey('projects.id'), nullable=False, index=True)
    title = Column(String, nullable=False, default='')
    is_deleted = Column(Boolean, nullable=False, default=False)


class StatusHistory(Base):
    """One status transition of a project."""

    __tablename__ = 'project_status_history'

    id = Column(String, primary_key=True)
    project_id = Column(String, ForeignKey('projects.id'), nullable=False, index=True)
    status = Column(String, nullable=False)
    changed_at = Column(DateTime, nullable=False, default=datetime.now)


class DuplicateReview(Base):
    """Operator decision on a project pair, keyed by the sorted pair of ids."""

    __tablename__ = 'duplicate_reviews'

    project_id_a = Column(String, primary_key=True)
    project_id_b = Column(String, primary_key=True)
    decision = Column(String, nullable=False)  # dismiss, confirm, merged
    reason = Column(Text, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=False, default=datetime.now)


class AuditLog(Base):
    """Append-only record of a state-changing action."""

    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String, nullable=False)
    record_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)  # UPDATE, DELETE
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    actor = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class AppSetting(Base):
    """Key-value application setting stored as JSON."""

    __tablename__ = 'app_settings'

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


@functools.lru_cache(maxsize=None)
def get_engine(db_path: Path) -> Engine:
    """Get (and cache) the engine for a SQLite database file."""
    return create_engine(f'sqlite:///{db_path}')


def init_database(db_path: Path) -> None:
    """Create the database file and all tables if missing.

    Args:
        db_path: Path to the SQLite database file.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path) -> Session:
    """Open a new session on the database at db_path."""
    SessionLocal = sessionmaker(bind=get_engine(Path(db_path)))
    return SessionLocal()


@contextmanager
def session_scope(db_path: Path) -> Iterator[Session]:
    """Run a unit of work in one transaction.

    Commits when the block exits normally and rolls back on any error.
    Storage errors are re-raised as PersistenceError.

    Args:
        db_path: Path to the SQLite database file.
    """
    session = get_session(db_path)
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.error("Transaction rolled back: %s", exc)
        raise PersistenceError(f"Database write failed: {exc}") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
