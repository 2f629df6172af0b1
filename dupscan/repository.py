"""Storage-facing collaborators of the scanner.

All classes work on a caller-provided session so that a resolution
action can combine several writes into a single transaction.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from dupscan import ProjectRecord, pair_key
from dupscan.database import AuditLog, Document, DuplicateReview, Investor, Project, StatusHistory
from dupscan.errors import NotFoundError, ValidationError

log = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    'id', 'project_code', 'project_name', 'site_code_display', 'investor_id',
    'intake_year', 'fiscal_year', 'seq', 'address', 'city', 'district',
    'capacity_kwp', 'status', 'is_archived', 'is_deleted', 'deleted_at', 'deleted_by',
    'delete_reason',
)

AUDIT_ACTIONS = ('UPDATE', 'DELETE')
DECISIONS = ('dismiss', 'confirm', 'merged')

_REVIEW_KEY = ['project_id_a', 'project_id_b']


def project_snapshot(row: Project) -> dict[str, Any]:
    """JSON-serializable copy of a project row for the audit log."""
    snapshot = {}
    for name in SNAPSHOT_FIELDS:
        value = getattr(row, name)
        snapshot[name] = value.isoformat() if isinstance(value, datetime) else value
    return snapshot


class ProjectRepository:
    """Read access to projects plus the soft-delete/restore facility."""

    def __init__(self, session: Session):
        self.session = session

    def list_active(self) -> list[ProjectRecord]:
        """All projects neither soft-deleted nor archived, newest first.

        Document counts include only non-deleted documents; status
        history counts include every row.
        """
        rows = (
            self.session.query(Project, Investor)
            .outerjoin(Investor, Project.investor_id == Investor.id)
            .filter(Project.is_deleted.is_(False), Project.is_archived.is_(False))
            .order_by(Project.created_at.desc(), Project.id)
            .all()
        )
        doc_counts = dict(
            self.session.query(Document.project_id, func.count(Document.id))
            .filter(Document.is_deleted.is_(False))
            .group_by(Document.project_id)
            .all()
        )
        history_counts = dict(
            self.session.query(StatusHistory.project_id, func.count(StatusHistory.id))
            .group_by(StatusHistory.project_id)
            .all()
        )
        return [
            ProjectRecord(
                id=project.id,
                project_name=project.project_name or '',
                project_code=project.project_code or '',
                site_code_display=project.site_code_display,
                investor_id=project.investor_id,
                investor_code=investor.investor_code if investor else None,
                investor_name=investor.company_name if investor else None,
                intake_year=project.intake_year,
                fiscal_year=project.fiscal_year,
                seq=project.seq,
                address=project.address,
                city=project.city,
                district=project.district,
                capacity_kwp=project.capacity_kwp,
                created_at=project.created_at,
                status=project.status or '',
                document_count=doc_counts.get(project.id, 0),
                status_history_count=history_counts.get(project.id, 0),
            )
            for project, investor in rows
        ]

    def get_active(self, project_id: str) -> Project:
        """Load a project that must still be active.

        Raises:
            NotFoundError: If the project is missing or soft-deleted.
        """
        row = self.session.get(Project, project_id)
        if row is None or row.is_deleted:
            raise NotFoundError(
                f"Project {project_id} not found or already deleted", record_id=project_id,
            )
        return row

    def hold_active(self, project_id: str) -> None:
        """Assert, inside the write transaction, that a project is still active.

        The no-op conditional UPDATE reads committed state and takes the
        database write lock, so no other actor can delete the project
        before this transaction ends.

        Raises:
            NotFoundError: If the project was deleted in the meantime.
        """
        updated = (
            self.session.query(Project)
            .filter(Project.id == project_id, Project.is_deleted.is_(False))
            .update({Project.is_deleted: False}, synchronize_session=False)
        )
        if updated != 1:
            raise NotFoundError(
                f"Project {project_id} was deleted concurrently", record_id=project_id,
            )

    def soft_delete(
        self,
        project_id: str,
        actor: Optional[str],
        reason: Optional[str],
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Mark a project deleted. Only succeeds while it is still active.

        Returns:
            Tuple of (old_snapshot, new_snapshot).

        Raises:
            NotFoundError: If another actor deleted the project first.
        """
        row = self.get_active(project_id)
        old = project_snapshot(row)

        updated = (
            self.session.query(Project)
            .filter(Project.id == project_id, Project.is_deleted.is_(False))
            .update(
                {
                    Project.is_deleted: True,
                    Project.deleted_at: datetime.now(),
                    Project.deleted_by: actor,
                    Project.delete_reason: reason,
                },
                synchronize_session='fetch',
            )
        )
        if updated != 1:
            raise NotFoundError(
                f"Project {project_id} was deleted concurrently", record_id=project_id,
            )
        self.session.refresh(row)
        log.info("Project %s soft-deleted by %s", project_id, actor)
        return old, project_snapshot(row)

    def restore(self, project_id: str) -> tuple[dict[str, Any], dict[str, Any]]:
        """Undo a soft delete.

        Raises:
            NotFoundError: If the project does not exist or is not deleted.
        """
        row = self.session.get(Project, project_id)
        if row is None or not row.is_deleted:
            raise NotFoundError(
                f"Project {project_id} not found in recycle bin", record_id=project_id,
            )
        old = project_snapshot(row)
        row.is_deleted = False
        row.deleted_at = None
        row.deleted_by = None
        row.delete_reason = None
        self.session.flush()
        log.info("Project %s restored", project_id)
        return old, project_snapshot(row)

    def reassign_documents(self, from_id: str, to_id: str) -> int:
        """Move every document of from_id to to_id. Returns the row count."""
        return (
            self.session.query(Document)
            .filter(Document.project_id == from_id)
            .update({Document.project_id: to_id}, synchronize_session=False)
        )

    def reassign_status_history(self, from_id: str, to_id: str) -> int:
        """Move every status-history row of from_id to to_id. Returns the row count."""
        return (
            self.session.query(StatusHistory)
            .filter(StatusHistory.project_id == from_id)
            .update({StatusHistory.project_id: to_id}, synchronize_session=False)
        )


class ReviewLedger:
    """Operator decisions on project pairs, keyed by canonical pair."""

    def __init__(self, session: Session):
        self.session = session

    def reviewed_pairs(self) -> set[tuple[str, str]]:
        """Keys of all reviewed pairs, whatever the decision."""
        rows = self.session.query(DuplicateReview.project_id_a, DuplicateReview.project_id_b).all()
        return {(a, b) for a, b in rows}

    def get(self, id_a: str, id_b: str) -> Optional[DuplicateReview]:
        a, b = pair_key(id_a, id_b)
        return self.session.get(DuplicateReview, (a, b))

    def is_reviewed(self, id_a: str, id_b: str) -> bool:
        return self.get(id_a, id_b) is not None

    def record(
        self,
        id_a: str,
        id_b: str,
        decision: str,
        reason: Optional[str],
        actor: Optional[str],
        overwrite: bool = False,
    ) -> bool:
        """Store a decision for a pair in a single INSERT ... ON CONFLICT.

        An existing entry is kept unless overwrite is set, in which case
        it is replaced.

        Returns:
            True if a row was written, False if the pair was already reviewed.
        """
        if decision not in DECISIONS:
            raise ValidationError(f"Unknown review decision: {decision}")
        a, b = pair_key(id_a, id_b)
        values = {
            'decision': decision,
            'reason': reason,
            'reviewed_by': actor,
            'reviewed_at': datetime.now(),
        }
        stmt = sqlite_insert(DuplicateReview.__table__).values(
            project_id_a=a, project_id_b=b, **values,
        )
        if overwrite:
            stmt = stmt.on_conflict_do_update(index_elements=_REVIEW_KEY, set_=values)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=_REVIEW_KEY)
        result = self.session.connection().execute(stmt)
        return result.rowcount == 1


class AuditTrail:
    """Append-only writer for audit_logs."""

    def __init__(self, session: Session):
        self.session = session

    def write(
        self,
        table_name: str,
        record_id: str,
        action: str,
        old_data: Optional[dict[str, Any]] = None,
        new_data: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> AuditLog:
        if action not in AUDIT_ACTIONS:
            raise ValidationError(f"Unsupported audit action: {action}")
        entry = AuditLog(
            table_name=table_name,
            record_id=record_id,
            action=action,
            old_data=old_data,
            new_data=new_data,
            reason=reason,
            actor=actor,
            created_at=datetime.now(),
        )
        self.session.add(entry)
        self.session.flush()
        log.debug("Audit %s %s/%s: %s", action, table_name, record_id, reason)
        return entry

    def entries(self, record_id: Optional[str] = None) -> list[AuditLog]:
        query = self.session.query(AuditLog)
        if record_id is not None:
            query = query.filter(AuditLog.record_id == record_id)
        return query.order_by(AuditLog.id).all()
