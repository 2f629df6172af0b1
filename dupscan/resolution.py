"""Terminal actions on a detected duplicate pair: dismiss, delete, merge.

Every action runs in one transaction. If any step fails, nothing is
written: reassigned child rows, soft deletes, ledger rows and audit
entries are rolled back together.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from itertools import combinations
from pathlib import Path
from typing import Optional

from dupscan.auth import ADMIN, EDITOR, Actor, require_role
from dupscan.database import session_scope
from dupscan.errors import ValidationError
from dupscan.repository import AuditTrail, ProjectRepository, ReviewLedger

log = logging.getLogger(__name__)

DEFAULT_DISMISS_REASON = '使用者判斷非重複'
DEFAULT_DELETE_REASON = '確認重複資料清理'


@dataclass
class MergeResult:
    """Outcome of a merge."""

    keep_id: str
    merged_id: str
    documents_moved: int = 0
    status_history_moved: int = 0


def _validate_pair(keep_id: Optional[str], other_id: Optional[str]) -> None:
    if not keep_id:
        raise ValidationError("No project selected to keep")
    if not other_id:
        raise ValidationError("No project selected to remove")
    if keep_id == other_id:
        raise ValidationError(
            f"Project to keep and project to remove are the same ({keep_id})",
        )


class ResolutionWorkflow:
    """Applies operator decisions to the record store."""

    def __init__(self, db_path: Path, actor: Actor):
        self.db_path = db_path
        self.actor = actor

    def dismiss(self, project_ids: Sequence[str], reason: Optional[str] = None) -> int:
        """Mark every pair among project_ids as not duplicate.

        Already reviewed pairs are left as they are. No project is
        modified.

        Returns:
            Number of newly recorded pairs.
        """
        require_role(self.actor, EDITOR, 'Dismiss')
        ids = list(dict.fromkeys(i for i in project_ids if i))
        if len(ids) < 2:
            raise ValidationError("Dismissal needs at least two distinct projects")
        reason = reason or DEFAULT_DISMISS_REASON

        with session_scope(self.db_path) as session:
            ledger = ReviewLedger(session)
            written = sum(
                ledger.record(a, b, 'dismiss', reason, self.actor.id)
                for a, b in combinations(ids, 2)
            )

        skipped = len(ids) * (len(ids) - 1) // 2 - written
        if skipped:
            log.warning("%d pair(s) were already reviewed, left unchanged", skipped)
        log.info("Dismissed %d pair(s) among %s by %s", written, ids, self.actor.id)
        return written

    def confirm_and_delete(
        self,
        keep_id: str,
        delete_id: str,
        reason: Optional[str] = None,
    ) -> None:
        """Confirm a duplicate and soft-delete the redundant project.

        Raises:
            AuthorizationError: Actor is not an admin.
            ValidationError: Ids missing or identical.
            NotFoundError: Either project was already resolved elsewhere.
            PersistenceError: The write failed; nothing changed.
        """
        require_role(self.actor, ADMIN, 'Confirm and delete')
        _validate_pair(keep_id, delete_id)
        reason = reason or DEFAULT_DELETE_REASON

        with session_scope(self.db_path) as session:
            projects = ProjectRepository(session)
            projects.get_active(keep_id)
            old, new = projects.soft_delete(delete_id, self.actor.id, reason)
            projects.hold_active(keep_id)
            ReviewLedger(session).record(
                keep_id, delete_id, 'confirm',
                f'{reason}（保留 {keep_id}，刪除 {delete_id}）', self.actor.id,
                overwrite=True,
            )
            AuditTrail(session).write(
                'projects', delete_id, 'DELETE', old, new,
                reason=f'DEDUP_CONFIRM: 確認重複，保留案場 {keep_id}；{reason}',
                actor=self.actor.id,
            )

        log.info("Duplicate confirmed: kept %s, deleted %s", keep_id, delete_id)

    def merge(
        self,
        keep_id: str,
        merge_id: str,
        merge_documents: bool = True,
        merge_status_history: bool = True,
        reason: Optional[str] = None,
    ) -> MergeResult:
        """Move child rows of merge_id onto keep_id and soft-delete merge_id.

        All steps share one transaction; a failure in any of them
        leaves both projects and their child rows untouched.

        Raises:
            AuthorizationError: Actor is not an admin.
            ValidationError: Ids missing or identical.
            NotFoundError: Either project was already resolved elsewhere.
            PersistenceError: The write failed; nothing changed.
        """
        require_role(self.actor, ADMIN, 'Merge')
        _validate_pair(keep_id, merge_id)
        result = MergeResult(keep_id=keep_id, merged_id=merge_id)
        note = reason or f'已合併至 {keep_id}'

        with session_scope(self.db_path) as session:
            projects = ProjectRepository(session)
            audit = AuditTrail(session)
            projects.get_active(keep_id)
            projects.get_active(merge_id)

            if merge_documents:
                result.documents_moved = projects.reassign_documents(merge_id, keep_id)
                audit.write(
                    'documents', keep_id, 'UPDATE',
                    {'project_id': merge_id, 'count': result.documents_moved},
                    {'project_id': keep_id, 'count': result.documents_moved},
                    reason=f'DEDUP_MERGE: 文件移轉 {result.documents_moved} 筆；{note}',
                    actor=self.actor.id,
                )

            if merge_status_history:
                moved = projects.reassign_status_history(merge_id, keep_id)
                result.status_history_moved = moved
                audit.write(
                    'project_status_history', keep_id, 'UPDATE',
                    {'project_id': merge_id, 'count': moved},
                    {'project_id': keep_id, 'count': moved},
                    reason=f'DEDUP_MERGE: 狀態歷史移轉 {moved} 筆；{note}',
                    actor=self.actor.id,
                )

            old, new = projects.soft_delete(
                merge_id, self.actor.id, f'已合併至案場 {keep_id}',
            )
            # Child rows must never land on a project deleted meanwhile
            projects.hold_active(keep_id)
            ReviewLedger(session).record(
                keep_id, merge_id, 'merged', note, self.actor.id, overwrite=True,
            )
            suffix = ''
            if merge_documents:
                suffix += '，含文件'
            if merge_status_history:
                suffix += '，含狀態歷史'
            old['merged_into'] = None
            new['merged_into'] = keep_id
            new['documents_moved'] = result.documents_moved
            new['status_history_moved'] = result.status_history_moved
            audit.write(
                'projects', merge_id, 'UPDATE', old, new,
                reason=f'DEDUP_MERGE: 已合併至案場 {keep_id}{suffix}；{note}',
                actor=self.actor.id,
            )

        log.info(
            "Merged %s into %s: %d documents, %d status history rows",
            merge_id, keep_id, result.documents_moved, result.status_history_moved,
        )
        return result

    def restore(self, project_id: str) -> None:
        """Bring a soft-deleted project back from the recycle bin."""
        require_role(self.actor, EDITOR, 'Restore')
        if not project_id:
            raise ValidationError("No project selected to restore")
        with session_scope(self.db_path) as session:
            old, new = ProjectRepository(session).restore(project_id)
            AuditTrail(session).write(
                'projects', project_id, 'UPDATE', old, new,
                reason='RESTORE', actor=self.actor.id,
            )
        log.info("Project %s restored by %s", project_id, self.actor.id)
