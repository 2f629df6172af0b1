"""scanner – CLI for finding and resolving duplicate solar project records."""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from dupscan import ProjectRecord
from dupscan.auth import ROLE_RANK, VIEWER, Actor
from dupscan.database import init_database, session_scope
from dupscan.errors import DedupeError
from dupscan.reader import read_projects
from dupscan.repository import ProjectRepository
from dupscan.reporter import print_summary, write_csv_report, write_html_report
from dupscan.resolution import ResolutionWorkflow
from dupscan.scan import (
    build_duplicate_warnings,
    cluster_groups,
    explain_pair,
    scan_database,
    scan_for_duplicates,
)
from dupscan.settings import DEFAULT_SETTINGS, SETTING_NAMES, SettingsStore

DEFAULT_DB = Path('data') / 'projects.db'


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description='Find and resolve duplicate solar project records.',
        prog='scanner.py',
    )
    parser.add_argument(
        '--db', type=Path, default=DEFAULT_DB,
        help=f'Path to the SQLite database (default: {DEFAULT_DB})',
    )
    parser.add_argument(
        '--actor', default='cli',
        help='Operator id recorded in the ledger and audit log',
    )
    parser.add_argument(
        '--role', choices=sorted(ROLE_RANK, key=ROLE_RANK.get), default=VIEWER,
        help='Operator role (default: viewer)',
    )
    parser.add_argument(
        '--verbose', action='store_true',
        help='Log per-pair decisions',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    scan = sub.add_parser('scan', help='Scan for duplicate pairs')
    scan.add_argument(
        '--csv', type=Path,
        help='Scan a CSV export instead of the database (default thresholds)',
    )
    scan.add_argument('--output', type=Path, help='Path for the CSV report')
    scan.add_argument(
        '--html', action='store_true',
        help='Also write an HTML report next to --output',
    )
    scan.add_argument('--summary', action='store_true', help='Print a summary to stdout')
    scan.add_argument(
        '--clusters', action='store_true',
        help='Print connected clusters of matching projects',
    )
    scan.add_argument(
        '--warnings', action='store_true',
        help='Print a per-project duplicate warning for HIGH and MEDIUM matches',
    )

    compare = sub.add_parser('compare', help='Explain the verdict for one pair')
    compare.add_argument('id_a')
    compare.add_argument('id_b')
    compare.add_argument('--csv', type=Path, help='Read projects from a CSV export')

    dismiss = sub.add_parser('dismiss', help='Mark projects as not duplicates')
    dismiss.add_argument('ids', nargs='+')
    dismiss.add_argument('--reason')

    delete = sub.add_parser('delete', help='Confirm a duplicate and soft-delete it')
    delete.add_argument('--keep', required=True)
    delete.add_argument('--delete', required=True, dest='delete_id')
    delete.add_argument('--reason')

    merge = sub.add_parser('merge', help='Merge one project into another')
    merge.add_argument('--keep', required=True)
    merge.add_argument('--merge', required=True, dest='merge_id')
    merge.add_argument('--documents', action='store_true', help='Move documents')
    merge.add_argument('--status-history', action='store_true', help='Move status history')
    merge.add_argument('--reason')

    restore = sub.add_parser('restore', help='Restore a soft-deleted project')
    restore.add_argument('id')

    settings = sub.add_parser('settings', help='Show or change scanner thresholds')
    settings_sub = settings.add_subparsers(dest='settings_command', required=True)
    settings_sub.add_parser('show')
    setter = settings_sub.add_parser('set')
    setter.add_argument('key', choices=SETTING_NAMES)
    setter.add_argument('value', type=float)
    settings_sub.add_parser('reset')

    return parser


def _find_project(projects: list[ProjectRecord], project_id: str) -> ProjectRecord:
    for project in projects:
        if project.id == project_id:
            return project
    raise DedupeError(f"Project {project_id} not found among active projects")


def run_scan(args: argparse.Namespace) -> None:
    if args.csv:
        groups = scan_for_duplicates(read_projects(args.csv))
        title = args.csv.name
    else:
        groups = scan_database(args.db)
        title = args.db.name

    if args.output:
        write_csv_report(groups, args.output)
        if args.html:
            write_html_report(groups, args.output.with_suffix('.html'), title)

    if args.summary or not args.output:
        print_summary(groups, title)

    if args.clusters:
        for cluster in cluster_groups(groups):
            print(' ~ '.join(cluster))

    if args.warnings:
        for project_id, warning in sorted(build_duplicate_warnings(groups).items()):
            partners = ', '.join(warning.duplicate_project_ids)
            print(f"{project_id}: possible duplicate of {partners} ({warning.reason})")


def run_compare(args: argparse.Namespace) -> None:
    if args.csv:
        projects = read_projects(args.csv)
        settings = DEFAULT_SETTINGS
    else:
        with session_scope(args.db) as session:
            projects = ProjectRepository(session).list_active()
        settings = SettingsStore(args.db).load()

    a = _find_project(projects, args.id_a)
    b = _find_project(projects, args.id_b)
    score, result = explain_pair(a, b, settings)

    print(f"{a.id} ↔ {b.id}: {result.level}")
    print(f"  address similarity   {score.address_similarity:6.1f}")
    print(f"  name similarity      {score.name_similarity:6.1f}")
    print(f"  address token overlap{score.address_token_overlap:6.1f}")
    print(f"  capacity difference  {score.capacity_difference:6.1f}")
    for c in result.matched_criteria:
        print(f"  + {c.name}" + (f" ({c.value})" if c.value else ''))
    for c in result.unmatched_criteria:
        print(f"  - {c.name}" + (f" ({c.value})" if c.value else ''))


def run_settings(args: argparse.Namespace) -> None:
    store = SettingsStore(args.db)
    if args.settings_command == 'set':
        requested = dataclasses.replace(store.load(), **{args.key: args.value})
        clamped = requested.clamped()
        if clamped != requested:
            logging.warning(
                "%s=%g is outside [0, 100], stored as %g",
                args.key, args.value, getattr(clamped, args.key),
            )
        settings = store.save(clamped)
    elif args.settings_command == 'reset':
        settings = store.reset()
    else:
        settings = store.load()
    for key, value in settings.to_dict().items():
        print(f"{key:<28}{value:>6g}")


def main() -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    uses_db = not (args.command in ('scan', 'compare') and args.csv)
    if uses_db:
        init_database(args.db)

    workflow = ResolutionWorkflow(args.db, Actor(id=args.actor, role=args.role))

    try:
        if args.command == 'scan':
            run_scan(args)
        elif args.command == 'compare':
            run_compare(args)
        elif args.command == 'dismiss':
            workflow.dismiss(args.ids, args.reason)
        elif args.command == 'delete':
            workflow.confirm_and_delete(args.keep, args.delete_id, args.reason)
        elif args.command == 'merge':
            result = workflow.merge(
                args.keep, args.merge_id,
                merge_documents=args.documents,
                merge_status_history=args.status_history,
                reason=args.reason,
            )
            print(
                f"Merged {result.merged_id} into {result.keep_id}: "
                f"{result.documents_moved} documents, "
                f"{result.status_history_moved} status history rows"
            )
        elif args.command == 'restore':
            workflow.restore(args.id)
        elif args.command == 'settings':
            run_settings(args)
    except DedupeError as exc:
        logging.error("%s: %s", type(exc).__name__, exc.message)
        sys.exit(1)


if __name__ == '__main__':
    main()
