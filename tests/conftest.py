"""Shared test fixtures."""

from datetime import datetime
from pathlib import Path

import pytest

from dupscan.auth import ADMIN, EDITOR, VIEWER, Actor
from dupscan.database import (
    Document,
    Investor,
    Project,
    StatusHistory,
    init_database,
    session_scope,
)

# Two copies of the same site (p1, p2), a near-identical address (p4)
# and an unrelated site elsewhere (p3).
SEED_PROJECTS = [
    dict(
        id='p1', project_code='P-001', project_name='台南安平一號案場',
        site_code_display='2024YP0001', investor_id='inv1',
        address='台南市安平區中正路二段100號', city='台南市', district='安平區',
        capacity_kwp=99.5, created_at=datetime(2024, 1, 1),
    ),
    dict(
        id='p2', project_code='P-002', project_name='台南安平一號案場',
        site_code_display='2024YP0001', investor_id='inv1',
        address='台南市安平區中正路二段100號', city='台南市', district='安平區',
        capacity_kwp=99.5, created_at=datetime(2024, 2, 1),
    ),
    dict(
        id='p3', project_code='P-003', project_name='高雄路竹屋頂',
        investor_id='inv2',
        address='高雄市路竹區中山路50號', city='高雄市', district='路竹區',
        capacity_kwp=500.0, created_at=datetime(2024, 3, 1),
    ),
    dict(
        id='p4', project_code='P-004', project_name='安平中正路屋頂',
        investor_id='inv1',
        address='台南市安平區中正路二段100號之1', city='台南市', district='安平區',
        created_at=datetime(2024, 4, 1),
    ),
]


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Empty, initialized database."""
    path = tmp_path / 'projects.db'
    init_database(path)
    return path


@pytest.fixture
def seeded_db(db_path) -> Path:
    """Database with four projects, documents and status history."""
    with session_scope(db_path) as session:
        session.add_all([
            Investor(id='inv1', investor_code='YP', company_name='陽光電力'),
            Investor(id='inv2', investor_code='KS', company_name='高雄綠能'),
        ])
        session.add_all(Project(**data) for data in SEED_PROJECTS)
        session.add_all([
            Document(id='d1', project_id='p1', title='併聯審查意見書'),
            Document(id='d2', project_id='p2', title='同意備案函'),
            Document(id='d3', project_id='p2', title='舊版同意備案函', is_deleted=True),
            StatusHistory(id='h1', project_id='p2', status='開發中'),
            StatusHistory(id='h2', project_id='p2', status='施工中'),
        ])
    return db_path


@pytest.fixture
def admin() -> Actor:
    return Actor(id='admin-1', role=ADMIN)


@pytest.fixture
def editor() -> Actor:
    return Actor(id='editor-1', role=EDITOR)


@pytest.fixture
def viewer() -> Actor:
    return Actor(id='viewer-1', role=VIEWER)
