"""
Shared fixtures: a fake async connection standing in for PostgreSQL.

The fake records every statement it is given and replays queued results,
so route and service tests run without a database.
"""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from jobservices.config.postgres import get_db_connection
from jobservices.main import create_app

JOB_ID = "3f1c2b7a-9d4e-4c1a-8b2f-0a1b2c3d4e5f"
USER_ID = "7e6d5c4b-3a29-4817-a6b5-c4d3e2f1a0b9"


class FakeResult:
    def __init__(self, rows=None, rowcount=None):
        self._rows = list(rows or [])
        self.rowcount = len(self._rows) if rowcount is None else rowcount

    def mappings(self):
        return self

    def all(self):
        return list(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None


class FakeConnection:
    def __init__(self, *results: FakeResult):
        self.results = list(results)
        self.statements = []
        self.commits = 0
        self.rollbacks = 0

    def queue(self, *results: FakeResult) -> None:
        self.results.extend(results)

    async def execute(self, statement):
        self.statements.append(statement)
        if self.results:
            return self.results.pop(0)
        return FakeResult()

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def job_row(**overrides):
    row = {
        "id": JOB_ID,
        "app_id": "wc",
        "user_id": USER_ID,
        "username": "ipcdev@iplantcollaborative.org",
        "status": "Running",
        "description": "word count run",
        "name": "wc-run-1",
        "result_folder": "/iplant/home/ipcdev/analyses/wc-run-1",
        "start_date": datetime(2024, 1, 2, 3, 4, 5),
        "planned_end_date": None,
    }
    row.update(overrides)
    return row


def status_update_row(**overrides):
    row = {
        "id": JOB_ID,
        "external_id": "b4a5c6d7-0000-4000-8000-000000000001",
        "status": "Running",
        "sent_from": "10.0.0.12",
        "sent_on": 1704164645000,
        "propagated": True,
        "propagation_attempts": 1,
        "last_propagation_attempt": None,
        "created_date": datetime(2024, 1, 2, 3, 4, 5),
    }
    row.update(overrides)
    return row


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def client(fake_conn: FakeConnection) -> TestClient:
    """Client for an app whose DB dependency yields ``fake_conn``.

    Used without ``with`` so the lifespan (engine setup and ping) never runs.
    """
    app = create_app()
    app.dependency_overrides[get_db_connection] = lambda: fake_conn
    return TestClient(app)
