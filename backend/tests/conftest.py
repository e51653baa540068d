from __future__ import annotations

import datetime as dt
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from timesheet_reports import models
from timesheet_reports.config import settings
from timesheet_reports.database import get_db
from timesheet_reports.main import app
from timesheet_reports.token_utils import legacy_password_hash

TEST_SECRET = "test-session-secret"


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def session_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "session_secret", TEST_SECRET)
    monkeypatch.setattr(settings, "user_group_id", 1)
    return TEST_SECRET


@pytest.fixture(scope="function")
def client(session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def seeded(session: Session) -> Dict[str, object]:
    """Two active users, one inactive user and a week of logged time."""
    alice = models.User(id=1, login="alice", password=legacy_password_hash("secret"), name="Alice", rate=40.0)
    bob = models.User(id=2, login="bob", password=legacy_password_hash("hunter2"), name="Bob", rate=30.0)
    carol = models.User(id=3, login="carol", password=legacy_password_hash("gone"), name="Carol", status=0)
    acme = models.Client(id=1, name="Acme")
    website = models.Project(id=1, name="Website")
    leave = models.Project(id=2, name="Annual Leave")
    holiday = models.Project(id=3, name="Public Holiday")
    design = models.Task(id=1, name="Design")
    session.add_all([alice, bob, carol, acme, website, leave, holiday, design])
    session.add(models.ClientProjectBind(client_id=1, project_id=1))
    logs = [
        models.TimeLog(id=1, user_id=1, date=dt.date(2024, 1, 1), duration="03:30", client_id=1,
                       project_id=1, task_id=1, comment="Landing page", billable=1),
        models.TimeLog(id=2, user_id=1, date=dt.date(2024, 1, 2), duration="00:45", project_id=1,
                       task_id=1, comment="Internal review", billable=0),
        models.TimeLog(id=3, user_id=2, date=dt.date(2024, 1, 1), duration="08:00", project_id=2,
                       comment="Leave", billable=0),
        models.TimeLog(id=4, user_id=2, date=dt.date(2024, 1, 3), duration="02:15", client_id=1,
                       project_id=1, comment="Checkout flow", billable=1),
        models.TimeLog(id=5, user_id=2, date=dt.date(2024, 1, 4), duration="08:00", project_id=3,
                       comment="Public holiday", billable=0),
        models.TimeLog(id=6, user_id=3, date=dt.date(2024, 1, 2), duration="05:00", project_id=1,
                       billable=1),
        models.TimeLog(id=7, user_id=1, date=dt.date(2024, 1, 5), duration="01:00", project_id=1,
                       billable=1, status=0),
    ]
    session.add_all(logs)
    session.add(models.CustomFieldLog(log_id=1, field_id=models.TASK_NUMBER_FIELD_ID, value="#101"))
    session.commit()
    return {"alice": alice, "bob": bob, "carol": carol, "acme": acme, "website": website}


@pytest.fixture()
def auth_client(client: TestClient, seeded) -> TestClient:
    response = client.post("/api/login", json={"login": "alice", "password": "secret"})
    assert response.status_code == 200
    return client


@pytest.fixture()
def sample_entries() -> list[dict]:
    return [
        {"date": "2025-07-01", "user": "A", "client": "Acme", "project": "Website", "duration": "1:30"},
        {"date": "2025-07-01", "user": "B", "client": "Acme", "project": "Website", "duration": "2:15"},
        {"date": "2025-07-02", "user": "A", "client": "Acme", "project": "Support", "duration": "0:45"},
    ]
