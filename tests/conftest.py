"""
Shared Test Fixtures
SQLite test database, dependency override and a small organisation chart
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from types import SimpleNamespace
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.main import app
from src.config.database import Base, get_db
from src.models.department import Department
from src.models.project import Project
from src.models.user import User, UserRole
from src.utils.security import create_access_token, get_password_hash

# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"


def override_get_db():
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture(scope="function")
def test_db():
    """Create test database"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    yield db
    db.close()


@pytest.fixture
def org(db_session):
    """
    One department and one user per role

    Reporting lines:
        director <- manager <- supervisor <- employee
        director <- finance
        manager <- chief <- sales
    """
    db = db_session
    department = Department(code="SALES", name="Sales")
    db.add(department)
    db.flush()

    ids = {}

    def make(key, role, supervisor=None, phone=None, password=False):
        user = User(
            name=key.title(),
            email=f"{key}@company.com",
            employee_id=f"EMP-{key.upper()}",
            role=role,
            department_id=department.id,
            supervisor_id=ids.get(supervisor),
            phone_number=phone,
            hashed_password=get_password_hash(TEST_PASSWORD) if password else None
        )
        db.add(user)
        db.flush()
        ids[key] = user.id

    make("admin", UserRole.ADMIN)
    make("director", UserRole.DIRECTOR)
    make("manager", UserRole.MANAGER, supervisor="director")
    make("finance", UserRole.FINANCE, supervisor="director")
    make("chief", UserRole.SALES_CHIEF, supervisor="manager")
    make("supervisor", UserRole.SUPERVISOR, supervisor="manager", phone="+62 811 0000 006")
    make("employee", UserRole.EMPLOYEE, supervisor="supervisor", phone="+62 811 0000 007", password=True)
    make("sales", UserRole.SALES_EMPLOYEE, supervisor="chief")
    make("outsider", UserRole.EMPLOYEE, supervisor="supervisor")

    department.manager_id = ids["manager"]
    department.director_id = ids["director"]
    db.commit()

    ids["department"] = department.id
    return SimpleNamespace(**ids)


@pytest.fixture
def project(db_session, org):
    project = Project(code="PRJ-TEST", name="Test Project", client_name="ACME")
    db_session.add(project)
    db_session.commit()
    return project.id


def _headers(user_id):
    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    """Bearer headers for a user id"""
    return _headers


@pytest.fixture
def trip_payload():
    return {
        "purpose": "Quarterly review with the Jakarta office",
        "destination": "Jakarta",
        "travel_type": "MEETING",
        "start_date": "2026-11-02T08:00:00",
        "end_date": "2026-11-04T18:00:00"
    }


@pytest.fixture
def submitted_trip(client, org, auth, trip_payload):
    """A MEETING trip by the employee, submitted into its three-level chain"""
    created = client.post("/api/travel-requests", json=trip_payload, headers=auth(org.employee))
    assert created.status_code == 201
    submitted = client.post(f"/api/travel-requests/{created.json()['id']}/submit", headers=auth(org.employee))
    assert submitted.status_code == 200
    return submitted.json()


@pytest.fixture
def approved_trip(client, auth, submitted_trip):
    """The submitted trip approved at every level; returns its id"""
    for approval in submitted_trip["approvals"]:
        response = client.post(
            f"/api/approvals/{approval['id']}/approve",
            json={"comments": "ok"},
            headers=auth(approval["approver_id"])
        )
        assert response.status_code == 200
    return submitted_trip["id"]
