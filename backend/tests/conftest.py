"""Shared fixtures: in-memory spreadsheet, a controllable clock and an app client."""
import os

os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("ALLOWED_EMAIL_DOMAIN", "shopstack.asia")

import pytest
from fastapi.testclient import TestClient

import config
from app import app
from auth import get_current_staff
from cache import ReferenceCache, get_reference_cache
from models import StaffProfile
from repository import TimesheetRepository, get_repository
from rows import TIME_LOG_COLUMNS
from sheets import InMemorySpreadsheet


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def spreadsheet():
    return InMemorySpreadsheet(
        {
            config.PROJECTS_SHEET: [
                ["Project ID", "Project Client", "Project Name", "Project Code"],
                ["P1", "Acme Corp", "Website", "ACM-WEB"],
                ["P2", "Globex", "Warehouse", "GLX-DWH"],
            ],
            config.TASKS_SHEET: [
                ["Task ID", "Task"],
                ["T1", "Development"],
                ["T2", "Meetings"],
            ],
            config.TIME_LOG_SHEET: [list(TIME_LOG_COLUMNS)],
        }
    )


@pytest.fixture
def repository(spreadsheet):
    return TimesheetRepository(spreadsheet)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reference_cache(repository, clock):
    return ReferenceCache(repository, ttl=300, clock=clock)


@pytest.fixture
def staff():
    return StaffProfile(
        employee_id="S001",
        first_name="Alice",
        last_name="Johnson",
        nickname="Ali",
        email="alice@shopstack.asia",
        position="Engineer",
    )


@pytest.fixture
def anonymous_client(repository, reference_cache):
    """Test client with the spreadsheet replaced, no one signed in."""
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_reference_cache] = lambda: reference_cache
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def client(anonymous_client, staff):
    """Test client signed in as ``staff``."""
    app.dependency_overrides[get_current_staff] = lambda: staff
    yield anonymous_client


def time_log_row(date, staff_id, project_id, task_id, hours, row_id="x"):
    return [row_id, date, staff_id, "Alice", "Johnson", "Engineer", project_id, "", "", "", task_id, "", hours]
