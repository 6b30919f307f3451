import pytest

import auth
import config
from app import app
from conftest import time_log_row
from directory import get_directory
from identifiers import generate_time_log_id
from models import StaffProfile


class FakeDirectory:
    def __init__(self, profiles=()):
        self.profiles = {p.email.lower(): p for p in profiles}
        self.lookups = []

    def find_by_email(self, email):
        self.lookups.append(email)
        return self.profiles.get(email.lower())

    def list_employees(self):
        return list(self.profiles.values())


def test_root_endpoint(anonymous_client):
    """Test root endpoint."""
    response = anonymous_client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "docs" in data


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/master/projects"),
        ("get", "/master/tasks"),
        ("get", "/staff/profile"),
        ("get", "/timesheet/get?weekStart=2024-03-11"),
        ("post", "/timesheet/submit"),
    ],
)
def test_requires_sign_in(anonymous_client, method, path):
    response = getattr(anonymous_client, method)(path)
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


# =========================================================================
# Reference data
# =========================================================================


def test_projects_with_clients(client):
    response = client.get("/master/projects")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "error" not in body
    projects = body["data"]["projects"]
    assert projects[0] == {"id": "P1", "client": "Acme Corp", "name": "Website", "code": "ACM-WEB"}
    assert body["data"]["clients"] == ["Acme Corp", "Globex"]


def test_tasks(client):
    response = client.get("/master/tasks")
    assert response.status_code == 200
    assert response.json()["data"] == [{"id": "T1", "name": "Development"}, {"id": "T2", "name": "Meetings"}]


def test_staff_profile(client):
    response = client.get("/staff/profile")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["employeeId"] == "S001"
    assert data["firstName"] == "Alice"


# =========================================================================
# Submit
# =========================================================================


def test_submit_appends_new_entries(client, repository):
    request_data = {
        "date": "2024-03-15",
        "entries": [
            {"projectId": "P1", "taskId": "T1", "hours": 3},
            {"projectId": "P2", "taskId": "T2", "hours": 1.5},
        ],
    }

    response = client.post("/timesheet/submit", json=request_data)

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"deleted": 0, "updated": 0, "appended": 2}}
    stored = repository.find_rows("2024-03-15", "S001")
    assert len(stored) == 2
    first = stored[0].row
    assert first.id == generate_time_log_id("2024-03-15", "S001", "P1", "T1")
    assert first.project_name == "Website"
    assert first.task == "Development"
    assert first.staff_last_name == "Johnson"


def test_resubmit_updates_and_removes(client, repository):
    client.post(
        "/timesheet/submit",
        json={
            "date": "2024-03-15",
            "entries": [
                {"projectId": "P1", "taskId": "T1", "hours": 2},
                {"projectId": "P2", "taskId": "T2", "hours": 1},
            ],
        },
    )

    response = client.post(
        "/timesheet/submit",
        json={"date": "2024-03-15", "entries": [{"projectId": "P1", "taskId": "T1", "hours": 3}]},
    )

    assert response.json()["data"] == {"deleted": 1, "updated": 1, "appended": 0}
    stored = repository.find_rows("2024-03-15", "S001")
    assert [(s.row.pair, s.row.hours) for s in stored] == [(("P1", "T1"), 3.0)]


def test_submit_empty_entries_clears_day(client, spreadsheet, repository):
    log = spreadsheet.sheets[config.TIME_LOG_SHEET]
    log.append(time_log_row("2024-03-15", "S001", "P1", "T1", 2))
    log.append(time_log_row("2024-03-15", "S001", "P2", "T1", 2))

    response = client.post("/timesheet/submit", json={"date": "2024-03-15", "entries": []})

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": 2, "updated": 0, "appended": 0}
    assert repository.find_rows("2024-03-15", "S001") == []


def test_unknown_project_rejected_before_any_write(client, spreadsheet):
    request_data = {"date": "2024-03-15", "entries": [{"projectId": "P404", "taskId": "T1", "hours": 1}]}

    response = client.post("/timesheet/submit", json=request_data)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid project ID: P404"}
    assert spreadsheet.operations == []


def test_unknown_task_rejected(client, spreadsheet):
    request_data = {"date": "2024-03-15", "entries": [{"projectId": "P1", "taskId": "T404", "hours": 1}]}
    response = client.post("/timesheet/submit", json=request_data)
    assert response.status_code == 400
    assert "Invalid task ID" in response.json()["error"]
    assert spreadsheet.operations == []


@pytest.mark.parametrize("hours", [-1, 24.5])
def test_hours_out_of_range(client, hours):
    request_data = {"date": "2024-03-15", "entries": [{"projectId": "P1", "taskId": "T1", "hours": hours}]}
    response = client.post("/timesheet/submit", json=request_data)
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"].startswith("Validation error")


@pytest.mark.parametrize("bad_date", ["15/03/2024", "2024-3-15", "2024-02-30"])
def test_malformed_date(client, bad_date):
    response = client.post("/timesheet/submit", json={"date": bad_date, "entries": []})
    assert response.status_code == 400


def test_duplicate_pairs_rejected(client):
    request_data = {
        "date": "2024-03-15",
        "entries": [
            {"projectId": "P1", "taskId": "T1", "hours": 1},
            {"projectId": "P1", "taskId": "T1", "hours": 2},
        ],
    }
    response = client.post("/timesheet/submit", json=request_data)
    assert response.status_code == 400
    assert "Duplicate entry" in response.json()["error"]


def test_sheet_failure_is_500(client, spreadsheet, monkeypatch):
    from sheets import SheetsError

    def broken_read(sheet, width):
        raise SheetsError("Failed to read Time Log: backend error")

    client.get("/master/projects")  # warm the reference cache
    client.get("/master/tasks")
    monkeypatch.setattr(spreadsheet, "read_rows", broken_read)

    response = client.post(
        "/timesheet/submit",
        json={"date": "2024-03-15", "entries": [{"projectId": "P1", "taskId": "T1", "hours": 1}]},
    )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to read Time Log: backend error"}


# =========================================================================
# Week view
# =========================================================================


def test_week_entries_grouped_by_date(client, spreadsheet):
    log = spreadsheet.sheets[config.TIME_LOG_SHEET]
    log.append(time_log_row("2024-03-11", "S001", "P1", "T1", 2, row_id="a"))
    log.append(time_log_row("12/03/2024", "S001", "P2", "T1", 3, row_id="b"))
    log.append(time_log_row("2024-03-12", "S002", "P2", "T1", 5, row_id="c"))
    log.append(time_log_row("2024-03-16", "S001", "P1", "T1", 1, row_id="d"))
    log.append(time_log_row("2024-03-11", "S001", "P1", "T1", 2, row_id="a"))

    response = client.get("/timesheet/get?weekStart=2024-03-11")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data == {
        "2024-03-11": [{"id": "a", "projectId": "P1", "taskId": "T1", "hours": 2.0}],
        "2024-03-12": [{"id": "b", "projectId": "P2", "taskId": "T1", "hours": 3.0}],
    }


def test_week_requires_week_start(client):
    response = client.get("/timesheet/get")
    assert response.status_code == 400
    assert "weekStart" in response.json()["error"]


def test_week_invalid_date(client):
    response = client.get("/timesheet/get?weekStart=invalid-date")
    assert response.status_code == 400


# =========================================================================
# Sign-in
# =========================================================================


@pytest.fixture
def fake_directory(staff):
    directory = FakeDirectory([staff])
    app.dependency_overrides[get_directory] = lambda: directory
    return directory


def google_claims(email, verified=True):
    return {"email": email, "email_verified": verified, "sub": "123"}


def test_signin_stores_profile_in_session(anonymous_client, fake_directory, monkeypatch):
    monkeypatch.setattr(auth, "verify_google_token", lambda token: google_claims("alice@shopstack.asia"))

    response = anonymous_client.post("/auth/signin", json={"idToken": "google-token"})

    assert response.status_code == 200
    assert response.json()["data"]["employeeId"] == "S001"
    assert fake_directory.lookups == ["alice@shopstack.asia"]

    profile = anonymous_client.get("/staff/profile")
    assert profile.status_code == 200
    assert profile.json()["data"]["email"] == "alice@shopstack.asia"

    anonymous_client.post("/auth/signout")
    assert anonymous_client.get("/staff/profile").status_code == 401


def test_signin_rejects_other_domains(anonymous_client, fake_directory, monkeypatch):
    monkeypatch.setattr(auth, "verify_google_token", lambda token: google_claims("mallory@example.com"))

    response = anonymous_client.post("/auth/signin", json={"idToken": "google-token"})

    assert response.status_code == 401
    assert fake_directory.lookups == []


def test_signin_rejects_unknown_employee(anonymous_client, fake_directory, monkeypatch):
    monkeypatch.setattr(auth, "verify_google_token", lambda token: google_claims("bob@shopstack.asia"))
    response = anonymous_client.post("/auth/signin", json={"idToken": "google-token"})
    assert response.status_code == 401
    assert "not found" in response.json()["error"]


def test_signin_rejects_invalid_token(anonymous_client, fake_directory, monkeypatch):
    def reject(token):
        raise ValueError("Token expired")

    monkeypatch.setattr(auth, "verify_google_token", reject)
    response = anonymous_client.post("/auth/signin", json={"idToken": "google-token"})
    assert response.status_code == 401


def test_signin_rejects_directory_record_without_employee_id(anonymous_client, monkeypatch):
    directory = FakeDirectory([StaffProfile(employee_id="", email="alice@shopstack.asia")])
    app.dependency_overrides[get_directory] = lambda: directory
    monkeypatch.setattr(auth, "verify_google_token", lambda token: google_claims("alice@shopstack.asia"))

    response = anonymous_client.post("/auth/signin", json={"idToken": "google-token"})

    assert response.status_code == 401


# =========================================================================
# Cron
# =========================================================================


def test_cron_requires_secret(anonymous_client, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    assert anonymous_client.post("/cron/friday-reminder").status_code == 401
    response = anonymous_client.post("/cron/friday-reminder", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


def test_cron_rejected_when_secret_unset(anonymous_client, monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    response = anonymous_client.post("/cron/friday-reminder", headers={"Authorization": "Bearer None"})
    assert response.status_code == 401


def test_cron_sends_reminders(anonymous_client, fake_directory, monkeypatch):
    import reminder

    monkeypatch.setenv("CRON_SECRET", "s3cret")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "bot")
    monkeypatch.setenv("SMTP_PASSWORD", "pw")
    monkeypatch.delenv("SLACK_BOT_TOKEN", raising=False)
    sent = []
    monkeypatch.setattr(reminder, "send_email", lambda subject, html, recipients: sent.append(recipients))

    response = anonymous_client.get("/cron/friday-reminder", headers={"Authorization": "Bearer s3cret"})

    assert response.status_code == 200
    assert response.json()["data"] == {
        "recipients": 1,
        "emailsSent": 1,
        "emailFailures": [],
        "slackSent": False,
    }
    assert sent == [["alice@shopstack.asia"]]


def test_debug_reports_configuration(anonymous_client, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    response = anonymous_client.get("/admin/debug", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    settings = response.json()["data"]["settings"]
    assert settings["CRON_SECRET"] == "SET"
    assert "s3cret" not in response.text


def test_signin_rejects_wrong_issuer(anonymous_client, fake_directory, monkeypatch):
    from google.oauth2 import id_token

    monkeypatch.setenv("GOOGLE_CLIENT_ID", "client-id.apps.googleusercontent.com")
    monkeypatch.setattr(
        id_token,
        "verify_token",
        lambda *args, **kwargs: {
            "iss": "https://accounts.example.com",
            "email": "alice@shopstack.asia",
            "email_verified": True,
        },
    )

    response = anonymous_client.post("/auth/signin", json={"idToken": "google-token"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid Google credentials"}
    assert fake_directory.lookups == []


# =========================================================================
# Integration checks
# =========================================================================

CRON_HEADERS = {"Authorization": "Bearer s3cret"}


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")


@pytest.fixture
def smtp_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "bot")
    monkeypatch.setenv("SMTP_PASSWORD", "pw")


@pytest.fixture
def slack_env(monkeypatch):
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-1")
    monkeypatch.setenv("SLACK_CHANNEL_ID", "C123")


@pytest.mark.parametrize(
    "path", ["/admin/email-test", "/admin/slack-test", "/admin/zoho-test", "/admin/zoho-token-test"]
)
def test_integration_checks_require_secret(anonymous_client, cron_secret, path):
    assert anonymous_client.get(path).status_code == 401


def test_email_test_sends_to_query_recipient(anonymous_client, cron_secret, smtp_env, monkeypatch):
    sent = []
    monkeypatch.setattr("app.send_email", lambda subject, html, recipients: sent.append((subject, recipients)))

    response = anonymous_client.get("/admin/email-test?to=ops@shopstack.asia", headers=CRON_HEADERS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["emailSent"] is True
    assert data["to"] == "ops@shopstack.asia"
    assert sent == [(data["subject"], ["ops@shopstack.asia"])]


def test_email_test_post_body(anonymous_client, cron_secret, smtp_env, monkeypatch):
    sent = []
    monkeypatch.setattr("app.send_email", lambda subject, html, recipients: sent.append((subject, html)))

    response = anonymous_client.post(
        "/admin/email-test",
        headers=CRON_HEADERS,
        json={"to": "ops@shopstack.asia", "subject": "Hello", "message": "<p>custom</p>"},
    )

    assert response.status_code == 200
    assert sent == [("Hello", "<p>custom</p>")]


def test_email_test_requires_recipient(anonymous_client, cron_secret, smtp_env):
    response = anonymous_client.get("/admin/email-test", headers=CRON_HEADERS)
    assert response.status_code == 400


def test_email_test_not_configured(anonymous_client, cron_secret, monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    response = anonymous_client.get("/admin/email-test?to=ops@shopstack.asia", headers=CRON_HEADERS)
    assert response.status_code == 400
    assert "not configured" in response.json()["error"]


def test_email_test_smtp_failure(anonymous_client, cron_secret, smtp_env, monkeypatch):
    def fail(subject, html, recipients):
        raise Exception("SMTP authentication failed")

    monkeypatch.setattr("app.send_email", fail)
    response = anonymous_client.get("/admin/email-test?to=ops@shopstack.asia", headers=CRON_HEADERS)
    assert response.status_code == 500
    assert response.json()["error"] == "SMTP authentication failed"


def test_slack_test_posts_message(anonymous_client, cron_secret, slack_env, monkeypatch):
    posted = []

    def post(text):
        posted.append(text)
        return {"ok": True, "ts": "1710000000.000100"}

    monkeypatch.setattr("app.send_slack_message", post)

    response = anonymous_client.post("/admin/slack-test", headers=CRON_HEADERS, json={"message": "ping"})

    assert response.status_code == 200
    assert response.json()["data"] == {
        "messageSent": True,
        "channel": "C123",
        "timestamp": "1710000000.000100",
        "message": "ping",
    }
    assert posted == ["ping"]


def test_slack_test_default_message(anonymous_client, cron_secret, slack_env, monkeypatch):
    posted = []
    monkeypatch.setattr("app.send_slack_message", lambda text: posted.append(text) or {"ok": True})

    response = anonymous_client.get("/admin/slack-test", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert "Test Notification" in posted[0]


def test_slack_test_not_configured(anonymous_client, cron_secret, monkeypatch):
    monkeypatch.delenv("SLACK_BOT_TOKEN", raising=False)
    response = anonymous_client.get("/admin/slack-test", headers=CRON_HEADERS)
    assert response.status_code == 400


def test_zoho_test_finds_employee(anonymous_client, cron_secret, fake_directory):
    response = anonymous_client.get("/admin/zoho-test?email=Alice@shopstack.asia", headers=CRON_HEADERS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["found"] is True
    assert data["inAllowedDomain"] is True
    assert data["profile"]["employeeId"] == "S001"


def test_zoho_test_not_found(anonymous_client, cron_secret, fake_directory):
    response = anonymous_client.get("/admin/zoho-test?email=bob@example.com", headers=CRON_HEADERS)

    data = response.json()["data"]
    assert data == {"found": False, "email": "bob@example.com", "inAllowedDomain": False}


def test_zoho_test_requires_email(anonymous_client, cron_secret, fake_directory):
    response = anonymous_client.get("/admin/zoho-test", headers=CRON_HEADERS)
    assert response.status_code == 400


def test_zoho_test_directory_failure(anonymous_client, cron_secret):
    from directory import DirectoryError

    class Unreachable:
        def find_by_email(self, email):
            raise DirectoryError("Zoho People error: Invalid OAuth token")

    app.dependency_overrides[get_directory] = lambda: Unreachable()
    response = anonymous_client.get("/admin/zoho-test?email=a@shopstack.asia", headers=CRON_HEADERS)
    assert response.status_code == 500
    assert "Invalid OAuth token" in response.json()["error"]


def test_zoho_token_test_hides_token(anonymous_client, cron_secret):
    class TokenDirectory:
        def refresh_access_token(self):
            return {"access_token": "1000.abcdefghijklmnop", "expires_in": 3600, "scope": "ZohoPeople.forms.READ"}

    app.dependency_overrides[get_directory] = lambda: TokenDirectory()

    response = anonymous_client.get("/admin/zoho-token-test", headers=CRON_HEADERS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data == {"tokenPreview": "1000.abc...", "expiresIn": 3600, "scope": "ZohoPeople.forms.READ"}
    assert "abcdefghijklmnop" not in response.text
