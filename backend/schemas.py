from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from dates import parse_iso_date
from models import CamelModel, Project, StaffProfile

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every JSON response."""

    success: bool = True
    data: T | None = None
    error: str | None = None


class TimeEntryInput(CamelModel):
    project_id: str = Field(min_length=1)
    task_id: str = Field(min_length=1)
    hours: float = Field(ge=0, le=24)


class SubmitTimesheetRequest(CamelModel):
    date: str  # YYYY-MM-DD format
    entries: list[TimeEntryInput]  # empty clears the day

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        parse_iso_date(v)
        return v

    @model_validator(mode="after")
    def validate_unique_pairs(self):
        seen = set()
        for entry in self.entries:
            pair = (entry.project_id, entry.task_id)
            if pair in seen:
                raise ValueError(
                    f"Duplicate entry for project {entry.project_id} and task {entry.task_id}"
                )
            seen.add(pair)
        return self


class SignInRequest(CamelModel):
    id_token: str = Field(min_length=1)


class ProjectList(CamelModel):
    projects: list[Project]
    clients: list[str]


class TimeEntryView(CamelModel):
    id: str
    project_id: str
    task_id: str
    hours: float


class SubmitResult(CamelModel):
    deleted: int
    updated: int
    appended: int


class ReminderSummary(CamelModel):
    recipients: int
    emails_sent: int
    email_failures: list[dict[str, str]]
    slack_sent: bool


class EmailTestRequest(CamelModel):
    to: str | None = None
    subject: str | None = None
    message: str | None = None


class EmailTestResult(CamelModel):
    email_sent: bool
    to: str
    subject: str


class SlackTestRequest(CamelModel):
    message: str | None = None


class SlackTestResult(CamelModel):
    message_sent: bool
    channel: str
    timestamp: str
    message: str


class DirectoryLookupResult(CamelModel):
    found: bool
    email: str
    in_allowed_domain: bool
    profile: StaffProfile | None = None


class TokenCheckResult(CamelModel):
    token_preview: str
    expires_in: int | None = None
    scope: str | None = None
    api_domain: str | None = None
