import hmac
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

import config
from auth import clear_session, get_current_staff, sign_in, store_profile
from cache import ReferenceCache, get_reference_cache
from dates import parse_iso_date
from directory import ZohoPeopleClient, get_directory
from models import StaffProfile, Task
from reminder import (
    TEST_EMAIL_SUBJECT,
    generate_test_email_html,
    send_email,
    send_friday_reminders,
    send_slack_message,
    slack_test_text,
)
from repository import TimesheetRepository, get_repository
from schemas import (
    ApiResponse,
    DirectoryLookupResult,
    EmailTestRequest,
    EmailTestResult,
    ProjectList,
    ReminderSummary,
    SignInRequest,
    SlackTestRequest,
    SlackTestResult,
    SubmitResult,
    SubmitTimesheetRequest,
    TimeEntryView,
    TokenCheckResult,
)
from timesheets import submit_day, week_entries

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log which integrations are configured on startup."""
    settings = config.describe_settings()
    missing = [name for name, state in settings.items() if state == "MISSING"]
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")
    logger.info(f"Timesheet API starting (env={config.ENV})")
    yield


# Create FastAPI app
app = FastAPI(title="Timesheet API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    SessionMiddleware,
    secret_key=config.session_secret(),
    same_site="lax",
    https_only=config.is_production(),
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins in development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logger.info(f"Validation error on {request.url.path}: {messages}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Validation error: {'; '.join(messages)}"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    """Dependency: require ``Authorization: Bearer <CRON_SECRET>``."""
    secret = os.getenv("CRON_SECRET", "")
    expected = f"Bearer {secret}"
    if not secret or not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.post("/auth/signin", response_model=ApiResponse[StaffProfile], response_model_exclude_none=True)
def signin(
    body: SignInRequest,
    request: Request,
    directory: ZohoPeopleClient = Depends(get_directory),
):
    """Exchange a Google ID token for a session holding the staff profile."""
    try:
        profile = sign_in(body.id_token, directory)
    except PermissionError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error fetching staff profile: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    store_profile(request, profile)
    return ApiResponse(data=profile)


@app.post("/auth/signout", response_model=ApiResponse[None], response_model_exclude_none=True)
def signout(request: Request):
    clear_session(request)
    return ApiResponse()


@app.get("/staff/profile", response_model=ApiResponse[StaffProfile], response_model_exclude_none=True)
def get_staff_profile(staff: StaffProfile = Depends(get_current_staff)):
    return ApiResponse(data=staff)


@app.get("/master/projects", response_model=ApiResponse[ProjectList], response_model_exclude_none=True)
def get_projects(
    staff: StaffProfile = Depends(get_current_staff),
    cache: ReferenceCache = Depends(get_reference_cache),
):
    """Projects plus the sorted list of distinct clients."""
    try:
        projects = cache.projects()
    except Exception as e:
        logger.error(f"Error fetching projects: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    clients = sorted({p.client for p in projects if p.client})
    return ApiResponse(data=ProjectList(projects=projects, clients=clients))


@app.get("/master/tasks", response_model=ApiResponse[list[Task]], response_model_exclude_none=True)
def get_tasks(
    staff: StaffProfile = Depends(get_current_staff),
    cache: ReferenceCache = Depends(get_reference_cache),
):
    try:
        tasks = cache.tasks()
    except Exception as e:
        logger.error(f"Error fetching tasks: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e
    return ApiResponse(data=tasks)


@app.get(
    "/timesheet/get",
    response_model=ApiResponse[dict[str, list[TimeEntryView]]],
    response_model_exclude_none=True,
)
def get_timesheet(
    week_start: str | None = Query(None, alias="weekStart", description="Monday in YYYY-MM-DD format"),
    staff: StaffProfile = Depends(get_current_staff),
    repository: TimesheetRepository = Depends(get_repository),
):
    """The signed-in staff member's entries for Monday to Friday, grouped by date."""
    if not week_start:
        raise HTTPException(status_code=400, detail="weekStart parameter is required (YYYY-MM-DD)")
    try:
        start = parse_iso_date(week_start)
    except ValueError as e:
        logger.error(f"Invalid date format: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD") from e

    try:
        grouped = week_entries(repository, staff.employee_id, start)
    except Exception as e:
        logger.error(f"Error fetching time log entries: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e
    return ApiResponse(data=grouped)


@app.post("/timesheet/submit", response_model=ApiResponse[SubmitResult], response_model_exclude_none=True)
def submit_timesheet(
    body: SubmitTimesheetRequest,
    staff: StaffProfile = Depends(get_current_staff),
    repository: TimesheetRepository = Depends(get_repository),
    cache: ReferenceCache = Depends(get_reference_cache),
):
    """Replace the signed-in staff member's entries for one day.

    An empty ``entries`` list deletes every entry for that day.
    """
    logger.info(f"Submit request for staff {staff.employee_id} on {body.date} ({len(body.entries)} entries)")

    try:
        result = submit_day(repository, cache, staff, body.date, body.entries)
    except ValueError as e:
        logger.error(f"Rejected submission: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error submitting timesheet: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ApiResponse(data=SubmitResult(**asdict(result)))


@app.api_route(
    "/cron/friday-reminder",
    methods=["GET", "POST"],
    response_model=ApiResponse[ReminderSummary],
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
def friday_reminder(directory: ZohoPeopleClient = Depends(get_directory)):
    """
    Send the weekly timesheet reminder.

    Designed to be called by a cron job every Friday. GET is accepted for
    manual runs.
    """
    logger.info("Friday reminder requested")
    result = send_friday_reminders(directory)
    if not result["success"]:
        logger.error(f"Failed to send reminders: {result.get('error')}")
        raise HTTPException(status_code=500, detail=result.get("error", "Failed to send reminders"))

    return ApiResponse(
        data=ReminderSummary(
            recipients=result["recipients"],
            emails_sent=result["emails_sent"],
            email_failures=result["email_failures"],
            slack_sent=result["slack_sent"],
        )
    )


@app.get("/admin/debug", dependencies=[Depends(verify_cron_secret)])
def debug_configuration():
    """Which integrations are configured (values are never returned)."""
    return {"success": True, "data": {"env": config.ENV, "settings": config.describe_settings()}}


@app.api_route(
    "/admin/email-test",
    methods=["GET", "POST"],
    response_model=ApiResponse[EmailTestResult],
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
def email_test(
    to: str | None = Query(None, description="Recipient for GET requests"),
    body: EmailTestRequest | None = None,
):
    """Send a test email through the configured SMTP server."""
    if not config.smtp_configured():
        raise HTTPException(
            status_code=400,
            detail="Email is not configured. Please set SMTP_HOST, SMTP_USER, and SMTP_PASSWORD.",
        )
    body = body or EmailTestRequest()
    recipient = body.to or to
    if not recipient:
        raise HTTPException(status_code=400, detail='Email address is required ("to")')

    subject = body.subject or TEST_EMAIL_SUBJECT
    html = body.message or generate_test_email_html(datetime.now(timezone.utc))
    try:
        send_email(subject, html, [recipient])
    except Exception as e:
        logger.error(f"Error sending test email: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ApiResponse(data=EmailTestResult(email_sent=True, to=recipient, subject=subject))


@app.api_route(
    "/admin/slack-test",
    methods=["GET", "POST"],
    response_model=ApiResponse[SlackTestResult],
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
def slack_test(body: SlackTestRequest | None = None):
    """Post a test message to the configured Slack channel."""
    if not config.slack_configured():
        raise HTTPException(
            status_code=400,
            detail="Slack is not configured. Please set SLACK_BOT_TOKEN and SLACK_CHANNEL_ID.",
        )
    message = (body and body.message) or slack_test_text(datetime.now(timezone.utc))
    try:
        result = send_slack_message(message)
    except Exception as e:
        logger.error(f"Error sending Slack test notification: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ApiResponse(
        data=SlackTestResult(
            message_sent=True,
            channel=os.getenv("SLACK_CHANNEL_ID", ""),
            timestamp=result.get("ts", ""),
            message=message,
        )
    )


@app.get(
    "/admin/zoho-test",
    response_model=ApiResponse[DirectoryLookupResult],
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
def zoho_test(
    email: str | None = Query(None, description="Email address to look up"),
    directory: ZohoPeopleClient = Depends(get_directory),
):
    """Look an employee up in Zoho People by email."""
    if not email:
        raise HTTPException(status_code=400, detail="email parameter is required")
    try:
        profile = directory.find_by_email(email)
    except Exception as e:
        logger.error(f"Zoho test error: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ApiResponse(
        data=DirectoryLookupResult(
            found=profile is not None,
            email=email,
            in_allowed_domain=email.strip().lower().endswith(f"@{config.allowed_email_domain()}"),
            profile=profile,
        )
    )


@app.get(
    "/admin/zoho-token-test",
    response_model=ApiResponse[TokenCheckResult],
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
def zoho_token_test(directory: ZohoPeopleClient = Depends(get_directory)):
    """Force a Zoho access token refresh (the token itself is never returned)."""
    try:
        data = directory.refresh_access_token()
    except Exception as e:
        logger.error(f"Zoho token test error: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ApiResponse(
        data=TokenCheckResult(
            token_preview=f"{data['access_token'][:8]}...",
            expires_in=data.get("expires_in"),
            scope=data.get("scope"),
            api_domain=data.get("api_domain"),
        )
    )


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Timesheet API", "docs": "/docs"}
