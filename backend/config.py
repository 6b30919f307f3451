"""Environment-driven configuration for the timesheet API."""
import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

ENV = os.getenv("ENV", os.getenv("RENDER", "").lower() or "dev")

# Sheet (tab) names inside the spreadsheet
PROJECTS_SHEET = "Projects"
TASKS_SHEET = "Roles and Tasks"
TIME_LOG_SHEET = "Time Log"

DEFAULT_CACHE_TTL_SECONDS = 5 * 60


def is_production() -> bool:
    return ENV in ("prod", "production") or bool(os.getenv("RENDER"))


def allowed_email_domain() -> str:
    return os.getenv("ALLOWED_EMAIL_DOMAIN", "shopstack.asia").strip().lower()


def cache_ttl_seconds() -> float:
    return float(os.getenv("REFERENCE_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS))


def session_secret() -> str:
    secret = os.getenv("SESSION_SECRET")
    if not secret:
        if is_production():
            raise RuntimeError("SESSION_SECRET missing in production; refusing to start.")
        logger.warning("SESSION_SECRET not set, using an insecure development secret")
        secret = "dev-only-session-secret"
    return secret


def service_account_private_key() -> str | None:
    # Keys pasted into env files carry escaped newlines
    key = os.getenv("GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY")
    return key.replace("\\n", "\n") if key else None


def smtp_configured() -> bool:
    return bool(os.getenv("SMTP_HOST") and os.getenv("SMTP_USER") and os.getenv("SMTP_PASSWORD"))


def slack_configured() -> bool:
    return bool(os.getenv("SLACK_BOT_TOKEN") and os.getenv("SLACK_CHANNEL_ID"))


def describe_settings() -> dict[str, str]:
    """Report which integrations are configured without exposing values."""
    names = [
        "GOOGLE_CLIENT_ID",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
        "GOOGLE_SERVICE_ACCOUNT_EMAIL",
        "GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY",
        "ZOHO_CLIENT_ID",
        "ZOHO_CLIENT_SECRET",
        "ZOHO_REFRESH_TOKEN",
        "SMTP_HOST",
        "SMTP_USER",
        "SMTP_PASSWORD",
        "SLACK_BOT_TOKEN",
        "SLACK_CHANNEL_ID",
        "CRON_SECRET",
        "SESSION_SECRET",
    ]
    return {name: "SET" if os.getenv(name) else "MISSING" for name in names}
