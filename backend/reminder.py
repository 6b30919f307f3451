"""Friday timesheet reminders by email and Slack."""
import logging
import os
import smtplib
from collections.abc import Callable
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import httpx

import config
from directory import ZohoPeopleClient

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"
EMAIL_SUBJECT = "Weekly Timesheet Reminder - Shopstack"
TEST_EMAIL_SUBJECT = "🧪 Test Email from Timesheet System"
SLACK_TEXT = (
    "📅 Weekly Timesheet Reminder\n\n"
    "This is a reminder for all Shopstack employees to submit their timesheets "
    "for this week (Monday - Friday).\n\n"
    "Please log in to the timesheet system and complete your entries."
)


def generate_reminder_html(first_name: str) -> str:
    """Generate HTML reminder email."""
    greeting = f"Hi {first_name}," if first_name else "Hi,"
    return f"""
    <h2>Weekly Timesheet Reminder</h2>
    <p>{greeting}</p>
    <p>This is a friendly reminder to submit your timesheet for this week (Monday - Friday).</p>
    <p>Please log in to the timesheet system and complete your entries.</p>
    <p>Thank you!</p>
    <p>Shopstack Team</p>
    """


def generate_test_email_html(sent_at: datetime) -> str:
    """HTML body for the email integration check."""
    return f"""
    <h2>Test Email from Timesheet System</h2>
    <p>This is a test email sent at <strong>{sent_at:%Y-%m-%d %H:%M %Z}</strong>.</p>
    <p>If you receive this email, email integration is working correctly!</p>
    <hr>
    <p style="color: #666; font-size: 12px;">This is an automated test message from the Shopstack Timesheet System.</p>
    """


def slack_test_text(sent_at: datetime) -> str:
    return (
        "🧪 Test Notification from Timesheet System\n\n"
        f"This is a test message sent at {sent_at:%Y-%m-%d %H:%M %Z}.\n\n"
        "If you receive this message, Slack integration is working correctly!"
    )


def send_email(
    subject: str,
    html_content: str,
    recipients: list[str],
    smtp_host: str = None,
    smtp_port: int = None,
    smtp_user: str = None,
    smtp_password: str = None,
    from_email: str = None,
) -> bool:
    """
    Send email using SMTP with STARTTLS (or SSL on port 465).

    All parameters can come from environment variables if not provided.
    """
    smtp_host = smtp_host or os.getenv("SMTP_HOST")
    smtp_port = smtp_port or int(os.getenv("SMTP_PORT", "587"))
    smtp_user = smtp_user or os.getenv("SMTP_USER")
    smtp_password = smtp_password or os.getenv("SMTP_PASSWORD")
    from_email = from_email or os.getenv("FROM_EMAIL", "noreply@shopstack.asia")

    if not smtp_host or not smtp_password:
        raise ValueError(f"SMTP_HOST and SMTP_PASSWORD must be set. Current SMTP_USER: {smtp_user}")

    if not recipients:
        raise ValueError("At least one recipient email address is required")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_email
    msg["To"] = ", ".join(recipients)
    msg.attach(MIMEText(html_content, "html"))

    logger.info(f"Connecting to SMTP server: {smtp_host}:{smtp_port}")
    try:
        if smtp_port == 465:
            server = smtplib.SMTP_SSL(smtp_host, smtp_port, timeout=10)
        else:
            server = smtplib.SMTP(smtp_host, smtp_port, timeout=10)
    except OSError as e:
        logger.error(f"SMTP connection failed: {e}")
        raise Exception(f"Failed to send email: {e}") from e

    try:
        if smtp_port != 465:
            server.starttls()
        server.login(smtp_user, smtp_password)
        server.send_message(msg)
        logger.info(f"Message sent to {recipients}")
        return True
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed: {e}")
        raise Exception(f"SMTP authentication failed. Check your SMTP_PASSWORD. Error: {e}") from e
    except smtplib.SMTPException as e:
        logger.error(f"SMTP error: {e}")
        raise Exception(f"SMTP error: {e}") from e
    finally:
        try:
            server.quit()
        except smtplib.SMTPException as e:
            logger.debug(f"SMTP quit failed: {e}")


def send_slack_message(text: str, token: str = None, channel: str = None, http: httpx.Client = None) -> dict:
    """Post a message to a Slack channel with the Web API."""
    token = token or os.getenv("SLACK_BOT_TOKEN")
    channel = channel or os.getenv("SLACK_CHANNEL_ID")
    if not token or not channel:
        raise ValueError("SLACK_BOT_TOKEN and SLACK_CHANNEL_ID must be set")

    client = http or httpx.Client(timeout=10.0)
    try:
        response = client.post(
            SLACK_POST_MESSAGE_URL,
            headers={"Authorization": f"Bearer {token}"},
            json={"channel": channel, "text": text},
        )
        response.raise_for_status()
        data = response.json()
    finally:
        if http is None:
            client.close()

    if not data.get("ok"):
        raise Exception(f"Slack API error: {data.get('error', 'unknown error')}")
    logger.info(f"Slack message posted to {channel}")
    return data


def send_friday_reminders(
    directory: ZohoPeopleClient,
    mailer: Callable[..., bool] | None = None,
    notifier: Callable[..., dict] | None = None,
) -> dict:
    """
    Email every directory member at the allowed domain, then post one Slack message.

    A failed email is recorded and the remaining recipients are still sent to.
    Email is skipped when SMTP isn't configured, Slack when the bot isn't.

    Returns:
        dict with success status and details
    """
    mailer = mailer or send_email
    notifier = notifier or send_slack_message
    domain = config.allowed_email_domain()
    try:
        employees = directory.list_employees()
    except Exception as e:
        logger.error(f"Could not list employees for reminders: {e}")
        return {"success": False, "error": str(e)}

    recipients = [e for e in employees if e.email and e.email.lower().endswith(f"@{domain}")]
    sent = 0
    failures = []

    if config.smtp_configured():
        for employee in recipients:
            try:
                mailer(EMAIL_SUBJECT, generate_reminder_html(employee.first_name), [employee.email])
                sent += 1
            except Exception as e:
                logger.warning(f"Reminder email to {employee.email} failed: {e}")
                failures.append({"email": employee.email, "error": str(e)})
    else:
        logger.info("SMTP not configured, skipping reminder emails")

    slack_sent = False
    if config.slack_configured():
        try:
            notifier(SLACK_TEXT)
            slack_sent = True
        except Exception as e:
            logger.error(f"Slack reminder failed: {e}")
            return {
                "success": False,
                "error": f"Slack reminder failed: {e}",
                "recipients": len(recipients),
                "emails_sent": sent,
                "email_failures": failures,
                "slack_sent": False,
            }
    else:
        logger.info("Slack not configured, skipping channel reminder")

    logger.info(f"Reminders: {sent}/{len(recipients)} emails sent, slack_sent={slack_sent}")
    return {
        "success": True,
        "recipients": len(recipients),
        "emails_sent": sent,
        "email_failures": failures,
        "slack_sent": slack_sent,
    }
