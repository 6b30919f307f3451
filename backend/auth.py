"""Google sign-in, domain allowlist and the session-held staff profile."""
import logging
import os

from fastapi import HTTPException, Request
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

import config
from directory import ZohoPeopleClient
from models import StaffProfile

logger = logging.getLogger(__name__)

SESSION_KEY = "staff_profile"


def verify_google_token(token: str) -> dict:
    """Verify a Google ID token and return its claims.

    Raises ValueError for invalid, expired or wrong-audience tokens and
    GoogleAuthError for a wrong issuer.
    """
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    if not client_id:
        raise ValueError("GOOGLE_CLIENT_ID is not configured")
    return id_token.verify_oauth2_token(token, google_requests.Request(), client_id)


def sign_in(token: str, directory: ZohoPeopleClient) -> StaffProfile:
    """Resolve the staff profile for a Google ID token.

    Raises PermissionError when the token is invalid, the account is outside
    the allowed domain, or the directory has no matching employee.
    """
    try:
        claims = verify_google_token(token)
    except (ValueError, google_exceptions.GoogleAuthError) as e:
        logger.warning(f"Google token rejected: {e}")
        raise PermissionError("Invalid Google credentials") from e

    email = (claims.get("email") or "").strip()
    domain = config.allowed_email_domain()
    if not email or not claims.get("email_verified", False):
        raise PermissionError("Google account has no verified email")
    if not email.lower().endswith(f"@{domain}"):
        logger.warning(f"Sign-in rejected for {email}: outside {domain}")
        raise PermissionError(f"Access restricted to {domain} accounts")

    profile = directory.find_by_email(email)
    if profile is None:
        raise PermissionError(f"Employee not found in directory: {email}")
    if not profile.employee_id:
        raise PermissionError(f"Directory record for {email} has no employee ID")

    logger.info(f"Signed in {email} as staff {profile.employee_id}")
    return profile


def store_profile(request: Request, profile: StaffProfile) -> None:
    request.session[SESSION_KEY] = profile.model_dump()


def clear_session(request: Request) -> None:
    request.session.clear()


def get_current_staff(request: Request) -> StaffProfile:
    """Dependency: the signed-in staff member, or 401."""
    data = request.session.get(SESSION_KEY)
    if not data:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return StaffProfile.model_validate(data)
