"""Zoho People directory client.

Resolves staff profiles by email. The records endpoint answers in one of
two shapes, detected once here and flattened into plain dicts:

    LegacyForm  {"response": {"result": {"Employees": {"row": [{"FL": [{"val", "content"}]}]}}}}
    FlatForm    [{"EmployeeID": ..., "Email": ...}, ...]
"""
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from models import StaffProfile

logger = logging.getLogger(__name__)

RECORDS_PATH = "/people/api/forms/P_EmployeeView/records"
TOKEN_SAFETY_MARGIN = 5 * 60
PAGE_SIZE = 200
MAX_PAGES = 50
NO_RECORDS_CODE = 7024

# Ordered aliases per profile field; the first non-empty value wins
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "employee_id": ("EmployeeID", "Employee ID", "Employee_ID", "EmployeeId"),
    "first_name": ("FirstName", "First Name", "First_Name"),
    "last_name": ("LastName", "Last Name", "Last_Name"),
    "nickname": ("Nickname", "Nick Name", "Nick_Name"),
    "email": ("EmailID", "Email", "Email address", "Email ID", "Email_ID"),
    "position": ("Position", "Designation", "Title", "Job Title"),
}


class DirectoryError(Exception):
    """Raised when Zoho People can't be reached or returns an error."""


@dataclass(frozen=True)
class LegacyForm:
    rows: list[dict]

    def records(self) -> list[dict[str, str]]:
        records = []
        for row in self.rows:
            fields = row.get("FL", []) if isinstance(row, dict) else []
            if isinstance(fields, dict):
                fields = [fields]
            records.append({f.get("val", ""): f.get("content", "") for f in fields if isinstance(f, dict)})
        return records


@dataclass(frozen=True)
class FlatForm:
    items: list[dict]

    def records(self) -> list[dict[str, str]]:
        return [item for item in self.items if isinstance(item, dict)]


def _raise_for_zoho_error(response: dict) -> bool:
    """Return True for "no records", raise DirectoryError for other errors."""
    errors = response.get("errors")
    if not errors:
        status = response.get("status")
        if status not in (None, 0, "0") and "result" not in response:
            message = response.get("message") or f"status {status}"
            raise DirectoryError(f"Zoho People error: {message}")
        return False
    if isinstance(errors, list):
        errors = errors[0] if errors else {}
    code = errors.get("code") if isinstance(errors, dict) else None
    message = errors.get("message") if isinstance(errors, dict) else str(errors)
    if code == NO_RECORDS_CODE:
        return True
    raise DirectoryError(f"Zoho People error {code}: {message}")


def classify_response(payload) -> LegacyForm | FlatForm:
    if isinstance(payload, list):
        return FlatForm(payload)
    if not isinstance(payload, dict):
        raise DirectoryError(f"Unexpected Zoho People response: {type(payload).__name__}")

    response = payload.get("response")
    if not isinstance(response, dict):
        raise DirectoryError("Unexpected Zoho People response: missing 'response'")
    if _raise_for_zoho_error(response):
        return FlatForm([])

    result = response.get("result")
    wrappers = result if isinstance(result, list) else [result]
    rows: list[dict] = []
    flat: list[dict] = []
    for wrapper in wrappers:
        if not isinstance(wrapper, dict):
            continue
        employees = wrapper.get("Employees")
        if isinstance(employees, dict):
            row = employees.get("row", [])
            rows.extend(row if isinstance(row, list) else [row])
            continue
        # {"<record id>": [{...}]} wrappers carry already-keyed records
        for value in wrapper.values():
            if isinstance(value, list):
                flat.extend(v for v in value if isinstance(v, dict))
    if rows:
        return LegacyForm(rows)
    return FlatForm(flat)


def _first_value(record: dict, aliases: tuple[str, ...]) -> str:
    for alias in aliases:
        value = record.get(alias)
        if value not in (None, ""):
            return str(value).strip()
    return ""


def profile_from_record(record: dict) -> StaffProfile | None:
    values = {field: _first_value(record, aliases) for field, aliases in FIELD_ALIASES.items()}
    if not values["email"]:
        return None
    return StaffProfile(**values)


def profiles_from_records(records: list[dict]) -> list[StaffProfile]:
    profiles = [profile_from_record(record) for record in records]
    return [p for p in profiles if p is not None]


def parse_profiles(payload) -> list[StaffProfile]:
    return profiles_from_records(classify_response(payload).records())


class ZohoPeopleClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        api_domain: str = "https://people.zoho.com",
        accounts_url: str = "https://accounts.zoho.com",
        http: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if not client_id or not client_secret or not refresh_token:
            raise ValueError("Zoho People API credentials are missing")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.api_domain = api_domain.rstrip("/")
        self.accounts_url = accounts_url.rstrip("/")
        self._http = http or httpx.Client(timeout=30.0)
        self._clock = clock
        self._access_token: str | None = None
        self._token_expiry = 0.0

    def close(self) -> None:
        self._http.close()

    def refresh_access_token(self) -> dict:
        """Fetch a new access token and return Zoho's token response."""
        try:
            response = self._http.post(
                f"{self.accounts_url}/oauth/v2/token",
                params={
                    "refresh_token": self.refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to refresh Zoho access token: {e}")
            raise DirectoryError(f"Failed to refresh Zoho access token: {e}") from e

        token = data.get("access_token")
        if not token:
            raise DirectoryError(f"Failed to refresh Zoho access token: {data.get('error', 'no access_token')}")
        self._access_token = token
        self._token_expiry = self._clock() + float(data.get("expires_in", 3600)) - TOKEN_SAFETY_MARGIN
        logger.info("Refreshed Zoho access token")
        return data

    def access_token(self) -> str:
        """Current access token, refreshed when missing or past its expiry."""
        if not self._access_token or self._clock() >= self._token_expiry:
            return self.refresh_access_token()["access_token"]
        return self._access_token

    def _get_records(self, params: dict) -> list[dict[str, str]]:
        try:
            response = self._http.get(
                f"{self.api_domain}{RECORDS_PATH}",
                params=params,
                headers={"Authorization": f"Zoho-oauthtoken {self.access_token()}"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching employees from Zoho: {e}")
            raise DirectoryError(f"Failed to fetch employee data from Zoho People: {e}") from e
        return classify_response(payload).records()

    def find_by_email(self, email: str) -> StaffProfile | None:
        """Profile whose email equals ``email`` (case-insensitive), or None.

        The search filter isn't reliable, so every returned record is checked.
        """
        wanted = email.strip().lower()
        records = self._get_records({"searchCriteria": f"(Email:equals:{email.strip()})"})
        profiles = profiles_from_records(records)
        for profile in profiles:
            if profile.email.strip().lower() == wanted:
                return profile
        logger.warning(f"Employee not found in Zoho People: {email} ({len(profiles)} non-matching results)")
        return None

    def list_employees(self) -> list[StaffProfile]:
        employees: list[StaffProfile] = []
        start = 1
        previous: list[dict] | None = None
        for _ in range(MAX_PAGES):
            page = self._get_records({"sIndex": start, "limit": PAGE_SIZE})
            if page == previous:
                logger.warning(f"Zoho People returned the same page again at sIndex={start}, stopping")
                break
            employees.extend(profiles_from_records(page))
            if len(page) < PAGE_SIZE:
                break
            previous = page
            start += PAGE_SIZE
        else:
            logger.warning(f"Stopped listing employees after {MAX_PAGES} pages")
        logger.info(f"Fetched {len(employees)} employees from Zoho People")
        return employees


_directory: ZohoPeopleClient | None = None


def get_directory() -> ZohoPeopleClient:
    """Process-wide Zoho People client, created on first use."""
    global _directory
    if _directory is None:
        _directory = ZohoPeopleClient(
            client_id=os.getenv("ZOHO_CLIENT_ID", ""),
            client_secret=os.getenv("ZOHO_CLIENT_SECRET", ""),
            refresh_token=os.getenv("ZOHO_REFRESH_TOKEN", ""),
            api_domain=os.getenv("ZOHO_API_DOMAIN", "https://people.zoho.com"),
            accounts_url=os.getenv("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com"),
        )
    return _directory
