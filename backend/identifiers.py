"""Deterministic Time Log ID generation."""
import hashlib

ID_LENGTH = 16
SEPARATOR = "|"


def generate_time_log_id(date: str, staff_id: str, project_id: str, task_id: str) -> str:
    """Derive the Time Log ID from Date + Staff ID + Project ID + Task ID.

    The same four values always give the same 16 character lowercase hex id,
    so the id doubles as the match key for rows already in the sheet.
    """
    fields = (date, staff_id, project_id, task_id)
    if not all(fields):
        raise ValueError("date, staff_id, project_id and task_id are all required")
    raw = SEPARATOR.join(fields)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:ID_LENGTH]
