"""Conversion between sheet rows (lists of cells) and typed records."""
import logging

from dates import normalize_date
from models import Project, Task, TimeLogRow

logger = logging.getLogger(__name__)

# Time Log column order: A..M
TIME_LOG_COLUMNS = (
    "Time Log ID",
    "Date",
    "Staff ID",
    "Staff First Name",
    "Staff Last Name",
    "Staff Position",
    "Project ID",
    "Project Client",
    "Project Name",
    "Project Code",
    "Task ID",
    "Task",
    "Hours",
)
TIME_LOG_WIDTH = len(TIME_LOG_COLUMNS)


def _cell(row: list, index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _parse_hours(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def project_from_row(row: list) -> Project | None:
    """Projects sheet: ID, Client, Name, Code. Incomplete rows are skipped."""
    if len(row) < 4 or not _cell(row, 0):
        return None
    return Project(id=_cell(row, 0), client=_cell(row, 1), name=_cell(row, 2), code=_cell(row, 3))


def task_from_row(row: list) -> Task | None:
    """Roles and Tasks sheet: ID, Task."""
    if len(row) < 2 or not _cell(row, 0):
        return None
    return Task(id=_cell(row, 0), name=_cell(row, 1))


def time_log_from_row(row: list, row_index: int | None = None) -> TimeLogRow | None:
    """Map a Time Log row to a TimeLogRow.

    Returns None for rows too short to carry an identity or whose date
    can't be normalized; those are logged and left out of read results.
    """
    if len(row) < 2:
        return None
    padded = list(row) + [""] * (TIME_LOG_WIDTH - len(row))
    raw_date = padded[1]
    normalized = normalize_date(raw_date)
    if normalized is None:
        logger.warning(f"Skipping Time Log row {row_index}: unparseable date {raw_date!r}")
        return None
    return TimeLogRow(
        id=_cell(padded, 0),
        date=normalized,
        staff_id=_cell(padded, 2),
        staff_first_name=_cell(padded, 3),
        staff_last_name=_cell(padded, 4),
        staff_position=_cell(padded, 5),
        project_id=_cell(padded, 6),
        project_client=_cell(padded, 7),
        project_name=_cell(padded, 8),
        project_code=_cell(padded, 9),
        task_id=_cell(padded, 10),
        task=_cell(padded, 11),
        hours=_parse_hours(padded[12]),
    )


def time_log_to_row(entry: TimeLogRow) -> list:
    """Cells in sheet column order. Ids and dates stay strings; hours is a number."""
    return [
        entry.id,
        entry.date,
        entry.staff_id,
        entry.staff_first_name,
        entry.staff_last_name,
        entry.staff_position,
        entry.project_id,
        entry.project_client,
        entry.project_name,
        entry.project_code,
        entry.task_id,
        entry.task,
        entry.hours,
    ]
