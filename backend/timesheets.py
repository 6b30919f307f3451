"""Timesheet operations behind the HTTP routes."""
import logging
from datetime import date

from cache import ReferenceCache
from dates import format_date_iso, week_end
from identifiers import generate_time_log_id
from models import StaffProfile, TimeLogRow
from reconcile import ReconcileResult, reconcile
from repository import TimesheetRepository
from schemas import TimeEntryView

logger = logging.getLogger(__name__)


class UnknownReferenceError(ValueError):
    """A submitted entry names a project or task that doesn't exist."""


def build_rows(staff: StaffProfile, day: str, entries: list, cache: ReferenceCache) -> list[TimeLogRow]:
    """Turn submitted entries into full Time Log rows.

    Every project and task id is checked against the cached reference
    data first, so an unknown id fails before anything is written.
    """
    if not entries:
        return []
    projects = cache.project_map()
    tasks = cache.task_map()

    for entry in entries:
        if entry.project_id not in projects:
            raise UnknownReferenceError(f"Invalid project ID: {entry.project_id}")
        if entry.task_id not in tasks:
            raise UnknownReferenceError(f"Invalid task ID: {entry.task_id}")

    rows = []
    for entry in entries:
        project = projects[entry.project_id]
        task = tasks[entry.task_id]
        rows.append(
            TimeLogRow(
                id=generate_time_log_id(day, staff.employee_id, project.id, task.id),
                date=day,
                staff_id=staff.employee_id,
                staff_first_name=staff.first_name,
                staff_last_name=staff.last_name,
                staff_position=staff.position,
                project_id=project.id,
                project_client=project.client,
                project_name=project.name,
                project_code=project.code,
                task_id=task.id,
                task=task.name,
                hours=entry.hours,
            )
        )
    return rows


def submit_day(
    repository: TimesheetRepository,
    cache: ReferenceCache,
    staff: StaffProfile,
    day: str,
    entries: list,
) -> ReconcileResult:
    rows = build_rows(staff, day, entries, cache)
    return reconcile(repository, day, staff.employee_id, rows)


def week_entries(repository: TimesheetRepository, staff_id: str, week_start: date) -> dict[str, list[TimeEntryView]]:
    """A staff member's Monday-Friday rows grouped by date.

    Rows repeating a Time Log ID already seen are dropped.
    """
    start = format_date_iso(week_start)
    end = format_date_iso(week_end(week_start))
    logger.info(f"Fetching time logs for staff {staff_id} from {start} to {end}")

    grouped: dict[str, list[TimeEntryView]] = {}
    seen_ids = set()
    for row in repository.list_entries(start, end, staff_id=staff_id):
        unique_id = row.id or f"existing-{row.date}-{row.project_id}-{row.task_id}"
        if unique_id in seen_ids:
            logger.warning(f"Duplicate entry detected: {unique_id}")
            continue
        seen_ids.add(unique_id)
        grouped.setdefault(row.date, []).append(
            TimeEntryView(id=unique_id, project_id=row.project_id, task_id=row.task_id, hours=row.hours)
        )

    logger.info(f"Found {len(seen_ids)} time log entries for staff {staff_id}")
    return grouped
