"""Typed access to the Projects, Roles and Tasks, and Time Log sheets."""
import logging

import config
from models import Project, StoredRow, Task, TimeLogRow
from rows import (
    TIME_LOG_WIDTH,
    project_from_row,
    task_from_row,
    time_log_from_row,
    time_log_to_row,
)
from sheets import FIRST_DATA_ROW, SpreadsheetClient, get_sheets_client

logger = logging.getLogger(__name__)


class TimesheetRepository:
    def __init__(self, client: SpreadsheetClient):
        self.client = client

    def list_projects(self) -> list[Project]:
        rows = self.client.read_rows(config.PROJECTS_SHEET, 4)
        projects = [p for p in (project_from_row(row) for row in rows) if p]
        logger.info(f"Found {len(projects)} projects")
        return projects

    def list_tasks(self) -> list[Task]:
        rows = self.client.read_rows(config.TASKS_SHEET, 2)
        tasks = [t for t in (task_from_row(row) for row in rows) if t]
        logger.info(f"Found {len(tasks)} tasks")
        return tasks

    def _stored_rows(self) -> list[StoredRow]:
        stored = []
        for offset, cells in enumerate(self.client.read_rows(config.TIME_LOG_SHEET, TIME_LOG_WIDTH)):
            row_index = offset + FIRST_DATA_ROW
            entry = time_log_from_row(cells, row_index)
            if entry is not None:
                stored.append(StoredRow(row_index=row_index, row=entry))
        return stored

    def find_rows(self, date: str, staff_id: str) -> list[StoredRow]:
        """All Time Log rows for one staff member on one day, with row numbers."""
        return [s for s in self._stored_rows() if s.row.date == date and s.row.staff_id == staff_id]

    def list_entries(self, start_date: str, end_date: str, staff_id: str | None = None) -> list[TimeLogRow]:
        """Time Log rows dated between start_date and end_date inclusive."""
        entries = []
        for stored in self._stored_rows():
            row = stored.row
            if not (start_date <= row.date <= end_date):
                continue
            if staff_id is not None and row.staff_id != staff_id:
                continue
            entries.append(row)
        return entries

    def update_row(self, row_index: int, entry: TimeLogRow) -> None:
        self.client.write_row(config.TIME_LOG_SHEET, row_index, time_log_to_row(entry))
        logger.info(f"Updated time log entry at row {row_index}")

    def append_rows(self, entries: list[TimeLogRow]) -> None:
        if not entries:
            return
        self.client.append_rows(config.TIME_LOG_SHEET, [time_log_to_row(e) for e in entries])
        logger.info(f"Appended {len(entries)} new time log entries")

    def delete_rows(self, row_indices: list[int]) -> None:
        """Delete rows bottom-up so pending indices stay valid."""
        if not row_indices:
            return
        self.client.delete_rows(config.TIME_LOG_SHEET, sorted(row_indices, reverse=True))
        logger.info(f"Deleted {len(row_indices)} time log entries")


def get_repository() -> TimesheetRepository:
    return TimesheetRepository(get_sheets_client())
