"""Synchronize one staff member's day in the Time Log sheet with a submission."""
import logging
from dataclasses import dataclass

from models import TimeLogRow

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    deleted: int = 0
    updated: int = 0
    appended: int = 0


def reconcile(repository, date: str, staff_id: str, desired: list[TimeLogRow]) -> ReconcileResult:
    """Make the stored rows for (date, staff_id) match ``desired``.

    Rows are matched by (project_id, task_id). Stored rows missing from
    ``desired`` are deleted, matches are overwritten in place and the rest
    are appended in one batch. An empty ``desired`` clears the day.

    The sheet has no transactions: a failure part-way leaves earlier steps
    applied and the error propagates to the caller. Nothing guards two
    concurrent submissions for the same day, which can both append.
    """
    for entry in desired:
        if entry.date != date or entry.staff_id != staff_id:
            raise ValueError(
                f"Entry {entry.project_id}/{entry.task_id} does not belong to {staff_id} on {date}"
            )

    result = ReconcileResult()
    existing = {stored.row.pair: stored for stored in repository.find_rows(date, staff_id)}
    wanted = {entry.pair for entry in desired}

    to_delete = sorted(
        (stored.row_index for pair, stored in existing.items() if pair not in wanted),
        reverse=True,
    )
    to_update = [entry for entry in desired if entry.pair in existing]
    to_append = [entry for entry in desired if entry.pair not in existing]

    if to_delete:
        repository.delete_rows(to_delete)
        result.deleted = len(to_delete)
        logger.info(f"Deleted {len(to_delete)} removed entries for {staff_id} on {date}")
        if to_update:
            # Deleting shifts rows up; look the surviving rows up again
            existing = {stored.row.pair: stored for stored in repository.find_rows(date, staff_id)}

    for entry in to_update:
        stored = existing.get(entry.pair)
        if stored is None:
            raise LookupError(
                f"Time log row for {entry.project_id}/{entry.task_id} on {date} disappeared during update"
            )
        repository.update_row(stored.row_index, entry)
        result.updated += 1

    if to_append:
        repository.append_rows(to_append)
        result.appended = len(to_append)

    logger.info(
        f"Reconciled {staff_id} on {date}: {result.deleted} deleted, "
        f"{result.updated} updated, {result.appended} appended"
    )
    return result
