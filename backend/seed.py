"""Sample reference data for the in-memory development spreadsheet."""
import config
from rows import TIME_LOG_COLUMNS
from sheets import InMemorySpreadsheet


def build_dev_spreadsheet() -> InMemorySpreadsheet:
    """Spreadsheet with headers, a few projects and tasks, and an empty Time Log."""
    return InMemorySpreadsheet(
        {
            config.PROJECTS_SHEET: [
                ["Project ID", "Project Client", "Project Name", "Project Code"],
                ["P001", "Acme Corp", "Website Redesign", "ACM-WEB"],
                ["P002", "Acme Corp", "Mobile App", "ACM-APP"],
                ["P003", "Globex", "Data Warehouse", "GLX-DWH"],
                ["P004", "", "Internal", "INT"],
            ],
            config.TASKS_SHEET: [
                ["Task ID", "Task"],
                ["T001", "Development"],
                ["T002", "Design"],
                ["T003", "Meetings"],
                ["T004", "Project Management"],
            ],
            config.TIME_LOG_SHEET: [list(TIME_LOG_COLUMNS)],
        }
    )
