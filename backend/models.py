from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StaffProfile(CamelModel):
    employee_id: str
    first_name: str = ""
    last_name: str = ""
    nickname: str = ""
    email: str
    position: str = ""


class Project(CamelModel):
    id: str
    client: str = ""
    name: str = ""
    code: str = ""


class Task(CamelModel):
    id: str
    name: str = ""


class TimeLogRow(CamelModel):
    """One Time Log sheet row (13 columns)."""

    id: str
    date: str  # YYYY-MM-DD format
    staff_id: str
    staff_first_name: str = ""
    staff_last_name: str = ""
    staff_position: str = ""
    project_id: str
    project_client: str = ""
    project_name: str = ""
    project_code: str = ""
    task_id: str
    task: str = ""
    hours: float = 0

    @property
    def pair(self) -> tuple[str, str]:
        return (self.project_id, self.task_id)


class StoredRow(BaseModel):
    """A Time Log row as found in the sheet, with its 1-based row number."""

    row_index: int
    row: TimeLogRow
