from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.enums import TaskPriority, TaskStatus
from schemas.common import PaginationMeta
from schemas.validators import reject_null, validate_non_blank

TASK_TITLE_MIN_LENGTH = 2


class TaskCreate(BaseModel):
    project_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=TASK_TITLE_MIN_LENGTH, max_length=200)
    description: str | None = Field(None, max_length=5000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_user_id: str | None = None
    due_date: date | None = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return validate_non_blank(v, TASK_TITLE_MIN_LENGTH)


class TaskUpdate(BaseModel):
    """Omitted fields are left unchanged; a null assignee unassigns the task"""

    title: str | None = Field(None, min_length=TASK_TITLE_MIN_LENGTH, max_length=200)
    description: str | None = Field(None, max_length=5000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_user_id: str | None = None
    due_date: date | None = None

    @field_validator("title", "status", "priority")
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return validate_non_blank(v, TASK_TITLE_MIN_LENGTH)


class TaskResponse(BaseModel):
    id: str
    organization_id: str
    project_id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    assignee_user_id: str | None
    due_date: date | None
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskListResponse(BaseModel):
    items: list[TaskResponse]
    pagination: PaginationMeta
