from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.enums import ProjectStatus
from schemas.common import PaginationMeta
from schemas.validators import reject_null, validate_non_blank

PROJECT_NAME_MIN_LENGTH = 2
MEMBER_ROLE_MIN_LENGTH = 2


class ProjectMemberInput(BaseModel):
    user_id: str = Field(..., min_length=1)
    role: str = Field("Member", min_length=MEMBER_ROLE_MIN_LENGTH, max_length=50)

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        return validate_non_blank(v, MEMBER_ROLE_MIN_LENGTH)


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=PROJECT_NAME_MIN_LENGTH, max_length=150)
    description: str | None = Field(None, max_length=2000)
    client: str | None = Field(None, max_length=150)
    status: ProjectStatus = ProjectStatus.ACTIVE
    lead_id: str | None = None
    budget: float | None = Field(None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    manager_user_id: str | None = Field(None, description="Defaults to the creator")
    members: list[ProjectMemberInput] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_non_blank(v, PROJECT_NAME_MIN_LENGTH)

    @model_validator(mode="after")
    def check_dates(self) -> "ProjectCreate":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ProjectUpdate(BaseModel):
    """Omitted fields are left unchanged; members are managed through their own endpoints"""

    name: str | None = Field(None, min_length=PROJECT_NAME_MIN_LENGTH, max_length=150)
    description: str | None = Field(None, max_length=2000)
    client: str | None = Field(None, max_length=150)
    status: ProjectStatus | None = None
    lead_id: str | None = None
    budget: float | None = Field(None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    manager_user_id: str | None = None

    @field_validator("name", "status")
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_non_blank(v, PROJECT_NAME_MIN_LENGTH)


class ProjectMemberResponse(BaseModel):
    user_id: str
    role: str
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    description: str | None
    client: str | None
    status: ProjectStatus
    lead_id: str | None
    budget: float | None
    start_date: date | None
    end_date: date | None
    manager_user_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectDetailResponse(ProjectResponse):
    members: list[ProjectMemberResponse] = Field(default_factory=list)


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
    pagination: PaginationMeta
