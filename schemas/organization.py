from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.enums import OrganizationStatus
from schemas.validators import NAME_MIN_LENGTH, validate_domain, validate_non_blank


class OrganizationResponse(BaseModel):
    id: str
    name: str
    domain: str
    status: OrganizationStatus
    settings: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrganizationUpdate(BaseModel):
    """Settings are deep-merged into the stored settings"""

    name: str | None = Field(None, min_length=NAME_MIN_LENGTH, max_length=100)
    domain: str | None = None
    settings: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        return validate_non_blank(v, NAME_MIN_LENGTH) if v is not None else v

    @field_validator("domain")
    @classmethod
    def check_domain(cls, v: str | None) -> str | None:
        return validate_domain(v) if v is not None else v


class CountsByStatus(BaseModel):
    total: int
    by_status: dict[str, int]


class OrganizationStatsResponse(BaseModel):
    users: CountsByStatus
    leads: CountsByStatus
    projects: CountsByStatus
    tasks: CountsByStatus
    roles: int
    attachments: int
