from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from core.enums import LeadSource, LeadStatus
from schemas.common import PaginationMeta
from schemas.validators import reject_null, validate_non_blank

LEAD_TITLE_MIN_LENGTH = 3


class LeadCreate(BaseModel):
    title: str = Field(..., min_length=LEAD_TITLE_MIN_LENGTH, max_length=120)
    company: str | None = Field(None, max_length=200)
    contact_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    source: LeadSource = LeadSource.OTHER
    status: LeadStatus = LeadStatus.NEW
    notes: str | None = None
    owner_user_id: str | None = Field(None, description="Defaults to the creator")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return validate_non_blank(v, LEAD_TITLE_MIN_LENGTH)


class LeadUpdate(BaseModel):
    """Omitted fields are left unchanged; ownership changes go through assign"""

    title: str | None = Field(None, min_length=LEAD_TITLE_MIN_LENGTH, max_length=120)
    company: str | None = Field(None, max_length=200)
    contact_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    source: LeadSource | None = None
    status: LeadStatus | None = None
    notes: str | None = None

    @field_validator("title", "source", "status")
    @classmethod
    def check_not_null(cls, v):
        return reject_null(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return validate_non_blank(v, LEAD_TITLE_MIN_LENGTH)


class LeadAssign(BaseModel):
    owner_user_id: str = Field(..., min_length=1)


class LeadResponse(BaseModel):
    id: str
    organization_id: str
    title: str
    company: str | None
    contact_name: str | None
    email: str | None
    phone: str | None
    source: LeadSource
    status: LeadStatus
    owner_user_id: str
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeadListResponse(BaseModel):
    items: list[LeadResponse]
    pagination: PaginationMeta
