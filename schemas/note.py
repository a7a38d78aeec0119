from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.enums import NoteEntityType
from schemas.common import PaginationMeta
from schemas.validators import validate_non_blank

NOTE_BODY_MAX_LENGTH = 5000


class NoteCreate(BaseModel):
    entity_type: NoteEntityType
    entity_id: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1, max_length=NOTE_BODY_MAX_LENGTH)

    @field_validator("body")
    @classmethod
    def check_body(cls, v: str) -> str:
        return validate_non_blank(v)


class NoteUpdate(BaseModel):
    body: str = Field(..., min_length=1, max_length=NOTE_BODY_MAX_LENGTH)

    @field_validator("body")
    @classmethod
    def check_body(cls, v: str) -> str:
        return validate_non_blank(v)


class NoteResponse(BaseModel):
    id: str
    organization_id: str
    entity_type: NoteEntityType
    entity_id: str
    author_user_id: str
    body: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NoteListResponse(BaseModel):
    items: list[NoteResponse]
    pagination: PaginationMeta
