from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from schemas.common import PaginationMeta


class AuditLogResponse(BaseModel):
    """One immutable audit entry; sensitive fields were stripped when it was written"""

    id: str
    organization_id: str
    user_id: str | None
    action: str
    entity_type: str
    entity_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = Field(None, validation_alias=AliasChoices("extra", "metadata"))
    ip: str | None = None
    user_agent: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    pagination: PaginationMeta
