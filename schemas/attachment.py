"""Pydantic schemas for attachment upload/download operations."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from core.enums import AttachableEntityType
from schemas.common import PaginationMeta


class AttachmentResponse(BaseModel):
    id: str
    organization_id: str
    entity_type: AttachableEntityType
    entity_id: str
    filename: str
    mime_type: str
    size_bytes: int
    checksum: str
    uploaded_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttachmentListResponse(BaseModel):
    items: list[AttachmentResponse]
    pagination: PaginationMeta
