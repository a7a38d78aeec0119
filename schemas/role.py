from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import PaginationMeta


class RoleCreate(BaseModel):
    """Schema for creating a custom role"""

    name: str = Field(..., min_length=1, max_length=50, description="Unique within the organization")
    description: str = Field("", max_length=200, description="Role description")
    permissions: list[str] = Field(..., min_length=1, description="Permission values, e.g. 'lead.view.all'")


class RoleUpdate(BaseModel):
    """Schema for updating a role; omitted fields are left unchanged"""

    name: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=200)
    permissions: list[str] | None = Field(None, min_length=1)


class RoleResponse(BaseModel):
    """Schema for role response"""

    id: str
    organization_id: str
    name: str
    description: str
    permissions: list[str]
    is_system: bool
    created_at: datetime
    updated_at: datetime
    user_count: int | None = None

    model_config = ConfigDict(from_attributes=True)


class RoleMember(BaseModel):
    id: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class RoleDetailResponse(RoleResponse):
    """Role with a sample of the users holding it"""

    users: list[RoleMember] = Field(default_factory=list)


class RoleListResponse(BaseModel):
    items: list[RoleResponse]
    pagination: PaginationMeta


class PermissionCatalogResponse(BaseModel):
    permissions: list[str]
    categories: dict[str, list[str]]
