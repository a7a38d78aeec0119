from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from models.mixins import CuidMixin, MultiTenantModel, OrganizationMixin


class Role(MultiTenantModel, Base):
    """Organization-scoped bundle of permissions (e.g. 'Admin', 'Agent')"""

    __tablename__ = "role"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_system: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )  # System roles cannot be modified or deleted

    __table_args__ = (UniqueConstraint("organization_id", "name", name="uq_role_organization_name"),)


class UserRole(CuidMixin, OrganizationMixin, Base):
    """Ordered user -> role assignment"""

    __tablename__ = "user_role"

    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[str] = mapped_column(
        String, ForeignKey("role.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)
