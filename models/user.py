from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import UserStatus
from models.mixins import MultiTenantModel


class User(MultiTenantModel, Base):
    """
    A person who signs in to one organization.

    Inherits from MultiTenantModel:
        - id: CUID primary key
        - organization_id: Foreign key to organization
        - created_at / updated_at

    The ordered role list lives in ``user_role``. Email uniqueness is scoped
    to the organization. ``password_hash`` is set only through
    ``UserRepository.create_user`` / ``set_password``, which hash explicitly.
    """

    __tablename__ = "user"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=UserStatus.ACTIVE.value, index=True
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_organization_email"),
        CheckConstraint(f"status IN {tuple(UserStatus.values())}", name="user_status_check"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
